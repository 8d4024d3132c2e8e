"""
Flask CLI commands

    flask scheduler run            # poll every SCHEDULER_INTERVAL_SECONDS
    flask scheduler run --once     # one pass, e.g. from cron
"""

import time

import click
from flask import current_app
from flask.cli import AppGroup, with_appcontext

from extensions import db

scheduler_cli = AppGroup('scheduler', help='Escrow release and booking housekeeping.')


@scheduler_cli.command('run')
@click.option('--once', is_flag=True, help='Run a single pass and exit.')
@click.option('--interval', type=int, default=None, help='Seconds between passes.')
@with_appcontext
def run_scheduler(once, interval):
    """Run the scheduled booking checks"""
    from app.services.scheduler_service import run_scheduled_checks

    interval = interval or current_app.config['SCHEDULER_INTERVAL_SECONDS']

    while True:
        try:
            result = run_scheduled_checks()
            click.echo(
                f"released={result['released']} cancelled={result['cancelled']} "
                f"completed={result['completed']} payout_notices={result['payout_notices']}"
            )
        except Exception as e:
            db.session.rollback()
            current_app.logger.error(f'Scheduler pass failed: {str(e)}')
            if once:
                raise
        if once:
            break
        time.sleep(interval)


def register_commands(app):
    app.cli.add_command(scheduler_cli)
