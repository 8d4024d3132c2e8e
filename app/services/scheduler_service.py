"""
Scheduler Service
Periodic booking housekeeping: escrow release, auto-cancel of unanswered
requests, auto-complete of finished stays and payout notices.

Every check compares stored timestamps with ``now`` and commits per
booking, so one failing booking does not stop the sweep. The checks need
an app context; the background runner pushes one per pass.
"""

import logging
import threading
from datetime import datetime, timedelta

from flask import current_app

from extensions import db
from app.models.booking import Booking, BookingStatus, DisputeStatus, PaymentStatus
from app.services import notification_service
from app.services.email_service import EmailService
from app.services.escrow_service import EscrowService, calculate_booking_end, release_date_for
from app.utils.money import format_money

logger = logging.getLogger(__name__)

URGENT_HOURS = 2

_scheduler_thread = None
_stop_event = None
_lock = threading.Lock()


# ===== RUNNER =====

def _run_loop(app, interval, stop_event):
    logger.info(f'Auto-release scheduler started (every {interval}s)')
    while not stop_event.is_set():
        with app.app_context():
            try:
                run_scheduled_checks()
            except Exception as e:
                logger.error(f'Scheduler pass failed: {str(e)}')
                db.session.rollback()
            finally:
                db.session.remove()
        stop_event.wait(interval)
    logger.info('Auto-release scheduler stopped')


def start_auto_release_scheduler(app, interval=None):
    """
    Run all checks now and then every ``interval`` seconds on a daemon thread

    Returns False when a scheduler is already running.
    """
    global _scheduler_thread, _stop_event

    with _lock:
        if _scheduler_thread is not None and _scheduler_thread.is_alive():
            return False

        interval = interval or app.config['SCHEDULER_INTERVAL_SECONDS']
        _stop_event = threading.Event()
        _scheduler_thread = threading.Thread(
            target=_run_loop, args=(app, interval, _stop_event),
            name='auto-release-scheduler', daemon=True,
        )
        _scheduler_thread.start()
        return True


def stop_auto_release_scheduler(timeout=5):
    global _scheduler_thread, _stop_event

    with _lock:
        if _scheduler_thread is None:
            return False
        _stop_event.set()
        _scheduler_thread.join(timeout)
        _scheduler_thread = None
        _stop_event = None
        return True


def is_scheduler_running():
    return _scheduler_thread is not None and _scheduler_thread.is_alive()


def run_scheduled_checks(now=None):
    now = now or datetime.utcnow()
    return {
        'released': check_and_release_eligible_bookings(now),
        'cancelled': check_and_auto_cancel_pending_bookings(now),
        'completed': check_and_auto_complete_started_bookings(now),
        'payout_notices': check_and_notify_upcoming_payouts(now),
    }


# ===== CHECKS =====

def is_due_for_release(booking, now):
    """Hold period over and nothing under dispute; check-in is not required"""
    return (
        booking.payment_status == PaymentStatus.ESCROW
        and booking.dispute_status != DisputeStatus.OPEN
        and booking.escrow_release_date is not None
        and booking.escrow_release_date <= now
    )


def check_and_release_eligible_bookings(now=None):
    """
    Release escrowed bookings whose hold period is over

    The release date is recalculated from the listing's current pricing
    model and booking config before comparing. Bookings with an open
    dispute stay in escrow until an admin resolves them.
    """
    now = now or datetime.utcnow()
    currency = current_app.config['CURRENCY']
    released = 0

    for booking in Booking.query.filter_by(payment_status=PaymentStatus.ESCROW).all():
        listing = booking.listing
        if not listing:
            logger.error(f'Listing not found for booking {booking.id}')
            continue

        try:
            release_date = release_date_for(booking)
            if booking.escrow_release_date != release_date:
                booking.escrow_release_date = release_date
                logger.info(f'Updated release date for booking {booking.id}: {release_date.isoformat()}')

            if not is_due_for_release(booking, now):
                db.session.commit()
                continue

            transactions = EscrowService.release_funds_to_host(booking, listing.host_id)
            payout = float(booking.host_payout)
            notification_service.add_notification(
                listing.host_id, 'booking', 'Payment Received',
                f'Your payout of {format_money(payout, currency)} for booking #{booking.id} '
                f'has been released to your account.',
                metadata={'booking_id': booking.id, 'listing_id': listing.id,
                          'amount': payout, 'transaction_id': transactions[0].id},
            )
            db.session.commit()
            EmailService.send_payout_email(booking)
            released += 1
            logger.info(f'Auto-released funds for booking {booking.id}')
        except Exception as e:
            db.session.rollback()
            logger.error(f'Failed to release funds for booking {booking.id}: {str(e)}')

    if released:
        logger.info(f'Auto-released {released} booking(s)')
    return released


def auto_cancel_window(booking, now):
    """Host response window in hours and whether the same-day rule applies"""
    hours = current_app.config['AUTO_CANCEL_HOURS']
    starts_at = datetime.combine(booking.date, datetime.min.time())
    same_day = booking.date == now.date() or (starts_at - now) < timedelta(hours=24)
    return (hours['SAME_DAY'] if same_day else hours['STANDARD']), same_day


def check_and_auto_cancel_pending_bookings(now=None):
    """Cancel pending requests the host did not answer in time"""
    now = now or datetime.utcnow()
    cancelled = 0

    for booking in Booking.query.filter_by(status=BookingStatus.PENDING).all():
        window, same_day = auto_cancel_window(booking, now)
        hours_since_created = (now - booking.created_at).total_seconds() / 3600
        if hours_since_created < window:
            continue

        try:
            if same_day:
                reason = f'Auto-cancelled: Host did not respond within {window} hours (same-day booking policy)'
            else:
                reason = f'Auto-cancelled: Host did not respond within {window} hours'

            refunded = booking.payment_status == PaymentStatus.ESCROW
            if refunded:
                EscrowService.process_refund(booking, booking.guest_id, float(booking.total_price), notes=reason)

            booking.status = BookingStatus.CANCELLED
            booking.cancellation_reason = reason
            booking.cancelled_at = now
            booking.cancelled_by = 'system'

            listing = booking.listing
            title = listing.title if listing else 'your listing'
            message = (f'Your booking request for {title} was automatically cancelled because '
                       f'the host did not respond in time.')
            if refunded:
                message += ' Your payment has been refunded.'
            notification_service.add_notification(
                booking.guest_id, 'booking', 'Booking Request Expired', message, severity='warning',
                metadata={'booking_id': booking.id, 'listing_id': booking.listing_id,
                          'reason': 'host_no_response', 'refunded': refunded},
            )
            if listing:
                notification_service.add_notification(
                    listing.host_id, 'booking', 'Booking Request Expired',
                    f'A booking request for {title} was automatically cancelled because you did '
                    f'not respond within {window} hours.',
                    severity='warning',
                    metadata={'booking_id': booking.id, 'listing_id': booking.listing_id,
                              'reason': 'no_response_timeout'},
                )
            db.session.commit()
            EmailService.send_cancellation_email(booking, booking.guest)
            cancelled += 1
            logger.info(f'Auto-cancelled booking {booking.id} after {window}h without host response')
        except Exception as e:
            db.session.rollback()
            logger.error(f'Failed to auto-cancel booking {booking.id}: {str(e)}')

    if cancelled:
        logger.info(f'Auto-cancelled {cancelled} pending booking(s)')
    return cancelled


def check_and_auto_complete_started_bookings(now=None):
    """Mark started bookings as completed once their end time has passed"""
    now = now or datetime.utcnow()
    completed = 0

    for booking in Booking.query.filter_by(status=BookingStatus.STARTED).all():
        listing = booking.listing
        if not listing:
            logger.warning(f'Listing not found for booking {booking.id}, skipping auto-complete check')
            continue

        end_time = calculate_booking_end(
            booking.date, booking.hours, booking.duration,
            listing.pricing_model, listing.booking_config,
        )
        if now < end_time:
            continue

        try:
            booking.status = BookingStatus.COMPLETED
            metadata = {'booking_id': booking.id, 'listing_id': listing.id}

            notification_service.add_notification(
                booking.guest_id, 'booking', 'Booking Completed',
                f'Your booking at {listing.title} has ended. We hope you had a great experience!',
                metadata=metadata,
            )
            notification_service.add_notification(
                booking.guest_id, 'review', 'Leave a Review',
                f'How was your experience at {listing.title}? Share your feedback to help other guests.',
                action_required=True,
                metadata=dict(metadata, review_type='guest_to_host'),
            )
            notification_service.add_notification(
                listing.host_id, 'booking', 'Booking Completed',
                f'The booking for {listing.title} has ended. Funds will be released to your account soon.',
                metadata=dict(metadata, guest_id=booking.guest_id),
            )
            db.session.commit()
            completed += 1
            logger.info(f'Auto-completed booking {booking.id} (ended {end_time.isoformat()})')
        except Exception as e:
            db.session.rollback()
            logger.error(f'Failed to auto-complete booking {booking.id}: {str(e)}')

    if completed:
        logger.info(f'Auto-completed {completed} started booking(s)')
    return completed


def check_and_notify_upcoming_payouts(now=None):
    """One 'Payout Scheduled' notice per escrowed booking due within the notice window"""
    now = now or datetime.utcnow()
    window_end = now + timedelta(hours=current_app.config['PAYOUT_NOTICE_HOURS'])
    currency = current_app.config['CURRENCY']
    notified = 0

    bookings = Booking.query.filter(
        Booking.payment_status == PaymentStatus.ESCROW,
        Booking.escrow_release_date.isnot(None),
        Booking.payout_notified_at.is_(None),
    ).all()

    for booking in bookings:
        if not (now < booking.escrow_release_date <= window_end):
            continue
        if booking.dispute_status == DisputeStatus.OPEN:
            continue
        listing = booking.listing
        if not listing:
            continue

        payout = float(booking.host_payout)
        hours_until = round((booking.escrow_release_date - now).total_seconds() / 3600)
        notification_service.add_notification(
            listing.host_id, 'booking', 'Payout Scheduled',
            f'Your payout of {format_money(payout, currency)} for {listing.title} will be released '
            f'in approximately {hours_until} hours.',
            metadata={'booking_id': booking.id, 'listing_id': listing.id, 'amount': payout},
        )
        booking.payout_notified_at = now
        db.session.commit()
        notified += 1

    if notified:
        logger.info(f'Sent {notified} upcoming payout notification(s)')
    return notified


def trigger_manual_release_check(now=None):
    logger.info('Manual release check triggered')
    return check_and_release_eligible_bookings(now)


def trigger_manual_complete_check(now=None):
    logger.info('Manual complete check triggered')
    return check_and_auto_complete_started_bookings(now)


# ===== DASHBOARD QUERIES =====

def get_upcoming_releases(now=None):
    """Escrowed bookings with their release dates, soonest first"""
    now = now or datetime.utcnow()
    bookings = Booking.query.filter(
        Booking.payment_status == PaymentStatus.ESCROW,
        Booking.escrow_release_date.isnot(None),
    ).order_by(Booking.escrow_release_date.asc()).all()

    releases = []
    for booking in bookings:
        seconds = (booking.escrow_release_date - now).total_seconds()
        releases.append({
            'booking': booking,
            'listing': booking.listing,
            'release_date': booking.escrow_release_date,
            'hours_until_release': max(0.0, seconds / 3600),
            'is_overdue': booking.escrow_release_date <= now,
        })
    return releases


def get_pending_bookings_near_deadline(now=None):
    """Pending requests still inside their response window, most urgent first"""
    now = now or datetime.utcnow()
    pending = []

    for booking in Booking.query.filter_by(status=BookingStatus.PENDING).all():
        window, same_day = auto_cancel_window(booking, now)
        hours_since_created = (now - booking.created_at).total_seconds() / 3600
        hours_remaining = max(0.0, window - hours_since_created)
        if hours_remaining <= 0:
            continue
        pending.append({
            'booking': booking,
            'listing': booking.listing,
            'is_same_day_booking': same_day,
            'deadline': window,
            'hours_since_created': hours_since_created,
            'hours_remaining': hours_remaining,
            'is_urgent': hours_remaining <= URGENT_HOURS,
            'deadline_at': booking.created_at + timedelta(hours=window),
        })

    pending.sort(key=lambda item: item['hours_remaining'])
    return pending
