"""
Damage Report Service
Hosts claim against the caution deposit; guests accept or dispute; admins decide

An open report holds the booking's escrow (dispute_status OPEN) until it
is resolved.
"""

import math
from datetime import datetime

from flask import current_app

from extensions import db
from app.models.booking import BookingStatus, CautionStatus, DisputeStatus
from app.models.damage_report import DamageReport, DamageReportStatus
from app.services import notification_service
from app.services.authorization import can_manage_booking_as_host
from app.services.escrow_service import EscrowService
from app.utils.errors import AuthorizationError, ConflictError, ValidationError
from app.utils.money import format_money, round_money


def file_report(booking, host, description, estimated_cost, images=None):
    if not can_manage_booking_as_host(host, booking):
        raise AuthorizationError('Only the host can report damage')
    if booking.status not in (BookingStatus.STARTED, BookingStatus.COMPLETED):
        raise ValidationError('Damage can only be reported for started or completed bookings')
    if booking.caution_status != CautionStatus.HELD:
        raise ValidationError('No caution deposit is held for this booking')
    if not description or not description.strip():
        raise ValidationError('description is required')

    try:
        estimated_cost = float(estimated_cost)
    except (TypeError, ValueError):
        raise ValidationError('estimated_cost must be a number')
    if not math.isfinite(estimated_cost):
        raise ValidationError('estimated_cost must be a number')
    estimated_cost = round_money(estimated_cost)
    if estimated_cost <= 0:
        raise ValidationError('estimated_cost must be greater than 0')

    if any(report.is_open for report in booking.damage_reports):
        raise ConflictError('An open damage report already exists for this booking')

    report = DamageReport(
        booking_id=booking.id,
        reported_by=host.id,
        reported_to=booking.guest_id,
        description=description.strip(),
        images=images or [],
        estimated_cost=estimated_cost,
        status=DamageReportStatus.PENDING,
        created_at=datetime.utcnow(),
    )
    db.session.add(report)

    booking.dispute_status = DisputeStatus.OPEN
    booking.dispute_reason = f'Damage report: {report.description}'
    db.session.flush()

    currency = current_app.config['CURRENCY']
    notification_service.add_notification(
        booking.guest_id, 'damage_report', 'Damage Reported',
        f'The host reported damage costing {format_money(estimated_cost, currency)} for your booking at '
        f'{booking.listing.title}. Please accept or dispute the claim.',
        severity='urgent', action_required=True,
        metadata={'booking_id': booking.id, 'report_id': report.id, 'amount': estimated_cost},
    )
    return report


def _settle(report, amount, notes=None):
    booking = report.booking
    EscrowService.claim_caution_fee(booking, amount, notes=notes)
    report.approved_amount = float(booking.caution_claim_amount or 0)
    report.status = DamageReportStatus.RESOLVED
    report.resolved_at = datetime.utcnow()
    booking.dispute_status = DisputeStatus.RESOLVED

    notification_service.add_notification(
        report.reported_by, 'damage_report', 'Damage Claim Resolved',
        f'Your damage claim for booking #{booking.id} was resolved. '
        f'Approved amount: {format_money(report.approved_amount, current_app.config["CURRENCY"])}.',
        metadata={'booking_id': booking.id, 'report_id': report.id, 'amount': report.approved_amount},
    )
    db.session.flush()
    return report


def respond_to_report(report, user, accept, response=None):
    """The guest accepts the claim or disputes it"""
    if report.reported_to != user.id:
        raise AuthorizationError('Unauthorized')
    if report.status != DamageReportStatus.PENDING:
        raise ValidationError(f'Report is already {report.status.value}')

    report.user_response = response
    if accept:
        return _settle(report, float(report.estimated_cost), notes='Accepted by guest')

    report.status = DamageReportStatus.DISPUTED
    notification_service.notify_admins(
        'damage_report', 'Damage Claim Disputed',
        f'The guest disputed damage report #{report.id} on booking #{report.booking_id}.',
        severity='warning', action_required=True,
        metadata={'booking_id': report.booking_id, 'report_id': report.id},
    )
    db.session.flush()
    return report


def resolve_report(report, approved_amount, admin_notes=None):
    """Admin decision; the approved amount is capped at the caution deposit"""
    if not report.is_open:
        raise ValidationError(f'Report is already {report.status.value}')
    try:
        approved_amount = float(approved_amount)
    except (TypeError, ValueError):
        raise ValidationError('approved_amount must be a number')
    if not math.isfinite(approved_amount):
        raise ValidationError('approved_amount must be a number')
    if approved_amount < 0:
        raise ValidationError('approved_amount cannot be negative')

    report.admin_notes = admin_notes
    return _settle(report, approved_amount, notes=admin_notes)


def escalate_report(report, admin_notes=None):
    if not report.is_open:
        raise ValidationError(f'Report is already {report.status.value}')
    report.status = DamageReportStatus.ESCALATED
    report.admin_notes = admin_notes
    db.session.flush()
    return report
