"""
Cancellation Service
Refund calculation by cancellation policy and booking cancellation
"""

from datetime import datetime, timedelta

from flask import current_app

from extensions import db
from app.models.booking import BookingStatus, PaymentStatus
from app.models.listing import CancellationPolicy
from app.services import notification_service
from app.services.email_service import EmailService
from app.services.escrow_service import EscrowService
from app.utils.errors import ValidationError
from app.utils.money import round_money, format_money


POLICY_DESCRIPTIONS = {
    CancellationPolicy.FLEXIBLE: 'Full refund up to 24 hours before the booking. 50% refund 12-24 hours before.',
    CancellationPolicy.MODERATE: 'Full refund up to 7 days before the booking. 50% refund 2-7 days before.',
    CancellationPolicy.STRICT: '50% refund up to 14 days before the booking. No refund after that.',
    CancellationPolicy.NON_REFUNDABLE: 'This booking cannot be refunded.',
}


def booking_start(booking):
    start = datetime.combine(booking.date, datetime.min.time())
    if booking.hours:
        start += timedelta(hours=min(booking.hours))
    return start


def _refund_percentage(policy, hours_until):
    if policy == CancellationPolicy.FLEXIBLE:
        if hours_until >= 24:
            return 100, ''
        if hours_until >= 12:
            return 50, '50% refund applied (cancelled 12-24h before)'
        return 0, 'No refund (cancelled less than 12h before)'

    if policy == CancellationPolicy.MODERATE:
        if hours_until >= 168:
            return 100, ''
        if hours_until >= 48:
            return 50, '50% refund applied (cancelled 2-7 days before)'
        return 0, 'No refund (cancelled less than 48h before)'

    if policy == CancellationPolicy.STRICT:
        if hours_until >= 336:
            return 50, '50% refund applied (Strict policy)'
        return 0, 'No refund (cancelled less than 14 days before)'

    if policy == CancellationPolicy.NON_REFUNDABLE:
        return 0, 'Non-refundable booking'

    return 0, 'Cancellation policy not specified'


def calculate_refund(booking, policy=None, now=None):
    """
    Work out what the guest gets back if they cancel now

    Returns:
        Dict with refund_percentage, refund_amount, cancellation_fee,
        can_cancel, reason and hours_until_booking
    """
    now = now or datetime.utcnow()
    if policy is None:
        policy = booking.listing.cancellation_policy
    total = float(booking.total_price)
    hours_until = (booking_start(booking) - now).total_seconds() / 3600

    def refused(reason):
        return {
            'refund_percentage': 0,
            'refund_amount': 0.0,
            'cancellation_fee': total,
            'can_cancel': False,
            'reason': reason,
            'hours_until_booking': hours_until,
        }

    if hours_until < 0:
        return refused('Cannot cancel past bookings')

    if booking.status in (BookingStatus.CANCELLED, BookingStatus.COMPLETED):
        return refused(f'Booking is already {booking.status.value.lower()}')

    percentage, reason = _refund_percentage(policy, hours_until)
    refund_amount = round_money(total * percentage / 100)

    return {
        'refund_percentage': percentage,
        'refund_amount': refund_amount,
        'cancellation_fee': round_money(total - refund_amount),
        'can_cancel': True,
        'reason': reason or (None if percentage else 'No refund available for this cancellation'),
        'hours_until_booking': hours_until,
    }


def process_cancellation(booking, user_id, reason, refund_amount, now=None):
    """
    Cancel a booking and settle its escrow

    A paid booking always goes through the escrow refund, so the part that
    is not refunded is booked as a cancellation fee.
    """
    if not booking.can_cancel():
        raise ValidationError(f'Booking cannot be cancelled ({booking.status.value})')

    now = now or datetime.utcnow()
    currency = current_app.config['CURRENCY']

    if booking.payment_status == PaymentStatus.ESCROW:
        EscrowService.process_refund(booking, booking.guest_id, refund_amount, notes=reason)
    else:
        refund_amount = 0

    booking.status = BookingStatus.CANCELLED
    booking.cancellation_reason = reason
    booking.cancelled_at = now
    booking.cancelled_by = str(user_id)
    booking.refund_amount = refund_amount

    if refund_amount > 0:
        guest_message = (f'Your booking has been cancelled. Refund of '
                         f'{format_money(refund_amount, currency)} processed.')
    else:
        guest_message = 'Your booking has been cancelled. No refund available.'

    notification_service.add_notification(
        booking.guest_id, 'booking', 'Booking Cancelled', guest_message,
        metadata={'booking_id': booking.id, 'amount': refund_amount, 'link': '/dashboard?tab=bookings'},
    )

    listing = booking.listing
    if listing:
        if user_id == listing.host_id:
            host_message = f'You cancelled the booking for "{listing.title}"'
        else:
            host_message = f'{booking.guest.full_name} cancelled their booking for "{listing.title}"'
        notification_service.add_notification(
            listing.host_id, 'booking', 'Booking Cancelled', host_message, severity='warning',
            metadata={'booking_id': booking.id, 'link': '/dashboard?view=bookings'},
        )

    db.session.flush()
    return booking


def send_cancellation_emails(booking):
    EmailService.send_cancellation_email(booking, booking.guest)
    if booking.listing:
        EmailService.send_cancellation_email(booking, booking.listing.host, is_host=True)


def get_cancellation_policy_description(policy):
    if isinstance(policy, str):
        try:
            policy = CancellationPolicy(policy)
        except ValueError:
            return 'Cancellation policy not specified'
    return POLICY_DESCRIPTIONS.get(policy, 'Cancellation policy not specified')
