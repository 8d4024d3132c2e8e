"""
Check-in handshake: the guest shows a code, the host types it in
"""

from datetime import datetime

from flask import current_app

from extensions import db
from app.models.booking import Booking, BookingStatus, HandshakeStatus
from app.models.listing import Listing
from app.services import notification_service
from app.utils.errors import ValidationError


def _normalize(code):
    return (code or '').strip().upper()


def verify_handshake(booking, code, now=None):
    """
    Compare the code the host entered with the booking's guest code

    Returns True on a match. A match starts the booking; a mismatch marks
    the handshake as failed so the host can retry.
    """
    if booking.status != BookingStatus.CONFIRMED:
        raise ValidationError(f'Only confirmed bookings can be checked in (status: {booking.status.value})')
    if not booking.guest_code:
        raise ValidationError('Booking has no check-in code')

    now = now or datetime.utcnow()

    if _normalize(code) != booking.guest_code:
        booking.handshake_status = HandshakeStatus.FAILED
        db.session.flush()
        current_app.logger.warning(f'Handshake failed for booking {booking.id}')
        return False

    booking.handshake_status = HandshakeStatus.VERIFIED
    booking.verified_at = now
    booking.status = BookingStatus.STARTED

    notification_service.add_notification(
        booking.guest_id, 'booking', 'Check-in Confirmed',
        f'Your check-in at {booking.listing.title} was confirmed. Enjoy your booking!',
        metadata={'booking_id': booking.id, 'listing_id': booking.listing_id},
    )
    db.session.flush()
    return True


def find_booking_by_guest_code(host_id, code):
    """Active booking on one of the host's listings carrying this code"""
    code = _normalize(code)
    if not code:
        return None
    return Booking.query.join(Listing).filter(
        Listing.host_id == host_id,
        Booking.guest_code == code,
        Booking.status.in_([BookingStatus.CONFIRMED, BookingStatus.STARTED]),
    ).first()
