import pytest

from app.models.booking import BookingStatus, HandshakeStatus
from app.services.handshake_service import find_booking_by_guest_code, verify_handshake
from app.utils.errors import ValidationError


def test_matching_code_starts_the_booking(listing, guest, make_booking):
    booking = make_booking(listing, guest)

    assert verify_handshake(booking, f' {booking.guest_code.lower()} ')

    assert booking.handshake_status == HandshakeStatus.VERIFIED
    assert booking.status == BookingStatus.STARTED
    assert booking.verified_at is not None


def test_wrong_code_marks_handshake_failed(listing, guest, make_booking):
    booking = make_booking(listing, guest)

    assert not verify_handshake(booking, 'WRONG1')

    assert booking.handshake_status == HandshakeStatus.FAILED
    assert booking.status == BookingStatus.CONFIRMED

    # the host can retry with the right code
    assert verify_handshake(booking, booking.guest_code)
    assert booking.handshake_status == HandshakeStatus.VERIFIED


def test_only_confirmed_bookings_check_in(listing, guest, make_booking):
    booking = make_booking(listing, guest, status=BookingStatus.PENDING)

    with pytest.raises(ValidationError):
        verify_handshake(booking, 'ANYTHING')


def test_find_booking_by_guest_code(listing, guest, make_user, make_booking):
    booking = make_booking(listing, guest)
    other_host = make_user(host=True)

    assert find_booking_by_guest_code(listing.host_id, booking.guest_code.lower()) == booking
    assert find_booking_by_guest_code(other_host.id, booking.guest_code) is None
    assert find_booking_by_guest_code(listing.host_id, '') is None

    booking.status = BookingStatus.COMPLETED
    assert find_booking_by_guest_code(listing.host_id, booking.guest_code) is None
