from datetime import timedelta

from app.models.booking import BookingStatus
from app.models.idempotency_record import IdempotencyRecord
from app.models.listing import ListingStatus
from app.services import booking_security
from app.services.booking_security import (
    calculate_booking_price,
    check_booking_idempotency,
    check_idempotency,
    check_slot_availability,
    generate_handshake_code,
    generate_idempotency_key,
    record_idempotency_key,
    validate_booking,
    validate_booking_price,
    HANDSHAKE_ALPHABET,
)
from extensions import db
from tests.conftest import future_date


def test_daily_price_breakdown(listing):
    breakdown = calculate_booking_price(listing, duration=2, guest_count=2)

    assert breakdown['base_price'] == 200.0
    assert breakdown['subtotal'] == 200.0
    assert breakdown['user_service_fee'] == 20.0
    assert breakdown['host_service_fee'] == 10.0
    assert breakdown['caution_fee'] == 50.0
    assert breakdown['total'] == 270.0
    assert breakdown['host_payout'] == 190.0
    assert breakdown['platform_fee'] == 30.0


def test_hourly_price_uses_selected_hours(hourly_listing):
    breakdown = calculate_booking_price(hourly_listing, duration=99, guest_count=1, selected_hours=[10, 11, 12])

    assert breakdown['base_price'] == 60.0
    assert breakdown['total'] == 66.0


def test_extra_guests_and_add_ons(make_listing):
    listing = make_listing(
        allow_extra_guests=True, extra_guest_limit=3, extra_guest_fee=15,
        add_ons=[{'id': 'lights', 'name': 'Lighting kit', 'price': 30}],
    )

    breakdown = calculate_booking_price(listing, 1, guest_count=6, selected_add_ons=['lights', 'missing'])

    assert breakdown['extra_guest_count'] == 2
    assert breakdown['extra_guest_fee'] == 30.0
    assert breakdown['add_ons_cost'] == 30.0
    # fees are charged on rental and extra guests only
    assert breakdown['subtotal'] == 130.0
    assert breakdown['user_service_fee'] == 13.0
    assert breakdown['total'] == 130.0 + 13.0 + 50.0 + 30.0
    assert breakdown['host_payout'] == 130.0 - 6.5 + 30.0


def test_caution_fee_is_not_multiplied_by_dates(listing):
    breakdown = calculate_booking_price(listing, 1, 1, dates_count=3)

    assert breakdown['base_price'] == 300.0
    assert breakdown['caution_fee'] == 50.0


def test_validate_booking_price_accepts_matching_client_total(listing):
    result = validate_booking_price(listing, {'total': 160, 'service': 10, 'caution': 50}, 1, 1)

    assert result['valid']
    assert result['errors'] == []


def test_validate_booking_price_rejects_tampered_total(listing):
    result = validate_booking_price(listing, {'total': 60, 'service': 10, 'caution': 50}, 1, 1, user_id=7)

    assert not result['valid']
    assert result['calculated_total'] == 160.0
    assert result['discrepancy'] == 100.0
    assert any('Total price mismatch' in error for error in result['errors'])


def test_validate_booking_accepts_a_good_request(listing, guest):
    result = validate_booking(listing, guest.id, [future_date().isoformat()], 1, 2)

    assert result == {'valid': True, 'errors': []}


def test_validate_booking_collects_errors(listing, guest):
    today = future_date(0)
    result = validate_booking(
        listing, listing.host_id,
        [(today - timedelta(days=1)).isoformat(), '2024/01/01', (today + timedelta(days=400)).isoformat()],
        0, 0, today=today,
    )
    errors = result['errors']

    assert not result['valid']
    assert 'Cannot book your own listing' in errors
    assert any(e.startswith('Cannot book past date') for e in errors)
    assert 'Invalid date format: 2024/01/01' in errors
    assert 'Cannot book more than 365 days ahead' in errors
    assert 'Guest count must be at least 1' in errors
    assert 'Duration must be at least 1' in errors


def test_validate_booking_guest_limits(make_listing, guest):
    day = [future_date().isoformat()]
    strict = make_listing(max_guests=2)
    relaxed = make_listing(max_guests=2, allow_extra_guests=True, extra_guest_limit=1)

    assert 'Listing allows at most 2 guests' in validate_booking(strict, guest.id, day, 1, 3)['errors']
    assert validate_booking(relaxed, guest.id, day, 1, 3)['valid']
    assert 'Listing allows at most 1 extra guests' in validate_booking(relaxed, guest.id, day, 1, 4)['errors']
    assert any('exceeds maximum allowed' in e for e in validate_booking(relaxed, guest.id, day, 1, 5)['errors'])


def test_validate_booking_hourly_availability(hourly_listing, guest):
    day = future_date().isoformat()

    assert validate_booking(hourly_listing, guest.id, [day], 2, 1, [10, 11])['valid']
    assert 'Must select at least one hour for hourly bookings' in \
        validate_booking(hourly_listing, guest.id, [day], 1, 1)['errors']
    errors = validate_booking(hourly_listing, guest.id, [day], 2, 1, [22, 24])['errors']
    assert 'Invalid hour: 24' in errors
    assert f'Hour 22 not available on {day}' in errors


def test_validate_booking_rejects_listing_that_is_not_live(make_listing, guest):
    listing = make_listing(status=ListingStatus.PENDING_APPROVAL)
    result = validate_booking(listing, guest.id, [future_date().isoformat()], 1, 1)

    assert 'Listing is not available for booking (status: Pending Approval)' in result['errors']


def test_hourly_slots_conflict_on_shared_hours(hourly_listing, guest, make_booking):
    day = future_date()
    existing = make_booking(hourly_listing, guest, date=day, hours=[10, 11])

    clash = check_slot_availability(hourly_listing.id, day, hours=[11, 12])
    assert not clash['available']
    assert clash['conflicting_booking_ids'] == [existing.id]
    assert clash['overlapping_hours'] == [11]

    assert check_slot_availability(hourly_listing.id, day, hours=[12, 13])['available']
    assert check_slot_availability(hourly_listing.id, day + timedelta(days=1), hours=[10])['available']


def test_hourly_and_day_bookings_block_each_other(listing, guest, make_booking):
    start = future_date()
    day_booking = make_booking(listing, guest, date=start, duration=2)

    clash = check_slot_availability(listing.id, start + timedelta(days=1), hours=[10])
    assert clash['conflicting_booking_ids'] == [day_booking.id]
    assert clash['overlapping_hours'] == [10]
    assert check_slot_availability(listing.id, start + timedelta(days=2), hours=[10])['available']

    later = start + timedelta(days=5)
    hourly_booking = make_booking(listing, guest, date=later, hours=[9])
    assert check_slot_availability(listing.id, later - timedelta(days=1), duration=2)['conflicting_booking_ids'] == \
        [hourly_booking.id]
    assert check_slot_availability(listing.id, later + timedelta(days=1))['available']


def test_hours_rejected_for_day_listings(app, listing, guest):
    result = validate_booking(listing, guest.id, [future_date().isoformat()], 1, 1, [10])

    assert not result['valid']
    assert result['errors'] == ['Hours can only be selected for hourly listings']


def test_day_bookings_conflict_on_overlapping_ranges(listing, guest, make_booking):
    start = future_date()
    make_booking(listing, guest, date=start, duration=3)

    assert not check_slot_availability(listing.id, start + timedelta(days=2), duration=2)['available']
    assert check_slot_availability(listing.id, start + timedelta(days=3), duration=2)['available']
    assert not check_slot_availability(listing.id, start - timedelta(days=1), duration=2)['available']


def test_cancelled_bookings_free_the_slot(listing, guest, make_booking):
    booking = make_booking(listing, guest, status=BookingStatus.CANCELLED)

    assert check_slot_availability(listing.id, booking.date)['available']


def test_slot_check_can_exclude_a_booking(listing, guest, make_booking):
    booking = make_booking(listing, guest)

    assert not check_slot_availability(listing.id, booking.date)['available']
    assert check_slot_availability(listing.id, booking.date, exclude_booking_id=booking.id)['available']


def test_check_booking_idempotency_finds_same_guest_same_slot(hourly_listing, guest, make_user, make_booking):
    day = future_date()
    booking = make_booking(hourly_listing, guest, date=day, hours=[9, 10])

    assert check_booking_idempotency(guest.id, hourly_listing.id, day, [10, 9]) == \
        {'is_unique': False, 'existing_booking_id': booking.id}
    assert check_booking_idempotency(guest.id, hourly_listing.id, day, [9])['is_unique']
    assert check_booking_idempotency(make_user().id, hourly_listing.id, day, [9, 10])['is_unique']


def test_idempotency_key_is_deterministic():
    key = generate_idempotency_key(1, 2, '2030-01-01', 2, [11, 10])

    assert key == generate_idempotency_key(1, 2, '2030-01-01', 2, [10, 11])
    assert key != generate_idempotency_key(1, 2, '2030-01-02', 2, [10, 11])
    assert key.startswith('idem_')
    assert len(key) == len('idem_') + 32


def test_idempotency_records_expire(app, listing, guest, make_booking):
    booking = make_booking(listing, guest)
    start = booking.created_at

    record_idempotency_key('idem_abc', booking.id, now=start)
    db.session.commit()

    assert check_idempotency('idem_abc', now=start + timedelta(hours=23)) == \
        {'exists': True, 'booking_id': booking.id}
    assert check_idempotency('idem_abc', now=start + timedelta(hours=25)) == \
        {'exists': False, 'booking_id': None}
    assert IdempotencyRecord.query.count() == 0


def test_record_idempotency_key_overwrites(listing, guest, make_booking):
    first = make_booking(listing, guest)
    second = make_booking(listing, guest, date=future_date(40))

    record_idempotency_key('idem_same', first.id)
    record_idempotency_key('idem_same', second.id)
    db.session.commit()

    assert IdempotencyRecord.query.filter_by(key='idem_same').one().booking_id == second.id


def test_handshake_codes_are_readable():
    code = generate_handshake_code()

    assert len(code) == booking_security.HANDSHAKE_CODE_LENGTH
    assert all(char in HANDSHAKE_ALPHABET for char in code)
    assert not set(code) & set('IO01')
