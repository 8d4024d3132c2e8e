"""
Booking Security Service
Server-side price calculation, booking request validation,
double-booking and idempotency checks.

The client may send its own price breakdown, but the numbers stored on a
booking always come from calculate_booking_price.
"""

import hashlib
import re
import secrets
from datetime import datetime, timedelta

from flask import current_app

from extensions import db
from app.models.booking import Booking, BookingStatus
from app.models.idempotency_record import IdempotencyRecord
from app.models.listing import ListingStatus
from app.utils.money import round_money


DATE_PATTERN = re.compile(r'^\d{4}-\d{2}-\d{2}$')

# Excludes I, O, 0 and 1 so codes can be read out loud
HANDSHAKE_ALPHABET = 'ABCDEFGHJKLMNPQRSTUVWXYZ23456789'
HANDSHAKE_CODE_LENGTH = 6


def log_security_event(event_type, user_id, **details):
    """Audit trail for rejected or suspicious booking requests"""
    current_app.logger.warning(f'SECURITY: {event_type} user={user_id} {details}')


# ===== PRICE CALCULATION =====

def calculate_booking_price(listing, duration, guest_count, selected_hours=None,
                            selected_add_ons=None, dates_count=1):
    """
    Calculate the full price breakdown for a booking request

    Args:
        listing: Listing being booked
        duration: Number of hours or days
        guest_count: Total guests including extras
        selected_hours: Hours booked per date (hourly listings)
        selected_add_ons: Add-on ids picked by the guest
        dates_count: Number of dates booked with the same settings

    Returns:
        Dict with base_price, extra_guest_fee, extra_guest_count,
        add_ons_cost, subtotal, user_service_fee, host_service_fee,
        caution_fee, total, host_payout and platform_fee
    """
    price = float(listing.price)
    selected_add_ons = selected_add_ons or []

    if listing.is_hourly and selected_hours:
        rental_cost = len(selected_hours) * price
    else:
        rental_cost = duration * price

    extra_guest_count = 0
    extra_guest_fee = 0.0
    fee_per_guest = float(listing.extra_guest_fee or 0)
    max_guests = listing.max_guests or 1
    if listing.allow_extra_guests and fee_per_guest > 0 and guest_count > max_guests:
        extra_guest_count = guest_count - max_guests
        extra_guest_fee = extra_guest_count * fee_per_guest

    add_ons_cost = 0.0
    for add_on_id in selected_add_ons:
        add_on = listing.get_add_on(add_on_id)
        if add_on:
            add_ons_cost += float(add_on.get('price', 0))

    base_price = round_money(rental_cost * dates_count)
    extra_guest_total = round_money(extra_guest_fee * dates_count)
    extras_total = round_money(add_ons_cost * dates_count)

    # Platform fees never apply to add-ons
    subtotal = round_money(base_price + extra_guest_total)
    user_service_fee = round_money(subtotal * current_app.config['SERVICE_FEE_PERCENTAGE'])
    host_service_fee = round_money(subtotal * current_app.config['HOST_SERVICE_FEE_PERCENTAGE'])

    # One-time deposit, not multiplied by dates
    caution_fee = round_money(float(listing.caution_fee or 0))

    total = round_money(subtotal + user_service_fee + caution_fee + extras_total)

    return {
        'base_price': base_price,
        'extra_guest_fee': extra_guest_total,
        'extra_guest_count': extra_guest_count,
        'add_ons_cost': extras_total,
        'subtotal': subtotal,
        'user_service_fee': user_service_fee,
        'host_service_fee': host_service_fee,
        'caution_fee': caution_fee,
        'total': total,
        'host_payout': round_money(subtotal - host_service_fee + extras_total),
        'platform_fee': round_money(user_service_fee + host_service_fee),
    }


def validate_booking_price(listing, client_breakdown, duration, guest_count,
                           selected_hours=None, selected_add_ons=None, dates_count=1,
                           user_id=None):
    """
    Compare a client-submitted price breakdown with the server calculation

    client_breakdown carries 'total', 'service' and 'caution'.
    """
    errors = []
    server = calculate_booking_price(
        listing, duration, guest_count, selected_hours, selected_add_ons, dates_count
    )

    tolerance = current_app.config['PRICE_TOLERANCE']
    client_total = float(client_breakdown.get('total', 0))
    client_service = float(client_breakdown.get('service', 0))
    client_caution = float(client_breakdown.get('caution', 0))

    total_diff = round_money(abs(server['total'] - client_total))

    if total_diff > tolerance:
        errors.append(f"Total price mismatch: expected {server['total']}, got {client_total}")

    if abs(server['user_service_fee'] - client_service) > tolerance:
        errors.append(f"Service fee mismatch: expected {server['user_service_fee']}, got {client_service}")

    if abs(server['caution_fee'] - client_caution) > tolerance:
        errors.append(f"Caution fee mismatch: expected {server['caution_fee']}, got {client_caution}")

    min_price = current_app.config['MIN_PRICE']
    if server['total'] < min_price:
        errors.append(f'Booking total cannot be less than {min_price}')

    if errors:
        log_security_event(
            'PRICE_VALIDATION_FAILED', user_id,
            listing_id=listing.id, client_total=client_total,
            server_total=server['total'], errors=errors,
        )

    return {
        'valid': not errors,
        'calculated_total': server['total'],
        'expected_total': client_total,
        'discrepancy': total_diff,
        'errors': errors,
        'breakdown': server,
    }


# ===== REQUEST VALIDATION =====

def validate_booking(listing, user_id, dates, duration, guest_count, selected_hours=None, today=None):
    """
    Check a booking request against the listing before pricing it

    Args:
        dates: List of 'YYYY-MM-DD' strings
        today: Override for the current date

    Returns:
        {'valid': bool, 'errors': [str]}
    """
    errors = []
    today = today or datetime.utcnow().date()
    max_days_ahead = current_app.config['MAX_BOOKING_DAYS_AHEAD']
    latest_date = today + timedelta(days=max_days_ahead)

    if listing.host_id == user_id:
        errors.append('Cannot book your own listing')

    if not dates:
        errors.append('At least one date is required')

    for date_str in dates:
        if not isinstance(date_str, str) or not DATE_PATTERN.match(date_str):
            errors.append(f'Invalid date format: {date_str}')
            continue
        try:
            day = datetime.strptime(date_str, '%Y-%m-%d').date()
        except ValueError:
            errors.append(f'Invalid date format: {date_str}')
            continue
        if day < today:
            errors.append(f'Cannot book past date: {date_str}')
        if day > latest_date:
            errors.append(f'Cannot book more than {max_days_ahead} days ahead')

    if guest_count < 1:
        errors.append('Guest count must be at least 1')

    max_capacity = (listing.max_guests or 1) * current_app.config['MAX_GUESTS_MULTIPLIER']
    if guest_count > max_capacity:
        errors.append(f'Guest count {guest_count} exceeds maximum allowed ({max_capacity})')
    elif guest_count > (listing.max_guests or 1):
        if not listing.allow_extra_guests:
            errors.append(f'Listing allows at most {listing.max_guests} guests')
        elif listing.extra_guest_limit and guest_count - listing.max_guests > listing.extra_guest_limit:
            errors.append(f'Listing allows at most {listing.extra_guest_limit} extra guests')

    if duration < 1:
        errors.append('Duration must be at least 1')

    if listing.is_hourly:
        if not selected_hours:
            errors.append('Must select at least one hour for hourly bookings')
        else:
            for hour in selected_hours:
                if not isinstance(hour, int) or hour < 0 or hour > 23:
                    errors.append(f'Invalid hour: {hour}')

            availability = listing.availability or {}
            for date_str in dates:
                open_hours = availability.get(date_str, [])
                for hour in selected_hours:
                    if hour not in open_hours:
                        errors.append(f'Hour {hour} not available on {date_str}')
    elif selected_hours:
        errors.append('Hours can only be selected for hourly listings')

    if listing.status != ListingStatus.LIVE:
        errors.append(f'Listing is not available for booking (status: {listing.status.value})')

    return {'valid': not errors, 'errors': errors}


def validate_refund_amount(booking, refund_amount):
    return 0 <= refund_amount <= float(booking.total_price)


def validate_booking_integrity(booking, today=None):
    """Sanity checks on a stored booking"""
    issues = []
    today = today or datetime.utcnow().date()

    if not booking.guest_id:
        issues.append('Missing user ID')
    if not booking.listing_id:
        issues.append('Missing listing ID')
    if not booking.date:
        issues.append('Missing booking date')
    if not booking.total_price or float(booking.total_price) <= 0:
        issues.append('Invalid total price')
    if not booking.guest_count or booking.guest_count < 1:
        issues.append('Invalid guest count')
    if booking.hours is not None and len(booking.hours) == 0:
        issues.append('Hourly booking must have at least one hour selected')
    if booking.duration is None or booking.duration < 1:
        issues.append('Duration must be at least 1')
    if booking.date and booking.date < today:
        issues.append('Booking date is in the past')
    if booking.total_price and float(booking.total_price) > current_app.config['MAX_PRICE']:
        issues.append('Total price exceeds maximum allowed')

    return {'valid': not issues, 'issues': issues}


# ===== DOUBLE BOOKING =====

def _active_bookings(listing_id, exclude_booking_id=None):
    query = Booking.query.filter(
        Booking.listing_id == listing_id,
        Booking.status != BookingStatus.CANCELLED,
    )
    if exclude_booking_id:
        query = query.filter(Booking.id != exclude_booking_id)
    return query.all()


def check_slot_availability(listing_id, date, hours=None, duration=1, exclude_booking_id=None):
    """
    Check whether the requested slot collides with any active booking

    Hourly requests conflict on any shared hour on the same date, and
    with any day booking covering that date. Day requests conflict when
    [date, date + duration) overlaps an existing day booking or the date
    of an hourly one.
    """
    conflicts = []
    overlapping_hours = set()

    for booking in _active_bookings(listing_id, exclude_booking_id):
        existing_start = booking.date
        existing_end = booking.date + timedelta(days=1 if booking.hours else (booking.duration or 1))

        if hours:
            if booking.hours:
                overlap = set(hours) & set(booking.hours) if booking.date == date else set()
            else:
                overlap = set(hours) if existing_start <= date < existing_end else set()
            if overlap:
                conflicts.append(booking.id)
                overlapping_hours.update(overlap)
        else:
            start = date
            end = date + timedelta(days=duration or 1)
            if start < existing_end and end > existing_start:
                conflicts.append(booking.id)
                overlapping_hours.update(booking.hours or [])

    return {
        'available': not conflicts,
        'conflicting_booking_ids': sorted(set(conflicts)),
        'overlapping_hours': sorted(overlapping_hours),
    }


def check_booking_idempotency(user_id, listing_id, date, hours=None):
    """Find an active booking the same guest already made for the same slot"""
    wanted = sorted(hours or [])
    for booking in _active_bookings(listing_id):
        if booking.guest_id != user_id or booking.date != date:
            continue
        if not wanted or sorted(booking.hours or []) == wanted:
            return {'is_unique': False, 'existing_booking_id': booking.id}
    return {'is_unique': True, 'existing_booking_id': None}


# ===== IDEMPOTENCY KEYS =====

def generate_idempotency_key(user_id, listing_id, date, duration, hours=None):
    """Deterministic key for a booking request"""
    hours_str = ','.join(str(h) for h in sorted(hours or []))
    raw = f'{user_id}:{listing_id}:{date}:{duration}:{hours_str}'
    return 'idem_' + hashlib.sha256(raw.encode('utf-8')).hexdigest()[:32]


def check_idempotency(key, now=None):
    """
    Look up a live idempotency key, dropping expired ones first

    Returns:
        {'exists': bool, 'booking_id': int or None}
    """
    now = now or datetime.utcnow()
    IdempotencyRecord.query.filter(IdempotencyRecord.expires_at <= now).delete()
    db.session.flush()

    record = IdempotencyRecord.query.filter_by(key=key).first()
    if record:
        return {'exists': True, 'booking_id': record.booking_id}
    return {'exists': False, 'booking_id': None}


def record_idempotency_key(key, booking_id, now=None):
    now = now or datetime.utcnow()
    expires_at = now + timedelta(hours=current_app.config['IDEMPOTENCY_KEY_EXPIRY_HOURS'])

    record = IdempotencyRecord.query.filter_by(key=key).first()
    if record:
        record.booking_id = booking_id
        record.created_at = now
        record.expires_at = expires_at
    else:
        db.session.add(IdempotencyRecord(key=key, booking_id=booking_id,
                                         created_at=now, expires_at=expires_at))


def generate_handshake_code():
    return ''.join(secrets.choice(HANDSHAKE_ALPHABET) for _ in range(HANDSHAKE_CODE_LENGTH))
