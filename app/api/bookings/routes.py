"""
Bookings Blueprint
"""

from datetime import datetime

from flask import Blueprint, jsonify, request, current_app
from flask_jwt_extended import jwt_required, get_jwt_identity
from extensions import db, limiter
from app.models.booking import Booking, BookingStatus, PaymentStatus, DisputeStatus
from app.models.listing import Listing
from app.models.user import User
from app.services import booking_security, cancellation_service, handshake_service, notification_service
from app.services.authorization import can_view_booking, can_manage_booking_as_host
from app.services.email_service import EmailService
from app.utils.decorators import host_required

bookings_bp = Blueprint('bookings', __name__)


def _load(booking_id):
    user = User.query.get(int(get_jwt_identity()))
    booking = Booking.query.get(booking_id)
    return user, booking


def _confirm(booking):
    booking.status = BookingStatus.CONFIRMED
    booking.guest_code = booking_security.generate_handshake_code()
    notification_service.add_notification(
        booking.guest_id, 'booking', 'Booking Confirmed',
        f'Your booking at {booking.listing.title} on {booking.date.isoformat()} is confirmed. '
        f'Your check-in code is {booking.guest_code}.',
        metadata={'booking_id': booking.id, 'listing_id': booking.listing_id},
    )


@bookings_bp.route('/', methods=['POST'])
@jwt_required()
@limiter.limit("30 per hour")
def create_booking():
    """
    Create a booking request

    Prices are always calculated server-side. When the client sends its
    own breakdown as 'client_price' it must match within tolerance.
    Replaying the same request returns the booking created the first time.
    """
    try:
        current_user_id = int(get_jwt_identity())
        user = User.query.get(current_user_id)
        data = request.get_json() or {}

        required_fields = ['listing_id', 'date']
        for field in required_fields:
            if field not in data:
                return jsonify({'error': f'{field} is required'}), 400

        listing = Listing.query.get(data['listing_id'])
        if not listing:
            return jsonify({'error': 'Listing not found'}), 404

        hours = sorted(set(data.get('hours') or [])) or None
        guest_count = int(data.get('guest_count', 1))
        selected_add_ons = data.get('selected_add_ons') or []
        duration = int(data.get('duration', len(hours) if hours else 1))

        validation = booking_security.validate_booking(
            listing, current_user_id, [data['date']], duration, guest_count, hours
        )
        if not validation['valid']:
            booking_security.log_security_event(
                'BOOKING_VALIDATION_FAILED', current_user_id,
                listing_id=listing.id, errors=validation['errors'],
            )
            return jsonify({'error': 'Invalid booking request', 'details': validation['errors']}), 400

        booking_date = datetime.strptime(data['date'], '%Y-%m-%d').date()

        if listing.requires_identity_verification and not user.kyc_verified:
            return jsonify({'error': 'This host requires verified identity to book'}), 403

        idempotency_key = request.headers.get('Idempotency-Key') or \
            booking_security.generate_idempotency_key(current_user_id, listing.id, data['date'], duration, hours)

        seen = booking_security.check_idempotency(idempotency_key)
        if seen['exists']:
            existing = Booking.query.get(seen['booking_id'])
            if existing and existing.status != BookingStatus.CANCELLED:
                return jsonify({
                    'message': 'Booking already exists',
                    'booking': existing.to_dict(include_code=True)
                }), 200

        duplicate = booking_security.check_booking_idempotency(current_user_id, listing.id, booking_date, hours)
        if not duplicate['is_unique']:
            existing = Booking.query.get(duplicate['existing_booking_id'])
            return jsonify({
                'message': 'Booking already exists',
                'booking': existing.to_dict(include_code=True)
            }), 200

        slot = booking_security.check_slot_availability(listing.id, booking_date, hours, duration)
        if not slot['available']:
            return jsonify({
                'error': 'Selected time is no longer available',
                'details': slot
            }), 409

        if data.get('client_price'):
            price_check = booking_security.validate_booking_price(
                listing, data['client_price'], duration, guest_count, hours, selected_add_ons,
                user_id=current_user_id,
            )
            if not price_check['valid']:
                return jsonify({
                    'error': 'Price mismatch',
                    'details': price_check['errors'],
                    'breakdown': price_check['breakdown']
                }), 400
            breakdown = price_check['breakdown']
        else:
            breakdown = booking_security.calculate_booking_price(
                listing, duration, guest_count, hours, selected_add_ons
            )

        booking = Booking(
            listing_id=listing.id,
            guest_id=current_user_id,
            date=booking_date,
            duration=duration,
            hours=hours,
            guest_count=guest_count,
            selected_add_ons=selected_add_ons,
            special_requests=data.get('special_requests'),
            status=BookingStatus.PENDING,
            payment_status=PaymentStatus.PENDING,
            idempotency_key=idempotency_key,
            created_at=datetime.utcnow(),
        )
        booking.apply_breakdown(breakdown)

        integrity = booking_security.validate_booking_integrity(booking)
        if not integrity['valid']:
            return jsonify({'error': 'Invalid booking', 'details': integrity['issues']}), 400

        db.session.add(booking)
        db.session.flush()

        if listing.instant_book:
            _confirm(booking)
        else:
            notification_service.add_notification(
                listing.host_id, 'booking', 'New Booking Request',
                f'{user.full_name} requested {listing.title} on {booking.date.isoformat()}.',
                action_required=True,
                metadata={'booking_id': booking.id, 'listing_id': listing.id},
            )

        booking_security.record_idempotency_key(idempotency_key, booking.id)
        db.session.commit()

        if listing.instant_book:
            EmailService.send_booking_confirmation(booking)
        else:
            EmailService.send_booking_request_to_host(booking)

        current_app.logger.info(f'Booking {booking.id} created for listing {listing.id} by user {current_user_id}')

        return jsonify({
            'message': 'Booking created successfully',
            'booking': booking.to_dict(include_listing=True, include_code=True)
        }), 201

    except ValueError as e:
        db.session.rollback()
        return jsonify({'error': str(e)}), 400
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f'Booking creation failed: {str(e)}')
        return jsonify({'error': str(e)}), 500


@bookings_bp.route('/my-bookings', methods=['GET'])
@jwt_required()
def get_my_bookings():
    """Get current user's bookings"""
    current_user_id = int(get_jwt_identity())
    query = Booking.query.filter_by(guest_id=current_user_id)

    status = request.args.get('status')
    if status:
        try:
            query = query.filter(Booking.status == BookingStatus(status))
        except ValueError:
            return jsonify({'error': f'Invalid status: {status}'}), 400

    bookings = query.order_by(Booking.date.desc()).all()

    return jsonify({
        'bookings': [booking.to_dict(include_listing=True, include_code=True) for booking in bookings]
    }), 200


@bookings_bp.route('/host-bookings', methods=['GET'])
@jwt_required()
@host_required()
def get_host_bookings():
    """Bookings on the current host's listings"""
    current_user_id = int(get_jwt_identity())
    query = Booking.query.join(Listing).filter(Listing.host_id == current_user_id)

    status = request.args.get('status')
    if status:
        try:
            query = query.filter(Booking.status == BookingStatus(status))
        except ValueError:
            return jsonify({'error': f'Invalid status: {status}'}), 400

    bookings = query.order_by(Booking.date.desc()).all()

    return jsonify({
        'bookings': [booking.to_dict(include_listing=True, include_guest=True) for booking in bookings]
    }), 200


@bookings_bp.route('/<int:booking_id>', methods=['GET'])
@jwt_required()
def get_booking(booking_id):
    """Get single booking; the check-in code is only shown to the guest"""
    user, booking = _load(booking_id)

    if not booking:
        return jsonify({'error': 'Booking not found'}), 404

    if not can_view_booking(user, booking):
        return jsonify({'error': 'Unauthorized'}), 403

    return jsonify({
        'booking': booking.to_dict(
            include_listing=True,
            include_guest=True,
            include_code=booking.guest_id == user.id
        )
    }), 200


@bookings_bp.route('/<int:booking_id>/confirm', methods=['POST'])
@jwt_required()
def confirm_booking(booking_id):
    """Host accepts a pending request"""
    user, booking = _load(booking_id)

    if not booking:
        return jsonify({'error': 'Booking not found'}), 404

    if not can_manage_booking_as_host(user, booking):
        return jsonify({'error': 'Unauthorized'}), 403

    if booking.status != BookingStatus.PENDING:
        return jsonify({'error': f'Booking is {booking.status.value}'}), 400

    _confirm(booking)
    db.session.commit()
    EmailService.send_booking_confirmation(booking)

    return jsonify({
        'message': 'Booking confirmed',
        'booking': booking.to_dict()
    }), 200


@bookings_bp.route('/<int:booking_id>/reject', methods=['POST'])
@jwt_required()
def reject_booking(booking_id):
    """Host declines a pending request; any payment is refunded in full"""
    user, booking = _load(booking_id)

    if not booking:
        return jsonify({'error': 'Booking not found'}), 404

    if not can_manage_booking_as_host(user, booking):
        return jsonify({'error': 'Unauthorized'}), 403

    if booking.status != BookingStatus.PENDING:
        return jsonify({'error': f'Booking is {booking.status.value}'}), 400

    data = request.get_json(silent=True) or {}
    reason = data.get('reason') or 'Declined by host'

    cancellation_service.process_cancellation(booking, user.id, reason, float(booking.total_price))
    db.session.commit()
    cancellation_service.send_cancellation_emails(booking)

    return jsonify({
        'message': 'Booking rejected',
        'booking': booking.to_dict()
    }), 200


@bookings_bp.route('/<int:booking_id>/refund-quote', methods=['GET'])
@jwt_required()
def refund_quote(booking_id):
    """What the guest would get back if they cancelled now"""
    user, booking = _load(booking_id)

    if not booking:
        return jsonify({'error': 'Booking not found'}), 404

    if not can_view_booking(user, booking):
        return jsonify({'error': 'Unauthorized'}), 403

    policy = booking.listing.cancellation_policy
    quote = cancellation_service.calculate_refund(booking, policy)
    quote['policy'] = policy.value if policy else None
    quote['policy_description'] = cancellation_service.get_cancellation_policy_description(policy)

    return jsonify(quote), 200


@bookings_bp.route('/<int:booking_id>/cancel', methods=['POST'])
@jwt_required()
def cancel_booking(booking_id):
    """
    Cancel a booking

    Guests get the refund their listing's policy allows; a cancellation by
    the host or an admin refunds the guest in full.
    """
    user, booking = _load(booking_id)

    if not booking:
        return jsonify({'error': 'Booking not found'}), 404

    if not can_view_booking(user, booking):
        return jsonify({'error': 'Unauthorized'}), 403

    data = request.get_json(silent=True) or {}
    reason = data.get('reason') or 'Cancelled by user'

    if booking.guest_id == user.id:
        quote = cancellation_service.calculate_refund(booking)
        if not quote['can_cancel']:
            return jsonify({'error': quote['reason']}), 400
        refund_amount = quote['refund_amount']
    else:
        if not booking.can_cancel():
            return jsonify({'error': f'Booking is {booking.status.value}'}), 400
        refund_amount = float(booking.total_price)

    cancellation_service.process_cancellation(booking, user.id, reason, refund_amount)
    db.session.commit()
    cancellation_service.send_cancellation_emails(booking)

    return jsonify({
        'message': 'Booking cancelled successfully',
        'refund_amount': float(booking.refund_amount or 0),
        'booking': booking.to_dict()
    }), 200


@bookings_bp.route('/<int:booking_id>/handshake', methods=['POST'])
@jwt_required()
@limiter.limit("10 per hour")
def verify_handshake(booking_id):
    """Host enters the guest's check-in code"""
    user, booking = _load(booking_id)

    if not booking:
        return jsonify({'error': 'Booking not found'}), 404

    if not can_manage_booking_as_host(user, booking):
        return jsonify({'error': 'Unauthorized'}), 403

    data = request.get_json() or {}
    if not data.get('code'):
        return jsonify({'error': 'code is required'}), 400

    verified = handshake_service.verify_handshake(booking, data['code'])
    db.session.commit()

    if not verified:
        return jsonify({'error': 'Invalid check-in code', 'booking': booking.to_dict()}), 400

    return jsonify({
        'message': 'Check-in verified',
        'booking': booking.to_dict()
    }), 200


@bookings_bp.route('/by-code/<string:code>', methods=['GET'])
@jwt_required()
@host_required()
def find_by_code(code):
    """Look up an active booking on the host's listings by check-in code"""
    current_user_id = int(get_jwt_identity())
    booking = handshake_service.find_booking_by_guest_code(current_user_id, code)

    if not booking:
        return jsonify({'error': 'Booking not found'}), 404

    return jsonify({
        'booking': booking.to_dict(include_listing=True, include_guest=True)
    }), 200


@bookings_bp.route('/<int:booking_id>/dispute', methods=['POST'])
@jwt_required()
def open_dispute(booking_id):
    """Guest or host holds the escrowed funds for admin review"""
    user, booking = _load(booking_id)

    if not booking:
        return jsonify({'error': 'Booking not found'}), 404

    if not can_view_booking(user, booking):
        return jsonify({'error': 'Unauthorized'}), 403

    data = request.get_json() or {}
    reason = (data.get('reason') or '').strip()
    if not reason:
        return jsonify({'error': 'reason is required'}), 400

    if booking.payment_status != PaymentStatus.ESCROW:
        return jsonify({'error': 'Only bookings with funds in escrow can be disputed'}), 400

    if booking.dispute_status == DisputeStatus.OPEN:
        return jsonify({'error': 'A dispute is already open for this booking'}), 409

    booking.dispute_status = DisputeStatus.OPEN
    booking.dispute_reason = reason
    notification_service.notify_admins(
        'complaint', 'Dispute Opened',
        f'User {user.id} opened a dispute on booking #{booking.id}: {reason}',
        severity='urgent', action_required=True,
        metadata={'booking_id': booking.id, 'opened_by': user.id},
    )
    db.session.commit()

    return jsonify({
        'message': 'Dispute opened. Funds are on hold until it is resolved.',
        'booking': booking.to_dict()
    }), 200
