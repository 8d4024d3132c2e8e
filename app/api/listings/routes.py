"""
Listing Routes
"""

import math
from datetime import datetime, timedelta

from flask import Blueprint, request, jsonify, current_app
from flask_jwt_extended import jwt_required, get_jwt_identity
from extensions import db, limiter
from app.models.booking import Booking, BookingStatus
from app.models.listing import Listing, ListingStatus, PricingModel, CancellationPolicy
from app.models.user import User
from app.services.authorization import can_manage_listing
from app.services.booking_security import calculate_booking_price
from app.utils.decorators import host_required

listings_bp = Blueprint('listings', __name__)

UPDATEABLE_FIELDS = ['title', 'description', 'space_type', 'tags', 'location', 'address',
                     'latitude', 'longitude', 'price', 'booking_config', 'caution_fee',
                     'add_ons', 'max_guests', 'allow_extra_guests', 'extra_guest_limit',
                     'extra_guest_fee', 'house_rules', 'instant_book',
                     'requires_identity_verification', 'availability', 'images']


def _apply_enums(listing, data):
    if 'pricing_model' in data:
        listing.pricing_model = PricingModel(data['pricing_model'])
    if 'cancellation_policy' in data:
        listing.cancellation_policy = CancellationPolicy(data['cancellation_policy'])


def _validate_listing_data(data, partial=False):
    if not partial:
        required_fields = ['title', 'description', 'space_type', 'location', 'price']
        for field in required_fields:
            if data.get(field) in (None, ''):
                return f'{field} is required'

    if 'price' in data:
        try:
            price = float(data['price'])
        except (TypeError, ValueError):
            return 'price must be a number'
        if not math.isfinite(price):
            return 'price must be a number'
        if price < current_app.config['MIN_PRICE']:
            return 'price must be greater than 0'

    for field in ('caution_fee', 'extra_guest_fee'):
        if field in data and float(data[field] or 0) < 0:
            return f'{field} cannot be negative'

    if 'max_guests' in data and int(data['max_guests']) < 1:
        return 'max_guests must be at least 1'

    if 'pricing_model' in data and data['pricing_model'] not in [m.value for m in PricingModel]:
        return f"Invalid pricing_model: {data['pricing_model']}"

    if 'cancellation_policy' in data and \
            data['cancellation_policy'] not in [p.value for p in CancellationPolicy]:
        return f"Invalid cancellation_policy: {data['cancellation_policy']}"

    return None


@listings_bp.route('/', methods=['GET'])
@limiter.limit("100 per hour")
def get_listings():
    """Live listings with filters"""
    page = request.args.get('page', 1, type=int)
    per_page = request.args.get('per_page', 20, type=int)

    location = request.args.get('location')
    space_type = request.args.get('space_type')
    pricing_model = request.args.get('pricing_model')
    min_price = request.args.get('min_price', type=float)
    max_price = request.args.get('max_price', type=float)
    guests = request.args.get('guests', type=int)
    host_id = request.args.get('host_id', type=int)

    query = Listing.query.filter_by(status=ListingStatus.LIVE)

    if host_id:
        query = query.filter(Listing.host_id == host_id)

    if location:
        query = query.filter(Listing.location.ilike(f'%{location}%'))

    if space_type:
        query = query.filter(Listing.space_type == space_type)

    if pricing_model:
        try:
            query = query.filter(Listing.pricing_model == PricingModel(pricing_model))
        except ValueError:
            return jsonify({'error': f'Invalid pricing_model: {pricing_model}'}), 400

    if min_price is not None:
        query = query.filter(Listing.price >= min_price)

    if max_price is not None:
        query = query.filter(Listing.price <= max_price)

    if guests:
        query = query.filter(Listing.max_guests >= guests)

    sort_by = request.args.get('sort_by', 'created_at')
    sort_order = request.args.get('sort_order', 'desc')
    column = {'price': Listing.price, 'rating': Listing.rating}.get(sort_by, Listing.created_at)
    query = query.order_by(column.desc() if sort_order == 'desc' else column.asc())

    paginated = query.paginate(page=page, per_page=per_page, error_out=False)

    return jsonify({
        'listings': [listing.to_dict(include_host=True) for listing in paginated.items],
        'total': paginated.total,
        'pages': paginated.pages,
        'current_page': page,
        'per_page': per_page
    }), 200


@listings_bp.route('/<int:listing_id>', methods=['GET'])
@jwt_required(optional=True)
@limiter.limit("100 per hour")
def get_listing(listing_id):
    """Single listing; hidden unless live, or the viewer is its host or an admin"""
    listing = Listing.query.get(listing_id)

    if not listing or listing.status == ListingStatus.DELETED:
        return jsonify({'error': 'Listing not found'}), 404

    identity = get_jwt_identity()
    user = User.query.get(int(identity)) if identity else None
    is_manager = can_manage_listing(user, listing)

    if listing.status != ListingStatus.LIVE and not is_manager:
        return jsonify({'error': 'Listing not found'}), 404

    if not is_manager:
        listing.increment_views()

    return jsonify({
        'listing': listing.to_dict(include_host=True, include_private=is_manager)
    }), 200


@listings_bp.route('/', methods=['POST'])
@jwt_required()
@host_required()
@limiter.limit("20 per day")
def create_listing():
    """Create a listing and queue it for review"""
    try:
        current_user_id = int(get_jwt_identity())
        host = User.query.get(current_user_id)
        data = request.get_json() or {}

        error = _validate_listing_data(data)
        if error:
            return jsonify({'error': error}), 400

        # Hosts without verified identity wait for KYC first
        status = ListingStatus.PENDING_APPROVAL if host.kyc_verified else ListingStatus.PENDING_KYC

        listing = Listing(host_id=current_user_id, status=status)
        for field in UPDATEABLE_FIELDS:
            if field in data:
                setattr(listing, field, data[field])
        _apply_enums(listing, data)

        db.session.add(listing)
        db.session.commit()

        current_app.logger.info(f'Listing {listing.id} created by host {current_user_id} ({status.value})')

        return jsonify({
            'message': 'Listing created successfully',
            'listing': listing.to_dict(include_private=True)
        }), 201

    except Exception as e:
        db.session.rollback()
        return jsonify({'error': str(e)}), 500


@listings_bp.route('/<int:listing_id>', methods=['PUT'])
@jwt_required()
def update_listing(listing_id):
    """Update listing (host only)"""
    try:
        current_user_id = int(get_jwt_identity())
        user = User.query.get(current_user_id)
        listing = Listing.query.get(listing_id)

        if not listing or listing.status == ListingStatus.DELETED:
            return jsonify({'error': 'Listing not found'}), 404

        if not can_manage_listing(user, listing):
            return jsonify({'error': 'Unauthorized'}), 403

        data = request.get_json() or {}

        error = _validate_listing_data(data, partial=True)
        if error:
            return jsonify({'error': error}), 400

        for field in UPDATEABLE_FIELDS:
            if field in data:
                setattr(listing, field, data[field])
        _apply_enums(listing, data)

        # A rejected listing goes back into the review queue after edits
        if listing.status == ListingStatus.REJECTED:
            listing.status = ListingStatus.PENDING_APPROVAL if listing.host.kyc_verified \
                else ListingStatus.PENDING_KYC
            listing.rejection_reason = None

        db.session.commit()

        return jsonify({
            'message': 'Listing updated successfully',
            'listing': listing.to_dict(include_private=True)
        }), 200

    except Exception as e:
        db.session.rollback()
        return jsonify({'error': str(e)}), 500


@listings_bp.route('/<int:listing_id>', methods=['DELETE'])
@jwt_required()
def delete_listing(listing_id):
    """Soft-delete a listing that has no upcoming bookings"""
    current_user_id = int(get_jwt_identity())
    user = User.query.get(current_user_id)
    listing = Listing.query.get(listing_id)

    if not listing or listing.status == ListingStatus.DELETED:
        return jsonify({'error': 'Listing not found'}), 404

    if not can_manage_listing(user, listing):
        return jsonify({'error': 'Unauthorized'}), 403

    active = listing.bookings.filter(
        Booking.status.in_([BookingStatus.PENDING, BookingStatus.CONFIRMED, BookingStatus.STARTED])
    ).count()
    if active:
        return jsonify({'error': f'Listing has {active} active booking(s)'}), 409

    listing.status = ListingStatus.DELETED
    db.session.commit()

    return jsonify({
        'message': 'Listing deleted successfully'
    }), 200


@listings_bp.route('/<int:listing_id>/availability', methods=['GET'])
def check_availability(listing_id):
    """Check the availability calendar for a date range and quote a price"""
    listing = Listing.query.get(listing_id)

    if not listing or listing.status != ListingStatus.LIVE:
        return jsonify({'error': 'Listing not found'}), 404

    date_from_str = request.args.get('date_from')
    date_to_str = request.args.get('date_to')
    guests = request.args.get('guests', 1, type=int)

    if not date_from_str or not date_to_str:
        return jsonify({'error': 'date_from and date_to dates are required'}), 400

    try:
        date_from = datetime.strptime(date_from_str, '%Y-%m-%d').date()
        date_to = datetime.strptime(date_to_str, '%Y-%m-%d').date()
    except ValueError:
        return jsonify({'error': 'Dates must be YYYY-MM-DD'}), 400

    if date_to < date_from:
        return jsonify({'error': 'date_to must not be before date_from'}), 400

    booked_dates = set()
    if not listing.is_hourly:
        for booking in listing.bookings.filter(Booking.status != BookingStatus.CANCELLED):
            for offset in range(booking.duration or 1):
                booked_dates.add((booking.date + timedelta(days=offset)).isoformat())

    is_available = listing.is_available(date_from, date_to, booked_dates)

    pricing = None
    if is_available and not listing.is_hourly:
        days = (date_to - date_from).days + 1
        pricing = calculate_booking_price(listing, days, guests)

    return jsonify({
        'available': is_available,
        'pricing': pricing
    }), 200


@listings_bp.route('/my-listings', methods=['GET'])
@jwt_required()
def get_my_listings():
    """Get current user's listings"""
    current_user_id = int(get_jwt_identity())
    listings = Listing.query.filter(
        Listing.host_id == current_user_id,
        Listing.status != ListingStatus.DELETED
    ).order_by(Listing.created_at.desc()).all()

    return jsonify({
        'listings': [listing.to_dict(include_private=True) for listing in listings]
    }), 200
