"""
Reviews Blueprint
"""

from flask import Blueprint, jsonify, request
from flask_jwt_extended import jwt_required, get_jwt_identity
from extensions import db
from app.models.review import Review
from app.models.booking import Booking
from app.services import review_service

reviews_bp = Blueprint('reviews', __name__)


@reviews_bp.route('/', methods=['POST'])
@jwt_required()
def create_review():
    """Review a completed booking"""
    current_user_id = int(get_jwt_identity())
    data = request.get_json() or {}

    required_fields = ['booking_id', 'rating', 'comment']
    for field in required_fields:
        if field not in data:
            return jsonify({'error': f'{field} is required'}), 400

    booking = Booking.query.get(data['booking_id'])
    if not booking:
        return jsonify({'error': 'Booking not found'}), 404

    review = review_service.add_review(booking, current_user_id, data['rating'], data['comment'])
    db.session.commit()

    return jsonify({
        'message': 'Review created successfully',
        'review': review.to_dict(include_user=True)
    }), 201


@reviews_bp.route('/listing/<int:listing_id>', methods=['GET'])
def get_listing_reviews(listing_id):
    """Get all reviews for a listing"""
    page = request.args.get('page', 1, type=int)
    per_page = request.args.get('per_page', 10, type=int)

    paginated_reviews = Review.query.filter_by(listing_id=listing_id)\
        .order_by(Review.created_at.desc())\
        .paginate(page=page, per_page=per_page, error_out=False)

    return jsonify({
        'reviews': [review.to_dict(include_user=True) for review in paginated_reviews.items],
        'average_rating': review_service.get_average_rating(listing_id),
        'total': paginated_reviews.total,
        'pages': paginated_reviews.pages,
        'current_page': page
    }), 200


@reviews_bp.route('/<int:review_id>/response', methods=['POST'])
@jwt_required()
def add_host_response(review_id):
    """Add host response to review"""
    current_user_id = int(get_jwt_identity())
    review = Review.query.get(review_id)

    if not review:
        return jsonify({'error': 'Review not found'}), 404

    data = request.get_json() or {}
    if 'response' not in data:
        return jsonify({'error': 'response is required'}), 400

    review_service.add_host_response(review, current_user_id, data['response'])
    db.session.commit()

    return jsonify({
        'message': 'Response added successfully',
        'review': review.to_dict(include_user=True)
    }), 200
