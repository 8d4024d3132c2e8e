"""
Review Service
"""

from datetime import datetime

from sqlalchemy import func

from extensions import db
from app.models.booking import BookingStatus
from app.models.listing import Listing
from app.models.review import Review
from app.services import notification_service
from app.utils.errors import AuthorizationError, ConflictError, ValidationError


def add_review(booking, user_id, rating, comment):
    """One review per completed booking, written by its guest"""
    if booking.guest_id != user_id:
        raise AuthorizationError('Unauthorized')
    if booking.status != BookingStatus.COMPLETED:
        raise ValidationError('Can only review completed bookings')

    try:
        rating = int(rating)
    except (TypeError, ValueError):
        raise ValidationError('Rating must be a number between 1 and 5')
    if rating < 1 or rating > 5:
        raise ValidationError('Rating must be a number between 1 and 5')

    if not comment or not comment.strip():
        raise ValidationError('comment is required')

    if Review.query.filter_by(booking_id=booking.id).first():
        raise ConflictError('Review already exists for this booking')

    review = Review(
        listing_id=booking.listing_id,
        user_id=user_id,
        booking_id=booking.id,
        rating=rating,
        comment=comment.strip(),
        created_at=datetime.utcnow(),
    )
    db.session.add(review)
    db.session.flush()

    update_listing_rating(booking.listing)
    notification_service.add_notification(
        booking.listing.host_id, 'review', 'New Review',
        f'{booking.guest.full_name} left a {rating}-star review for {booking.listing.title}.',
        metadata={'listing_id': booking.listing_id, 'review_id': review.id},
    )
    return review


def get_reviews(listing_id):
    return Review.query.filter_by(listing_id=listing_id).order_by(Review.created_at.desc()).all()


def get_average_rating(listing_id):
    average = db.session.query(func.avg(Review.rating)).filter(Review.listing_id == listing_id).scalar()
    return round(float(average), 1) if average is not None else 0.0


def update_listing_rating(listing):
    listing.rating = get_average_rating(listing.id)
    listing.review_count = Review.query.filter_by(listing_id=listing.id).count()


def add_host_response(review, user_id, response):
    listing = Listing.query.get(review.listing_id)
    if not listing or listing.host_id != user_id:
        raise AuthorizationError('Unauthorized')
    if not response or not response.strip():
        raise ValidationError('response is required')
    review.host_response = response.strip()
    review.host_response_at = datetime.utcnow()
    db.session.flush()
    return review
