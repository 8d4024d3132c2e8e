"""
Review Model
"""

from extensions import db
from datetime import datetime


class Review(db.Model):
    """Guest review of a listing after a completed booking"""

    __tablename__ = 'reviews'

    id = db.Column(db.Integer, primary_key=True)
    listing_id = db.Column(db.Integer, db.ForeignKey('listings.id'), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    booking_id = db.Column(db.Integer, db.ForeignKey('bookings.id'), nullable=False, unique=True)

    rating = db.Column(db.Integer, nullable=False)  # 1-5 stars
    comment = db.Column(db.Text, nullable=False)

    host_response = db.Column(db.Text)
    host_response_at = db.Column(db.DateTime)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    author = db.relationship('User')

    def __init__(self, **kwargs):
        for key, value in kwargs.items():
            if hasattr(self, key):
                setattr(self, key, value)

    def to_dict(self, include_user=False):
        data = {
            'id': self.id,
            'listing_id': self.listing_id,
            'user_id': self.user_id,
            'booking_id': self.booking_id,
            'rating': self.rating,
            'comment': self.comment,
            'host_response': self.host_response,
            'host_response_at': self.host_response_at.isoformat() if self.host_response_at else None,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }

        if include_user:
            data['author'] = self.author.to_dict()

        return data

    def __repr__(self):
        return f'<Review {self.id} - Listing {self.listing_id}>'
