from extensions import db
from datetime import datetime


class IdempotencyRecord(db.Model):
    """Booking request key remembered until it expires"""
    __tablename__ = 'idempotency_records'

    id = db.Column(db.Integer, primary_key=True)
    key = db.Column(db.String(100), unique=True, nullable=False, index=True)
    booking_id = db.Column(db.Integer, db.ForeignKey('bookings.id'), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    expires_at = db.Column(db.DateTime, nullable=False)
