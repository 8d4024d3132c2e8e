from extensions import db
from datetime import datetime
from enum import Enum


class DamageReportStatus(str, Enum):
    PENDING = 'pending'
    DISPUTED = 'disputed'
    RESOLVED = 'resolved'
    ESCALATED = 'escalated'


class DamageReport(db.Model):
    __tablename__ = 'damage_reports'

    id = db.Column(db.Integer, primary_key=True)
    booking_id = db.Column(db.Integer, db.ForeignKey('bookings.id'), nullable=False, index=True)
    reported_by = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)  # host
    reported_to = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)  # guest
    description = db.Column(db.Text, nullable=False)
    images = db.Column(db.JSON, default=list)
    estimated_cost = db.Column(db.Numeric(12, 2), nullable=False)
    status = db.Column(db.Enum(DamageReportStatus), default=DamageReportStatus.PENDING, nullable=False)
    user_response = db.Column(db.Text)
    approved_amount = db.Column(db.Numeric(12, 2))
    admin_notes = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    resolved_at = db.Column(db.DateTime)

    booking = db.relationship('Booking', backref=db.backref('damage_reports', lazy='dynamic'))

    def __init__(self, **kwargs):
        for key, value in kwargs.items():
            if hasattr(self, key):
                setattr(self, key, value)

    @property
    def is_open(self):
        return self.status in (DamageReportStatus.PENDING, DamageReportStatus.DISPUTED,
                               DamageReportStatus.ESCALATED)

    def to_dict(self):
        return {
            'id': self.id,
            'booking_id': self.booking_id,
            'reported_by': self.reported_by,
            'reported_to': self.reported_to,
            'description': self.description,
            'images': self.images or [],
            'estimated_cost': float(self.estimated_cost),
            'status': self.status.value,
            'user_response': self.user_response,
            'approved_amount': float(self.approved_amount) if self.approved_amount is not None else None,
            'admin_notes': self.admin_notes,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'resolved_at': self.resolved_at.isoformat() if self.resolved_at else None,
        }
