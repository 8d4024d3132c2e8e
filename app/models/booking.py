"""
Booking Model
"""

from extensions import db
from datetime import datetime
from enum import Enum


class BookingStatus(str, Enum):
    """Booking status enum"""
    PENDING = 'Pending'
    CONFIRMED = 'Confirmed'
    STARTED = 'Started'
    COMPLETED = 'Completed'
    CANCELLED = 'Cancelled'


class PaymentStatus(str, Enum):
    PENDING = 'Pending'
    ESCROW = 'Paid - Escrow'
    RELEASED = 'Released'
    REFUNDED = 'Refunded'


class HandshakeStatus(str, Enum):
    PENDING = 'PENDING'
    VERIFIED = 'VERIFIED'
    FAILED = 'FAILED'


class DisputeStatus(str, Enum):
    NONE = 'NONE'
    OPEN = 'OPEN'
    RESOLVED = 'RESOLVED'


class CautionStatus(str, Enum):
    HELD = 'HELD'
    RELEASED = 'RELEASED'
    CLAIMED = 'CLAIMED'
    PARTIAL_CLAIM = 'PARTIAL_CLAIM'


class Booking(db.Model):
    """Booking/Reservation model"""

    __tablename__ = 'bookings'

    id = db.Column(db.Integer, primary_key=True)
    listing_id = db.Column(db.Integer, db.ForeignKey('listings.id'), nullable=False)
    guest_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)

    # Booking Details
    date = db.Column(db.Date, nullable=False)
    duration = db.Column(db.Integer, nullable=False, default=1)  # hours or days
    hours = db.Column(db.JSON)                                    # hourly bookings only
    guest_count = db.Column(db.Integer, nullable=False, default=1)
    extra_guest_count = db.Column(db.Integer, default=0)
    selected_add_ons = db.Column(db.JSON, default=list)
    special_requests = db.Column(db.Text)

    status = db.Column(db.Enum(BookingStatus), default=BookingStatus.PENDING, nullable=False)

    # Financial breakdown
    base_price = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    extra_guest_fees = db.Column(db.Numeric(12, 2), default=0)
    extras_total = db.Column(db.Numeric(12, 2), default=0)
    user_service_fee = db.Column(db.Numeric(12, 2), default=0)
    host_service_fee = db.Column(db.Numeric(12, 2), default=0)
    caution_fee = db.Column(db.Numeric(12, 2), default=0)
    subtotal = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    total_price = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    host_payout = db.Column(db.Numeric(12, 2), default=0)
    platform_fee = db.Column(db.Numeric(12, 2), default=0)

    # Caution deposit
    caution_status = db.Column(db.Enum(CautionStatus))
    caution_claim_amount = db.Column(db.Numeric(12, 2))
    caution_released_at = db.Column(db.DateTime)

    # Payment / escrow
    payment_status = db.Column(db.Enum(PaymentStatus), default=PaymentStatus.PENDING, nullable=False)
    payment_reference = db.Column(db.String(255))
    payment_intent_id = db.Column(db.String(255))  # Stripe Payment Intent ID
    escrow_release_date = db.Column(db.DateTime)
    payout_notified_at = db.Column(db.DateTime)

    # Check-in handshake
    guest_code = db.Column(db.String(12), index=True)
    handshake_status = db.Column(db.Enum(HandshakeStatus), default=HandshakeStatus.PENDING, nullable=False)
    verified_at = db.Column(db.DateTime)

    dispute_status = db.Column(db.Enum(DisputeStatus), default=DisputeStatus.NONE, nullable=False)
    dispute_reason = db.Column(db.Text)

    # Cancellation
    cancellation_reason = db.Column(db.Text)
    cancelled_at = db.Column(db.DateTime)
    cancelled_by = db.Column(db.String(50))  # user id or 'system'
    refund_amount = db.Column(db.Numeric(12, 2))
    refund_processed = db.Column(db.Boolean, default=False)

    idempotency_key = db.Column(db.String(100), index=True)

    # Timestamps
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    transactions = db.relationship('EscrowTransaction', backref='booking', lazy='dynamic')

    def __init__(self, **kwargs):
        for key, value in kwargs.items():
            if hasattr(self, key):
                setattr(self, key, value)

    @property
    def is_hourly(self):
        return bool(self.hours)

    def apply_breakdown(self, breakdown):
        """Copy a price breakdown from booking_security onto the booking"""
        self.base_price = breakdown['base_price']
        self.extra_guest_fees = breakdown['extra_guest_fee']
        self.extra_guest_count = breakdown['extra_guest_count']
        self.extras_total = breakdown['add_ons_cost']
        self.user_service_fee = breakdown['user_service_fee']
        self.host_service_fee = breakdown['host_service_fee']
        self.caution_fee = breakdown['caution_fee']
        self.subtotal = breakdown['subtotal']
        self.total_price = breakdown['total']
        self.host_payout = breakdown['host_payout']
        self.platform_fee = breakdown['platform_fee']

    def can_cancel(self):
        return self.status in [BookingStatus.PENDING, BookingStatus.CONFIRMED]

    def to_dict(self, include_listing=False, include_guest=False, include_code=False):
        """Convert booking to dictionary"""
        data = {
            'id': self.id,
            'listing_id': self.listing_id,
            'guest_id': self.guest_id,
            'date': self.date.isoformat() if self.date else None,
            'duration': self.duration,
            'hours': self.hours,
            'guest_count': self.guest_count,
            'extra_guest_count': self.extra_guest_count,
            'selected_add_ons': self.selected_add_ons or [],
            'special_requests': self.special_requests,
            'status': self.status.value,
            'base_price': float(self.base_price or 0),
            'extra_guest_fees': float(self.extra_guest_fees or 0),
            'extras_total': float(self.extras_total or 0),
            'user_service_fee': float(self.user_service_fee or 0),
            'host_service_fee': float(self.host_service_fee or 0),
            'caution_fee': float(self.caution_fee or 0),
            'subtotal': float(self.subtotal or 0),
            'total_price': float(self.total_price or 0),
            'host_payout': float(self.host_payout or 0),
            'platform_fee': float(self.platform_fee or 0),
            'caution_status': self.caution_status.value if self.caution_status else None,
            'payment_status': self.payment_status.value,
            'escrow_release_date': self.escrow_release_date.isoformat() if self.escrow_release_date else None,
            'handshake_status': self.handshake_status.value,
            'verified_at': self.verified_at.isoformat() if self.verified_at else None,
            'dispute_status': self.dispute_status.value,
            'cancellation_reason': self.cancellation_reason,
            'cancelled_at': self.cancelled_at.isoformat() if self.cancelled_at else None,
            'cancelled_by': self.cancelled_by,
            'refund_amount': float(self.refund_amount) if self.refund_amount is not None else None,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }

        if include_code:
            data['guest_code'] = self.guest_code

        if include_listing:
            data['listing'] = self.listing.to_dict()

        if include_guest:
            data['guest'] = self.guest.to_dict()

        return data

    def __repr__(self):
        return f'<Booking {self.id} - Listing {self.listing_id}>'
