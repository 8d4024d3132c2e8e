"""
Listing Model
"""

from extensions import db
from datetime import datetime
from enum import Enum


class PricingModel(str, Enum):
    """How a listing is priced and how long a booking lasts"""
    NIGHTLY = 'NIGHTLY'  # Overnight stays
    DAILY = 'DAILY'      # Full-day events, venues
    HOURLY = 'HOURLY'    # Studios, meeting rooms


class ListingStatus(str, Enum):
    """Listing status enum"""
    DRAFT = 'Draft'
    PENDING_KYC = 'Pending KYC'
    PENDING_APPROVAL = 'Pending Approval'
    LIVE = 'Live'
    REJECTED = 'Rejected'
    DELETED = 'Deleted'


class CancellationPolicy(str, Enum):
    FLEXIBLE = 'Flexible'
    MODERATE = 'Moderate'
    STRICT = 'Strict'
    NON_REFUNDABLE = 'Non-refundable'


class Listing(db.Model):
    """Rentable space listed by a host"""

    __tablename__ = 'listings'

    id = db.Column(db.Integer, primary_key=True)
    host_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)

    # Basic Information
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=False)
    space_type = db.Column(db.String(50), nullable=False)
    status = db.Column(db.Enum(ListingStatus), default=ListingStatus.DRAFT, nullable=False)
    rejection_reason = db.Column(db.Text)
    tags = db.Column(db.JSON, default=list)

    # Location
    location = db.Column(db.String(255), nullable=False)  # public area name
    address = db.Column(db.String(255))                   # shown after booking
    latitude = db.Column(db.Float)
    longitude = db.Column(db.Float)

    # Pricing
    price = db.Column(db.Numeric(12, 2), nullable=False)
    pricing_model = db.Column(db.Enum(PricingModel), default=PricingModel.DAILY, nullable=False)
    booking_config = db.Column(db.JSON, default=dict)
    caution_fee = db.Column(db.Numeric(12, 2), default=0)
    add_ons = db.Column(db.JSON, default=list)  # [{id, name, price}]

    # Capacity
    max_guests = db.Column(db.Integer, default=1, nullable=False)
    allow_extra_guests = db.Column(db.Boolean, default=False)
    extra_guest_limit = db.Column(db.Integer, default=0)
    extra_guest_fee = db.Column(db.Numeric(12, 2), default=0)

    # Rules
    cancellation_policy = db.Column(db.Enum(CancellationPolicy), default=CancellationPolicy.FLEXIBLE)
    house_rules = db.Column(db.JSON, default=list)
    instant_book = db.Column(db.Boolean, default=False)
    requires_identity_verification = db.Column(db.Boolean, default=False)

    # "YYYY-MM-DD" -> [hours]
    availability = db.Column(db.JSON, default=dict)

    images = db.Column(db.JSON, default=list)

    # Statistics
    view_count = db.Column(db.Integer, default=0)
    rating = db.Column(db.Float, default=0.0)
    review_count = db.Column(db.Integer, default=0)

    # Timestamps
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    bookings = db.relationship('Booking', backref='listing', lazy='dynamic')
    reviews = db.relationship('Review', backref='listing', lazy='dynamic')

    def __init__(self, **kwargs):
        for key, value in kwargs.items():
            if hasattr(self, key):
                setattr(self, key, value)

    @property
    def is_hourly(self):
        return self.pricing_model == PricingModel.HOURLY

    def increment_views(self):
        self.view_count = (self.view_count or 0) + 1
        db.session.commit()

    def get_add_on(self, add_on_id):
        for add_on in self.add_ons or []:
            if add_on.get('id') == add_on_id:
                return add_on
        return None

    def is_available(self, date_from, date_to, booked_dates=None):
        """
        Check the host's availability calendar for every date in
        [date_from, date_to], both inclusive.

        A date is available when the calendar has at least one open hour
        for it and it is not in booked_dates.
        """
        from datetime import timedelta

        if not self.availability:
            return False

        booked = set(booked_dates or [])
        day = date_from
        while day <= date_to:
            key = day.isoformat()
            if key in booked:
                return False
            if not self.availability.get(key):
                return False
            day += timedelta(days=1)
        return True

    def to_dict(self, include_host=False, include_private=False):
        """Convert listing to dictionary"""
        data = {
            'id': self.id,
            'host_id': self.host_id,
            'title': self.title,
            'description': self.description,
            'space_type': self.space_type,
            'status': self.status.value,
            'tags': self.tags or [],
            'location': self.location,
            'latitude': self.latitude,
            'longitude': self.longitude,
            'price': float(self.price),
            'pricing_model': self.pricing_model.value,
            'booking_config': self.booking_config or {},
            'caution_fee': float(self.caution_fee or 0),
            'add_ons': self.add_ons or [],
            'max_guests': self.max_guests,
            'allow_extra_guests': self.allow_extra_guests,
            'extra_guest_limit': self.extra_guest_limit,
            'extra_guest_fee': float(self.extra_guest_fee or 0),
            'cancellation_policy': self.cancellation_policy.value if self.cancellation_policy else None,
            'house_rules': self.house_rules or [],
            'instant_book': self.instant_book,
            'requires_identity_verification': self.requires_identity_verification,
            'availability': self.availability or {},
            'images': self.images or [],
            'view_count': self.view_count,
            'rating': self.rating,
            'review_count': self.review_count,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }

        if include_private:
            data['address'] = self.address
            data['rejection_reason'] = self.rejection_reason

        if include_host:
            data['host'] = self.host.to_dict()

        return data

    def __repr__(self):
        return f'<Listing {self.title}>'
