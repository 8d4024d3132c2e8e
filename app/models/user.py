"""
User Model
"""

from extensions import db, bcrypt
from datetime import datetime
from enum import Enum


class UserRole(str, Enum):
    """User roles enum"""
    GUEST = 'guest'
    HOST = 'host'
    ADMIN = 'admin'


class KYCStatus(str, Enum):
    """Identity verification status"""
    NONE = 'none'
    PENDING = 'pending'
    VERIFIED = 'verified'
    REJECTED = 'rejected'


class User(db.Model):
    """User model for authentication and profile"""

    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(120), unique=True, nullable=False, index=True)
    username = db.Column(db.String(80), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)

    first_name = db.Column(db.String(50), nullable=False)
    last_name = db.Column(db.String(50), nullable=False)
    phone = db.Column(db.String(20))
    bio = db.Column(db.Text)
    profile_picture = db.Column(db.String(255))

    # KYC
    kyc_status = db.Column(db.Enum(KYCStatus), default=KYCStatus.NONE, nullable=False)
    kyc_document_url = db.Column(db.String(500))
    kyc_notes = db.Column(db.Text)
    kyc_submitted_at = db.Column(db.DateTime)
    kyc_reviewed_at = db.Column(db.DateTime)
    kyc_reviewed_by_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)
    liveness_verified = db.Column(db.Boolean, default=False, nullable=False)

    kyc_reviewed_by = db.relationship('User', remote_side=[id])

    # Role and status
    role = db.Column(db.Enum(UserRole), default=UserRole.GUEST, nullable=False)
    is_host = db.Column(db.Boolean, default=False, nullable=False)
    is_admin = db.Column(db.Boolean, default=False, nullable=False)
    is_active = db.Column(db.Boolean, default=True)
    badge_status = db.Column(db.String(20), default='standard')
    wallet_balance = db.Column(db.Numeric(12, 2), default=0)

    # Timestamps
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    last_login = db.Column(db.DateTime)

    # Relationships
    listings = db.relationship('Listing', backref='host', lazy='dynamic',
                               foreign_keys='Listing.host_id')
    bookings = db.relationship('Booking', backref='guest', lazy='dynamic',
                               foreign_keys='Booking.guest_id')

    def __init__(self, email, username, password, first_name, last_name, **kwargs):
        """Initialize user with hashed password"""
        self.email = email
        self.username = username
        self.set_password(password)
        self.first_name = first_name
        self.last_name = last_name

        for key, value in kwargs.items():
            if hasattr(self, key):
                setattr(self, key, value)

    def set_password(self, password):
        """Hash and set password"""
        self.password_hash = bcrypt.generate_password_hash(password).decode('utf-8')

    def check_password(self, password):
        """Verify password against hash"""
        return bcrypt.check_password_hash(self.password_hash, password)

    def update_last_login(self):
        """Update last login timestamp"""
        self.last_login = datetime.utcnow()
        db.session.commit()

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}"

    @property
    def kyc_verified(self):
        return self.kyc_status == KYCStatus.VERIFIED

    def to_dict(self, include_email=False, include_kyc=False):
        """Convert user to dictionary"""
        data = {
            'id': self.id,
            'username': self.username,
            'first_name': self.first_name,
            'last_name': self.last_name,
            'full_name': self.full_name,
            'bio': self.bio,
            'profile_picture': self.profile_picture,
            'role': self.role.value,
            'is_host': self.is_host,
            'badge_status': self.badge_status,
            'kyc_verified': self.kyc_verified,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }

        if include_email:
            data['email'] = self.email
            data['phone'] = self.phone
            data['is_admin'] = self.is_admin
            data['wallet_balance'] = float(self.wallet_balance or 0)

        if include_kyc:
            data['kyc_status'] = self.kyc_status.value
            data['kyc_document_url'] = self.kyc_document_url
            data['kyc_notes'] = self.kyc_notes
            data['liveness_verified'] = self.liveness_verified
            data['kyc_submitted_at'] = self.kyc_submitted_at.isoformat() if self.kyc_submitted_at else None
            data['kyc_reviewed_at'] = self.kyc_reviewed_at.isoformat() if self.kyc_reviewed_at else None

        return data

    def __repr__(self):
        return f'<User {self.username}>'
