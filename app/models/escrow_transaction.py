"""
Escrow Transaction Model
"""

from extensions import db
from datetime import datetime
from enum import Enum


class TransactionType(str, Enum):
    GUEST_PAYMENT = 'GUEST_PAYMENT'
    SERVICE_FEE = 'SERVICE_FEE'
    HOST_PAYOUT = 'HOST_PAYOUT'
    REFUND = 'REFUND'


class TransactionStatus(str, Enum):
    PENDING = 'PENDING'
    COMPLETED = 'COMPLETED'
    FAILED = 'FAILED'


class EscrowTransaction(db.Model):
    """One entry in the escrow transaction log"""

    __tablename__ = 'escrow_transactions'

    id = db.Column(db.String(64), primary_key=True)
    booking_id = db.Column(db.Integer, db.ForeignKey('bookings.id'), nullable=False, index=True)
    type = db.Column(db.Enum(TransactionType), nullable=False)
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    currency = db.Column(db.String(3), default='NGN')
    status = db.Column(db.Enum(TransactionStatus), default=TransactionStatus.COMPLETED, nullable=False)
    gateway_reference = db.Column(db.String(255))
    from_user_id = db.Column(db.Integer, db.ForeignKey('users.id'))
    to_user_id = db.Column(db.Integer, db.ForeignKey('users.id'))
    meta = db.Column('metadata', db.JSON, default=dict)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    def __init__(self, **kwargs):
        for key, value in kwargs.items():
            if hasattr(self, key):
                setattr(self, key, value)

    def to_dict(self):
        return {
            'id': self.id,
            'booking_id': self.booking_id,
            'type': self.type.value,
            'amount': float(self.amount),
            'currency': self.currency,
            'status': self.status.value,
            'gateway_reference': self.gateway_reference,
            'from_user_id': self.from_user_id,
            'to_user_id': self.to_user_id,
            'metadata': self.meta or {},
            'timestamp': self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f'<EscrowTransaction {self.id} {self.type.value} {self.amount}>'
