"""
Models package initialization
Import all models here for easy access
"""

from app.models.user import User, UserRole, KYCStatus
from app.models.listing import Listing, ListingStatus, PricingModel, CancellationPolicy
from app.models.booking import (
    Booking,
    BookingStatus,
    PaymentStatus,
    HandshakeStatus,
    DisputeStatus,
    CautionStatus,
)
from app.models.escrow_transaction import EscrowTransaction, TransactionType, TransactionStatus
from app.models.idempotency_record import IdempotencyRecord
from app.models.damage_report import DamageReport, DamageReportStatus
from app.models.notification import Notification
from app.models.message import Conversation, Message
from app.models.review import Review

__all__ = [
    'User',
    'UserRole',
    'KYCStatus',
    'Listing',
    'ListingStatus',
    'PricingModel',
    'CancellationPolicy',
    'Booking',
    'BookingStatus',
    'PaymentStatus',
    'HandshakeStatus',
    'DisputeStatus',
    'CautionStatus',
    'EscrowTransaction',
    'TransactionType',
    'TransactionStatus',
    'IdempotencyRecord',
    'DamageReport',
    'DamageReportStatus',
    'Notification',
    'Conversation',
    'Message',
    'Review',
]
