"""
Services Package
Business logic and external service integrations
"""

from app.services.email_service import EmailService
from app.services.stripe_service import StripeService
from app.services.s3_service import S3Service, LocalStorageService

__all__ = [
    'EmailService',
    'StripeService',
    'S3Service',
    'LocalStorageService',
]
