"""
KYC Service
Identity document submission and admin review
"""

from datetime import datetime

from flask import current_app

from extensions import db
from app.models.listing import Listing, ListingStatus
from app.models.user import User, KYCStatus
from app.services import notification_service
from app.services.s3_service import S3Service, store_file, file_extension
from app.utils.errors import ValidationError


DOCUMENT_EXTENSIONS = {'png', 'jpg', 'jpeg', 'pdf'}


def submit_document(user, file):
    """Store an identity document and queue the user for review"""
    if not file or not file.filename:
        raise ValidationError('No document provided')

    file_ext = file_extension(file.filename)
    if file_ext not in DOCUMENT_EXTENSIONS:
        raise ValidationError('Invalid file type. Allowed: PNG, JPG, JPEG, PDF')

    if user.kyc_status == KYCStatus.VERIFIED:
        raise ValidationError('Identity is already verified')

    if user.kyc_document_url and S3Service.is_configured():
        S3Service.delete_file(user.kyc_document_url)

    # PDFs are uploaded as-is
    document_url = store_file(file, folder='kyc', compress=file_ext != 'pdf')
    if not document_url:
        raise ValidationError('Failed to upload document', status_code=500)

    user.kyc_document_url = document_url
    user.kyc_status = KYCStatus.PENDING
    user.kyc_notes = 'Document uploaded, pending verification'
    user.kyc_submitted_at = datetime.utcnow()

    notification_service.notify_admins(
        'platform_update', 'KYC Submission',
        f'{user.full_name} submitted an identity document for review.',
        action_required=True, metadata={'user_id': user.id},
    )
    db.session.flush()
    current_app.logger.info(f'KYC document submitted by user {user.id}')
    return user


def update_kyc(user, status, reviewer=None, notes=None):
    """
    Record an admin decision on a user's identity

    Verifying a host moves its listings waiting on KYC into the approval queue.
    """
    if isinstance(status, str):
        try:
            status = KYCStatus(status)
        except ValueError:
            raise ValidationError(f'Invalid KYC status: {status}')

    if status not in (KYCStatus.VERIFIED, KYCStatus.REJECTED):
        raise ValidationError('KYC decision must be verified or rejected')

    user.kyc_status = status
    user.kyc_notes = notes
    user.kyc_reviewed_at = datetime.utcnow()
    user.kyc_reviewed_by_id = reviewer.id if reviewer else None

    if status == KYCStatus.VERIFIED:
        waiting = Listing.query.filter_by(host_id=user.id, status=ListingStatus.PENDING_KYC).all()
        for listing in waiting:
            listing.status = ListingStatus.PENDING_APPROVAL
        notification_service.add_notification(
            user.id, 'platform_update', 'Identity Verified',
            'Your identity has been verified.',
            metadata={'listings_submitted': len(waiting)},
        )
    else:
        notification_service.add_notification(
            user.id, 'platform_update', 'Identity Verification Rejected',
            f"Your identity verification was rejected. {notes or ''}".strip(),
            severity='warning', action_required=True,
        )

    db.session.flush()
    return user


def update_liveness(user, verified):
    user.liveness_verified = bool(verified)
    db.session.flush()
    return user


def get_pending_kyc_users():
    return User.query.filter_by(kyc_status=KYCStatus.PENDING).order_by(User.kyc_submitted_at.asc()).all()
