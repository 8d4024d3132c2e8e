"""
Identity Verification (KYC) Routes
"""

from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required, get_jwt_identity
from app.models.user import User, KYCStatus
from extensions import db, limiter
from app.services import kyc_service
from app.utils.decorators import admin_required

verification_bp = Blueprint('verification', __name__)


@verification_bp.route('/submit', methods=['POST'])
@jwt_required()
@limiter.limit("10 per day")
def submit_document():
    """Upload an identity document (multipart field 'document')"""
    current_user_id = int(get_jwt_identity())
    user = User.query.get(current_user_id)

    if not user:
        return jsonify({'error': 'User not found'}), 404

    kyc_service.submit_document(user, request.files.get('document'))
    db.session.commit()

    return jsonify({
        'message': 'Document submitted successfully. Awaiting verification.',
        'user': user.to_dict(include_email=True, include_kyc=True)
    }), 200


@verification_bp.route('/status', methods=['GET'])
@jwt_required()
def get_verification_status():
    """Get current user's verification status"""
    current_user_id = int(get_jwt_identity())
    user = User.query.get(current_user_id)

    if not user:
        return jsonify({'error': 'User not found'}), 404

    return jsonify({
        'kyc_status': user.kyc_status.value,
        'kyc_verified': user.kyc_verified,
        'liveness_verified': user.liveness_verified,
        'submitted_at': user.kyc_submitted_at.isoformat() if user.kyc_submitted_at else None,
        'reviewed_at': user.kyc_reviewed_at.isoformat() if user.kyc_reviewed_at else None,
        'notes': user.kyc_notes
    }), 200


@verification_bp.route('/liveness', methods=['POST'])
@jwt_required()
def update_liveness():
    """Record the outcome of the client-side liveness check"""
    current_user_id = int(get_jwt_identity())
    user = User.query.get(current_user_id)

    if not user:
        return jsonify({'error': 'User not found'}), 404

    data = request.get_json() or {}
    if 'verified' not in data:
        return jsonify({'error': 'verified is required'}), 400

    kyc_service.update_liveness(user, data['verified'])
    db.session.commit()

    return jsonify({'liveness_verified': user.liveness_verified}), 200


@verification_bp.route('/pending', methods=['GET'])
@jwt_required()
@admin_required()
def get_pending_verifications():
    """Users waiting for a KYC decision, oldest submission first (Admin only)"""
    users = kyc_service.get_pending_kyc_users()
    return jsonify({
        'users': [user.to_dict(include_email=True, include_kyc=True) for user in users],
        'total': len(users)
    }), 200


@verification_bp.route('/<int:user_id>/decision', methods=['POST'])
@jwt_required()
@admin_required()
def decide(user_id):
    """Verify or reject a user's identity (Admin only)"""
    admin = User.query.get(int(get_jwt_identity()))
    user = User.query.get(user_id)

    if not user:
        return jsonify({'error': 'User not found'}), 404

    data = request.get_json() or {}
    status = data.get('status')
    notes = data.get('notes')

    if status == KYCStatus.REJECTED.value and not notes:
        return jsonify({'error': 'Rejection reason is required'}), 400

    if user.kyc_status != KYCStatus.PENDING:
        return jsonify({'error': 'User has no pending verification'}), 400

    kyc_service.update_kyc(user, status, reviewer=admin, notes=notes)
    db.session.commit()

    return jsonify({
        'message': f'Verification {user.kyc_status.value}',
        'user': user.to_dict(include_email=True, include_kyc=True)
    }), 200


@verification_bp.route('/stats', methods=['GET'])
@jwt_required()
@admin_required()
def get_verification_stats():
    """Get verification statistics (Admin only)"""
    total_users = User.query.count()
    verified_users = User.query.filter_by(kyc_status=KYCStatus.VERIFIED).count()
    pending_users = User.query.filter_by(kyc_status=KYCStatus.PENDING).count()
    rejected_users = User.query.filter_by(kyc_status=KYCStatus.REJECTED).count()

    return jsonify({
        'total_users': total_users,
        'verified_users': verified_users,
        'pending_verification': pending_users,
        'rejected': rejected_users,
        'verification_rate': round((verified_users / total_users * 100), 2) if total_users > 0 else 0
    }), 200
