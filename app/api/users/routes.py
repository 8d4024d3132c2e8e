"""
Users Blueprint
"""

from flask import Blueprint, jsonify, request
from flask_jwt_extended import jwt_required, get_jwt_identity
from app.models.user import User, UserRole
from app.models.listing import Listing, ListingStatus
from extensions import db
from app.services.s3_service import store_file

users_bp = Blueprint('users', __name__)


@users_bp.route('/<int:user_id>', methods=['GET'])
def get_user(user_id):
    """Public profile with the user's live listings"""
    user = User.query.get(user_id)

    if not user:
        return jsonify({'error': 'User not found'}), 404

    listings = Listing.query.filter_by(host_id=user.id, status=ListingStatus.LIVE).all()

    return jsonify({
        'user': user.to_dict(),
        'listings': [listing.to_dict() for listing in listings]
    }), 200


@users_bp.route('/me', methods=['PUT'])
@jwt_required()
def update_profile():
    """Update current user profile (text fields only)"""
    try:
        current_user_id = int(get_jwt_identity())
        user = User.query.get(current_user_id)

        if not user:
            return jsonify({'error': 'User not found'}), 404

        data = request.get_json() or {}

        allowed_fields = ['first_name', 'last_name', 'phone', 'bio']
        for field in allowed_fields:
            if field in data:
                setattr(user, field, data[field] if data[field] else None)

        db.session.commit()

        return jsonify({
            'message': 'Profile updated successfully',
            'user': user.to_dict(include_email=True)
        }), 200

    except Exception as e:
        db.session.rollback()
        return jsonify({'error': str(e)}), 500


@users_bp.route('/me/become-host', methods=['POST'])
@jwt_required()
def become_host():
    """Switch a guest account to hosting"""
    current_user_id = int(get_jwt_identity())
    user = User.query.get(current_user_id)

    if not user:
        return jsonify({'error': 'User not found'}), 404

    user.is_host = True
    if user.role == UserRole.GUEST:
        user.role = UserRole.HOST
    db.session.commit()

    return jsonify({
        'message': 'You can now list spaces',
        'user': user.to_dict(include_email=True, include_kyc=True)
    }), 200


@users_bp.route('/me/profile-picture', methods=['POST'])
@jwt_required()
def upload_profile_picture():
    """Upload profile picture via multipart form"""
    try:
        current_user_id = int(get_jwt_identity())
        user = User.query.get(current_user_id)

        if not user:
            return jsonify({'error': 'User not found'}), 404

        file = request.files.get('file')

        if not file or file.filename == '':
            return jsonify({'error': 'No file provided'}), 400

        new_url = store_file(file, folder='profile-pictures')

        if not new_url:
            return jsonify({'error': 'Failed to upload image'}), 400

        user.profile_picture = new_url
        db.session.commit()

        return jsonify({
            'message': 'Profile picture updated',
            'profile_picture': new_url,
            'user': user.to_dict(include_email=True)
        }), 200

    except Exception as e:
        db.session.rollback()
        return jsonify({'error': str(e)}), 500
