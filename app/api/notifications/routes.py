"""
Notification Routes
"""

from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required, get_jwt_identity
from extensions import db
from app.services import notification_service

notifications_bp = Blueprint('notifications', __name__)


@notifications_bp.route('/', methods=['GET'])
@jwt_required()
def get_notifications():
    """Current user's notifications, newest first"""
    user_id = int(get_jwt_identity())
    unread_only = request.args.get('unread_only', 'false').lower() == 'true'
    limit = request.args.get('limit', type=int)

    notifications = notification_service.get_notifications(user_id, unread_only, limit)

    return jsonify({
        'notifications': [notification.to_dict() for notification in notifications],
        'unread_count': notification_service.get_unread_count(user_id)
    }), 200


@notifications_bp.route('/unread-count', methods=['GET'])
@jwt_required()
def unread_count():
    user_id = int(get_jwt_identity())
    return jsonify({'unread_count': notification_service.get_unread_count(user_id)}), 200


@notifications_bp.route('/<int:notification_id>/read', methods=['POST'])
@jwt_required()
def mark_read(notification_id):
    user_id = int(get_jwt_identity())

    if not notification_service.mark_notification_as_read(notification_id, user_id):
        return jsonify({'error': 'Notification not found'}), 404

    db.session.commit()
    return jsonify({'success': True}), 200


@notifications_bp.route('/read-all', methods=['POST'])
@jwt_required()
def mark_all_read():
    user_id = int(get_jwt_identity())
    updated = notification_service.mark_all_notifications_as_read(user_id)
    db.session.commit()
    return jsonify({'success': True, 'updated': updated}), 200


@notifications_bp.route('/', methods=['DELETE'])
@jwt_required()
def clear_all():
    user_id = int(get_jwt_identity())
    deleted = notification_service.clear_all_notifications(user_id)
    db.session.commit()
    return jsonify({'success': True, 'deleted': deleted}), 200
