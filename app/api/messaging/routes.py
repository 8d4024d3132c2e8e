"""
Messaging Routes
REST history and sending; live delivery goes out over Pusher
"""

from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required, get_jwt_identity
from extensions import db, limiter
from app.services import messaging_service

messaging_bp = Blueprint('messaging', __name__)


@messaging_bp.route('/conversations', methods=['GET'])
@jwt_required()
def get_conversations():
    user_id = int(get_jwt_identity())
    convos = messaging_service.get_conversations(user_id)
    return jsonify({'conversations': [c.to_dict(current_user_id=user_id) for c in convos]}), 200


@messaging_bp.route('/conversations', methods=['POST'])
@jwt_required()
def create_conversation():
    current_user_id = int(get_jwt_identity())
    data = request.get_json() or {}

    other_user_id = data.get('user_id')
    if not other_user_id:
        return jsonify({'error': 'user_id is required'}), 400

    conversation, created = messaging_service.start_conversation(
        current_user_id, int(other_user_id), data.get('listing_id'), data.get('booking_id')
    )
    db.session.commit()

    return jsonify({
        'conversation': conversation.to_dict(current_user_id=current_user_id)
    }), 201 if created else 200


@messaging_bp.route('/conversations/<int:convo_id>/messages', methods=['GET'])
@jwt_required()
def get_messages(convo_id):
    """Message history; flagged messages from the other side are left out"""
    user_id = int(get_jwt_identity())
    convo = messaging_service.get_conversation_for(user_id, convo_id)
    messages = messaging_service.get_messages(convo, user_id)
    return jsonify({'messages': [m.to_dict() for m in messages]}), 200


@messaging_bp.route('/conversations/<int:convo_id>/messages', methods=['POST'])
@jwt_required()
@limiter.limit("120 per hour")
def send_message(convo_id):
    user_id = int(get_jwt_identity())
    convo = messaging_service.get_conversation_for(user_id, convo_id)
    data = request.get_json() or {}

    message, safety = messaging_service.send_message(convo, user_id, data.get('content'))
    db.session.commit()

    response = {'message': message.to_dict()}
    if not safety['is_safe']:
        response['warning'] = 'Message was flagged and will not be delivered'
        response['flagged_reason'] = safety['flagged_reason']

    return jsonify(response), 201


@messaging_bp.route('/conversations/<int:convo_id>/read', methods=['POST'])
@jwt_required()
def mark_read(convo_id):
    user_id = int(get_jwt_identity())
    convo = messaging_service.get_conversation_for(user_id, convo_id)
    messaging_service.mark_as_read(convo, user_id)
    db.session.commit()
    return jsonify({'success': True, 'unread_count': convo.unread_count(user_id)}), 200
