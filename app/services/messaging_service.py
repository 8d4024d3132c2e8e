"""
Messaging Service
Guest/host conversations with safety screening and Pusher fan-out
"""

from datetime import datetime

from flask import current_app

import extensions
from extensions import db
from app.models.message import Conversation, Message
from app.models.user import User
from app.services import notification_service
from app.services.safety_filter import check_message_safety
from app.utils.errors import AuthorizationError, NotFoundError, ValidationError


PREVIEW_LENGTH = 50


def channel_name(conversation_id):
    return f'private-conversation-{conversation_id}'


def get_conversations(user_id):
    return Conversation.query.filter(
        (Conversation.user1_id == user_id) | (Conversation.user2_id == user_id)
    ).order_by(Conversation.updated_at.desc()).all()


def get_conversation_for(user_id, conversation_id):
    conversation = Conversation.query.get(conversation_id)
    if not conversation:
        raise NotFoundError('Conversation not found')
    if not conversation.has_participant(user_id):
        raise AuthorizationError('Unauthorized')
    return conversation


def start_conversation(user_id, other_user_id, listing_id=None, booking_id=None):
    """Return the existing conversation about this listing or open a new one"""
    if user_id == other_user_id:
        raise ValidationError('Cannot message yourself')
    if not User.query.get(other_user_id):
        raise NotFoundError('User not found')

    existing = Conversation.query.filter(
        db.or_(
            db.and_(Conversation.user1_id == user_id, Conversation.user2_id == other_user_id),
            db.and_(Conversation.user1_id == other_user_id, Conversation.user2_id == user_id)
        ),
        Conversation.listing_id == listing_id
    ).first()

    if existing:
        return existing, False

    conversation = Conversation(
        user1_id=user_id,
        user2_id=other_user_id,
        listing_id=listing_id,
        booking_id=booking_id,
    )
    db.session.add(conversation)
    db.session.flush()
    return conversation, True


def get_messages(conversation, user_id):
    return conversation.visible_messages(user_id).all()


def send_message(conversation, sender_id, content):
    """
    Store a message

    Unsafe messages are kept, flagged and hidden from the recipient; only
    safe ones notify the recipient and go out over Pusher.
    """
    content = (content or '').strip()
    if not content:
        raise ValidationError('Message content is required')
    if not conversation.has_participant(sender_id):
        raise AuthorizationError('Unauthorized')

    safety = check_message_safety(content)
    message = Message(
        conversation_id=conversation.id,
        sender_id=sender_id,
        content=content,
        flagged=not safety['is_safe'],
        flagged_reason=safety.get('flagged_reason'),
        created_at=datetime.utcnow(),
    )
    db.session.add(message)
    conversation.updated_at = message.created_at
    db.session.flush()

    if message.flagged:
        current_app.logger.warning(
            f'Message {message.id} from user {sender_id} flagged: {message.flagged_reason}'
        )
        return message, safety

    recipient_id = conversation.other_participant_id(sender_id)
    preview = content[:PREVIEW_LENGTH] + ('...' if len(content) > PREVIEW_LENGTH else '')
    notification_service.add_notification(
        recipient_id, 'message', 'New Message', f'You have a new message: "{preview}"',
        metadata={'link': f'/dashboard?tab=messages&conversationId={conversation.id}',
                  'sender_id': sender_id},
    )
    publish_message(message)
    return message, safety


def publish_message(message):
    """Push a stored message to the conversation channel"""
    client = extensions.pusher_client
    if client is None:
        return False
    try:
        client.trigger(channel_name(message.conversation_id), 'new-message', message.to_dict())
        return True
    except Exception as e:
        current_app.logger.error(f'Pusher trigger failed: {str(e)}')
        return False


def mark_as_read(conversation, user_id):
    conversation.mark_read(user_id)
    db.session.flush()
