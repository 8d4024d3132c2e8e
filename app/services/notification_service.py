"""
Notification Service
In-app notices for guests, hosts and admins
"""

from datetime import datetime

from flask import current_app

from extensions import db
from app.models.notification import Notification
from app.models.user import User


NOTIFICATION_TYPES = ('damage_report', 'complaint', 'platform_update', 'booking', 'message', 'review')
SEVERITIES = ('info', 'warning', 'urgent')


def add_notification(user_id, type, title, message, severity='info',
                     action_required=False, metadata=None, expires_at=None):
    """
    Queue a notification for a user

    The caller owns the transaction; the notification is added to the
    session and flushed so it gets an id.
    """
    if type not in NOTIFICATION_TYPES:
        raise ValueError(f'Unknown notification type: {type}')
    if severity not in SEVERITIES:
        raise ValueError(f'Unknown severity: {severity}')

    notification = Notification(
        user_id=user_id,
        type=type,
        title=title,
        message=message,
        severity=severity,
        action_required=action_required,
        meta=metadata or {},
        created_at=datetime.utcnow(),
        expires_at=expires_at,
    )
    db.session.add(notification)
    db.session.flush()
    return notification


def notify_admins(type, title, message, severity='info', action_required=False, metadata=None):
    admins = User.query.filter_by(is_admin=True).all()
    for admin in admins:
        add_notification(admin.id, type, title, message, severity, action_required, metadata)
    return len(admins)


def broadcast(title, message, sender_id, severity='info', action_required=False):
    """Platform-wide announcement to every active user; returns the recipient count"""
    users = User.query.filter(User.is_active.isnot(False)).all()
    metadata = {'link': '/dashboard?tab=notifications', 'sender_id': sender_id}
    for user in users:
        add_notification(user.id, 'platform_update', title, message, severity, action_required, metadata)
    return len(users)


def _visible(user_id, now=None):
    now = now or datetime.utcnow()
    return Notification.query.filter(
        Notification.user_id == user_id,
        db.or_(Notification.expires_at.is_(None), Notification.expires_at > now),
    )


def get_notifications(user_id, unread_only=False, limit=None):
    """Newest first, expired notices left out"""
    query = _visible(user_id)
    if unread_only:
        query = query.filter(Notification.read.is_(False))
    query = query.order_by(Notification.created_at.desc(), Notification.id.desc())
    if limit:
        query = query.limit(limit)
    return query.all()


def get_unread_count(user_id):
    return _visible(user_id).filter(Notification.read.is_(False)).count()


def mark_notification_as_read(notification_id, user_id):
    notification = Notification.query.filter_by(id=notification_id, user_id=user_id).first()
    if not notification:
        return False
    notification.read = True
    return True


def mark_all_notifications_as_read(user_id):
    updated = Notification.query.filter_by(user_id=user_id, read=False).update({'read': True})
    return updated


def clear_all_notifications(user_id):
    deleted = Notification.query.filter_by(user_id=user_id).delete()
    current_app.logger.info(f'Cleared {deleted} notifications for user {user_id}')
    return deleted
