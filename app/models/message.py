from extensions import db
from datetime import datetime


class Conversation(db.Model):
    __tablename__ = 'conversations'

    id = db.Column(db.Integer, primary_key=True)
    user1_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    user2_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    listing_id = db.Column(db.Integer, db.ForeignKey('listings.id'))
    booking_id = db.Column(db.Integer, db.ForeignKey('bookings.id'))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow)
    user1_read_count = db.Column(db.Integer, default=0)
    user2_read_count = db.Column(db.Integer, default=0)

    messages = db.relationship('Message', backref='conversation', lazy='dynamic')
    user1 = db.relationship('User', foreign_keys=[user1_id])
    user2 = db.relationship('User', foreign_keys=[user2_id])

    def has_participant(self, user_id):
        return user_id in (self.user1_id, self.user2_id)

    def other_participant_id(self, user_id):
        return self.user2_id if user_id == self.user1_id else self.user1_id

    def visible_messages(self, user_id):
        """Messages the user may see: all their own plus the unflagged ones from the other side"""
        return self.messages.filter(
            db.or_(Message.sender_id == user_id, Message.flagged.is_(False))
        ).order_by(Message.created_at.asc())

    def unread_count(self, user_id):
        total = self.visible_messages(user_id).count()
        if user_id == self.user1_id:
            read = self.user1_read_count or 0
        else:
            read = self.user2_read_count or 0
        return max(total - read, 0)

    def mark_read(self, user_id):
        total = self.visible_messages(user_id).count()
        if user_id == self.user1_id:
            self.user1_read_count = total
        else:
            self.user2_read_count = total

    def to_dict(self, current_user_id=None):
        last_message = None
        unread = 0
        if current_user_id:
            last_message = self.visible_messages(current_user_id).order_by(None)\
                .order_by(Message.created_at.desc()).first()
            unread = self.unread_count(current_user_id)

        return {
            'id': self.id,
            'user1': self.user1.to_dict() if self.user1 else None,
            'user2': self.user2.to_dict() if self.user2 else None,
            'listing_id': self.listing_id,
            'booking_id': self.booking_id,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
            'last_message': last_message.to_dict() if last_message else None,
            'unread_count': unread,
        }


class Message(db.Model):
    __tablename__ = 'messages'

    id = db.Column(db.Integer, primary_key=True)
    conversation_id = db.Column(db.Integer, db.ForeignKey('conversations.id'), nullable=False, index=True)
    sender_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    content = db.Column(db.Text, nullable=False)
    flagged = db.Column(db.Boolean, default=False, nullable=False)
    flagged_reason = db.Column(db.String(50))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    sender = db.relationship('User')

    def to_dict(self):
        return {
            'id': self.id,
            'conversation_id': self.conversation_id,
            'sender_id': self.sender_id,
            'content': self.content,
            'flagged': self.flagged,
            'flagged_reason': self.flagged_reason,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
