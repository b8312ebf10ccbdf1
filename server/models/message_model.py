from config.database import db
from models.user_model import utcnow


class ChatMessage(db.Model):
    __tablename__ = 'chat_message'
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    text = db.Column(db.Text, nullable=False)
    # Kept as the raw id the client sent; resolved when the message is read.
    reply_to_id = db.Column(db.String(64), nullable=True)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    user = db.relationship('User', foreign_keys=[user_id], backref='chat_messages')
    reactions = db.relationship(
        'MessageReaction',
        backref='message',
        order_by='MessageReaction.id',
        cascade='all, delete-orphan',
    )

    def __repr__(self):
        return f'<ChatMessage {self.id}>'
