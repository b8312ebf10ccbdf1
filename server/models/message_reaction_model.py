from config.database import db
from models.user_model import utcnow


class MessageReaction(db.Model):
    __tablename__ = 'message_reaction'
    __table_args__ = (
        db.UniqueConstraint('message_id', 'user_id', 'emoji', name='uq_reaction_message_user_emoji'),
    )
    id = db.Column(db.Integer, primary_key=True)
    message_id = db.Column(db.Integer, db.ForeignKey('chat_message.id'), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    emoji = db.Column(db.String(16), nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow)

    def to_dict(self):
        return {'emoji': self.emoji, 'userId': str(self.user_id)}

    def __repr__(self):
        return f'<MessageReaction {self.id} msg={self.message_id} user={self.user_id} emoji={self.emoji}>'
