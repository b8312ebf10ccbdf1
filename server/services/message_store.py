"""Durable chat message store.

All writes go through `append` and `toggle_reaction`; each is one database
transaction, so a message is either stored with all of its fields or not at
all, and a reaction toggle is serialized per message row.
"""
import logging

from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import selectinload

from config.database import db
from models.message_model import ChatMessage
from models.message_reaction_model import MessageReaction
from services.errors import NotFound, StoreError, ValidationError

logger = logging.getLogger(__name__)

UNKNOWN_AUTHOR = 'Unknown'


def _parse_pk(value):
    """Return an integer primary key or None for ids we never issue (e.g. temp-...)."""
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return None


def isoformat_utc(dt):
    if dt is None:
        return None
    return dt.isoformat(timespec='milliseconds') + 'Z'


def validate_text(text):
    if not isinstance(text, str) or text.strip() == '':
        raise ValidationError('Text is required')
    text = text.strip()
    limit = current_app.config.get('MAX_MESSAGE_LENGTH', 500)
    if len(text) > limit:
        raise ValidationError(f'Message must be at most {limit} characters')
    return text


def normalize_reply_id(reply_to):
    # clients sometimes send the whole reply snapshot instead of its id
    if isinstance(reply_to, dict):
        reply_to = reply_to.get('_id') or reply_to.get('id')
    if reply_to is None or str(reply_to).strip() == '':
        return None
    return str(reply_to).strip()[:64]


def append(author_id, text, reply_to_id=None):
    """Persist a new message. A dangling `reply_to_id` is stored as given."""
    text = validate_text(text)
    user_pk = _parse_pk(author_id)
    if user_pk is None:
        raise ValidationError('Invalid author')

    msg = ChatMessage(user_id=user_pk, text=text, reply_to_id=normalize_reply_id(reply_to_id))
    try:
        db.session.add(msg)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.exception("[STORE] Error saving message author=%s", author_id)
        raise StoreError() from e
    logger.info("[STORE] Message saved message_id=%s author=%s reply_to=%s", msg.id, user_pk, msg.reply_to_id)
    return msg


def reaction_list(message_id):
    rows = (
        MessageReaction.query.filter_by(message_id=message_id)
        .order_by(MessageReaction.id.asc())
        .all()
    )
    return [r.to_dict() for r in rows]


def toggle_reaction(message_id, user_id, emoji):
    """Add the (user, emoji) reaction, or remove it if already present.

    Returns the complete reaction list of the message after the toggle.
    """
    palette = current_app.config.get('REACTION_EMOJIS')
    if not emoji or (palette and emoji not in palette):
        raise ValidationError('Unsupported reaction')
    user_pk = _parse_pk(user_id)
    if user_pk is None:
        raise ValidationError('Invalid user')
    msg_pk = _parse_pk(message_id)
    if msg_pk is None:
        raise NotFound(f'Message {message_id} not found')

    try:
        # Row lock on the parent message serializes concurrent toggles where the
        # backend supports SELECT ... FOR UPDATE.
        msg = db.session.get(ChatMessage, msg_pk, with_for_update=True)
        if msg is None:
            db.session.rollback()
            raise NotFound(f'Message {message_id} not found')

        existing = MessageReaction.query.filter_by(message_id=msg_pk, user_id=user_pk, emoji=emoji).first()
        if existing:
            db.session.delete(existing)
            action = 'removed'
        else:
            db.session.add(MessageReaction(message_id=msg_pk, user_id=user_pk, emoji=emoji))
            action = 'added'
        db.session.commit()
    except IntegrityError:
        # Another toggle for the same pair committed first; ours turns it off.
        db.session.rollback()
        try:
            MessageReaction.query.filter_by(message_id=msg_pk, user_id=user_pk, emoji=emoji).delete()
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.exception("[STORE] Error resolving reaction conflict message=%s", msg_pk)
            raise StoreError('Failed to update reaction') from e
        action = 'removed'
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.exception("[STORE] Error toggling reaction message=%s user=%s", msg_pk, user_pk)
        raise StoreError('Failed to update reaction') from e

    logger.info("[STORE] Reaction %s message=%s user=%s emoji=%s", action, msg_pk, user_pk, emoji)
    return reaction_list(msg_pk)


def recent_window(limit=None):
    """Return at most `limit` newest messages, oldest first."""
    if limit is None:
        limit = current_app.config.get('CHAT_HISTORY_LIMIT', 50)
    rows = (
        ChatMessage.query.options(selectinload(ChatMessage.user), selectinload(ChatMessage.reactions))
        .order_by(ChatMessage.id.desc())
        .limit(limit)
        .all()
    )
    rows.reverse()
    return rows


def _author(msg):
    user = msg.user
    return (user.name if user else UNKNOWN_AUTHOR), str(msg.user_id)


def resolve_reply_targets(messages):
    """Map each reply id referenced by `messages` to a frozen snapshot, or None."""
    wanted = {m.reply_to_id for m in messages if m.reply_to_id}
    pks = {_parse_pk(rid) for rid in wanted} - {None}
    found = {}
    if pks:
        parents = (
            ChatMessage.query.options(selectinload(ChatMessage.user))
            .filter(ChatMessage.id.in_(pks))
            .all()
        )
        for parent in parents:
            name, author_id = _author(parent)
            found[str(parent.id)] = {
                '_id': str(parent.id),
                'text': parent.text,
                'user': name,
                'userId': author_id,
            }
    targets = {}
    for rid in wanted:
        pk = _parse_pk(rid)
        targets[rid] = found.get(str(pk)) if pk is not None else None
    return targets


def to_payload(msg, reply_targets=None):
    if reply_targets is None:
        reply_targets = resolve_reply_targets([msg])
    name, author_id = _author(msg)
    reply = reply_targets.get(msg.reply_to_id) if msg.reply_to_id else None
    # a parent can only be a message that existed when the reply was written
    if reply is not None and int(reply['_id']) >= msg.id:
        reply = None
    return {
        '_id': str(msg.id),
        'user': name,
        'userId': author_id,
        'text': msg.text,
        'timestamp': isoformat_utc(msg.created_at),
        'replyTo': reply,
        'reactions': [r.to_dict() for r in msg.reactions],
    }


def serialize_messages(messages):
    targets = resolve_reply_targets(messages)
    return [to_payload(m, targets) for m in messages]
