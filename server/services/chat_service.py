"""Ingest of compose and reaction requests arriving over the socket or HTTP.

A compose request moves through received -> persisting -> persisted ->
published, or ends in rejected when the text fails validation. The canonical
payload is returned to the caller (used as the socket ack / HTTP body) and
also broadcast to the room, so the sender sees it twice; clients dedupe by id.
"""
import logging

from services import message_store
from services.broadcast import get_broadcaster
from services.errors import NotFound, ValidationError

logger = logging.getLogger(__name__)

RECEIVED = 'received'
PERSISTING = 'persisting'
PERSISTED = 'persisted'
PUBLISHED = 'published'
REJECTED = 'rejected'


def _state(state, **ctx):
    logger.debug("[INGEST] %s %s", state, ctx)


def submit_message(author_id, text, reply_to=None, broadcaster=None):
    """Validate, persist and publish one message. Returns the wire payload.

    Raises ValidationError (rejected) or StoreError (persistence failed).
    """
    _state(RECEIVED, author=author_id, reply_to=reply_to)
    try:
        text = message_store.validate_text(text)
        _state(PERSISTING, author=author_id)
        msg = message_store.append(author_id, text, reply_to)
    except ValidationError as e:
        _state(REJECTED, author=author_id, reason=e.message)
        logger.warning("[INGEST] Rejected message from author=%s: %s", author_id, e.message)
        raise
    _state(PERSISTED, message_id=msg.id)

    payload = message_store.to_payload(msg)
    (broadcaster or get_broadcaster()).message_created(payload)
    _state(PUBLISHED, message_id=msg.id)
    return payload


def apply_reaction(message_id, user_id, emoji, broadcaster=None):
    """Toggle a reaction and broadcast the full updated set.

    Missing messages and unsupported emoji are logged and dropped (returns None).
    """
    try:
        reactions = message_store.toggle_reaction(message_id, user_id, emoji)
    except NotFound:
        logger.warning("[REACT] Dropped toggle for missing message=%s user=%s", message_id, user_id)
        return None
    except ValidationError as e:
        logger.warning("[REACT] Dropped toggle message=%s user=%s emoji=%r: %s", message_id, user_id, emoji, e.message)
        return None

    (broadcaster or get_broadcaster()).reactions_changed(message_id, reactions)
    return reactions
