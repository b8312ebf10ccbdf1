from flask import Blueprint, request, jsonify
from sqlalchemy.exc import SQLAlchemyError
import logging

from config.database import db
from services import message_store
from services.auth_service import bearer_token, resolve_identity
from services.chat_service import submit_message
from services.errors import ChatError, StoreError, ValidationError

logger = logging.getLogger(__name__)

chat_bp = Blueprint('chat', __name__, url_prefix='/api/chat')


def _unauthorized():
    return jsonify({'status': 'error', 'message': 'Not authorized to access this route'}), 401


@chat_bp.route('/messages', methods=['GET'])
def get_messages():
    """Return the most recent messages, oldest first, with reply snapshots resolved."""
    if resolve_identity(bearer_token()) is None:
        return _unauthorized()
    try:
        messages = message_store.serialize_messages(message_store.recent_window())
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("[CHAT][HTTP] GET /api/chat/messages failed")
        return jsonify({'status': 'error', 'message': 'Could not load messages'}), 500
    return jsonify({'status': 'success', 'data': {'messages': messages}})


@chat_bp.route('/messages', methods=['POST'])
def post_message():
    """Fallback compose path for clients without a live socket. Body: { text, replyTo? }"""
    identity = resolve_identity(bearer_token())
    if identity is None:
        return _unauthorized()

    data = request.get_json(silent=True)
    if data is None:
        data = {}
    if not isinstance(data, dict):
        return jsonify({'status': 'error', 'message': 'Invalid payload'}), 400
    try:
        payload = submit_message(identity.user_id, data.get('text'), data.get('replyTo'))
    except ValidationError as e:
        return jsonify({'status': 'error', 'message': e.message}), 400
    except StoreError as e:
        return jsonify({'status': 'error', 'message': e.message}), 500
    except ChatError:
        logger.exception("[CHAT][HTTP] POST /api/chat/messages failed user=%s", identity.user_id)
        return jsonify({'status': 'error', 'message': 'Server error'}), 500
    return jsonify({'status': 'success', 'data': {'message': payload}}), 201
