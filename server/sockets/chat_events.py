from flask import current_app, request
from flask_socketio import emit, join_room
import logging

from services.auth_service import resolve_identity
from services.broadcast import get_broadcaster
from services.chat_service import apply_reaction, submit_message
from services.errors import StoreError, ValidationError
from sockets.connection_registry import ConnectionRegistry

# module logger
logger = logging.getLogger(__name__)


def _connection_token(auth):
    if isinstance(auth, dict) and auth.get('token'):
        return auth['token']
    return request.args.get('token')


def register_chat_events(socketio):
    """Attach the community chat handlers to `socketio` and return its registry."""
    registry = ConnectionRegistry()

    def _sender(data, event):
        """Resolve the identity behind this socket and check the payload's userId against it."""
        identity = registry.identity(request.sid)
        if identity is None:
            logger.warning("[CHAT][RECV] %s from unregistered sid=%s", event, request.sid)
            return None
        claimed = data.get('userId') if isinstance(data, dict) else None
        if claimed is not None and str(claimed) != identity.user_id:
            logger.warning("[CHAT][RECV] %s userId mismatch sid=%s claimed=%s actual=%s",
                           event, request.sid, claimed, identity.user_id)
            return None
        return identity

    @socketio.on('connect')
    def handle_connect(auth=None):
        identity = resolve_identity(_connection_token(auth))
        if identity is None:
            logger.warning("[CHAT][CONNECT] Refused sid=%s from %s: no valid token", request.sid, request.remote_addr)
            return False
        registry.register(request.sid, identity)
        join_room(current_app.config['CHAT_ROOM'])
        logger.info("[CHAT][CONNECT] user=%s sid=%s joined %s (%d connected)",
                    identity.user_id, request.sid, current_app.config['CHAT_ROOM'], len(registry))

    @socketio.on('send-message')
    def handle_send_message(data):
        """Persist and broadcast a message; the return value is the client's ack."""
        if not isinstance(data, dict) or not data.get('userId') or not data.get('text'):
            logger.warning("[CHAT][RECV] send-message invalid payload sid=%s data=%r", request.sid, data)
            return {'success': False, 'message': 'Invalid payload'}

        identity = _sender(data, 'send-message')
        if identity is None:
            return {'success': False, 'message': 'Not authorized'}

        logger.debug("[CHAT][RECV] send-message sid=%s user=%s reply_to=%s preview=%r",
                     request.sid, identity.user_id, data.get('replyTo'), str(data.get('text'))[:30])
        try:
            payload = submit_message(identity.user_id, data.get('text'), data.get('replyTo'))
        except ValidationError as e:
            return {'success': False, 'message': e.message}
        except StoreError:
            emit('error', {'message': 'Failed to send message'})
            return {'success': False, 'message': 'Server error'}
        return {'success': True, 'message': payload}

    @socketio.on('react-message')
    def handle_react_message(data):
        """Toggle a reaction; the result reaches everyone through the room broadcast."""
        if not isinstance(data, dict) or not data.get('messageId') or not data.get('emoji') or not data.get('userId'):
            logger.warning("[CHAT][RECV] react-message missing fields sid=%s data=%r", request.sid, data)
            return
        identity = _sender(data, 'react-message')
        if identity is None:
            return
        try:
            apply_reaction(data['messageId'], identity.user_id, data['emoji'])
        except StoreError:
            logger.error("[CHAT][RECV] react-message store failure message=%s user=%s",
                         data['messageId'], identity.user_id)

    @socketio.on('typing')
    def handle_typing(data):
        identity = _sender(data, 'typing')
        if identity is None:
            return
        is_typing = bool(data.get('isTyping', False)) if isinstance(data, dict) else False
        registry.set_typing(identity.user_id, is_typing)
        get_broadcaster().typing_changed(identity.user_id, is_typing)

    @socketio.on('disconnect')
    def handle_disconnect(reason=None):
        identity, was_typing = registry.unregister(request.sid)
        if identity is None:
            return
        logger.info("[CHAT][DISCONNECT] user=%s sid=%s reason=%s", identity.user_id, request.sid, reason)
        if was_typing:
            get_broadcaster().typing_changed(identity.user_id, False)

    return registry
