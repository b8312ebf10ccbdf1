"""Fan-out of chat events to every connection joined to the community room.

The sender's own connection is part of the room, so it receives the canonical
echo of its message like everybody else.
"""
import logging

from flask import current_app

logger = logging.getLogger(__name__)

MESSAGE_CREATED = 'receive-message'
REACTIONS_CHANGED = 'message-reaction-updated'
TYPING_CHANGED = 'user-typing'


class RoomBroadcaster:
    def __init__(self, socketio, room):
        self.socketio = socketio
        self.room = room

    def _emit(self, event, payload):
        # Fire-and-forget: a failed emit is logged, never raised to the caller.
        try:
            self.socketio.emit(event, payload, to=self.room)
            logger.debug("[CHAT][SEND] %s -> room=%s", event, self.room)
        except Exception:
            logger.exception("[CHAT][SEND] Error emitting %s to room %s", event, self.room)

    def message_created(self, payload):
        self._emit(MESSAGE_CREATED, payload)

    def reactions_changed(self, message_id, reactions):
        self._emit(REACTIONS_CHANGED, {'messageId': str(message_id), 'reactions': reactions})

    def typing_changed(self, user_id, is_typing):
        self._emit(TYPING_CHANGED, {'userId': user_id, 'isTyping': bool(is_typing)})


def get_broadcaster(app=None):
    app = app or current_app
    return RoomBroadcaster(app.extensions['socketio'], app.config['CHAT_ROOM'])
