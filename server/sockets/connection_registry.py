"""Process-local record of who is connected to the room and who is typing.

Entries are keyed by socket id and removed on disconnect. A deployment with
several server processes shares the room through SOCKETIO_MESSAGE_QUEUE, but
this registry stays per process.
"""
import threading


class ConnectionRegistry:
    def __init__(self):
        self._lock = threading.Lock()
        self._identities = {}
        self._typing = set()

    def register(self, sid, identity):
        with self._lock:
            self._identities[sid] = identity

    def identity(self, sid):
        with self._lock:
            return self._identities.get(sid)

    def set_typing(self, user_id, is_typing):
        with self._lock:
            if is_typing:
                self._typing.add(user_id)
            else:
                self._typing.discard(user_id)

    def typing_users(self):
        with self._lock:
            return set(self._typing)

    def is_online(self, user_id):
        with self._lock:
            return any(i.user_id == user_id for i in self._identities.values())

    def unregister(self, sid):
        """Drop the connection. Returns (identity, was_typing) for the caller to announce."""
        with self._lock:
            identity = self._identities.pop(sid, None)
            if identity is None:
                return None, False
            still_connected = any(i.user_id == identity.user_id for i in self._identities.values())
            was_typing = identity.user_id in self._typing and not still_connected
            if was_typing:
                self._typing.discard(identity.user_id)
            return identity, was_typing

    def __len__(self):
        with self._lock:
            return len(self._identities)
