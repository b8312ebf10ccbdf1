"""Connected chat client: socket push path with an HTTP fallback.

Usage:
    session = ChatSession('http://localhost:5000', token, user_id, 'Ada')
    session.connect()
    session.send_message('hello')
"""
import logging
import threading
from typing import Any, Callable, Dict, List, Optional

import requests
import socketio

from chat_client.errors import TransportError
from chat_client.reconciliation import ChatState
from chat_client.typing_signal import TypingDebouncer
from chat_client.wire import is_temp_id, parse_message, parse_reactions

logger = logging.getLogger(__name__)

MAX_MESSAGE_LENGTH = 500

SEND_FAILED = 'Failed to send message'
LOAD_FAILED = 'Could not load messages'
CONNECT_FAILED = 'Failed to connect to chat server'
SOCKET_ERROR = 'Socket error'
REACT_FAILED = 'Failed to update reaction'


class ChatSession:
    def __init__(self, base_url: str, token: str, user_id: str, user_name: str,
                 sio=None, http: Optional[requests.Session] = None, timeout: float = 10,
                 typing_debouncer: Optional[TypingDebouncer] = None):
        self.base_url = base_url.rstrip('/')
        self.token = token
        self.timeout = timeout
        self.state = ChatState(user_id, user_name)
        self.error: Optional[str] = None
        self._lock = threading.RLock()
        self._listeners: List[Callable[['ChatSession'], None]] = []

        self.sio = sio if sio is not None else socketio.Client(reconnection=True)
        self.http = http if http is not None else requests.Session()
        self.http.headers.update({
            'Authorization': f'Bearer {token}',
            'Content-Type': 'application/json',
        })
        self.typing = typing_debouncer or TypingDebouncer(self._emit_typing)

        self.sio.on('connect', self._on_connect)
        self.sio.on('disconnect', self._on_disconnect)
        self.sio.on('receive-message', self._on_receive_message)
        self.sio.on('message-reaction-updated', self._on_reactions_updated)
        self.sio.on('user-typing', self._on_user_typing)
        self.sio.on('error', self._on_socket_error)

    # -- lifecycle ------------------------------------------------------

    @property
    def connected(self) -> bool:
        return bool(getattr(self.sio, 'connected', False))

    def connect(self) -> bool:
        """Open the socket. History is (re)fetched from the connect handler."""
        try:
            self.sio.connect(self.base_url, auth={'token': self.token}, transports=['websocket', 'polling'])
        except socketio.exceptions.ConnectionError as e:
            logger.warning("Socket connect to %s failed: %s", self.base_url, e)
            self._set_error(CONNECT_FAILED)
            # still show history over HTTP
            self.fetch_history()
            return False
        return True

    def close(self) -> None:
        self.typing.stop()
        if self.connected:
            self.sio.disconnect()

    def on_change(self, callback: Callable[['ChatSession'], None]) -> None:
        self._listeners.append(callback)

    def dismiss_error(self) -> None:
        self.error = None

    # -- history --------------------------------------------------------

    def fetch_history(self) -> bool:
        try:
            resp = self.http.get(f'{self.base_url}/api/chat/messages', timeout=self.timeout)
            resp.raise_for_status()
            raw = (resp.json().get('data') or {}).get('messages') or []
        except (requests.exceptions.RequestException, ValueError) as e:
            logger.warning("History fetch failed: %s", e)
            self._set_error(LOAD_FAILED)
            return False
        with self._lock:
            self.state.load_history([parse_message(m) for m in raw])
        self._changed()
        return True

    # -- compose --------------------------------------------------------

    def send_message(self, text: str):
        """Show the message immediately and deliver it; returns the optimistic entry."""
        text = (text or '').strip()
        if not text:
            return None
        if len(text) > MAX_MESSAGE_LENGTH:
            self._set_error(f'Message must be at most {MAX_MESSAGE_LENGTH} characters')
            return None

        with self._lock:
            reply = self.state.replying_to
            entry = self.state.create_optimistic(text)
        self._changed()

        payload: Dict[str, Any] = {'userId': self.state.user_id, 'text': text}
        if reply is not None:
            payload['replyTo'] = reply.id
        self.typing.stop()

        try:
            self._send_over_socket(entry.id, payload)
        except TransportError as e:
            logger.info("Push channel unavailable (%s); sending over HTTP", e)
            self._send_over_http(entry.id, payload)
        return entry

    def _send_over_socket(self, temp_id: str, payload: Dict[str, Any]) -> None:
        if not self.connected:
            raise TransportError('socket not connected')
        try:
            self.sio.emit('send-message', payload, callback=lambda ack: self._on_ack(temp_id, ack))
        except socketio.exceptions.SocketIOError as e:
            raise TransportError(str(e)) from e

    def _send_over_http(self, temp_id: str, payload: Dict[str, Any]) -> None:
        body = {'text': payload['text']}
        if 'replyTo' in payload:
            body['replyTo'] = payload['replyTo']
        try:
            resp = self.http.post(f'{self.base_url}/api/chat/messages', json=body, timeout=self.timeout)
            resp.raise_for_status()
            saved = (resp.json().get('data') or {}).get('message')
        except (requests.exceptions.RequestException, ValueError) as e:
            logger.warning("HTTP send failed: %s", e)
            self._set_error(SEND_FAILED)
            return
        if saved:
            with self._lock:
                self.state.confirm(temp_id, parse_message(saved))
            self._changed()
        else:
            self.fetch_history()

    def _on_ack(self, temp_id: str, ack) -> None:
        if isinstance(ack, dict) and ack.get('success') and ack.get('message'):
            with self._lock:
                self.state.confirm(temp_id, parse_message(ack['message']))
            self._changed()
            return
        logger.warning("send-message rejected: %r", ack)
        # the optimistic entry stays visible, unconfirmed
        self._set_error(SEND_FAILED)

    # -- reply / react / typing ------------------------------------------

    def reply_to(self, message_id) -> None:
        with self._lock:
            self.state.begin_reply(message_id)
        self._changed()

    def cancel_reply(self) -> None:
        with self._lock:
            self.state.cancel_reply()
        self._changed()

    def open_reactions(self, message_id) -> None:
        with self._lock:
            self.state.open_reaction_picker(message_id)
        self._changed()

    def react(self, message_id, emoji: str) -> None:
        """Toggle the user's reaction locally and ask the server to apply it."""
        if is_temp_id(str(message_id)):
            return
        with self._lock:
            toggled = self.state.toggle_reaction_locally(message_id, emoji)
            self.state.close_reaction_picker()
        if toggled is None:
            return
        self._changed()
        try:
            self._emit_reaction(message_id, emoji)
        except TransportError as e:
            logger.warning("Reaction on %s not sent (%s); reverting", message_id, e)
            with self._lock:
                self.state.toggle_reaction_locally(message_id, emoji)
            self._set_error(REACT_FAILED)

    def _emit_reaction(self, message_id, emoji: str) -> None:
        if not self.connected:
            raise TransportError('socket not connected')
        payload = {'messageId': str(message_id), 'emoji': emoji, 'userId': self.state.user_id}
        try:
            self.sio.emit('react-message', payload)
        except socketio.exceptions.SocketIOError as e:
            raise TransportError(str(e)) from e

    def keystroke(self) -> None:
        self.typing.keystroke()

    def _emit_typing(self, is_typing: bool) -> None:
        if not self.connected:
            return
        try:
            self.sio.emit('typing', {'userId': self.state.user_id, 'isTyping': is_typing})
        except socketio.exceptions.SocketIOError as e:
            logger.debug("typing signal dropped: %s", e)

    # -- socket events --------------------------------------------------

    def _on_connect(self) -> None:
        logger.info("Connected to %s", self.base_url)
        self.error = None
        self.fetch_history()

    def _on_disconnect(self, *args) -> None:
        logger.info("Disconnected from %s", self.base_url)
        with self._lock:
            self.state.reset_typing()
        self._changed()

    def _on_receive_message(self, raw) -> None:
        with self._lock:
            self.state.merge(parse_message(raw))
        self._changed()

    def _on_reactions_updated(self, data) -> None:
        with self._lock:
            self.state.apply_reactions(data.get('messageId'), parse_reactions(data.get('reactions')))
        self._changed()

    def _on_user_typing(self, data) -> None:
        with self._lock:
            self.state.apply_typing(data.get('userId'), bool(data.get('isTyping')))
        self._changed()

    def _on_socket_error(self, data=None) -> None:
        logger.error("Socket error: %r", data)
        self._set_error(SOCKET_ERROR)

    # -- notifications --------------------------------------------------

    def _set_error(self, message: str) -> None:
        self.error = message
        self._changed()

    def _changed(self) -> None:
        for callback in list(self._listeners):
            try:
                callback(self)
            except Exception:
                logger.exception("Chat listener failed")
