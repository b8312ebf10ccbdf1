"""Client-side merge of optimistic sends, history snapshots and pushed events.

`ChatState` owns one ordered list of messages. Canonical messages coming from
a history fetch, a send ack or a room broadcast are merged with three rules,
tried in order:

1. an entry with the same id is replaced in place;
2. otherwise the oldest optimistic entry with the same author, trimmed text
   and reply target is replaced in place;
3. otherwise the message is appended.

Because a send is acknowledged and also echoed by the room broadcast, rule 1
makes the second arrival a no-op and rule 2 keeps the entry where the user
typed it rather than where the server ordered it.
"""
import itertools
import logging
import time
from typing import Iterable, List, Optional, Set

from chat_client.wire import (
    TEMP_ID_PREFIX,
    ChatMessage,
    Reaction,
    ReplySnapshot,
    is_temp_id,
)

logger = logging.getLogger(__name__)


class ChatState:
    def __init__(self, user_id: str, user_name: str):
        self.user_id = str(user_id)
        self.user_name = user_name
        self.messages: List[ChatMessage] = []
        self.typing_users: Set[str] = set()
        self.replying_to: Optional[ChatMessage] = None
        self.open_reaction_for: Optional[str] = None
        self._temp_seq = itertools.count(1)

    # -- lookup ---------------------------------------------------------

    def index_of(self, message_id) -> int:
        message_id = str(message_id)
        for i, m in enumerate(self.messages):
            if m.id == message_id:
                return i
        return -1

    def get(self, message_id) -> Optional[ChatMessage]:
        i = self.index_of(message_id)
        return self.messages[i] if i >= 0 else None

    def pending(self) -> List[ChatMessage]:
        return [m for m in self.messages if m.is_optimistic]

    # -- compose --------------------------------------------------------

    def new_temp_id(self) -> str:
        return f"{TEMP_ID_PREFIX}{int(time.time() * 1000)}-{next(self._temp_seq)}"

    def create_optimistic(self, text: str, reply_to: Optional[ChatMessage] = None) -> ChatMessage:
        """Append a local echo for a message the user is sending and clear the reply pointer."""
        target = reply_to if reply_to is not None else self.replying_to
        snapshot = None
        if target is not None:
            snapshot = ReplySnapshot(
                id=target.id,
                text=target.text,
                author_name=target.author_name,
                author_id=target.author_id,
            )
        entry = ChatMessage(
            id=self.new_temp_id(),
            author_id=self.user_id,
            author_name=self.user_name,
            text=text.strip(),
            timestamp=time.strftime('%Y-%m-%dT%H:%M:%S', time.gmtime()) + '.000Z',
            reply_to=snapshot,
            reply_to_id=target.id if target is not None else None,
            reactions=[],
        )
        self.messages.append(entry)
        self.replying_to = None
        return entry

    # -- merge ----------------------------------------------------------

    @staticmethod
    def is_same_send(local: ChatMessage, canonical: ChatMessage) -> bool:
        """Heuristic match between an optimistic entry and a canonical message."""
        if local.author_id != canonical.author_id:
            return False
        if local.text.strip() != canonical.text.strip():
            return False
        if local.reply_to_id == canonical.reply_to_id:
            return True
        # the server cannot resolve a reply to a message that was itself unconfirmed
        return canonical.reply_to_id is None and is_temp_id(local.reply_to_id)

    def merge(self, incoming: ChatMessage) -> int:
        """Merge one canonical message and return its index in the list."""
        i = self.index_of(incoming.id)
        if i >= 0:
            self.messages[i] = incoming
            return i
        for i, entry in enumerate(self.messages):
            if entry.is_optimistic and self.is_same_send(entry, incoming):
                logger.debug("Confirmed %s as %s", entry.id, incoming.id)
                self.messages[i] = incoming
                return i
        self.messages.append(incoming)
        return len(self.messages) - 1

    def load_history(self, snapshot: Iterable[ChatMessage]) -> None:
        """Replace the list with a fetched window, keeping what the fetch could not know.

        Canonical entries newer than the snapshot (pushed while the fetch was in
        flight) and optimistic entries with no canonical counterpart survive.
        """
        fresh = list(snapshot)
        known = {m.id for m in fresh}
        newest = fresh[-1].timestamp if fresh else None
        previous = self.messages
        self.messages = fresh

        for m in previous:
            if m.is_optimistic or m.id in known:
                continue
            if newest is None or (m.timestamp is not None and m.timestamp > newest):
                self.messages.append(m)

        # canonical messages seen before the fetch cannot confirm a send made after them
        claimed = {m.id for m in previous if not m.is_optimistic}
        for entry in previous:
            if not entry.is_optimistic:
                continue
            match = next(
                (m for m in reversed(fresh) if m.id not in claimed and self.is_same_send(entry, m)),
                None,
            )
            if match is not None:
                claimed.add(match.id)
            else:
                self.messages.append(entry)

        if self.replying_to is not None and self.index_of(self.replying_to.id) < 0:
            self.replying_to = None
        if self.open_reaction_for is not None and self.index_of(self.open_reaction_for) < 0:
            self.open_reaction_for = None

    # -- reactions ------------------------------------------------------

    def apply_reactions(self, message_id, reactions: List[Reaction]) -> bool:
        """Replace a message's reactions with the server's complete set."""
        i = self.index_of(message_id)
        if i < 0:
            return False
        self.messages[i] = self.messages[i].with_reactions(reactions)
        return True

    def toggle_reaction_locally(self, message_id, emoji: str) -> Optional[List[Reaction]]:
        """Optimistically flip the current user's (emoji) reaction; None if unknown message."""
        i = self.index_of(message_id)
        if i < 0:
            return None
        current = list(self.messages[i].reactions)
        mine = Reaction(emoji=emoji, user_id=self.user_id)
        if mine in current:
            current.remove(mine)
        else:
            current.append(mine)
        self.messages[i] = self.messages[i].with_reactions(current)
        return current

    def open_reaction_picker(self, message_id) -> None:
        self.open_reaction_for = str(message_id)

    def close_reaction_picker(self) -> None:
        self.open_reaction_for = None

    # -- reply ----------------------------------------------------------

    def begin_reply(self, message_id) -> Optional[ChatMessage]:
        self.replying_to = self.get(message_id)
        return self.replying_to

    def cancel_reply(self) -> None:
        self.replying_to = None

    # -- typing ---------------------------------------------------------

    def apply_typing(self, user_id, is_typing: bool) -> None:
        if user_id is None:
            return
        if is_typing:
            self.typing_users.add(str(user_id))
        else:
            self.typing_users.discard(str(user_id))

    def typing_label(self) -> Optional[str]:
        others = self.typing_users - {self.user_id}
        if not others:
            return None
        if len(others) > 1:
            return "Multiple people are typing..."
        return "Someone is typing..."

    def reset_typing(self) -> None:
        self.typing_users.clear()

    def confirm(self, temp_id: str, canonical: ChatMessage) -> int:
        """Merge an ack for a known optimistic entry, replacing that exact entry if still present."""
        if self.index_of(canonical.id) < 0:
            i = self.index_of(temp_id)
            if i >= 0:
                self.messages[i] = canonical
                return i
        return self.merge(canonical)

