"""Conversion between server payloads and the client's message records.

The server (and older clients) describe an author either as a plain name
string plus `userId`, or as an object `{_id, name}`. Everything is folded into
`author_id` / `author_name` here so nothing downstream has to guess.
"""
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional

TEMP_ID_PREFIX = 'temp-'
UNKNOWN_AUTHOR = 'Unknown'


@dataclass(frozen=True)
class Reaction:
    emoji: str
    user_id: str


@dataclass(frozen=True)
class ReplySnapshot:
    id: str
    text: str
    author_name: str
    author_id: Optional[str]


@dataclass
class ChatMessage:
    id: str
    author_id: Optional[str]
    author_name: str
    text: str
    timestamp: Optional[str] = None
    reply_to: Optional[ReplySnapshot] = None
    # reply id known even when the target could not be resolved
    reply_to_id: Optional[str] = None
    reactions: List[Reaction] = field(default_factory=list)

    @property
    def is_optimistic(self) -> bool:
        return is_temp_id(self.id)

    def with_reactions(self, reactions: List[Reaction]) -> 'ChatMessage':
        return replace(self, reactions=list(reactions))


def is_temp_id(message_id: Any) -> bool:
    return isinstance(message_id, str) and message_id.startswith(TEMP_ID_PREFIX)


def _as_id(value: Any) -> Optional[str]:
    if value is None:
        return None
    return str(value)


def author_of(raw: Dict[str, Any]):
    """Return (author_id, author_name) for a payload of either shape."""
    user = raw.get('user')
    author_id = _as_id(raw.get('userId'))
    if isinstance(user, dict):
        name = user.get('name') or user.get('username') or UNKNOWN_AUTHOR
        author_id = author_id or _as_id(user.get('_id') or user.get('id'))
    elif isinstance(user, str) and user:
        name = user
    else:
        name = UNKNOWN_AUTHOR
    return author_id, name


def parse_reactions(raw_reactions: Any) -> List[Reaction]:
    reactions = []
    for r in raw_reactions or []:
        if isinstance(r, dict) and r.get('emoji'):
            reactions.append(Reaction(emoji=r['emoji'], user_id=_as_id(r.get('userId'))))
    return reactions


def parse_reply(raw_reply: Any) -> Optional[ReplySnapshot]:
    if not isinstance(raw_reply, dict) or raw_reply.get('_id') is None:
        return None
    author_id, name = author_of(raw_reply)
    return ReplySnapshot(
        id=str(raw_reply['_id']),
        text=raw_reply.get('text') or '',
        author_name=name,
        author_id=author_id,
    )


def parse_message(raw: Dict[str, Any]) -> ChatMessage:
    author_id, name = author_of(raw)
    reply = parse_reply(raw.get('replyTo'))
    reply_id = reply.id if reply else None
    if reply_id is None and isinstance(raw.get('replyTo'), (str, int)):
        reply_id = str(raw['replyTo'])
    return ChatMessage(
        id=str(raw.get('_id')),
        author_id=author_id,
        author_name=name,
        text=raw.get('text') or '',
        timestamp=raw.get('timestamp'),
        reply_to=reply,
        reply_to_id=reply_id,
        reactions=parse_reactions(raw.get('reactions')),
    )


def reactions_to_wire(reactions: List[Reaction]) -> List[Dict[str, Any]]:
    return [{'emoji': r.emoji, 'userId': r.user_id} for r in reactions]


def message_to_wire(message: ChatMessage) -> Dict[str, Any]:
    reply = None
    if message.reply_to:
        reply = {
            '_id': message.reply_to.id,
            'text': message.reply_to.text,
            'user': message.reply_to.author_name,
            'userId': message.reply_to.author_id,
        }
    return {
        '_id': message.id,
        'user': message.author_name,
        'userId': message.author_id,
        'text': message.text,
        'timestamp': message.timestamp,
        'replyTo': reply,
        'reactions': reactions_to_wire(message.reactions),
    }
