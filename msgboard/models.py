"""Users, messages and change events."""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Optional


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def isoformat(ts: datetime) -> str:
    """ISO 8601 UTC with millisecond precision (e.g. 2025-08-25T10:00:00.000Z)."""
    return ts.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass(frozen=True)
class User:
    """Display identity of a message author."""

    id: str
    name: str

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name}


@dataclass(frozen=True)
class Message:
    """A message on the board. Instances are immutable; updates produce a copy."""

    id: str
    text: str
    author: str
    created_at: datetime = field(default_factory=utc_now)

    @property
    def created_at_iso(self) -> str:
        return isoformat(self.created_at)

    def with_text(self, text: str) -> "Message":
        return replace(self, text=text)


class EventKind(Enum):
    """Kinds of change event; the value is the topic the event is published on."""

    SENT = "messageSent"
    UPDATED = "messageUpdated"
    DELETED = "messageDeleted"


TOPICS = tuple(kind.value for kind in EventKind)


@dataclass(frozen=True)
class Event:
    """A committed change. Sent/Updated carry the message, Deleted only the id."""

    kind: EventKind
    message_id: str
    message: Optional[Message] = None

    @classmethod
    def sent(cls, message: Message) -> "Event":
        return cls(EventKind.SENT, message.id, message)

    @classmethod
    def updated(cls, message: Message) -> "Event":
        return cls(EventKind.UPDATED, message.id, message)

    @classmethod
    def deleted(cls, message_id: str) -> "Event":
        return cls(EventKind.DELETED, message_id)

    @property
    def topic(self) -> str:
        return self.kind.value
