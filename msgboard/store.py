"""Message store: the single owner of board state.

Mutations serialize on one lock. Each mutation commits to the ordered mapping,
republishes the read snapshot, and only then emits its event, still under the
lock, so the order subscribers observe equals commit order and matches what
``list()`` shows after each step. Readers never take the lock: ``list()``
returns the latest immutable snapshot.
"""

import itertools
import threading
from typing import Dict, Optional, Tuple

from msgboard.bus import EventBus
from msgboard.exceptions import NotFound, ValidationFailed
from msgboard.identity import IdentityRegistry
from msgboard.models import Event, Message, utc_now
from msgboard.observability import Metrics, get_logger

logger = get_logger("msgboard.store")


class MessageStore:
    """Authoritative, in-memory collection of messages in insertion order."""

    def __init__(
        self,
        bus: EventBus,
        registry: Optional[IdentityRegistry] = None,
        strict_author_ref: bool = True,
        reject_empty_text: bool = False,
        metrics: Optional[Metrics] = None,
    ) -> None:
        if strict_author_ref and registry is None:
            raise ValueError("strict_author_ref requires an identity registry")
        self._bus = bus
        self._registry = registry
        self._strict_author_ref = strict_author_ref
        self._reject_empty_text = reject_empty_text
        self._metrics = metrics or bus.metrics
        self._messages: Dict[str, Message] = {}
        self._snapshot: Tuple[Message, ...] = ()
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    @property
    def strict_author_ref(self) -> bool:
        return self._strict_author_ref

    def list(self) -> Tuple[Message, ...]:
        """All surviving messages in insertion order."""
        return self._snapshot

    def get(self, message_id: str) -> Message:
        message = self._messages.get(str(message_id))
        if message is None:
            raise NotFound("message", str(message_id))
        return message

    def create(self, author: str, text: str) -> Message:
        """Append a new message and emit a Sent event."""
        author = str(author)
        if self._strict_author_ref:
            author = self._registry.resolve(author).id
        self._validate_text(text)
        with self._lock:
            message = Message(id=str(next(self._ids)), text=text, author=author, created_at=utc_now())
            self._messages[message.id] = message
            self._commit()
            event = Event.sent(message)
            self._bus.publish(event.topic, event)
        self._metrics.increment("messages_created")
        logger.info("message_created", extra={"message_id": message.id, "author": author})
        return message

    def update(self, message_id: str, text: str) -> Message:
        """Replace a message's text, keeping its id, author and creation time; emit Updated."""
        message_id = str(message_id)
        self._validate_text(text)
        with self._lock:
            current = self._messages.get(message_id)
            if current is None:
                raise NotFound("message", message_id)
            message = current.with_text(text)
            self._messages[message_id] = message
            self._commit()
            event = Event.updated(message)
            self._bus.publish(event.topic, event)
        self._metrics.increment("messages_updated")
        logger.info("message_updated", extra={"message_id": message_id})
        return message

    def delete(self, message_id: str) -> str:
        """Remove a message and emit a Deleted event carrying only its id."""
        message_id = str(message_id)
        with self._lock:
            if self._messages.pop(message_id, None) is None:
                raise NotFound("message", message_id)
            self._commit()
            event = Event.deleted(message_id)
            self._bus.publish(event.topic, event)
        self._metrics.increment("messages_deleted")
        logger.info("message_deleted", extra={"message_id": message_id})
        return message_id

    def _commit(self) -> None:
        # caller holds self._lock
        self._snapshot = tuple(self._messages.values())

    def _validate_text(self, text: str) -> None:
        if not isinstance(text, str):
            raise ValidationFailed("text must be a string")
        if self._reject_empty_text and not text.strip():
            raise ValidationFailed("text must not be empty")

    def __len__(self) -> int:
        return len(self._snapshot)
