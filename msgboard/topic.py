"""Topic class for grouping listeners and fanning out events (in-memory only)."""

import threading
from typing import TYPE_CHECKING, Set

from msgboard.observability import get_logger

if TYPE_CHECKING:
    from msgboard.models import Event
    from msgboard.subscriber import Subscriber

logger = get_logger("msgboard.topic")


class Topic:
    """In-memory named channel; holds listeners and delivers events. Keeps no history."""

    def __init__(self, name: str) -> None:
        self._name = name
        self._subscribers: Set["Subscriber"] = set()
        self._events_delivered: int = 0
        self._lock = threading.Lock()

    @property
    def name(self) -> str:
        return self._name

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    @property
    def events_delivered(self) -> int:
        return self._events_delivered

    def subscribe(self, subscriber: "Subscriber") -> None:
        """Add a listener to this topic."""
        with self._lock:
            self._subscribers.add(subscriber)

    def unsubscribe(self, subscriber: "Subscriber") -> bool:
        """Remove a listener. Returns False if it was not registered."""
        with self._lock:
            if subscriber not in self._subscribers:
                return False
            self._subscribers.discard(subscriber)
            return True

    def deliver(self, event: "Event") -> int:
        """Fan an event out to every current listener. Copy the list under lock, deliver without it."""
        with self._lock:
            subscribers = list(self._subscribers)
            self._events_delivered += 1
        logger.debug(
            "delivering",
            extra={
                "topic": self._name,
                "message_id": event.message_id,
                "subscriber_count": len(subscribers),
            },
        )
        delivered = 0
        for subscriber in subscribers:
            try:
                subscriber.deliver_event(event, self)
                delivered += 1
            except Exception as e:
                logger.exception(
                    "delivery_failed",
                    extra={
                        "subscriber_id": subscriber.subscriber_id,
                        "message_id": event.message_id,
                        "error": str(e),
                    },
                )
        return delivered

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Topic):
            return False
        return self._name == other._name

    def __hash__(self) -> int:
        return hash(self._name)

    def __repr__(self) -> str:
        return f"Topic(name={self._name!r}, subscribers={len(self._subscribers)})"
