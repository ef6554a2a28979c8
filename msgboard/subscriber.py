"""Abstract Subscriber and base implementation for observability."""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from msgboard.observability import get_logger

if TYPE_CHECKING:
    from msgboard.models import Event
    from msgboard.topic import Topic


class Subscriber(ABC):
    """Abstract base class for listeners registered on a topic."""

    def __init__(self, subscriber_id: str, topic_name: str) -> None:
        self._subscriber_id = subscriber_id
        self._topic_name = topic_name
        self._logger = get_logger("msgboard.subscriber")

    @property
    def subscriber_id(self) -> str:
        return self._subscriber_id

    @property
    def topic(self) -> str:
        return self._topic_name

    @abstractmethod
    def deliver_event(self, event: "Event", topic: "Topic") -> None:
        """Accept an event fanned out by Topic.deliver(). Must not block."""
        pass

    def on_subscribe(self, topic: "Topic") -> None:
        """Called when this subscriber is added to a topic (for observability)."""
        self._logger.info(
            "subscribed",
            extra={"topic": topic.name, "subscriber_id": self._subscriber_id},
        )

    def on_unsubscribe(self, topic: "Topic") -> None:
        """Called when this subscriber is removed from a topic (for observability)."""
        self._logger.info(
            "unsubscribed",
            extra={"topic": topic.name, "subscriber_id": self._subscriber_id},
        )

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(id={self._subscriber_id!r}, topic={self._topic_name!r})"
