"""In-process event bus: topic-keyed listener registry with non-blocking fan-out."""

import threading
import uuid
from typing import Dict, Optional

from msgboard.client_subscriber import ClientSubscriber
from msgboard.models import Event
from msgboard.observability import Metrics, get_logger
from msgboard.topic import Topic

logger = get_logger("msgboard.bus")


class EventBus:
    """Broadcasts events to the listeners registered on a topic.

    Listeners only see events published after they subscribed; the bus is a
    pure forwarder and keeps no event log.
    """

    def __init__(self, queue_max_size: int = 0, metrics: Optional[Metrics] = None) -> None:
        self._topics: Dict[str, Topic] = {}
        self._lock = threading.Lock()
        self._queue_max_size = max(0, queue_max_size)
        self._metrics = metrics or Metrics()

    @property
    def metrics(self) -> Metrics:
        return self._metrics

    def get_or_create_topic(self, name: str) -> Topic:
        """Return existing topic or create and register a new one."""
        with self._lock:
            topic = self._topics.get(name)
            if topic is None:
                topic = Topic(name)
                self._topics[name] = topic
            return topic

    def get_topic(self, name: str) -> Optional[Topic]:
        """Return topic by name or None."""
        with self._lock:
            return self._topics.get(name)

    def subscribe(self, topic_name: str, subscriber_id: Optional[str] = None) -> ClientSubscriber:
        """Register a new listener on a topic and return it. Closing the listener unsubscribes it."""
        topic = self.get_or_create_topic(topic_name)
        sid = subscriber_id or f"sub_{uuid.uuid4().hex[:8]}"
        subscriber = ClientSubscriber(
            sid,
            topic_name,
            queue_max_size=self._queue_max_size,
            on_close=self.unsubscribe,
            metrics=self._metrics,
        )
        topic.subscribe(subscriber)
        subscriber.on_subscribe(topic)
        self._metrics.set_gauge("listeners", self.listener_count())
        return subscriber

    def unsubscribe(self, subscriber: ClientSubscriber) -> bool:
        """Deregister a listener and release its queue. Safe to call more than once."""
        topic = self.get_topic(subscriber.topic)
        removed = topic is not None and topic.unsubscribe(subscriber)
        if removed:
            subscriber.on_unsubscribe(topic)
            self._metrics.set_gauge("listeners", self.listener_count())
        # close() calls back into unsubscribe(); the removal above makes that a no-op
        subscriber.close()
        return removed

    def publish(self, topic_name: str, event: Event) -> int:
        """Deliver an event to every listener on the topic; returns how many were reached."""
        topic = self.get_topic(topic_name)
        self._metrics.increment("events_published")
        if topic is None:
            return 0
        delivered = topic.deliver(event)
        logger.info(
            "published",
            extra={"topic": topic_name, "message_id": event.message_id, "listeners": delivered},
        )
        return delivered

    def listener_count(self, topic_name: Optional[str] = None) -> int:
        """Listeners on one topic, or across all topics."""
        with self._lock:
            topics = list(self._topics.values())
        if topic_name is not None:
            return sum(t.subscriber_count for t in topics if t.name == topic_name)
        return sum(t.subscriber_count for t in topics)

    def topic_stats(self) -> Dict[str, Dict[str, int]]:
        """Return { topic_name: { events, subscribers } } for the stats endpoint."""
        with self._lock:
            topics = dict(self._topics)
        return {
            name: {"events": topic.events_delivered, "subscribers": topic.subscriber_count}
            for name, topic in topics.items()
        }
