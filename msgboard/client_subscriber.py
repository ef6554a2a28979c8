"""Client subscriber: per-listener delivery queue exposed as a lazy, closable event sequence.

Events are enqueued by the publisher thread without blocking. The owner consumes
them either with blocking ``get()`` / plain iteration, or with ``async for``,
which parks on an asyncio.Event woken via ``call_soon_threadsafe`` instead of
tying up an executor thread per listener.
"""

import asyncio
import queue
import threading
from typing import TYPE_CHECKING, Callable, List, Optional, Tuple

from msgboard.exceptions import SubscriptionClosed
from msgboard.subscriber import Subscriber

if TYPE_CHECKING:
    from msgboard.models import Event
    from msgboard.observability import Metrics
    from msgboard.topic import Topic

# Sentinel to unblock a consumer waiting in get()
_CLOSED = object()


class ClientSubscriber(Subscriber):
    """Listener with its own queue. queue_max_size=0 is unbounded, >0 drops the oldest on overflow."""

    def __init__(
        self,
        subscriber_id: str,
        topic_name: str,
        queue_max_size: int = 0,
        on_close: Optional[Callable[["ClientSubscriber"], None]] = None,
        metrics: Optional["Metrics"] = None,
    ) -> None:
        super().__init__(subscriber_id, topic_name)
        self._queue: queue.Queue = queue.Queue(maxsize=max(0, queue_max_size))
        self._lock = threading.Lock()
        self._waiters: List[Tuple[asyncio.AbstractEventLoop, asyncio.Event]] = []
        self._on_close = on_close
        self._metrics = metrics
        self._closed = False
        self._dropped = 0

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending(self) -> int:
        """Number of events waiting in this listener's queue."""
        return 0 if self._closed else self._queue.qsize()

    @property
    def dropped(self) -> int:
        """Events evicted from a full bounded queue."""
        return self._dropped

    def deliver_event(self, event: "Event", topic: "Topic") -> None:
        """Enqueue an event; on a full bounded queue drop the oldest. Never blocks."""
        with self._lock:
            if self._closed:
                return
            try:
                self._queue.put(event, block=False)
            except queue.Full:
                # only deliver_event() puts, and it holds the lock, so the re-put cannot overflow
                try:
                    dropped = self._queue.get(block=False)
                except queue.Empty:
                    dropped = None
                self._queue.put(event, block=False)
                if dropped is not None:
                    self._dropped += 1
                    if self._metrics is not None:
                        self._metrics.increment("events_dropped")
                    self._logger.warning(
                        "queue_full_dropped_oldest",
                        extra={
                            "topic": topic.name,
                            "dropped_message_id": getattr(dropped, "message_id", None),
                            "subscriber_id": self.subscriber_id,
                        },
                    )
            waiters, self._waiters = self._waiters, []
        self._wake(waiters)

    def get(self, timeout: Optional[float] = None) -> Optional["Event"]:
        """Block for the next event. Returns None on timeout, raises SubscriptionClosed once closed."""
        if self._closed:
            raise SubscriptionClosed(f"subscription {self.subscriber_id} is closed")
        try:
            item = self._queue.get(timeout=timeout)
        except queue.Empty:
            return None
        if item is _CLOSED:
            raise SubscriptionClosed(f"subscription {self.subscriber_id} is closed")
        return item

    def get_nowait(self) -> Optional["Event"]:
        """Return the next queued event or None if the queue is empty."""
        if self._closed:
            raise SubscriptionClosed(f"subscription {self.subscriber_id} is closed")
        try:
            item = self._queue.get(block=False)
        except queue.Empty:
            return None
        if item is _CLOSED:
            raise SubscriptionClosed(f"subscription {self.subscriber_id} is closed")
        return item

    async def next_event(self) -> "Event":
        """Await the next event without blocking the loop; cancellable."""
        loop = asyncio.get_running_loop()
        while True:
            event = self.get_nowait()
            if event is not None:
                return event
            waiter = asyncio.Event()
            with self._lock:
                if self._closed:
                    raise SubscriptionClosed(f"subscription {self.subscriber_id} is closed")
                if not self._queue.empty():
                    continue
                self._waiters.append((loop, waiter))
            try:
                await waiter.wait()
            finally:
                with self._lock:
                    if (loop, waiter) in self._waiters:
                        self._waiters.remove((loop, waiter))

    def close(self) -> None:
        """Stop delivery, discard queued events, wake consumers and deregister. Idempotent."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            while True:
                try:
                    self._queue.get(block=False)
                except queue.Empty:
                    break
            self._queue.put(_CLOSED, block=False)
            waiters, self._waiters = self._waiters, []
        self._wake(waiters)
        if self._on_close is not None:
            self._on_close(self)

    def _wake(self, waiters: List[Tuple[asyncio.AbstractEventLoop, asyncio.Event]]) -> None:
        for loop, waiter in waiters:
            try:
                loop.call_soon_threadsafe(waiter.set)
            except RuntimeError:
                # loop already closed; nothing left to wake
                pass

    def __iter__(self):
        while True:
            try:
                event = self.get()
            except SubscriptionClosed:
                return
            if event is not None:
                yield event

    def __aiter__(self):
        return self

    async def __anext__(self) -> "Event":
        try:
            return await self.next_event()
        except SubscriptionClosed:
            raise StopAsyncIteration

    def __enter__(self) -> "ClientSubscriber":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
