"""Subscription manager: one per connection, turns bus listeners into outbound event frames."""

import asyncio
import uuid
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple

from msgboard.client_subscriber import ClientSubscriber
from msgboard.exceptions import BoardError, InvalidRequest
from msgboard.observability import get_logger
from msgboard.protocol import ws_error, ws_event, ws_ts
from msgboard.rpc import MessageBoard

SendFunc = Callable[[Dict[str, Any]], Awaitable[None]]


class SubscriptionManager:
    """Tracks the live subscriptions of one client connection.

    Each subscription owns a bus listener and a forwarding task that drains the
    listener's queue into ``send``. Unsubscribing or closing the connection
    cancels the task and deregisters the listener before returning.
    """

    def __init__(self, board: MessageBoard, send: SendFunc, connection_id: Optional[str] = None) -> None:
        self._board = board
        self._send = send
        self._connection_id = connection_id or f"conn_{uuid.uuid4().hex[:8]}"
        self._subscriptions: Dict[str, Tuple[ClientSubscriber, asyncio.Task]] = {}
        self._logger = get_logger("msgboard.subscriptions")

    @property
    def connection_id(self) -> str:
        return self._connection_id

    @property
    def active(self) -> Dict[str, str]:
        """Map of subscription id -> topic for live subscriptions."""
        return {sid: sub.topic for sid, (sub, _task) in self._subscriptions.items()}

    def subscribe(self, topic: str, subscription_id: Optional[str] = None) -> str:
        """Open a subscription and start forwarding its events. Must run inside the event loop."""
        if subscription_id is not None and not isinstance(subscription_id, str):
            raise InvalidRequest("subscription_id must be a string")
        sid = subscription_id or f"sub_{uuid.uuid4().hex[:8]}"
        if sid in self._subscriptions:
            raise InvalidRequest(f"subscription id {sid!r} already in use on this connection")
        subscriber = self._board.subscribe(topic, f"{self._connection_id}:{sid}")
        task = asyncio.get_running_loop().create_task(self._forward(sid, subscriber))
        self._subscriptions[sid] = (subscriber, task)
        self._logger.info(
            "subscription_opened",
            extra={"connection_id": self._connection_id, "subscription_id": sid, "topic": topic},
        )
        return sid

    async def unsubscribe(self, subscription_id: str) -> bool:
        """Stop one subscription. Returns False if it is not active on this connection."""
        entry = self._subscriptions.pop(subscription_id, None)
        if entry is None:
            return False
        await self._stop(subscription_id, *entry)
        return True

    async def close(self) -> None:
        """Tear down every subscription of this connection."""
        entries, self._subscriptions = self._subscriptions, {}
        for sid, (subscriber, task) in entries.items():
            await self._stop(sid, subscriber, task)

    async def _stop(self, subscription_id: str, subscriber: ClientSubscriber, task: asyncio.Task) -> None:
        subscriber.close()
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        self._logger.info(
            "subscription_closed",
            extra={"connection_id": self._connection_id, "subscription_id": subscription_id},
        )

    async def _forward(self, subscription_id: str, subscriber: ClientSubscriber) -> None:
        """Drain the listener into the connection until it is closed or sending fails."""
        try:
            async for event in subscriber:
                try:
                    payload = self._board.encode_event(event)
                except BoardError as e:
                    await self._send(ws_error(None, e.code, e.message, ws_ts(), subscription_id))
                    continue
                await self._send(ws_event(subscriber.topic, subscription_id, payload, ws_ts()))
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self._logger.exception(
                "forward_failed",
                extra={"subscription_id": subscription_id, "error": str(e)},
            )
        finally:
            subscriber.close()
            entry = self._subscriptions.get(subscription_id)
            if entry is not None and entry[0] is subscriber:
                # ended on its own (send failed); free the id for reuse
                del self._subscriptions[subscription_id]
