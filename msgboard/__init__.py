"""Real-time message board: in-memory store with live change subscriptions."""

from msgboard.bus import EventBus
from msgboard.client_subscriber import ClientSubscriber
from msgboard.config import BoardConfig
from msgboard.exceptions import BoardError, InvalidRequest, NotFound, SubscriptionClosed, ValidationFailed
from msgboard.identity import IdentityRegistry
from msgboard.models import Event, EventKind, Message, User
from msgboard.rpc import MessageBoard
from msgboard.store import MessageStore
from msgboard.subscriptions import SubscriptionManager

__version__ = "0.1.0"

__all__ = [
    "BoardConfig",
    "BoardError",
    "ClientSubscriber",
    "Event",
    "EventBus",
    "EventKind",
    "IdentityRegistry",
    "InvalidRequest",
    "Message",
    "MessageBoard",
    "MessageStore",
    "NotFound",
    "SubscriptionClosed",
    "SubscriptionManager",
    "User",
    "ValidationFailed",
]
