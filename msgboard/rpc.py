"""RPC facade: the typed query, mutation and subscription calls the transport dispatches to."""

from typing import Any, Callable, Dict, List, Mapping, Optional

from msgboard.bus import EventBus
from msgboard.client_subscriber import ClientSubscriber
from msgboard.config import SUBSCRIPTION_MODE_COLLAPSED, BoardConfig
from msgboard.exceptions import InvalidRequest
from msgboard.identity import IdentityRegistry
from msgboard.models import TOPICS, Event, EventKind
from msgboard.observability import Metrics
from msgboard.protocol import encode_event, encode_message
from msgboard.store import MessageStore

QUERY = "query"
MUTATION = "mutation"


class MessageBoard:
    """Owns the store, bus and registry for one deployment and exposes the call contract.

    Results are wire-encoded: ids are strings, createdAt is ISO 8601, and the
    author is a nested ``user`` object or an inline ``author`` string depending
    on ``strict_author_ref``.
    """

    def __init__(
        self,
        store: MessageStore,
        bus: EventBus,
        registry: IdentityRegistry,
        config: BoardConfig,
    ) -> None:
        self.store = store
        self.bus = bus
        self.registry = registry
        self.config = config
        if config.subscription_mode == SUBSCRIPTION_MODE_COLLAPSED:
            self.topics = (EventKind.SENT.value,)
        else:
            self.topics = TOPICS
        self._calls: Dict[str, Dict[str, Callable[[Mapping[str, Any]], Any]]] = {
            QUERY: {
                "messages": lambda args: self.messages(),
            },
            MUTATION: {
                "sendMessage": lambda args: self.send_message(
                    _arg(args, "author", "user", "userId"), _arg(args, "text")
                ),
                "updateMessage": lambda args: self.update_message(_arg(args, "id"), _arg(args, "text")),
                "deleteMessage": lambda args: self.delete_message(_arg(args, "id")),
            },
        }

    @classmethod
    def from_config(cls, config: Optional[BoardConfig] = None) -> "MessageBoard":
        """Wire up registry, bus and store for a deployment."""
        config = config or BoardConfig.from_env()
        metrics = Metrics()
        registry = IdentityRegistry.from_mapping(config.users)
        bus = EventBus(queue_max_size=config.queue_max_size, metrics=metrics)
        store = MessageStore(
            bus,
            registry=registry,
            strict_author_ref=config.strict_author_ref,
            reject_empty_text=config.reject_empty_text,
            metrics=metrics,
        )
        return cls(store, bus, registry, config)

    @property
    def metrics(self) -> Metrics:
        return self.bus.metrics

    @property
    def _author_registry(self) -> Optional[IdentityRegistry]:
        return self.registry if self.config.strict_author_ref else None

    # ---- Query ----

    def messages(self) -> List[Dict[str, Any]]:
        return [encode_message(m, self._author_registry) for m in self.store.list()]

    # ---- Mutations ----

    def send_message(self, author: str, text: str) -> Dict[str, Any]:
        return encode_message(self.store.create(author, text), self._author_registry)

    def update_message(self, message_id: str, text: str) -> Dict[str, Any]:
        return encode_message(self.store.update(message_id, text), self._author_registry)

    def delete_message(self, message_id: str) -> str:
        return self.store.delete(message_id)

    # ---- Subscriptions ----

    def subscribe(self, topic: str, subscription_id: Optional[str] = None) -> ClientSubscriber:
        """Open a listener on one of the enabled topics. The caller owns it and must close it."""
        if topic not in self.topics:
            raise InvalidRequest(f"unknown subscription {topic!r}; available: {', '.join(self.topics)}")
        return self.bus.subscribe(topic, subscription_id)

    def encode_event(self, event: Event) -> Any:
        return encode_event(event, self._author_registry)

    # ---- Dispatch ----

    def dispatch(self, kind: str, call: str, args: Optional[Mapping[str, Any]] = None) -> Any:
        """Invoke a query or mutation by name with decoded arguments."""
        handlers = self._calls.get(kind)
        if handlers is None:
            raise InvalidRequest(f"unknown call kind {kind!r}; expected 'query' or 'mutation'")
        handler = handlers.get(call)
        if handler is None:
            raise InvalidRequest(f"unknown {kind} {call!r}")
        return handler(args or {})


def _arg(args: Mapping[str, Any], name: str, *aliases: str) -> str:
    for key in (name,) + aliases:
        value = args.get(key)
        if value is not None:
            if isinstance(value, bool) or not isinstance(value, (str, int)):
                raise InvalidRequest(f"argument {key!r} must be a string")
            return value if isinstance(value, str) else str(value)
    raise InvalidRequest(f"missing argument {name!r}")
