"""Wire shapes for HTTP and WebSocket (messages, events, RPC envelopes, frames)."""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from msgboard.identity import IdentityRegistry
from msgboard.models import Event, EventKind, Message


# ---- Messages ----

def encode_message(message: Message, registry: Optional[IdentityRegistry] = None) -> Dict[str, Any]:
    """Serialize a message. With a registry the author is resolved to a nested user object."""
    out: Dict[str, Any] = {"id": message.id, "text": message.text}
    if registry is not None:
        out["user"] = registry.resolve(message.author).to_dict()
    else:
        out["author"] = message.author
    out["createdAt"] = message.created_at_iso
    return out


def encode_event(event: Event, registry: Optional[IdentityRegistry] = None) -> Any:
    """Payload of a subscription event: the message for Sent/Updated, the id for Deleted."""
    if event.kind is EventKind.DELETED:
        return event.message_id
    return encode_message(event.message, registry)


# ---- Health ----

@dataclass
class HealthResponse:
    """Response for GET /health."""
    uptime_sec: float
    messages: int
    subscribers: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "uptime_sec": int(self.uptime_sec),
            "messages": self.messages,
            "subscribers": self.subscribers,
        }


def stats_response(topics_stats: Dict[str, Dict[str, int]], metrics: Dict[str, Dict[str, int]]) -> Dict[str, Any]:
    """Response for GET /stats."""
    return {"topics": topics_stats, "metrics": metrics}


# ---- RPC ----

def rpc_result(data: Any) -> Dict[str, Any]:
    return {"data": data}


def rpc_error(code: str, message: str) -> Dict[str, Any]:
    return {"error": {"code": code, "message": message}}


# ---- WebSocket: Server → Client ----

# Error codes (use with ws_error)
ERROR_BAD_REQUEST = "BAD_REQUEST"
ERROR_NOT_FOUND = "NOT_FOUND"
ERROR_INTERNAL = "INTERNAL"


def ws_ts() -> str:
    """Current UTC timestamp in ISO 8601 (e.g. 2025-08-25T10:00:00Z)."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def ws_ack(
    request_id: Optional[str],
    topic: Optional[str],
    ts: str,
    subscription_id: Optional[str] = None,
) -> Dict[str, Any]:
    out: Dict[str, Any] = {"type": "ack", "status": "ok", "ts": ts}
    if request_id is not None:
        out["request_id"] = request_id
    if topic is not None:
        out["topic"] = topic
    if subscription_id is not None:
        out["subscription_id"] = subscription_id
    return out


def ws_event(topic: str, subscription_id: str, message: Any, ts: str) -> Dict[str, Any]:
    return {
        "type": "event",
        "topic": topic,
        "subscription_id": subscription_id,
        "message": message,
        "ts": ts,
    }


def ws_error(
    request_id: Optional[str],
    code: str,
    message: str,
    ts: str,
    subscription_id: Optional[str] = None,
) -> Dict[str, Any]:
    out: Dict[str, Any] = {
        "type": "error",
        "error": {"code": code, "message": message},
        "ts": ts,
    }
    if request_id is not None:
        out["request_id"] = request_id
    if subscription_id is not None:
        out["subscription_id"] = subscription_id
    return out


def ws_pong(request_id: str, ts: str) -> Dict[str, Any]:
    return {"type": "pong", "request_id": request_id, "ts": ts}


def ws_info(msg: str, ts: str, topic: Optional[str] = None) -> Dict[str, Any]:
    out: Dict[str, Any] = {"type": "info", "msg": msg, "ts": ts}
    if topic is not None:
        out["topic"] = topic
    return out
