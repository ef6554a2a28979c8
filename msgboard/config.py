"""Deployment configuration loaded from environment variables (.env via python-dotenv)."""

import json
import os
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional

SUBSCRIPTION_MODE_SPLIT = "split"
SUBSCRIPTION_MODE_COLLAPSED = "collapsed"

DEFAULT_USERS: Dict[str, str] = {"1": "Saifullah", "2": "MohammedAlith"}
DEFAULT_CORS_ORIGINS = ["http://localhost:3000"]

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


def _env_bool(env: Mapping[str, str], name: str, default: bool) -> bool:
    raw = (env.get(name) or "").strip().lower()
    if raw in _TRUE:
        return True
    if raw in _FALSE:
        return False
    return default


def _env_int(env: Mapping[str, str], name: str, default: int) -> int:
    try:
        return int(env.get(name, default))
    except (ValueError, TypeError):
        return default


def _env_float(env: Mapping[str, str], name: str, default: float) -> float:
    try:
        return float(env.get(name, default))
    except (ValueError, TypeError):
        return default


def _env_users(env: Mapping[str, str]) -> Dict[str, str]:
    raw = (env.get("BOARD_USERS") or "").strip()
    if not raw:
        return dict(DEFAULT_USERS)
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ValueError(f"BOARD_USERS must be a JSON object of id -> name: {e}") from e
    if not isinstance(data, dict):
        raise ValueError("BOARD_USERS must be a JSON object of id -> name")
    return {str(k): str(v) for k, v in data.items()}


@dataclass
class BoardConfig:
    """Per-deployment settings. Author encoding and topic layout are fixed for the process."""

    strict_author_ref: bool = True
    subscription_mode: str = SUBSCRIPTION_MODE_SPLIT
    queue_max_size: int = 0
    reject_empty_text: bool = False
    users: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_USERS))
    heartbeat_interval_sec: float = 30.0
    cors_origins: List[str] = field(default_factory=lambda: list(DEFAULT_CORS_ORIGINS))
    host: str = "0.0.0.0"
    port: int = 4000

    def __post_init__(self) -> None:
        if self.subscription_mode not in (SUBSCRIPTION_MODE_SPLIT, SUBSCRIPTION_MODE_COLLAPSED):
            raise ValueError(
                f"subscription_mode must be {SUBSCRIPTION_MODE_SPLIT!r} or "
                f"{SUBSCRIPTION_MODE_COLLAPSED!r}, got {self.subscription_mode!r}"
            )
        if self.queue_max_size < 0:
            self.queue_max_size = 0

    @property
    def bounded_queues(self) -> bool:
        """True when listener queues drop the oldest event on overflow."""
        return self.queue_max_size > 0

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "BoardConfig":
        """Build config from the environment (or the given mapping)."""
        if env is None:
            env = os.environ
        origins = [o.strip() for o in (env.get("CORS_ORIGINS") or "").split(",") if o.strip()]
        return cls(
            strict_author_ref=_env_bool(env, "STRICT_AUTHOR_REF", True),
            subscription_mode=(env.get("SUBSCRIPTION_MODE") or SUBSCRIPTION_MODE_SPLIT).strip().lower(),
            queue_max_size=_env_int(env, "SUBSCRIBER_QUEUE_MAX_SIZE", 0),
            reject_empty_text=_env_bool(env, "REJECT_EMPTY_TEXT", False),
            users=_env_users(env),
            heartbeat_interval_sec=_env_float(env, "HEARTBEAT_INTERVAL_SEC", 30.0),
            cors_origins=origins or list(DEFAULT_CORS_ORIGINS),
            host=(env.get("HOST") or "0.0.0.0").strip(),
            port=_env_int(env, "PORT", 4000),
        )
