"""Observability: logging and metrics for the message board."""

from msgboard.observability.logger import get_logger
from msgboard.observability.metrics import Metrics

__all__ = ["get_logger", "Metrics"]
