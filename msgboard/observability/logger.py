"""Structured logging for board events (mutations, fan-out, subscriptions)."""

import logging
import os
import sys
from typing import Optional


def get_logger(name: str, level: Optional[int] = None) -> logging.Logger:
    """Return a configured logger; LOG_LEVEL env sets the default level."""
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(
            logging.Formatter(
                "%(asctime)s | %(name)s | %(levelname)s | %(message)s"
            )
        )
        logger.addHandler(handler)
        if level is None:
            level = logging.getLevelName(os.environ.get("LOG_LEVEL", "INFO").upper())
            if not isinstance(level, int):
                level = logging.INFO
        logger.setLevel(level)
    return logger
