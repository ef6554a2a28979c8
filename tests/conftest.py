"""Shared fixtures: a fresh board per test, plus an app/TestClient around it.

Every fixture builds new objects, so identifier counters restart at 1 and no
listeners leak between tests.
"""

import pytest
from fastapi.testclient import TestClient

from msgboard.bus import EventBus
from msgboard.config import BoardConfig
from msgboard.identity import IdentityRegistry
from msgboard.rpc import MessageBoard
from msgboard.store import MessageStore


@pytest.fixture
def config():
    return BoardConfig(heartbeat_interval_sec=0)


@pytest.fixture
def registry(config):
    return IdentityRegistry.from_mapping(config.users)


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def store(bus, registry):
    return MessageStore(bus, registry=registry, strict_author_ref=True)


@pytest.fixture
def free_store(bus):
    """Store accepting free-form author strings."""
    return MessageStore(bus, strict_author_ref=False)


@pytest.fixture
def board(config):
    return MessageBoard.from_config(config)


@pytest.fixture
def app(config):
    from server import create_app

    return create_app(config)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c

