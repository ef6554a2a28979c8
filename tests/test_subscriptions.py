"""Subscription manager tests: forwarding, teardown, and delivery under concurrent writers."""

import asyncio
import threading

import pytest

from msgboard.config import BoardConfig
from msgboard.exceptions import InvalidRequest
from msgboard.rpc import MessageBoard
from msgboard.subscriptions import SubscriptionManager


async def wait_for(predicate, timeout: float = 2.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.01)


class Recorder:
    """Stand-in for a transport connection; records every frame sent."""

    def __init__(self) -> None:
        self.frames = []

    async def __call__(self, payload):
        self.frames.append(payload)

    def events(self, subscription_id=None):
        return [
            f for f in self.frames
            if f["type"] == "event" and (subscription_id is None or f["subscription_id"] == subscription_id)
        ]


@pytest.mark.asyncio
async def test_forwards_encoded_events(board):
    conn = Recorder()
    manager = SubscriptionManager(board, conn)
    sid = manager.subscribe("messageSent", "s1")
    assert sid == "s1"

    created = board.send_message("1", "hi")
    await wait_for(lambda: len(conn.events()) == 1)

    frame = conn.events()[0]
    assert frame["topic"] == "messageSent"
    assert frame["subscription_id"] == "s1"
    assert frame["message"] == created
    await manager.close()


@pytest.mark.asyncio
async def test_deleted_stream_carries_ids(board):
    conn = Recorder()
    manager = SubscriptionManager(board, conn)
    manager.subscribe("messageDeleted", "d")
    message = board.send_message("1", "gone soon")
    board.delete_message(message["id"])
    await wait_for(lambda: len(conn.events()) == 1)
    assert conn.events()[0]["message"] == message["id"]
    await manager.close()


@pytest.mark.asyncio
async def test_subscriber_after_mutation_sees_nothing(board):
    board.send_message("1", "before")
    conn = Recorder()
    manager = SubscriptionManager(board, conn)
    manager.subscribe("messageSent")
    await asyncio.sleep(0.05)
    assert conn.events() == []

    board.send_message("1", "after")
    await wait_for(lambda: len(conn.events()) == 1)
    assert conn.events()[0]["message"]["text"] == "after"
    await manager.close()


@pytest.mark.asyncio
async def test_each_subscriber_gets_exactly_one_copy(board):
    conns = [Recorder() for _ in range(5)]
    managers = [SubscriptionManager(board, c) for c in conns]
    for m in managers:
        m.subscribe("messageSent")

    board.send_message("2", "broadcast")
    await wait_for(lambda: all(len(c.events()) == 1 for c in conns))
    await asyncio.sleep(0.05)
    assert all(len(c.events()) == 1 for c in conns)
    for m in managers:
        await m.close()


@pytest.mark.asyncio
async def test_unsubscribe_stops_delivery_and_releases_listener(board):
    conn = Recorder()
    manager = SubscriptionManager(board, conn)
    manager.subscribe("messageSent", "a")
    manager.subscribe("messageUpdated", "b")
    assert board.bus.listener_count() == 2

    assert await manager.unsubscribe("a") is True
    assert await manager.unsubscribe("a") is False
    assert manager.active == {"b": "messageUpdated"}
    assert board.bus.listener_count() == 1

    board.send_message("1", "unseen")
    await asyncio.sleep(0.05)
    assert conn.events() == []

    await manager.close()
    assert board.bus.listener_count() == 0
    assert manager.active == {}


@pytest.mark.asyncio
async def test_duplicate_subscription_id_rejected(board):
    manager = SubscriptionManager(board, Recorder())
    manager.subscribe("messageSent", "same")
    with pytest.raises(InvalidRequest):
        manager.subscribe("messageUpdated", "same")
    assert board.bus.listener_count() == 1
    await manager.close()


@pytest.mark.asyncio
async def test_send_failure_releases_listener(board):
    async def broken(payload):
        raise ConnectionError("socket gone")

    manager = SubscriptionManager(board, broken)
    manager.subscribe("messageSent", "s1")
    board.send_message("1", "boom")
    await wait_for(lambda: board.bus.listener_count() == 0)
    await wait_for(lambda: manager.active == {})

    # the dead subscription no longer holds its id
    assert manager.subscribe("messageSent", "s1") == "s1"
    assert board.bus.listener_count() == 1
    await manager.close()
    assert board.bus.listener_count() == 0


@pytest.mark.asyncio
async def test_slow_subscriber_does_not_block_others(config):
    board = MessageBoard.from_config(BoardConfig(heartbeat_interval_sec=0, queue_max_size=2))
    release = asyncio.Event()
    in_flight = []
    slow_frames = []

    async def slow(payload):
        in_flight.append(payload)
        await release.wait()
        slow_frames.append(payload)

    fast = Recorder()
    slow_manager = SubscriptionManager(board, slow)
    fast_manager = SubscriptionManager(board, fast)
    slow_manager.subscribe("messageSent")
    fast_manager.subscribe("messageSent")

    for i in range(6):
        board.send_message("1", f"m{i}")
        await wait_for(lambda: len(fast.events()) == i + 1)
        if i == 0:
            await wait_for(lambda: len(in_flight) == 1)
    assert len(fast.events()) == 6

    release.set()
    # m0 was in flight; the bounded queue kept only the two newest after it
    await wait_for(lambda: len(slow_frames) == 3)
    assert [f["message"]["text"] for f in slow_frames] == ["m0", "m4", "m5"]
    await slow_manager.close()
    await fast_manager.close()


def test_concurrent_creates_are_totally_ordered(board):
    listeners = [board.subscribe("messageSent") for _ in range(3)]
    n_threads, per_thread = 8, 25
    returned = []
    lock = threading.Lock()
    start = threading.Barrier(n_threads)

    def writer(w):
        start.wait()
        for i in range(per_thread):
            message = board.store.create("1", f"w{w}-{i}")
            with lock:
                returned.append(message.id)

    threads = [threading.Thread(target=writer, args=(w,)) for w in range(n_threads)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    total = n_threads * per_thread
    assert len(set(returned)) == total

    orders = []
    for listener in listeners:
        ids = []
        while (event := listener.get_nowait()) is not None:
            ids.append(event.message_id)
        orders.append(ids)
        listener.close()

    for ids in orders:
        assert len(ids) == total
        assert [int(i) for i in ids] == sorted(int(i) for i in ids)
    assert orders[0] == orders[1] == orders[2]
    assert [m.id for m in board.store.list()] == orders[0]
