import json
from unittest.mock import AsyncMock

import asyncpg
import pytest

from supportdesk.modules.stores.base import MESSAGES_CHANNEL, SESSIONS_CHANNEL, TICKETS_CHANNEL
from supportdesk.modules.stores.postgres import PostgresChangeFeed


class ListenerConnection:
    """Stands in for the feed's asyncpg connection: records LISTENs and can replay NOTIFYs."""

    def __init__(self):
        self.listeners: dict[str, list] = {}
        self.closed = False

    async def add_listener(self, channel, callback):
        self.listeners.setdefault(channel, []).append(callback)

    def is_closed(self):
        return self.closed

    async def close(self):
        self.closed = True

    def notify(self, channel, **event):
        for callback in self.listeners.get(channel, []):
            callback(self, 1234, channel, json.dumps(event))


@pytest.fixture
def conn(monkeypatch):
    connection = ListenerConnection()
    monkeypatch.setattr(asyncpg, "connect", AsyncMock(return_value=connection))
    return connection


async def test_many_viewers_share_one_dedicated_connection(conn):
    feed = PostgresChangeFeed("postgresql://feed")

    subs = []
    for i in range(20):
        subs.append(await feed.subscribe(SESSIONS_CHANNEL, f"session-{i}"))
        subs.append(await feed.subscribe(MESSAGES_CHANNEL, f"session-{i}"))
    subs.append(await feed.subscribe(TICKETS_CHANNEL))

    asyncpg.connect.assert_awaited_once_with("postgresql://feed")
    assert {channel: len(callbacks) for channel, callbacks in conn.listeners.items()} == {
        SESSIONS_CHANNEL: 1,
        MESSAGES_CHANNEL: 1,
        TICKETS_CHANNEL: 1,
    }
    await feed.close()


async def test_notifications_fan_out_by_key(conn):
    feed = PostgresChangeFeed("postgresql://feed")
    mine = await feed.subscribe(MESSAGES_CHANNEL, "session-1")
    other = await feed.subscribe(MESSAGES_CHANNEL, "session-2")
    everything = await feed.subscribe(MESSAGES_CHANNEL)

    conn.notify(MESSAGES_CHANNEL, op="insert", id="m1", key="session-1")

    assert (await mine.__anext__())["id"] == "m1"
    assert (await everything.__anext__())["id"] == "m1"
    assert other._queue.empty()
    await feed.close()


async def test_malformed_payload_is_ignored(conn):
    feed = PostgresChangeFeed("postgresql://feed")
    sub = await feed.subscribe(TICKETS_CHANNEL)

    conn.listeners[TICKETS_CHANNEL][0](conn, 1, TICKETS_CHANNEL, "not json")

    assert sub._queue.empty()
    await feed.close()


async def test_closed_subscription_stops_receiving(conn):
    feed = PostgresChangeFeed("postgresql://feed")
    sub = await feed.subscribe(TICKETS_CHANNEL)

    await sub.close()
    conn.notify(TICKETS_CHANNEL, op="update", id="t1", key="t1")

    with pytest.raises(StopAsyncIteration):
        await sub.__anext__()


async def test_reconnect_restores_listens(conn):
    feed = PostgresChangeFeed("postgresql://feed")
    await feed.subscribe(TICKETS_CHANNEL)
    conn.closed = True

    replacement = ListenerConnection()
    asyncpg.connect.return_value = replacement
    await feed.subscribe(SESSIONS_CHANNEL, "s1")

    assert set(replacement.listeners) == {TICKETS_CHANNEL, SESSIONS_CHANNEL}
    await feed.close()
    assert replacement.closed
