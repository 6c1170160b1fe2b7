# tests/test_realtime_feed.py
from __future__ import annotations

import threading
import time

import pytest

from courierboard.repositories.change_feed import ChangeFeed
from courierboard.repositories.realtime_feed import RealtimeBridge, change_event_from_payload

URL = "https://demo.supabase.co"


class FakeChannel:
    def __init__(self, name):
        self.name = name
        self.callbacks = {}
        self.subscribed = False

    def on_postgres_changes(self, event, *, schema, table, callback):
        assert (event, schema) == ("*", "public")
        self.callbacks[table] = callback
        return self

    async def subscribe(self):
        self.subscribed = True
        return self


class FakeClient:
    def __init__(self, url, key, *, fail_connect=False):
        self.url = url
        self.key = key
        self.fail_connect = fail_connect
        self.tokens = []
        self.channels = []
        self.closed = threading.Event()

    async def connect(self):
        if self.fail_connect:
            raise ConnectionError("socket refused")

    async def set_auth(self, token):
        self.tokens.append(token)

    def channel(self, name):
        ch = FakeChannel(name)
        self.channels.append(ch)
        return ch

    async def close(self):
        self.closed.set()


def _eventually(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


@pytest.fixture()
def feed():
    return ChangeFeed()


@pytest.fixture()
def clients():
    return []


@pytest.fixture()
def bridge(feed, clients):
    def factory(url, key):
        client = FakeClient(url, key)
        clients.append(client)
        return client

    b = RealtimeBridge(URL + "/", "anon-key", feed, client_factory=factory)
    yield b
    b.stop()


# --- payloads -----------------------------------------------------------------

def test_wire_payload_becomes_a_change_event():
    payload = {"data": {"type": "UPDATE", "table": "task_notes",
                        "record": {"task_id": "t1", "owner": "a", "note": "hi"},
                        "old_record": {"id": "n1"}}}
    event = change_event_from_payload("task_notes", payload)
    assert event.table == "task_notes"
    assert event.kind == "UPDATE"
    assert event.value("task_id") == "t1"
    assert event.old == {"id": "n1"}


def test_flat_payload_and_deletes_use_the_old_row():
    event = change_event_from_payload("tasks", {"eventType": "delete", "new": {},
                                                "old": {"id": "t1", "week_number": 3}})
    assert event.kind == "DELETE"
    assert event.value("week_number") == 3


@pytest.mark.parametrize("payload", [{}, {"data": {"type": "TRUNCATE"}}, {"eventType": "system"}])
def test_payloads_without_a_row_change_are_ignored(payload):
    assert change_event_from_payload("tasks", payload) is None


# --- bridge -------------------------------------------------------------------

def test_bridge_subscribes_both_tables_with_the_user_token(bridge, clients):
    bridge.start("user-token")
    assert bridge.connected.wait(2)

    client = clients[0]
    assert client.url == f"{URL}/realtime/v1"
    assert client.key == "anon-key"
    assert client.tokens == ["user-token"]
    channel = client.channels[0]
    assert channel.subscribed
    assert set(channel.callbacks) == {"tasks", "task_notes"}


def test_pushed_rows_reach_scoped_feed_subscribers(bridge, clients, feed):
    seen = []
    feed.subscribe("tasks", seen.append, scope=("week_number", 3))
    bridge.start("user-token")
    assert bridge.connected.wait(2)
    callbacks = clients[0].channels[0].callbacks

    callbacks["tasks"]({"data": {"type": "INSERT", "record": {"id": "t9", "week_number": 3}}})
    callbacks["tasks"]({"data": {"type": "INSERT", "record": {"id": "t8", "week_number": 4}}})
    callbacks["task_notes"]({"data": {"type": "UPDATE", "record": {"task_id": "t9"}}})

    assert [e.value("id") for e in seen] == ["t9"]


def test_refreshed_token_is_handed_to_the_connection(bridge, clients):
    bridge.start("user-token")
    assert bridge.connected.wait(2)
    bridge.set_token("fresh-token")
    assert _eventually(lambda: clients[0].tokens == ["user-token", "fresh-token"])


def test_second_start_reuses_the_connection(bridge, clients):
    bridge.start("user-token")
    assert bridge.connected.wait(2)
    bridge.start("other-token")
    assert _eventually(lambda: clients[0].tokens[-1:] == ["other-token"])
    assert len(clients) == 1


def test_stop_closes_the_client(bridge, clients):
    bridge.start("user-token")
    assert bridge.connected.wait(2)
    bridge.stop()

    assert clients[0].closed.is_set()
    assert not bridge.running
    assert not bridge.connected.is_set()
    bridge.stop()


def test_failed_connection_leaves_the_app_running(feed):
    made = []

    def factory(url, key):
        made.append(FakeClient(url, key, fail_connect=True))
        return made[0]

    b = RealtimeBridge(URL, "anon-key", feed, client_factory=factory)
    b.start("user-token")
    assert _eventually(lambda: made)
    assert not b.connected.wait(0.2)
    assert b.running
    b.stop()
    assert not made[0].closed.is_set()
    assert not b.running
