# tests/test_change_feed.py
from __future__ import annotations

from courierboard.repositories.change_feed import ChangeEvent, ChangeFeed


def test_scoped_subscription_only_sees_matching_rows():
    feed = ChangeFeed()
    seen = []
    feed.subscribe("tasks", seen.append, scope=("week_number", 3))

    feed.publish(ChangeEvent("tasks", "INSERT", new={"id": "a", "week_number": 3}))
    feed.publish(ChangeEvent("tasks", "INSERT", new={"id": "b", "week_number": 4}))
    feed.publish(ChangeEvent("task_notes", "UPDATE", new={"task_id": "a", "week_number": 3}))

    assert [e.new["id"] for e in seen] == ["a"]


def test_scope_falls_back_to_old_row_for_deletes():
    feed = ChangeFeed()
    seen = []
    feed.subscribe("tasks", seen.append, scope=("week_number", "3"))
    feed.publish(ChangeEvent("tasks", "DELETE", old={"id": "a", "week_number": 3}))
    assert len(seen) == 1
    assert seen[0].value("id") == "a"


def test_unsubscribed_handle_never_fires_again():
    feed = ChangeFeed()
    seen = []
    sub = feed.subscribe("task_notes", seen.append)
    sub.unsubscribe()
    sub.unsubscribe()  # idempotent

    assert feed.publish(ChangeEvent("task_notes", "UPDATE", new={"task_id": "x"})) == 0
    assert seen == []
    assert feed.subscriber_count() == 0
    assert not sub.active


def test_unsubscribe_during_dispatch_is_safe():
    feed = ChangeFeed()
    seen = []
    subs = []

    def first(event):
        seen.append("first")
        subs[1].unsubscribe()

    subs.append(feed.subscribe("tasks", first))
    subs.append(feed.subscribe("tasks", lambda e: seen.append("second")))

    feed.publish(ChangeEvent("tasks", "UPDATE", new={"id": "a"}))
    assert seen == ["first"]
