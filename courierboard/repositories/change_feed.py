# Rev 0.4.0
"""In-process dispatch of row-level change events to scoped subscribers.

Publishers may run on any thread (gateway workers, the realtime loop);
callbacks run on the publishing thread.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from courierboard.models.types import ChangeKind, TableName

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChangeEvent:
    table: TableName
    kind: ChangeKind
    new: Dict[str, Any] = field(default_factory=dict)
    old: Dict[str, Any] = field(default_factory=dict)

    def value(self, column: str) -> Any:
        """Column value from the new row, falling back to the old row (deletes)."""
        v = self.new.get(column)
        return v if v is not None else self.old.get(column)


ChangeCallback = Callable[[ChangeEvent], None]


class Subscription:
    """Handle returned by subscribe(); unsubscribe() is idempotent."""

    def __init__(self, feed: "ChangeFeed", table: TableName, callback: ChangeCallback,
                 scope: Optional[Tuple[str, Any]] = None):
        self._feed = feed
        self.table = table
        self.callback = callback
        self.scope = scope
        self.active = True

    def matches(self, event: ChangeEvent) -> bool:
        if event.table != self.table:
            return False
        if self.scope is None:
            return True
        column, expected = self.scope
        actual = event.value(column)
        return actual is not None and str(actual) == str(expected)

    def unsubscribe(self) -> None:
        if not self.active:
            return
        self.active = False
        self._feed._remove(self)

    def __repr__(self) -> str:
        return f"Subscription(table={self.table!r}, scope={self.scope!r}, active={self.active})"


class ChangeFeed:
    def __init__(self) -> None:
        self._subs: List[Subscription] = []
        self._lock = threading.Lock()

    def subscribe(self, table: TableName, callback: ChangeCallback, *,
                  scope: Optional[Tuple[str, Any]] = None) -> Subscription:
        sub = Subscription(self, table, callback, scope)
        with self._lock:
            self._subs.append(sub)
        log.debug("subscribed %r", sub)
        return sub

    def publish(self, event: ChangeEvent) -> int:
        # snapshot: callbacks may subscribe/unsubscribe while we dispatch
        with self._lock:
            subs = list(self._subs)
        delivered = 0
        for sub in subs:
            if sub.active and sub.matches(event):
                sub.callback(event)
                delivered += 1
        return delivered

    def subscriber_count(self, table: Optional[TableName] = None) -> int:
        with self._lock:
            return sum(1 for s in self._subs if table is None or s.table == table)

    def _remove(self, sub: Subscription) -> None:
        with self._lock:
            try:
                self._subs.remove(sub)
            except ValueError:
                return
        log.debug("unsubscribed %r", sub)
