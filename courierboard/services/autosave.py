# Rev 0.4.0

"""Debounced per-(task, owner) note autosave.

Each key moves through CLEAN -> DIRTY -> SCHEDULED -> SAVING and back to
CLEAN on success or DIRTY on failure.
- every key owns one single-shot timer; re-arming restarts it
- a firing timer re-reads the current draft and saved text before writing
- the write runs off the loop; the key stays SAVING until it completes
- at most one write in flight per key; a second request is dropped
- a failed write is not retried on its own; the next edit re-arms the timer
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Iterable, Optional

from PySide6.QtCore import QObject, QTimer, Signal

from courierboard.models.entities import NoteKey, TaskNote
from courierboard.repositories.gateway import RemoteGateway
from courierboard.services.gateway_runner import GatewayRunner
from courierboard.services.note_cache import NoteCache

log = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_MS = 1500


class SaveState(Enum):
    CLEAN = "clean"
    DIRTY = "dirty"
    SCHEDULED = "scheduled"
    SAVING = "saving"


@dataclass
class _Entry:
    state: SaveState = SaveState.CLEAN
    timer: Optional[QTimer] = None


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class NoteAutosave(QObject):
    savingChanged = Signal(str, str, bool)     # task_id, owner, saving
    noteSaved = Signal(str, str)               # task_id, owner
    saveFailed = Signal(str, str, str, int)    # task_id, owner, message, http status (0 if none)

    def __init__(self, cache: NoteCache, gateway: RemoteGateway, *,
                 runner: Optional[GatewayRunner] = None,
                 debounce_ms: int = DEFAULT_DEBOUNCE_MS, parent: Optional[QObject] = None):
        super().__init__(parent)
        self._cache = cache
        self._gateway = gateway
        self._runner = runner or GatewayRunner()
        self._debounce_ms = int(debounce_ms)
        self._entries: Dict[NoteKey, _Entry] = {}

    @property
    def debounce_ms(self) -> int:
        return self._debounce_ms

    @property
    def runner(self) -> GatewayRunner:
        return self._runner

    # ---- queries
    def state(self, key: NoteKey) -> SaveState:
        entry = self._entries.get(key)
        return entry.state if entry else SaveState.CLEAN

    def is_saving(self, key: NoteKey) -> bool:
        return self.state(key) is SaveState.SAVING

    def scheduled_keys(self) -> list[NoteKey]:
        return [k for k, e in self._entries.items() if e.state is SaveState.SCHEDULED]

    # ---- reconciliation
    def evaluate(self, key: NoteKey) -> SaveState:
        """Re-check one key after its draft or saved text changed."""
        entry = self._entries.setdefault(key, _Entry())
        if entry.state is SaveState.SAVING:
            # completion re-evaluates
            return entry.state
        if not self._cache.is_dirty(key):
            self._stop_timer(entry)
            entry.state = SaveState.CLEAN
            return entry.state
        entry.state = SaveState.DIRTY
        self._arm(key, entry)
        return entry.state

    def evaluate_all(self, keys: Iterable[NoteKey]) -> None:
        for key in keys:
            self.evaluate(key)

    def retain(self, keys: Iterable[NoteKey]) -> None:
        """Forget keys that are no longer visible (in-flight ones finish on their own)."""
        keep = set(keys)
        for key in list(self._entries):
            entry = self._entries[key]
            if key in keep or entry.state is SaveState.SAVING:
                continue
            self._drop(key)

    def cancel_all(self) -> None:
        self.retain(())

    # ---- writes
    def save(self, key: NoteKey, text: Optional[str] = None) -> bool:
        """Start writing the draft (or text). Returns False when dropped."""
        entry = self._entries.setdefault(key, _Entry())
        if entry.state is SaveState.SAVING:
            log.debug("Save for %s dropped: a write is already in flight", key)
            return False
        self._stop_timer(entry)

        raw = text if text is not None else self._cache.draft(key)
        note = raw.strip()

        entry.state = SaveState.SAVING
        self.savingChanged.emit(key.task_id, key.owner.value, True)
        gateway = self._gateway
        self._runner.submit(
            lambda: gateway.upsert_note(key.task_id, key.owner, note),
            lambda row: self._on_saved(key, entry, note, row),
            lambda exc: self._on_save_failed(key, entry, exc),
        )
        return True

    def _on_saved(self, key: NoteKey, entry: _Entry, note: str, row: Optional[TaskNote]) -> None:
        if key in self._cache:
            self._cache.apply_saved(key, note, utc_now_iso(), row.id if row else None)
        entry.state = SaveState.CLEAN
        self.savingChanged.emit(key.task_id, key.owner.value, False)
        self.noteSaved.emit(key.task_id, key.owner.value)
        log.debug("Saved note %s (%d chars)", key, len(note))

        if self._entries.get(key) is not entry:
            return
        if key in self._cache:
            # typed more while the write was in flight
            self.evaluate(key)
        else:
            self._drop(key)

    def _on_save_failed(self, key: NoteKey, entry: _Entry, exc: Exception) -> None:
        entry.state = SaveState.DIRTY
        self.savingChanged.emit(key.task_id, key.owner.value, False)
        log.error("Failed to save note %s: %s", key, exc)
        self.saveFailed.emit(key.task_id, key.owner.value, str(exc), int(getattr(exc, "status", None) or 0))
        if self._entries.get(key) is entry and key not in self._cache:
            self._drop(key)

    # ---- timers
    def _arm(self, key: NoteKey, entry: _Entry) -> None:
        if entry.timer is None:
            timer = QTimer(self)
            timer.setSingleShot(True)
            timer.setInterval(self._debounce_ms)
            timer.timeout.connect(lambda k=key: self._on_timeout(k))
            entry.timer = timer
        entry.timer.stop()
        entry.state = SaveState.SCHEDULED
        entry.timer.start()

    def _on_timeout(self, key: NoteKey) -> None:
        entry = self._entries.get(key)
        if entry is None or entry.state is not SaveState.SCHEDULED:
            return
        if not self._cache.is_dirty(key):
            entry.state = SaveState.CLEAN
            return
        entry.state = SaveState.DIRTY
        self.save(key, self._cache.draft(key))

    @staticmethod
    def _stop_timer(entry: _Entry) -> None:
        if entry.timer is not None:
            entry.timer.stop()

    def _drop(self, key: NoteKey) -> None:
        entry = self._entries.pop(key)
        timer, entry.timer = entry.timer, None
        if timer is None:
            return
        # synchronous release; no deferred delete may outlive this object
        timer.stop()
        timer.timeout.disconnect()
        timer.setParent(None)
