# Rev 0.4.0 — weeks, tasks, notes + debounced autosave + change-feed refresh, all off the UI thread
from __future__ import annotations

import logging
from typing import Callable, List, Optional, Sequence, Tuple

from PySide6.QtCore import QObject, Signal

from courierboard.models.entities import Owner, SavedNote, Task, TaskNote, TaskStatus, Week
from courierboard.repositories.change_feed import ChangeEvent, Subscription
from courierboard.repositories.errors import GatewayError
from courierboard.repositories.gateway import RemoteGateway
from courierboard.services.autosave import DEFAULT_DEBOUNCE_MS, NoteAutosave
from courierboard.services.gateway_runner import GatewayRunner
from courierboard.services.note_cache import NoteCache

log = logging.getLogger(__name__)

UNAUTHORIZED = 401


class DashboardViewModel(QObject):
    """
    VM for the shared dashboard. Gateway calls run on a GatewayRunner; their
    results are applied on the loop thread.
    Emits:
      - weeksLoaded(weeks: list[Week])
      - selectedWeekChanged(week_number: int)
      - tasksReloaded(total: int, tasks: list[Task])
      - notesHydrated()
      - noteSaved(task_id: str, owner: str)
      - savingChanged(task_id: str, owner: str, saving: bool)
      - taskAdded(task_id: str)
      - errorChanged(message: str)            ("" clears the banner)
      - loadingChanged(what: str, loading: bool)   what in {"weeks", "tasks"}
      - sessionEnded()
    """

    weeksLoaded = Signal(list)
    selectedWeekChanged = Signal(int)
    tasksReloaded = Signal(int, list)
    notesHydrated = Signal()
    noteSaved = Signal(str, str)
    savingChanged = Signal(str, str, bool)
    taskAdded = Signal(str)
    errorChanged = Signal(str)
    loadingChanged = Signal(str, bool)
    sessionEnded = Signal()

    # change feed and session callbacks may fire on other threads
    _tasksChanged = Signal(object)
    _notesChanged = Signal(object)
    _sessionChanged = Signal(object)

    def __init__(self, gateway: RemoteGateway, *, auth=None,
                 debounce_ms: int = DEFAULT_DEBOUNCE_MS,
                 runner: Optional[GatewayRunner] = None, parent: Optional[QObject] = None):
        super().__init__(parent)
        self._gateway = gateway
        self._runner = runner or GatewayRunner()
        self._weeks: List[Week] = []
        self._selected_week: Optional[int] = None
        self._tasks: List[Task] = []
        self._visible_ids: frozenset[str] = frozenset()
        self._error = ""
        self._tasks_seq = 0
        self._notes_seq = 0
        self._closed = False

        self._cache = NoteCache()
        self._autosave = NoteAutosave(self._cache, gateway, runner=self._runner,
                                      debounce_ms=debounce_ms, parent=self)
        self._autosave.savingChanged.connect(self.savingChanged)
        self._autosave.noteSaved.connect(self.noteSaved)
        self._autosave.saveFailed.connect(self._on_save_failed)

        self._task_sub: Optional[Subscription] = None
        self._note_sub: Optional[Subscription] = None
        self._tasksChanged.connect(self._on_tasks_changed)
        self._notesChanged.connect(self._on_notes_changed)

        self._auth = auth
        self._unsub_auth: Optional[Callable[[], None]] = None
        if auth is not None:
            self._sessionChanged.connect(self._on_session_changed)
            self._unsub_auth = auth.on_change(self._sessionChanged.emit)

    # ---- state
    @property
    def weeks(self) -> List[Week]:
        return list(self._weeks)

    @property
    def selected_week(self) -> Optional[int]:
        return self._selected_week

    @property
    def tasks(self) -> List[Task]:
        return list(self._tasks)

    @property
    def visible_task_ids(self) -> frozenset[str]:
        return self._visible_ids

    @property
    def error(self) -> str:
        return self._error

    @property
    def autosave(self) -> NoteAutosave:
        return self._autosave

    @property
    def busy(self) -> bool:
        """True while any gateway call has not reported back yet."""
        return self._runner.pending() > 0

    @property
    def user_email(self) -> str:
        session = self._auth.get_session() if self._auth is not None else None
        return session.email if session else ""

    def current_week(self) -> Optional[Week]:
        if self._selected_week is None:
            return None
        return next((w for w in self._weeks if w.week_number == self._selected_week), None)

    def progress(self) -> Tuple[int, int, int]:
        """(completed, total, percent) for the loaded tasks."""
        total = len(self._tasks)
        done = sum(1 for t in self._tasks if t.status is TaskStatus.COMPLETED)
        return done, total, (round(done * 100 / total) if total else 0)

    def saved_note(self, task_id: str, owner: Owner | str) -> SavedNote:
        return self._cache.saved(NoteCache.key(task_id, owner))

    def draft(self, task_id: str, owner: Owner | str) -> str:
        return self._cache.draft(NoteCache.key(task_id, owner))

    def is_saving(self, task_id: str, owner: Owner | str) -> bool:
        return self._autosave.is_saving(NoteCache.key(task_id, owner))

    # ---- queries
    def start(self) -> None:
        self.load_weeks()

    def reload(self) -> None:
        """User-triggered refresh: weeks, then the selected week's tasks and notes."""
        self.load_weeks(reload_tasks=True)

    def load_weeks(self, *, reload_tasks: bool = False) -> None:
        self._set_error("")
        self.loadingChanged.emit("weeks", True)
        self._runner.submit(
            self._gateway.list_weeks,
            lambda weeks: self._weeks_loaded(weeks, reload_tasks),
            self._weeks_failed,
        )

    def select_week(self, week_number: int) -> None:
        if week_number == self._selected_week:
            return
        self._selected_week = int(week_number)
        self._resubscribe()
        self.selectedWeekChanged.emit(self._selected_week)
        self.load_tasks()

    def load_tasks(self, week_number: Optional[int] = None) -> bool:
        """Fetch tasks, then their notes; both are committed together."""
        week = self._selected_week if week_number is None else int(week_number)
        if week is None:
            return False
        self._set_error("")
        self._tasks_seq += 1
        seq = self._tasks_seq
        self.loadingChanged.emit("tasks", True)
        gateway = self._gateway
        self._runner.submit(
            lambda: gateway.list_tasks(week),
            lambda tasks: self._tasks_fetched(seq, tasks),
            lambda exc: self._tasks_failed(seq, "Failed to load tasks", exc),
        )
        return True

    def load_notes(self, task_ids: Sequence[str]) -> None:
        """Rehydrate the note cache for task_ids (the visible set)."""
        self._set_error("")
        ids = list(task_ids)
        self._notes_seq += 1
        if not ids:
            self._hydrate([], [])
            return
        seq = self._notes_seq
        gateway = self._gateway
        self._runner.submit(
            lambda: gateway.list_notes(ids),
            lambda notes: self._notes_fetched(seq, ids, notes),
            lambda exc: self._notes_failed(seq, exc),
        )

    # ---- note commands
    def set_draft(self, task_id: str, owner: Owner | str, text: str) -> None:
        key = NoteCache.key(task_id, owner)
        if self._cache.draft(key) == text:
            return
        self._cache.set_draft(key, text)
        self._autosave.evaluate(key)

    def save_note(self, task_id: str, owner: Owner | str) -> bool:
        """Explicit save of the current draft, skipping the debounce."""
        self._set_error("")
        return self._autosave.save(NoteCache.key(task_id, owner))

    # ---- task commands
    def add_task(self, owner: Owner | str, description: str) -> bool:
        """Returns False when nothing was sent; the outcome arrives as taskAdded or an error."""
        if self._selected_week is None:
            return False
        desc = (description or "").strip()
        if not desc:
            return False
        self._set_error("")
        week, who, gateway = self._selected_week, Owner(owner), self._gateway
        self._runner.submit(
            lambda: gateway.insert_task(week_number=week, owner=who, description=desc,
                                        status=TaskStatus.PENDING),
            # the change feed (or a manual reload) brings the row in
            lambda task: self.taskAdded.emit(task.id if task else ""),
            lambda exc: self._fail("Failed to add task", exc),
        )
        return True

    def update_status(self, task_id: str, status: TaskStatus | str) -> bool:
        self._set_error("")
        new_status, gateway = TaskStatus(status), self._gateway
        self._runner.submit(
            lambda: gateway.update_task_status(task_id, new_status),
            lambda _result: None,
            lambda exc: self._fail("Failed to update task", exc),
        )
        return True

    def set_task_completed(self, task_id: str, completed: bool) -> bool:
        return self.update_status(task_id, TaskStatus.COMPLETED if completed else TaskStatus.PENDING)

    # ---- lifecycle
    def close(self) -> None:
        self._closed = True
        self._unsubscribe()
        self._autosave.cancel_all()
        self._runner.discard()
        if self._unsub_auth is not None:
            self._unsub_auth()
            self._unsub_auth = None

    # ---- load results
    def _weeks_loaded(self, weeks: List[Week], reload_tasks: bool) -> None:
        self.loadingChanged.emit("weeks", False)
        self._weeks = list(weeks)
        self.weeksLoaded.emit(list(weeks))
        if weeks and not any(w.week_number == self._selected_week for w in weeks):
            self.select_week(weeks[0].week_number)
        elif reload_tasks:
            self.load_tasks()

    def _weeks_failed(self, exc: Exception) -> None:
        self.loadingChanged.emit("weeks", False)
        self._fail("Failed to load weeks", exc)

    def _tasks_fetched(self, seq: int, tasks: List[Task]) -> None:
        if seq != self._tasks_seq:
            return
        ids = [t.id for t in tasks]
        if not ids:
            self._commit_tasks(seq, tasks, [])
            return
        gateway = self._gateway
        self._runner.submit(
            lambda: gateway.list_notes(ids),
            lambda notes: self._commit_tasks(seq, tasks, notes),
            lambda exc: self._tasks_failed(seq, "Failed to load task notes", exc),
        )

    def _tasks_failed(self, seq: int, prefix: str, exc: Exception) -> None:
        if seq != self._tasks_seq:
            return
        self.loadingChanged.emit("tasks", False)
        self._fail(prefix, exc)

    def _commit_tasks(self, seq: int, tasks: List[Task], notes: List[TaskNote]) -> None:
        if seq != self._tasks_seq:
            log.debug("Dropping superseded task load #%d", seq)
            return
        self.loadingChanged.emit("tasks", False)
        self._tasks = list(tasks)
        self._visible_ids = frozenset(t.id for t in tasks)
        # a note refresh still on the wire targets the previous task set
        self._notes_seq += 1
        self.tasksReloaded.emit(len(tasks), list(tasks))
        self._hydrate([t.id for t in tasks], notes)

    def _notes_fetched(self, seq: int, ids: List[str], notes: List[TaskNote]) -> None:
        if seq != self._notes_seq or frozenset(ids) != self._visible_ids:
            return
        self._hydrate(ids, notes)

    def _notes_failed(self, seq: int, exc: Exception) -> None:
        if seq != self._notes_seq:
            return
        self._fail("Failed to load task notes", exc)

    def _hydrate(self, task_ids: List[str], notes: List[TaskNote]) -> None:
        if not task_ids:
            self._cache.clear()
            self._autosave.cancel_all()
        else:
            self._cache.hydrate(task_ids, notes)
            keys = self._cache.keys()
            self._autosave.retain(keys)
            self._autosave.evaluate_all(keys)
        self.notesHydrated.emit()

    # ---- change feed
    def _resubscribe(self) -> None:
        self._unsubscribe()
        week = self._selected_week
        self._task_sub = self._gateway.subscribe("tasks", self._tasksChanged.emit, scope=("week_number", week))
        self._note_sub = self._gateway.subscribe("task_notes", self._notesChanged.emit)
        log.debug("Subscribed to tasks of week %s and to task_notes", week)

    def _unsubscribe(self) -> None:
        for sub in (self._task_sub, self._note_sub):
            if sub is not None:
                sub.unsubscribe()
        self._task_sub = self._note_sub = None

    def _on_tasks_changed(self, event: ChangeEvent) -> None:
        # queued events may arrive after a week switch or close
        if self._task_sub is None or self._selected_week is None:
            return
        if str(event.value("week_number")) != str(self._selected_week):
            return
        self.load_tasks(self._selected_week)

    def _on_notes_changed(self, event: ChangeEvent) -> None:
        if self._note_sub is None:
            return
        task_id = event.value("task_id")
        if task_id is None or str(task_id) not in self._visible_ids:
            return
        self.load_notes(sorted(self._visible_ids))

    def _on_session_changed(self, session) -> None:
        if session is None and not self._closed:
            self.close()
            self.sessionEnded.emit()

    # ---- errors
    def _on_save_failed(self, task_id: str, owner: str, message: str, status: int) -> None:
        if status == UNAUTHORIZED and self._end_session():
            return
        self._set_error(f"Failed to save note: {message}")

    def _fail(self, prefix: str, exc: Exception) -> None:
        if isinstance(exc, GatewayError) and exc.status == UNAUTHORIZED and self._end_session():
            return
        log.error("%s: %s", prefix, exc)
        self._set_error(f"{prefix}: {exc}")

    def _end_session(self) -> bool:
        """The token was rejected even after a refresh: back to the login view."""
        if self._auth is None or self._closed:
            return False
        log.warning("Session rejected by the backend; signing out")
        # close() drops the callbacks, the sign-out call itself still runs
        self._runner.submit(self._auth.sign_out, lambda _r: None, lambda _exc: None)
        self.close()
        self.sessionEnded.emit()
        return True

    def _set_error(self, message: str) -> None:
        if message == self._error:
            return
        self._error = message
        self.errorChanged.emit(message)
