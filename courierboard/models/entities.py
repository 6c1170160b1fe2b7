# Rev 0.3.0
"""Typed records for weeks, tasks and per-owner task notes.

Weeks are read-only here; tasks are created and re-statused by the dashboard;
notes are keyed by (task_id, owner) and only ever upserted.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import NamedTuple, Optional, Tuple


class Owner(str, Enum):
    A = "Co-Owner A (Ops/Compliance)"
    B = "Co-Owner B (Sales/Finance)"

    def __str__(self) -> str:
        return self.value


class TaskStatus(str, Enum):
    PENDING = "Pending"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"

    def __str__(self) -> str:
        return self.value


ALL_OWNERS: Tuple[Owner, ...] = (Owner.A, Owner.B)


@dataclass(frozen=True)
class Week:
    week_number: int
    title: str = ""
    objectives: Tuple[str, ...] = field(default_factory=tuple)
    deliverables: Tuple[str, ...] = field(default_factory=tuple)
    kpis: Tuple[str, ...] = field(default_factory=tuple)
    risks: Tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class Task:
    id: str
    week_number: int
    owner: Owner
    description: str
    status: TaskStatus = TaskStatus.PENDING
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @property
    def completed(self) -> bool:
        return self.status is TaskStatus.COMPLETED


@dataclass(frozen=True)
class TaskNote:
    id: Optional[str]
    task_id: str
    owner: Owner
    note: str = ""
    updated_at: Optional[str] = None


class NoteKey(NamedTuple):
    """Logical key shared by a note row, its draft and its autosave entry."""
    task_id: str
    owner: Owner

    def __str__(self) -> str:
        return f"{self.task_id}::{self.owner.value}"


@dataclass
class SavedNote:
    note: str = ""
    updated_at: Optional[str] = None   # None until the first save
    id: Optional[str] = None
