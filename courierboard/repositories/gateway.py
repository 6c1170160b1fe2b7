# Rev 0.3.0

"""Remote data gateway contract.

Implementations read and write the three hosted tables and expose a change
feed. Every failure surfaces as GatewayError.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Iterable, List, Optional, Tuple

from courierboard.models.entities import Owner, Task, TaskNote, TaskStatus, Week
from courierboard.models.types import TableName
from courierboard.repositories.change_feed import ChangeCallback, Subscription


class RemoteGateway(ABC):
    # ---- reads
    @abstractmethod
    def list_weeks(self) -> List[Week]:
        """All weeks ordered by week_number ascending."""

    @abstractmethod
    def list_tasks(self, week_number: int) -> List[Task]:
        """Tasks of one week, newest created first."""

    @abstractmethod
    def list_notes(self, task_ids: Iterable[str]) -> List[TaskNote]:
        """Note rows whose task_id is in task_ids."""

    # ---- writes
    @abstractmethod
    def insert_task(self, *, week_number: int, owner: Owner, description: str,
                    status: TaskStatus = TaskStatus.PENDING) -> Optional[Task]:
        ...

    @abstractmethod
    def update_task_status(self, task_id: str, status: TaskStatus) -> None:
        ...

    @abstractmethod
    def upsert_note(self, task_id: str, owner: Owner, note: str) -> Optional[TaskNote]:
        """Insert or overwrite the single note row for (task_id, owner)."""

    # ---- change feed
    @abstractmethod
    def subscribe(self, table: TableName, callback: ChangeCallback, *,
                  scope: Optional[Tuple[str, Any]] = None) -> Subscription:
        ...
