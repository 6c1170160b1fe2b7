# Rev 0.3.0

"""Row parsing for records fetched from the hosted store.

- Week list fields (objectives/deliverables/kpis/risks) default to empty
  tuples when missing or not a list
- Key fields (week_number, id, task_id, owner, status) are required
- A null note reads as the empty string
"""
from __future__ import annotations
from typing import Any, Iterable, List, Mapping, Tuple

from courierboard.models.entities import Owner, Task, TaskNote, TaskStatus, Week
from courierboard.repositories.errors import RowFormatError

WEEK_COLUMNS = "week_number,title,objectives,deliverables,kpis,risks"
TASK_COLUMNS = "id,week_number,owner,description,status,created_at,updated_at"
NOTE_COLUMNS = "id,task_id,owner,note,updated_at"


def _text_list(value: Any) -> Tuple[str, ...]:
    if not isinstance(value, list):
        return ()
    return tuple("" if v is None else str(v) for v in value)


def _required(row: Mapping[str, Any], key: str, table: str) -> Any:
    value = row.get(key)
    if value is None or value == "":
        raise RowFormatError(f"{table} row is missing '{key}': {dict(row)!r}")
    return value


def _owner(value: Any, table: str) -> Owner:
    try:
        return Owner(value)
    except ValueError:
        raise RowFormatError(f"{table} row has unknown owner {value!r}") from None


def _status(value: Any) -> TaskStatus:
    try:
        return TaskStatus(value)
    except ValueError:
        raise RowFormatError(f"tasks row has unknown status {value!r}") from None


def _int(value: Any, key: str, table: str) -> int:
    if isinstance(value, bool):
        raise RowFormatError(f"{table} row has non-integer '{key}': {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise RowFormatError(f"{table} row has non-integer '{key}': {value!r}") from None


def parse_week(row: Mapping[str, Any]) -> Week:
    return Week(
        week_number=_int(_required(row, "week_number", "weeks"), "week_number", "weeks"),
        title=row.get("title") or "",
        objectives=_text_list(row.get("objectives")),
        deliverables=_text_list(row.get("deliverables")),
        kpis=_text_list(row.get("kpis")),
        risks=_text_list(row.get("risks")),
    )


def parse_task(row: Mapping[str, Any]) -> Task:
    return Task(
        id=str(_required(row, "id", "tasks")),
        week_number=_int(_required(row, "week_number", "tasks"), "week_number", "tasks"),
        owner=_owner(row.get("owner"), "tasks"),
        description=row.get("description") or "",
        status=_status(row.get("status")),
        created_at=row.get("created_at"),
        updated_at=row.get("updated_at"),
    )


def parse_note(row: Mapping[str, Any]) -> TaskNote:
    note_id = row.get("id")
    return TaskNote(
        id=str(note_id) if note_id is not None else None,
        task_id=str(_required(row, "task_id", "task_notes")),
        owner=_owner(row.get("owner"), "task_notes"),
        note=row.get("note") or "",
        updated_at=row.get("updated_at"),
    )


def parse_rows(rows: Any, parser) -> List[Any]:
    if rows is None:
        return []
    if not isinstance(rows, list):
        raise RowFormatError(f"expected a list of rows, got {type(rows).__name__}")
    return [parser(r) for r in _mappings(rows)]


def _mappings(rows: Iterable[Any]) -> Iterable[Mapping[str, Any]]:
    for r in rows:
        if not isinstance(r, Mapping):
            raise RowFormatError(f"expected a row object, got {r!r}")
        yield r
