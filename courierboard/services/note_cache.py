# Rev 0.3.0
from __future__ import annotations

from typing import Dict, Iterable, List, Optional

from courierboard.models.entities import ALL_OWNERS, NoteKey, Owner, SavedNote, TaskNote


class NoteCache:
    """
    Saved notes and unsent drafts for the visible tasks, one entry per
    (task_id, owner). The hosted store stays the source of truth; this is a
    read-through, write-behind reflection of it.
    """

    def __init__(self) -> None:
        self._saved: Dict[NoteKey, SavedNote] = {}
        self._drafts: Dict[NoteKey, str] = {}

    # ---- hydration
    def hydrate(self, task_ids: Iterable[str], notes: Iterable[TaskNote]) -> None:
        saved: Dict[NoteKey, SavedNote] = {}
        for task_id in task_ids:
            for owner in ALL_OWNERS:
                saved[NoteKey(task_id, owner)] = SavedNote()
        for n in notes:
            key = NoteKey(n.task_id, n.owner)
            if key not in saved:
                continue
            saved[key] = SavedNote(note=n.note or "", updated_at=n.updated_at, id=n.id)
        self._saved = saved
        self._drafts = {k: v.note for k, v in saved.items()}

    def clear(self) -> None:
        self._saved = {}
        self._drafts = {}

    # ---- reads
    def keys(self) -> List[NoteKey]:
        return list(self._saved)

    def saved(self, key: NoteKey) -> SavedNote:
        return self._saved.get(key) or SavedNote()

    def saved_text(self, key: NoteKey) -> str:
        return self.saved(key).note

    def draft(self, key: NoteKey) -> str:
        return self._drafts.get(key, "")

    def is_dirty(self, key: NoteKey) -> bool:
        # compare what an upsert would actually write
        return self.draft(key).strip() != self.saved_text(key)

    def __contains__(self, key: object) -> bool:
        return key in self._saved

    def __len__(self) -> int:
        return len(self._saved)

    # ---- writes
    def set_draft(self, key: NoteKey, text: str) -> None:
        self._drafts[key] = text

    def apply_saved(self, key: NoteKey, note: str, updated_at: str, note_id: Optional[str] = None) -> None:
        prev = self._saved.get(key)
        self._saved[key] = SavedNote(
            note=note,
            updated_at=updated_at,
            id=note_id if note_id is not None else (prev.id if prev else None),
        )

    @staticmethod
    def key(task_id: str, owner: Owner | str) -> NoteKey:
        return NoteKey(str(task_id), Owner(owner))
