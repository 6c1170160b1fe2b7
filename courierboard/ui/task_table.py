# courierboard/ui/task_table.py
# Rev 0.3.0 — Done | Owner | Description | Status | Updates (Auto-save)
from __future__ import annotations

from typing import Dict, Tuple

from PySide6.QtCore import Qt
from PySide6.QtWidgets import (
    QCheckBox, QHBoxLayout, QHeaderView, QLabel, QPushButton, QTableWidget, QTableWidgetItem,
    QVBoxLayout, QWidget,
)

from courierboard.models.entities import ALL_OWNERS, Owner, Task, TaskStatus
from courierboard.ui.note_editor import NoteEditor

_PILL = {
    TaskStatus.COMPLETED: ("#eefbf2", "#bfe8c8", "#166534"),
    TaskStatus.IN_PROGRESS: ("#fff8e6", "#f0d9a7", "#7a5d00"),
    TaskStatus.PENDING: ("#f5f5f5", "#dddddd", "#333333"),
}


def status_pill(status: TaskStatus) -> QLabel:
    bg, border, text = _PILL[status]
    lbl = QLabel(status.value)
    lbl.setAlignment(Qt.AlignCenter)
    lbl.setStyleSheet(
        f"background: {bg}; border: 1px solid {border}; color: {text};"
        "border-radius: 10px; padding: 4px 10px; font-weight: 800; font-size: 11px;"
    )
    return lbl


class TaskTable(QTableWidget):
    def __init__(self, vm, parent=None):
        super().__init__(0, 5, parent)
        self._vm = vm
        self._editors: Dict[Tuple[str, Owner], NoteEditor] = {}

        self.setHorizontalHeaderLabels(["Done", "Owner", "Description", "Status", "Updates (Auto-save)"])
        self.setEditTriggers(QTableWidget.NoEditTriggers)
        self.setSelectionMode(QTableWidget.NoSelection)
        self.verticalHeader().setVisible(False)
        self.setWordWrap(True)

        hdr = self.horizontalHeader()
        hdr.setSectionResizeMode(0, QHeaderView.ResizeToContents)   # Done
        hdr.setSectionResizeMode(1, QHeaderView.ResizeToContents)   # Owner
        hdr.setSectionResizeMode(2, QHeaderView.Interactive)        # Description
        hdr.setSectionResizeMode(3, QHeaderView.ResizeToContents)   # Status
        hdr.setSectionResizeMode(4, QHeaderView.Stretch)            # Notes
        self.setColumnWidth(2, 360)

    # ---------- Public API ----------
    def set_tasks(self, tasks: list[Task]) -> None:
        self._editors.clear()
        self.clearContents()
        if not tasks:
            self.setRowCount(1)
            self.setSpan(0, 0, 1, 5)
            self.setItem(0, 0, QTableWidgetItem("No tasks for this week yet."))
            return
        self.clearSpans()
        self.setRowCount(len(tasks))
        for r, task in enumerate(tasks):
            self._render_row(r, task)
        self.resizeRowsToContents()

    def refresh_notes(self) -> None:
        for editor in self._editors.values():
            editor.refresh()

    def refresh_status(self, task_id: str, owner: str) -> None:
        editor = self._editors.get((task_id, Owner(owner)))
        if editor is not None:
            editor.refresh_status()

    # ---------- Internals ----------
    def _render_row(self, r: int, task: Task) -> None:
        done = QCheckBox()
        done.setChecked(task.completed)
        done.toggled.connect(lambda checked, tid=task.id: self._vm.set_task_completed(tid, checked))
        self.setCellWidget(r, 0, self._centered(done))

        self.setItem(r, 1, QTableWidgetItem(task.owner.value))

        desc = QWidget()
        v = QVBoxLayout(desc)
        v.setContentsMargins(6, 6, 6, 6)
        title = QLabel(task.description)
        title.setWordWrap(True)
        title.setStyleSheet("font-weight: 700;")
        v.addWidget(title)
        buttons = QHBoxLayout()
        for status in TaskStatus:
            btn = QPushButton(status.value)
            btn.clicked.connect(lambda _=False, tid=task.id, s=status: self._vm.update_status(tid, s))
            buttons.addWidget(btn)
        buttons.addStretch(1)
        v.addLayout(buttons)
        self.setCellWidget(r, 2, desc)

        self.setCellWidget(r, 3, self._centered(status_pill(task.status)))

        notes = QWidget()
        h = QHBoxLayout(notes)
        h.setContentsMargins(4, 4, 4, 4)
        for owner in ALL_OWNERS:
            editor = NoteEditor(self._vm, task.id, owner, notes)
            self._editors[(task.id, owner)] = editor
            h.addWidget(editor)
        self.setCellWidget(r, 4, notes)

    @staticmethod
    def _centered(w: QWidget) -> QWidget:
        holder = QWidget()
        lay = QHBoxLayout(holder)
        lay.setContentsMargins(6, 6, 6, 6)
        lay.addWidget(w, 0, Qt.AlignTop | Qt.AlignHCenter)
        return holder
