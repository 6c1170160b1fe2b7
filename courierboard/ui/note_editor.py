# Rev 0.3.0
# courierboard/ui/note_editor.py
from __future__ import annotations

from PySide6.QtWidgets import QFrame, QHBoxLayout, QLabel, QPlainTextEdit, QPushButton, QVBoxLayout

from courierboard.models.entities import Owner
from courierboard.utils.timefmt import fmt_local


class NoteEditor(QFrame):
    """Per-owner update box: draft text, explicit save, 'Saving…' / 'Last: …' line."""

    def __init__(self, vm, task_id: str, owner: Owner, parent=None):
        super().__init__(parent)
        self._vm = vm
        self._task_id = task_id
        self._owner = owner
        self.setFrameShape(QFrame.StyledPanel)

        title = QLabel(owner.value, self)
        title.setStyleSheet("font-weight: 800;")

        self._text = QPlainTextEdit(self)
        self._text.setPlaceholderText("Type your update…")
        self._text.setMinimumHeight(90)
        self._text.textChanged.connect(self._on_text_changed)

        self._btn_save = QPushButton("Save update", self)
        self._btn_save.clicked.connect(lambda: self._vm.save_note(self._task_id, self._owner))

        self._lbl_status = QLabel(self)
        self._lbl_status.setStyleSheet("font-size: 11px; color: #666;")

        bottom = QHBoxLayout()
        bottom.addWidget(self._btn_save)
        bottom.addStretch(1)
        bottom.addWidget(self._lbl_status)

        lay = QVBoxLayout(self)
        lay.setContentsMargins(8, 8, 8, 8)
        lay.addWidget(title)
        lay.addWidget(self._text, 1)
        lay.addLayout(bottom)

        self.refresh()

    # ---------- Public API ----------
    def refresh(self) -> None:
        """Pull draft + status from the VM (after hydration or a save)."""
        draft = self._vm.draft(self._task_id, self._owner)
        if self._text.toPlainText() != draft:
            self._text.blockSignals(True)
            self._text.setPlainText(draft)
            self._text.blockSignals(False)
        self.refresh_status()

    def refresh_status(self) -> None:
        if self._vm.is_saving(self._task_id, self._owner):
            self._lbl_status.setText("Saving…")
            return
        saved = self._vm.saved_note(self._task_id, self._owner)
        self._lbl_status.setText(f"Last: {fmt_local(saved.updated_at)}")

    # ---------- Internals ----------
    def _on_text_changed(self) -> None:
        self._vm.set_draft(self._task_id, self._owner, self._text.toPlainText())
