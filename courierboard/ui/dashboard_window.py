# Rev 0.4.0
# courierboard — dashboard window
# Header | error banner | week buttons | week details | add task | task table

from __future__ import annotations

from typing import Callable, Optional

from PySide6.QtCore import Signal
from PySide6.QtWidgets import (
    QButtonGroup, QComboBox, QGridLayout, QGroupBox, QHBoxLayout, QLabel, QLineEdit, QMainWindow,
    QPushButton, QScrollArea, QVBoxLayout, QWidget,
)

from courierboard.models.entities import ALL_OWNERS, Owner, Week
from courierboard.ui.task_table import TaskTable
from courierboard.viewmodels.dashboard_viewmodel import DashboardViewModel


def _list_box(title: str, items, *, risk: bool = False) -> QGroupBox:
    box = QGroupBox(title)
    if risk:
        box.setStyleSheet("QGroupBox { background: #fff7f7; }")
    lay = QVBoxLayout(box)
    for text in items:
        lbl = QLabel(f"• {text}")
        lbl.setWordWrap(True)
        lay.addWidget(lbl)
    lay.addStretch(1)
    return box


class DashboardWindow(QMainWindow):
    closed = Signal()

    def __init__(self, vm: DashboardViewModel, *, sign_out: Optional[Callable[[], None]] = None,
                 width: int = 1280, height: int = 820, parent=None):
        super().__init__(parent)
        self._vm = vm
        self._sign_out = sign_out
        self._loading_tasks = False

        self.setWindowTitle("Medical Courier Execution Dashboard (Shared)")
        self.resize(width, height)

        # ---- header ----
        title = QLabel("Medical Courier Execution Dashboard (Shared)")
        title.setStyleSheet("font-size: 20px; font-weight: 800;")
        self._lbl_user = QLabel(f"Signed in as {vm.user_email or 'user'}")
        btn_reload = QPushButton("Reload")
        btn_reload.setToolTip("Reload weeks, tasks and notes")
        btn_reload.clicked.connect(self._vm.reload)
        btn_out = QPushButton("Sign Out")
        btn_out.clicked.connect(self._on_sign_out)
        header = QHBoxLayout()
        head_text = QVBoxLayout()
        head_text.addWidget(title)
        head_text.addWidget(self._lbl_user)
        header.addLayout(head_text, 1)
        header.addWidget(btn_reload)
        header.addWidget(btn_out)

        # ---- error banner ----
        self._banner = QLabel()
        self._banner.setWordWrap(True)
        self._banner.setStyleSheet("padding: 8px; border: 1px solid #f1b4b4; background: #fff7f7;")
        self._banner.hide()

        # ---- weeks ----
        self._weeks_row = QHBoxLayout()
        self._week_group = QButtonGroup(self)
        self._week_group.setExclusive(True)
        self._week_group.idClicked.connect(self._vm.select_week)
        self._lbl_weeks = QLabel()
        weeks_box = QGroupBox("Weeks")
        wl = QVBoxLayout(weeks_box)
        wl.addWidget(self._lbl_weeks)
        wl.addLayout(self._weeks_row)

        # ---- week details ----
        self._details = QGroupBox()
        self._details_layout = QVBoxLayout(self._details)

        # ---- add task ----
        self._cmb_owner = QComboBox()
        for owner in ALL_OWNERS:
            self._cmb_owner.addItem(owner.value, owner)
        self._txt_desc = QLineEdit()
        self._txt_desc.setPlaceholderText("New task description")
        self._txt_desc.setMinimumWidth(320)
        self._txt_desc.returnPressed.connect(self._on_add_task)
        btn_add = QPushButton("Add Task")
        btn_add.clicked.connect(self._on_add_task)
        add_row = QHBoxLayout()
        add_row.addWidget(self._cmb_owner)
        add_row.addWidget(self._txt_desc, 1)
        add_row.addWidget(btn_add)

        self._table = TaskTable(vm)
        self._table.setMinimumHeight(360)

        foot = QLabel(
            f"Notes auto-save after you stop typing ({vm.autosave.debounce_ms / 1000:g}s debounce) "
            "and are shared with everyone viewing this week."
        )
        foot.setStyleSheet("color: #666; font-size: 11px;")

        # ---- layout ----
        central = QWidget()
        root = QVBoxLayout(central)
        root.addLayout(header)
        root.addWidget(self._banner)
        root.addWidget(weeks_box)
        root.addWidget(self._details)
        tasks_title = QLabel("Tasks (Shared)")
        tasks_title.setStyleSheet("font-size: 16px; font-weight: 800;")
        root.addWidget(tasks_title)
        root.addLayout(add_row)
        root.addWidget(self._table, 1)
        root.addWidget(foot)

        scroll = QScrollArea()
        scroll.setWidgetResizable(True)
        scroll.setWidget(central)
        self.setCentralWidget(scroll)

        # ---- VM signals ----
        vm.weeksLoaded.connect(self._on_weeks_loaded)
        vm.selectedWeekChanged.connect(self._on_week_selected)
        vm.tasksReloaded.connect(self._on_tasks_reloaded)
        vm.notesHydrated.connect(self._table.refresh_notes)
        vm.savingChanged.connect(lambda tid, owner, _saving: self._table.refresh_status(tid, owner))
        vm.noteSaved.connect(self._table.refresh_status)
        vm.taskAdded.connect(lambda _task_id: self._txt_desc.clear())
        vm.errorChanged.connect(self._on_error)
        vm.loadingChanged.connect(self._on_loading)

        self._render_details()

    # -------------------- VM slots --------------------
    def _on_weeks_loaded(self, weeks: list[Week]) -> None:
        for btn in self._week_group.buttons():
            self._week_group.removeButton(btn)
        while self._weeks_row.count():
            item = self._weeks_row.takeAt(0)
            if item.widget() is not None:
                item.widget().deleteLater()
        if not weeks:
            self._lbl_weeks.setText("No weeks found. Ensure the weeks table is seeded.")
            self._lbl_weeks.show()
            return
        self._lbl_weeks.hide()
        for w in weeks:
            btn = QPushButton(f"Week {w.week_number}")
            btn.setCheckable(True)
            btn.setChecked(w.week_number == self._vm.selected_week)
            self._week_group.addButton(btn, w.week_number)
            self._weeks_row.addWidget(btn)
        self._weeks_row.addStretch(1)

    def _on_week_selected(self, week_number: int) -> None:
        btn = self._week_group.button(week_number)
        if btn is not None:
            btn.setChecked(True)
        self._render_details()

    def _on_tasks_reloaded(self, total: int, tasks: list) -> None:
        self._table.set_tasks(tasks)
        self._render_details()

    def _on_error(self, message: str) -> None:
        self._banner.setText(message)
        self._banner.setVisible(bool(message))

    def _on_loading(self, what: str, loading: bool) -> None:
        if what == "weeks" and loading:
            self._lbl_weeks.setText("Loading weeks…")
            self._lbl_weeks.show()
        elif what == "weeks" and not self._week_group.buttons():
            self._lbl_weeks.setText("Weeks are not loaded yet. Use Reload to try again.")
        elif what == "tasks":
            self._loading_tasks = loading
            self._render_details()

    # -------------------- rendering --------------------
    def _render_details(self) -> None:
        while self._details_layout.count():
            item = self._details_layout.takeAt(0)
            w = item.widget()
            if w is not None:
                w.deleteLater()

        week = self._vm.current_week()
        if week is None:
            self._details.setTitle("")
            self._details_layout.addWidget(QLabel("Select a week to see details."))
            return

        self._details.setTitle(f"Week {week.week_number}: {week.title}")
        done, total, pct = self._vm.progress()
        progress = f"Progress: {done}/{total} tasks completed ({pct}%)"
        if self._loading_tasks:
            progress += "   Loading tasks…"
        self._details_layout.addWidget(QLabel(progress))

        grid_holder = QWidget()
        grid = QGridLayout(grid_holder)
        grid.setContentsMargins(0, 0, 0, 0)
        grid.addWidget(_list_box("Objectives", week.objectives), 0, 0)
        grid.addWidget(_list_box("Deliverables", week.deliverables), 0, 1)
        grid.addWidget(_list_box("KPIs", week.kpis), 1, 0)
        grid.addWidget(_list_box("Risks", week.risks, risk=True), 1, 1)
        self._details_layout.addWidget(grid_holder)

    # -------------------- actions --------------------
    def _on_add_task(self) -> None:
        owner: Owner = self._cmb_owner.currentData()
        self._vm.add_task(owner, self._txt_desc.text())

    def _on_sign_out(self) -> None:
        if self._sign_out is not None:
            self._sign_out()

    def closeEvent(self, ev):
        self._vm.close()
        self.closed.emit()
        super().closeEvent(ev)
