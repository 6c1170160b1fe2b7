# Rev 0.4.0

# courierboard/main.py  (Rev 0.4.0)
import logging
import sys

from PySide6.QtCore import QCoreApplication
from PySide6.QtGui import QFont
from PySide6.QtWidgets import QApplication, QMessageBox

from courierboard.app_context import AppContext
from courierboard.ui.dashboard_window import DashboardWindow
from courierboard.ui.login_dialog import LoginDialog
from courierboard.utils.config import ConfigError, save_settings
from courierboard.utils.logging_setup import setup_logging
from courierboard.viewmodels.dashboard_viewmodel import DashboardViewModel
from courierboard.viewmodels.session_viewmodel import SessionViewModel

log = logging.getLogger(__name__)


class App:
    """Switches between the login dialog and the dashboard as the session changes."""

    def __init__(self, ctx: AppContext):
        self._ctx = ctx
        self._switching = False
        self._session_vm = SessionViewModel(ctx.auth)
        self._session_vm.signedOut.connect(self._on_signed_out)
        self._window: DashboardWindow | None = None

    def start(self) -> bool:
        dlg = LoginDialog(self._session_vm)
        if not dlg.exec() or not self._session_vm.signed_in:
            return False
        self._show_dashboard()
        return True

    def _show_dashboard(self) -> None:
        vm = DashboardViewModel(self._ctx.gateway, auth=self._ctx.auth, debounce_ms=self._ctx.debounce_ms)
        size = self._ctx.settings.get("main_window") or {}
        self._ctx.start_realtime()
        self._window = DashboardWindow(
            vm,
            sign_out=self._session_vm.sign_out,
            width=size.get("width", 1280),
            height=size.get("height", 820),
        )
        self._window.closed.connect(self._on_window_closed)
        if size.get("is_maximized"):
            self._window.showMaximized()
        else:
            self._window.show()
        vm.start()

    def _on_signed_out(self) -> None:
        # only the dashboard redirects; the login dialog handles its own sign-out
        if self._window is None:
            return
        self._ctx.stop_realtime()
        self._switching = True
        try:
            self._window.close()
            self._window.deleteLater()
            self._window = None
        finally:
            self._switching = False
        if not self.start():
            QCoreApplication.quit()

    def _on_window_closed(self) -> None:
        self._remember_geometry()
        if not self._switching:
            self._ctx.stop_realtime()
            QCoreApplication.quit()

    def _remember_geometry(self) -> None:
        if self._window is None:
            return
        win = self._window
        self._ctx.settings["main_window"] = {
            "width": win.width(),
            "height": win.height(),
            "is_maximized": win.isMaximized(),
        }
        try:
            save_settings(self._ctx.settings)
        except OSError as exc:
            log.warning("Could not save window settings: %s", exc)


def main() -> int:
    app = QApplication(sys.argv)
    QCoreApplication.setOrganizationName("courierboard")
    QCoreApplication.setApplicationName("courierboard")

    logfile = setup_logging("courierboard")
    print(f"[logging] Writing to: {logfile}")

    try:
        ctx = AppContext.create()
    except ConfigError as exc:
        log.error("%s", exc)
        QMessageBox.critical(None, "Configuration", str(exc))
        return 2

    app.setFont(QFont("Sans Serif", 10))
    # the login dialog and the dashboard replace each other; quit is explicit
    app.setQuitOnLastWindowClosed(False)
    shell = App(ctx)
    if not shell.start():
        return 0
    # CRUCIAL: start the event loop
    return app.exec()


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
