# Rev 0.4.0
# courierboard/viewmodels/session_viewmodel.py
from __future__ import annotations

import logging
from typing import Optional

from PySide6.QtCore import QObject, Signal

from courierboard.services.auth_service import Session, SupabaseAuth
from courierboard.services.gateway_runner import GatewayRunner

log = logging.getLogger(__name__)


class SessionViewModel(QObject):
    """
    Login-view state on top of SupabaseAuth. Auth calls run on a GatewayRunner.
    Emits:
      - messageChanged(text: str)
      - sessionInfoChanged(text: str)
      - busyChanged(busy: bool)
      - signedIn(email: str)      only when a session appears
      - signedOut()               only when it goes away
    """

    messageChanged = Signal(str)
    sessionInfoChanged = Signal(str)
    busyChanged = Signal(bool)
    signedIn = Signal(str)
    signedOut = Signal()

    # auth listeners may fire on worker threads
    _sessionChanged = Signal(object)

    def __init__(self, auth: SupabaseAuth, *, runner: Optional[GatewayRunner] = None,
                 parent: Optional[QObject] = None):
        super().__init__(parent)
        self._auth = auth
        self._runner = runner or GatewayRunner()
        self._was_signed_in = auth.get_session() is not None
        self._sessionChanged.connect(self._on_session_changed)
        self._unsub = auth.on_change(self._sessionChanged.emit)

    @property
    def signed_in(self) -> bool:
        return self._auth.get_session() is not None

    @property
    def busy(self) -> bool:
        return self._runner.pending() > 0

    def session_info(self) -> str:
        session = self._auth.get_session()
        return f"SIGNED IN as {session.email}" if session else "SIGNED OUT (no session)"

    def refresh_session_info(self) -> None:
        self.sessionInfoChanged.emit(self.session_info())

    # ---- commands
    def sign_in(self, email: str, password: str) -> None:
        self._run(
            lambda: self._auth.sign_in(email, password),
            "Signed in. Opening dashboard…",
            lambda exc: log.warning("Sign-in failed for %s: %s", email.strip(), exc),
        )

    def sign_up(self, email: str, password: str) -> None:
        self._run(lambda: self._auth.sign_up(email, password), "Signup successful. Now click Sign In.")

    def sign_out(self) -> None:
        self._run(self._auth.sign_out, "Signed out.")

    def close(self) -> None:
        self._unsub()
        self._runner.discard()

    # ---- internals
    def _run(self, call, success_message: str, on_error=None) -> None:
        self.messageChanged.emit("")
        self.busyChanged.emit(True)

        def done(_result) -> None:
            self.busyChanged.emit(False)
            self.messageChanged.emit(success_message)
            self.refresh_session_info()

        def failed(exc: Exception) -> None:
            if on_error is not None:
                on_error(exc)
            self.busyChanged.emit(False)
            self.messageChanged.emit(str(exc))
            self.refresh_session_info()

        self._runner.submit(call, done, failed)

    def _on_session_changed(self, session: Optional[Session]) -> None:
        signed_in = session is not None
        if signed_in == self._was_signed_in:
            # token refresh
            return
        self._was_signed_in = signed_in
        if signed_in:
            self.signedIn.emit(session.email)
        else:
            self.signedOut.emit()
