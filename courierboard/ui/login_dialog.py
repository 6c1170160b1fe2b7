# Rev 0.4.0

# courierboard/ui/login_dialog.py
from PySide6.QtWidgets import QDialog, QHBoxLayout, QLabel, QLineEdit, QPushButton, QVBoxLayout


class LoginDialog(QDialog):
    def __init__(self, session_vm, parent=None):
        super().__init__(parent)
        self._vm = session_vm
        self.setWindowTitle("Login")
        self.setMinimumWidth(460)

        self._lbl_session = QLabel(self)
        self._lbl_session.setStyleSheet("font-weight: 800; padding: 8px; border: 1px solid #ddd; background: #fafafa;")
        self.email = QLineEdit(self);     self.email.setPlaceholderText("you@company.com")
        self.password = QLineEdit(self);  self.password.setPlaceholderText("Password")
        self.password.setEchoMode(QLineEdit.Password)
        self._lbl_msg = QLabel(self)
        self._lbl_msg.setWordWrap(True)

        btn_in = QPushButton("Sign In", self)
        btn_up = QPushButton("Sign Up", self)
        btn_out = QPushButton("Sign Out", self)
        btn_in.setDefault(True)
        btn_in.clicked.connect(lambda: self._vm.sign_in(self.email.text(), self.password.text()))
        btn_up.clicked.connect(lambda: self._vm.sign_up(self.email.text(), self.password.text()))
        btn_out.clicked.connect(self._vm.sign_out)

        self._buttons = (btn_in, btn_up, btn_out)
        buttons = QHBoxLayout()
        for b in self._buttons:
            buttons.addWidget(b)
        buttons.addStretch(1)

        lay = QVBoxLayout(self)
        lay.addWidget(self._lbl_session)
        lay.addWidget(QLabel("Email", self)); lay.addWidget(self.email)
        lay.addWidget(QLabel("Password", self)); lay.addWidget(self.password)
        lay.addLayout(buttons)
        lay.addWidget(self._lbl_msg)

        self._vm.messageChanged.connect(self._lbl_msg.setText)
        self._vm.sessionInfoChanged.connect(self._on_session_info)
        self._vm.busyChanged.connect(self._on_busy)
        self._vm.signedIn.connect(self._on_signed_in)
        self._vm.refresh_session_info()

    def _on_session_info(self, text: str):
        self._lbl_session.setText(f"Session status: {text}")

    def _on_busy(self, busy: bool):
        for b in self._buttons:
            b.setEnabled(not busy)

    def _on_signed_in(self, _email: str):
        self.accept()

    def done(self, result):
        # drop VM connections; a new dialog is built on every sign-out
        self._vm.messageChanged.disconnect(self._lbl_msg.setText)
        self._vm.sessionInfoChanged.disconnect(self._on_session_info)
        self._vm.busyChanged.disconnect(self._on_busy)
        self._vm.signedIn.disconnect(self._on_signed_in)
        super().done(result)
