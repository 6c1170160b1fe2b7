# Rev 0.4.0

"""Email/password session against the hosted auth service (GoTrue REST).

The client only consumes the service: it signs in, signs up, refreshes an
expired access token, signs out and tells listeners when the session changes.
Calls may come from worker threads; listeners are invoked on the calling
thread.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable, List, Optional

import requests

from courierboard.utils.http import extract_error

log = logging.getLogger(__name__)


class AuthError(RuntimeError):
    pass


@dataclass(frozen=True)
class Session:
    access_token: str
    user_id: str
    email: str = ""
    refresh_token: Optional[str] = None


SessionListener = Callable[[Optional[Session]], None]


class SupabaseAuth:
    def __init__(self, supabase_url: str, anon_key: str, *,
                 http: Optional[requests.Session] = None, timeout: float = 25):
        self.supabase_url = supabase_url.rstrip("/")
        self.anon_key = anon_key
        self._http = http or requests.Session()
        self._timeout = timeout
        self._session: Optional[Session] = None
        self._listeners: List[SessionListener] = []
        self._refresh_lock = threading.Lock()

    # ---- queries
    def get_session(self) -> Optional[Session]:
        return self._session

    def access_token(self) -> Optional[str]:
        return self._session.access_token if self._session else None

    @property
    def signed_in(self) -> bool:
        return self._session is not None

    # ---- commands
    def sign_in(self, email: str, password: str) -> Session:
        body = self._post("/auth/v1/token?grant_type=password",
                          {"email": email.strip(), "password": password})
        session = self._session_from(body, email.strip())
        self._set_session(session)
        log.info("Signed in as %s", session.email)
        return session

    def sign_up(self, email: str, password: str) -> None:
        self._post("/auth/v1/signup", {"email": email.strip(), "password": password})
        log.info("Signed up %s", email.strip())

    def refresh(self, stale_token: Optional[str] = None) -> bool:
        """
        Exchange the refresh token for a new access token.
        stale_token is the token a request was rejected with; when the session
        already moved past it (another caller refreshed) nothing is sent.
        """
        with self._refresh_lock:
            session = self._session
            if session is None:
                return False
            if stale_token is not None and session.access_token != stale_token:
                return True
            if not session.refresh_token:
                log.warning("Access token expired and no refresh token is available")
                return False
            try:
                body = self._post("/auth/v1/token?grant_type=refresh_token",
                                  {"refresh_token": session.refresh_token})
                fresh = self._session_from(body, session.email)
            except AuthError as exc:
                log.warning("Token refresh failed: %s", exc)
                return False
            if self._session is None:
                # signed out while the refresh was on the wire
                return False
            self._set_session(fresh)
            log.info("Refreshed access token for %s", fresh.email)
            return True

    def sign_out(self) -> None:
        session = self._session
        if session is None:
            return
        try:
            response = self._http.post(
                f"{self.supabase_url}/auth/v1/logout",
                headers={**self._headers(), "Authorization": f"Bearer {session.access_token}"},
                timeout=self._timeout,
            )
            if response.status_code >= 300:
                log.warning("Remote sign-out failed: %s", extract_error(response))
        except requests.RequestException as exc:
            log.warning("Remote sign-out failed: %s", exc)
        self._set_session(None)
        log.info("Signed out")

    def on_change(self, listener: SessionListener) -> Callable[[], None]:
        """Register a listener; returns a callable that removes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ---- internals
    def _headers(self) -> dict:
        return {"apikey": self.anon_key, "Content-Type": "application/json"}

    def _post(self, path: str, payload: dict) -> dict:
        try:
            response = self._http.post(f"{self.supabase_url}{path}", headers=self._headers(),
                                       json=payload, timeout=self._timeout)
        except requests.RequestException as exc:
            raise AuthError(str(exc)) from exc
        if response.status_code >= 300:
            raise AuthError(extract_error(response))
        try:
            body = response.json()
        except ValueError:
            return {}
        return body if isinstance(body, dict) else {}

    @staticmethod
    def _session_from(body: dict, fallback_email: str) -> Session:
        user = body.get("user") or {}
        token = body.get("access_token")
        if not token or not user.get("id"):
            raise AuthError("Sign-in succeeded but no session was returned. Check the auth settings.")
        return Session(
            access_token=token,
            user_id=str(user["id"]),
            email=user.get("email") or fallback_email,
            refresh_token=body.get("refresh_token"),
        )

    def _set_session(self, session: Optional[Session]) -> None:
        self._session = session
        for listener in list(self._listeners):
            listener(session)
