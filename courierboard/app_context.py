# Rev 0.4.0
# courierboard/app_context.py

from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from .repositories.realtime_feed import RealtimeBridge
from .repositories.supabase_gateway import SupabaseGateway
from .services.auth_service import Session, SupabaseAuth
from .utils.config import BackendSettings, backend_settings, debounce_ms, load_settings, realtime_enabled

log = logging.getLogger("AppContext")


@dataclass
class AppContext:
    """Central container for shared app resources."""
    settings: Dict[str, Any]
    backend: BackendSettings
    auth: SupabaseAuth
    gateway: SupabaseGateway
    debounce_ms: int
    realtime: Optional[RealtimeBridge] = None

    @classmethod
    def create(cls, settings: Optional[Dict[str, Any]] = None) -> "AppContext":
        """Read config, build the auth client, the data gateway and the realtime bridge."""
        settings = settings if settings is not None else load_settings()
        backend = backend_settings(settings)
        auth = SupabaseAuth(backend.url, backend.anon_key)
        live = realtime_enabled(settings)
        gateway = SupabaseGateway(
            backend.url, backend.anon_key,
            token_provider=auth.access_token,
            token_refresher=auth.refresh,
        )
        realtime = RealtimeBridge(backend.url, backend.anon_key, gateway.feed) if live else None
        ctx = cls(settings=settings, backend=backend, auth=auth, gateway=gateway,
                  debounce_ms=debounce_ms(settings), realtime=realtime)
        auth.on_change(ctx._on_session_changed)
        log.info("AppContext initialized for %s (debounce %d ms, realtime %s)",
                 backend.url, ctx.debounce_ms, "on" if live else "off")
        return ctx

    def start_realtime(self) -> None:
        if self.realtime is not None:
            self.realtime.start(self.auth.access_token())

    def stop_realtime(self) -> None:
        if self.realtime is not None:
            self.realtime.stop()

    def _on_session_changed(self, session: Optional[Session]) -> None:
        # refreshed tokens go to the open channel; stopping is the shell's job
        if session is not None and self.realtime is not None and self.realtime.running:
            self.realtime.set_token(session.access_token)
