# Rev 0.4.0

"""Supabase Realtime -> ChangeFeed.

Consumes the hosted postgres_changes channel for `tasks` and `task_notes` and
republishes every row change into a ChangeFeed, where subscribers apply their
own scope. The realtime client is asyncio based, so it gets a private event
loop on a daemon thread; ChangeFeed callbacks therefore run on that thread.
"""
from __future__ import annotations

import asyncio
import logging
import threading
from functools import partial
from typing import Any, Callable, Dict, Mapping, Optional

from realtime import AsyncRealtimeClient

from courierboard.models.types import TableName
from courierboard.repositories.change_feed import ChangeEvent, ChangeFeed

log = logging.getLogger(__name__)

WATCHED_TABLES: tuple[TableName, ...] = ("tasks", "task_notes")
_KINDS = {"INSERT", "UPDATE", "DELETE"}


def change_event_from_payload(table: TableName, payload: Mapping[str, Any]) -> Optional[ChangeEvent]:
    """
    Translate one postgres_changes payload. Accepts the wire shape
    ({"data": {"type", "record", "old_record"}}) and the flattened one
    ({"eventType", "new", "old"}). Unknown kinds yield None.
    """
    data = payload.get("data") if isinstance(payload.get("data"), Mapping) else payload
    kind = str(data.get("type") or data.get("eventType") or "").upper()
    if kind not in _KINDS:
        log.debug("Ignoring realtime payload without a row change: %r", payload)
        return None
    new = data.get("record") or data.get("new") or {}
    old = data.get("old_record") or data.get("old") or {}
    return ChangeEvent(table=table, kind=kind, new=dict(new), old=dict(old))


class RealtimeBridge:
    def __init__(self, supabase_url: str, anon_key: str, feed: ChangeFeed, *,
                 client_factory: Callable[..., Any] = AsyncRealtimeClient,
                 channel_name: str = "courierboard-dashboard"):
        self.url = f"{supabase_url.rstrip('/')}/realtime/v1"
        self.anon_key = anon_key
        self.feed = feed
        self.channel_name = channel_name
        self._client_factory = client_factory
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None
        self._client: Any = None
        self.connected = threading.Event()

    @property
    def running(self) -> bool:
        return self._thread is not None

    # ---- lifecycle
    def start(self, access_token: Optional[str] = None) -> None:
        if self._thread is not None:
            self.set_token(access_token)
            return
        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._run_loop, name="realtime", daemon=True)
        self._thread.start()
        asyncio.run_coroutine_threadsafe(self._connect(access_token), self._loop)

    def stop(self, timeout: float = 5.0) -> None:
        if self._thread is None or self._loop is None:
            return
        future = asyncio.run_coroutine_threadsafe(self._disconnect(), self._loop)
        try:
            future.result(timeout)
        except Exception as exc:  # best effort: the loop goes away regardless
            log.warning("Realtime disconnect failed: %s", exc)
        self._loop.call_soon_threadsafe(self._loop.stop)
        self._thread.join(timeout)
        self._loop.close()
        self._loop = None
        self._thread = None
        self.connected.clear()
        log.info("Realtime bridge stopped")

    def set_token(self, access_token: Optional[str]) -> None:
        """Hand a refreshed user token to the open connection."""
        if self._loop is None or not access_token:
            return
        asyncio.run_coroutine_threadsafe(self._set_auth(access_token), self._loop)

    # ---- loop thread
    def _run_loop(self) -> None:
        asyncio.set_event_loop(self._loop)
        self._loop.run_forever()

    async def _connect(self, access_token: Optional[str]) -> None:
        try:
            client = self._client_factory(self.url, self.anon_key)
            await client.connect()
            if access_token:
                await client.set_auth(access_token)
            channel = client.channel(self.channel_name)
            for table in WATCHED_TABLES:
                channel.on_postgres_changes("*", schema="public", table=table,
                                            callback=partial(self._on_payload, table))
            await channel.subscribe()
        except Exception:
            log.exception("Realtime connection to %s failed; changes from other clients will not arrive", self.url)
            return
        self._client = client
        self.connected.set()
        log.info("Realtime subscribed to %s", ", ".join(WATCHED_TABLES))

    async def _set_auth(self, access_token: str) -> None:
        if self._client is not None:
            await self._client.set_auth(access_token)

    async def _disconnect(self) -> None:
        client, self._client = self._client, None
        if client is not None:
            await client.close()

    def _on_payload(self, table: TableName, payload: Dict[str, Any]) -> None:
        event = change_event_from_payload(table, payload)
        if event is not None:
            self.feed.publish(event)
