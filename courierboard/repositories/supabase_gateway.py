# Rev 0.4.0
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

import requests

from courierboard.models.entities import Owner, Task, TaskNote, TaskStatus, Week
from courierboard.models.types import ChangeKind, TableName
from courierboard.repositories.change_feed import ChangeCallback, ChangeEvent, ChangeFeed, Subscription
from courierboard.repositories.errors import GatewayError
from courierboard.repositories.gateway import RemoteGateway
from courierboard.repositories.rows import (
    NOTE_COLUMNS, TASK_COLUMNS, WEEK_COLUMNS, parse_note, parse_rows, parse_task, parse_week,
)
from courierboard.utils.http import extract_error

log = logging.getLogger(__name__)


class SupabaseGateway(RemoteGateway):
    """
    PostgREST client for weeks / tasks / task_notes.
    Successful writes are echoed into the change feed right away; pushes
    from other clients reach the same feed through RealtimeBridge.
    A 401 asks token_refresher for a fresh token and retries once.
    """

    def __init__(
        self,
        supabase_url: str,
        anon_key: str,
        *,
        token_provider: Optional[Callable[[], Optional[str]]] = None,
        token_refresher: Optional[Callable[[Optional[str]], bool]] = None,
        http: Optional[requests.Session] = None,
        timeout: float = 20,
        feed: Optional[ChangeFeed] = None,
    ):
        self.supabase_url = supabase_url.rstrip("/")
        self.anon_key = anon_key
        self._token_provider = token_provider
        self._token_refresher = token_refresher
        self._http = http or requests.Session()
        self._timeout = timeout
        self.feed = feed or ChangeFeed()

    # -------------------------
    # HTTP plumbing
    # -------------------------
    def _token(self) -> Optional[str]:
        return self._token_provider() if self._token_provider else None

    def _headers(self, token: Optional[str], *, prefer: Optional[str] = None) -> Dict[str, str]:
        headers = {
            "apikey": self.anon_key,
            "Authorization": f"Bearer {token or self.anon_key}",
            "Content-Type": "application/json",
        }
        if prefer:
            headers["Prefer"] = prefer
        return headers

    def _send(self, method: str, url: str, token: Optional[str], *, params, json, prefer) -> requests.Response:
        try:
            return self._http.request(
                method, url, headers=self._headers(token, prefer=prefer), params=params, json=json,
                timeout=self._timeout,
            )
        except requests.RequestException as exc:
            raise GatewayError(f"{method} {url.rsplit('/', 1)[-1]}: {exc}") from exc

    def _request(self, method: str, table: TableName, *, params: Optional[Dict[str, str]] = None,
                 json: Any = None, prefer: Optional[str] = None) -> Any:
        url = f"{self.supabase_url}/rest/v1/{table}"
        token = self._token()
        response = self._send(method, url, token, params=params, json=json, prefer=prefer)
        if response.status_code == 401 and token and self._token_refresher is not None:
            if self._token_refresher(token):
                log.info("Access token refreshed; retrying %s %s", method, table)
                response = self._send(method, url, self._token(), params=params, json=json, prefer=prefer)
        if response.status_code >= 300:
            raise GatewayError(extract_error(response), status=response.status_code)
        if response.status_code == 204 or not (response.content or b"").strip():
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise GatewayError(f"{method} {table}: response is not JSON") from exc

    def _echo(self, table: TableName, kind: ChangeKind, row: Optional[Dict[str, Any]]) -> None:
        if row:
            self.feed.publish(ChangeEvent(table=table, kind=kind, new=dict(row)))

    @staticmethod
    def _first(body: Any) -> Optional[Dict[str, Any]]:
        if isinstance(body, list) and body and isinstance(body[0], dict):
            return body[0]
        if isinstance(body, dict):
            return body
        return None

    # -------------------------
    # Reads
    # -------------------------
    def list_weeks(self) -> List[Week]:
        body = self._request("GET", "weeks", params={"select": WEEK_COLUMNS, "order": "week_number.asc"})
        return parse_rows(body, parse_week)

    def list_tasks(self, week_number: int) -> List[Task]:
        params = {
            "select": TASK_COLUMNS,
            "week_number": f"eq.{int(week_number)}",
            "order": "created_at.desc",
        }
        return parse_rows(self._request("GET", "tasks", params=params), parse_task)

    def list_notes(self, task_ids: Iterable[str]) -> List[TaskNote]:
        ids = [str(t) for t in task_ids]
        if not ids:
            return []
        params = {"select": NOTE_COLUMNS, "task_id": "in.(" + ",".join(ids) + ")"}
        return parse_rows(self._request("GET", "task_notes", params=params), parse_note)

    # -------------------------
    # Writes
    # -------------------------
    def insert_task(self, *, week_number: int, owner: Owner, description: str,
                    status: TaskStatus = TaskStatus.PENDING) -> Optional[Task]:
        payload = {
            "week_number": int(week_number),
            "owner": Owner(owner).value,
            "description": description,
            "status": TaskStatus(status).value,
        }
        row = self._first(self._request("POST", "tasks", json=payload, prefer="return=representation"))
        log.info("Inserted task for week %s (%s)", week_number, payload["owner"])
        self._echo("tasks", "INSERT", row)
        return parse_task(row) if row else None

    def update_task_status(self, task_id: str, status: TaskStatus) -> None:
        body = self._request(
            "PATCH", "tasks",
            params={"id": f"eq.{task_id}"},
            json={"status": TaskStatus(status).value},
            prefer="return=representation",
        )
        self._echo("tasks", "UPDATE", self._first(body))

    def upsert_note(self, task_id: str, owner: Owner, note: str) -> Optional[TaskNote]:
        payload = {"task_id": task_id, "owner": Owner(owner).value, "note": note}
        body = self._request(
            "POST", "task_notes",
            params={"on_conflict": "task_id,owner"},
            json=payload,
            prefer="resolution=merge-duplicates,return=representation",
        )
        row = self._first(body)
        self._echo("task_notes", "UPDATE", row)
        return parse_note(row) if row else None

    # -------------------------
    # Change feed
    # -------------------------
    def subscribe(self, table: TableName, callback: ChangeCallback, *,
                  scope: Optional[Tuple[str, Any]] = None) -> Subscription:
        return self.feed.subscribe(table, callback, scope=scope)
