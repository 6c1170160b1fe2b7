# Rev 0.2.0
from __future__ import annotations

import requests


def extract_error(response: requests.Response) -> str:
    """Best human-readable message from a Supabase (PostgREST / GoTrue) error body."""
    try:
        body = response.json()
        if isinstance(body, dict):
            if isinstance(body.get("error"), dict):
                msg = body["error"].get("message")
                if msg:
                    return f"HTTP {response.status_code}: {msg}"
            msg = body.get("message") or body.get("msg") or body.get("error_description") or body.get("error")
            if msg:
                return f"HTTP {response.status_code}: {msg}"
    except ValueError:
        pass
    text = (response.text or "").strip()
    if text:
        return f"HTTP {response.status_code}: {text[:300]}"
    return f"HTTP {response.status_code}: request failed"
