# Rev 0.2.0
from __future__ import annotations

from datetime import datetime
from typing import Optional


def fmt_local(iso: Optional[str]) -> str:
    """ISO-8601 timestamp -> local 'YYYY-MM-DD HH:MM:SS'; '' when missing or unparseable."""
    if not iso:
        return ""
    s = iso.strip()
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(s)
    except ValueError:
        return ""
    if dt.tzinfo is not None:
        dt = dt.astimezone()
    return dt.strftime("%Y-%m-%d %H:%M:%S")
