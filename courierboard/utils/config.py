# Rev 0.3.0
# courierboard/utils/config.py
from __future__ import annotations

import copy
import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from .paths import config_dir

log = logging.getLogger(__name__)

ENV_URL = "COURIERBOARD_SUPABASE_URL"
ENV_KEY = "COURIERBOARD_SUPABASE_ANON_KEY"
ENV_DEBOUNCE = "COURIERBOARD_DEBOUNCE_MS"
ENV_REALTIME = "COURIERBOARD_REALTIME"

_DEFAULTS: Dict[str, Any] = {
    "backend": {
        "url": "",
        "anon_key": "",
    },
    "autosave": {
        "debounce_ms": 1500,
    },
    "realtime": {
        "enabled": True,
    },
    "main_window": {
        "width": 1280,
        "height": 820,
        "is_maximized": False,
    },
}


class ConfigError(RuntimeError):
    pass


@dataclass(frozen=True)
class BackendSettings:
    url: str
    anon_key: str


def settings_file() -> Path:
    return config_dir() / "settings.json"


def _merge(base: Dict[str, Any], over: Dict[str, Any]) -> Dict[str, Any]:
    out = copy.deepcopy(base)
    for k, v in over.items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = _merge(out[k], v)
        else:
            out[k] = v
    return out


def load_settings(path: Optional[Path] = None) -> Dict[str, Any]:
    path = path or settings_file()
    if path.exists():
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            log.warning("Ignoring unreadable settings file %s: %s", path, exc)
            return copy.deepcopy(_DEFAULTS)
        if isinstance(data, dict):
            return _merge(_DEFAULTS, data)
    return copy.deepcopy(_DEFAULTS)


def save_settings(data: Dict[str, Any], path: Optional[Path] = None) -> None:
    path = path or settings_file()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")


def backend_settings(settings: Optional[Dict[str, Any]] = None) -> BackendSettings:
    """Supabase URL + anon key; environment wins over the settings file."""
    settings = settings if settings is not None else load_settings()
    backend = settings.get("backend") or {}
    url = os.environ.get(ENV_URL) or backend.get("url") or ""
    key = os.environ.get(ENV_KEY) or backend.get("anon_key") or ""
    if not url or not key:
        raise ConfigError(
            f"Backend not configured: set {ENV_URL} and {ENV_KEY} "
            f"or backend.url / backend.anon_key in {settings_file()}"
        )
    return BackendSettings(url=url.rstrip("/"), anon_key=key)


def debounce_ms(settings: Optional[Dict[str, Any]] = None) -> int:
    settings = settings if settings is not None else load_settings()
    raw = os.environ.get(ENV_DEBOUNCE)
    if raw is None:
        raw = (settings.get("autosave") or {}).get("debounce_ms", 1500)
    try:
        value = int(raw)
    except (TypeError, ValueError):
        raise ConfigError(f"Invalid debounce value {raw!r}") from None
    if value < 0:
        raise ConfigError(f"Invalid debounce value {raw!r}")
    return value


def realtime_enabled(settings: Optional[Dict[str, Any]] = None) -> bool:
    settings = settings if settings is not None else load_settings()
    raw = os.environ.get(ENV_REALTIME)
    if raw is not None:
        return raw.strip().lower() not in ("0", "false", "no", "off")
    return bool((settings.get("realtime") or {}).get("enabled", True))
