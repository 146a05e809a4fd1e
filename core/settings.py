from __future__ import annotations

import json
import time
from pathlib import Path
from typing import Any, Dict

from .paths import DEFAULT_PREFIX, get_logs_dir, get_settings_path
from .settings_schema import SETTINGS_VALIDATOR

__all__ = [
    "DEFAULT_SETTINGS",
    "SETTINGS_VERSION",
    "load_settings",
    "merge_defaults",
    "save_settings",
]

SETTINGS_VERSION = 1


DEFAULT_SETTINGS: Dict[str, Any] = {
    "version": SETTINGS_VERSION,
    "backup": {
        "target_dir": None,
        "prefix": DEFAULT_PREFIX,
        "compression_level": 3,
        "rollover_weekday": 0,
        "keep_export": False,
        "chunk_size": 1024 * 1024,
        "verify_deltas": False,
    },
    "runtime": {
        "binary": "lxc",
        "timeout_s": 3600,
        "export_compression": "zstd",
    },
    "filters": {
        "include_containers": [],
        "exclude_containers": [],
        "include_hosts": [],
        "exclude_hosts": [],
    },
    "logging": {
        "verbose": False,
    },
}


def merge_defaults(data: Dict[str, Any]) -> Dict[str, Any]:
    def _merge(default: Dict[str, Any], payload: Dict[str, Any]) -> Dict[str, Any]:
        result: Dict[str, Any] = {}
        for key, value in default.items():
            current = payload.get(key)
            if isinstance(value, dict):
                result[key] = _merge(value, current if isinstance(current, dict) else {})
            elif isinstance(value, list):
                result[key] = list(current) if isinstance(current, list) else list(value)
            else:
                result[key] = payload.get(key, value)
        for key, value in payload.items():
            result.setdefault(key, value)
        return result

    return _merge(DEFAULT_SETTINGS, data or {})


def _apply_migrations(settings: Dict[str, Any]) -> Dict[str, Any]:
    try:
        version = int(settings.get("version"))
    except (TypeError, ValueError):
        version = 0
    if version < SETTINGS_VERSION:
        settings["version"] = SETTINGS_VERSION
    return settings


def _log_unknown_keys(settings: Dict[str, Any], working_dir: Path) -> None:
    unknown = list(SETTINGS_VALIDATOR.unknown_keys(settings))
    if not unknown:
        return
    logs_dir = get_logs_dir(working_dir)
    logs_dir.mkdir(parents=True, exist_ok=True)
    payload = {
        "ts": time.time(),
        "unknown": unknown,
    }
    target = logs_dir / "settings_unknown.json"
    try:
        with open(target, "w", encoding="utf-8") as handle:
            json.dump(payload, handle, ensure_ascii=False, indent=2)
    except OSError:
        return


def load_settings(working_dir: Path) -> Dict[str, Any]:
    """Return ``settings.json`` from *working_dir* merged over the defaults.

    A missing or unreadable file yields the defaults.
    """

    data: Dict[str, Any] = {}
    try:
        with open(get_settings_path(working_dir), "r", encoding="utf-8") as handle:
            loaded = json.load(handle)
    except (OSError, json.JSONDecodeError):
        loaded = None
    if isinstance(loaded, dict):
        data = loaded
    merged = _apply_migrations(merge_defaults(data))
    merged.setdefault("working_dir", str(working_dir))
    _log_unknown_keys(merged, working_dir)
    return merged


def save_settings(settings: Dict[str, Any], working_dir: Path) -> None:
    merged = _apply_migrations(merge_defaults(dict(settings)))
    merged.setdefault("working_dir", str(working_dir))
    path = get_settings_path(working_dir)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as handle:
        json.dump(merged, handle, ensure_ascii=False, indent=2)
