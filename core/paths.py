from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any, Mapping, Optional

__all__ = [
    "DEFAULT_PREFIX",
    "get_backup_dir",
    "get_logs_dir",
    "get_settings_path",
    "resolve_working_dir",
    "safe_label",
]

DEFAULT_PREFIX = "lxd-backup-"
_ENV_HOME = "LXD_BACKUP_HOME"


def _expand_path(value: str) -> Path:
    expanded = os.path.expandvars(os.path.expanduser(value))
    return Path(expanded).resolve()


def _ensure_writable_dir(path: Path) -> bool:
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError:
        return False
    return os.access(path, os.W_OK)


def resolve_working_dir(explicit: Optional[str | os.PathLike[str]] = None) -> Path:
    """Resolve the directory holding settings and logs, creating it if required."""

    candidates = []
    if explicit:
        candidates.append(str(explicit))
    env_home = os.environ.get(_ENV_HOME)
    if env_home:
        candidates.append(env_home)
    for value in candidates:
        try:
            candidate = _expand_path(value)
        except (OSError, RuntimeError):
            continue
        if _ensure_writable_dir(candidate):
            return candidate

    fallback = Path.home() / ".lxd-backup"
    fallback.mkdir(parents=True, exist_ok=True)
    return fallback


def get_logs_dir(working_dir: Path) -> Path:
    return working_dir / "logs"


def get_settings_path(working_dir: Path) -> Path:
    return working_dir / "settings.json"


def get_backup_dir(working_dir: Path, settings: Optional[Mapping[str, Any]] = None) -> Path:
    """Return the archive output directory configured for *working_dir*."""

    backup = (settings or {}).get("backup")
    if isinstance(backup, Mapping):
        target = backup.get("target_dir")
        if isinstance(target, str) and target.strip():
            return _expand_path(target)
    return working_dir / "backups"


_SAFE_LABEL_PATTERN = re.compile(r"[^A-Za-z0-9_.,-]+")


def safe_label(label: str) -> str:
    """Return a filesystem-safe label used in archive and sidecar names."""

    cleaned = _SAFE_LABEL_PATTERN.sub("_", label.strip()).strip(".")
    return cleaned or "default"
