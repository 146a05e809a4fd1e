"""JSONL event log for delta backup runs."""
from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from threading import Lock
from typing import Any, Dict, Optional

LOGGER = logging.getLogger("lxdbackup.delta")

_OK_LEVELS = {True: logging.INFO, False: logging.ERROR}


class DeltaLogger:
    """Append one JSON object per backup event to ``logs/backup.jsonl``.

    Records are mirrored to the ``lxdbackup.delta`` stdlib logger so the
    console shows them when verbose logging is configured. Loggers created
    with :meth:`bind` share the file and lock of their parent and stamp
    their context fields onto every record.
    """

    def __init__(
        self,
        working_dir: Path,
        *,
        context: Optional[Dict[str, Any]] = None,
        _lock: Optional[Lock] = None,
    ) -> None:
        self._working_dir = Path(working_dir)
        self._path = self._working_dir / "logs" / "backup.jsonl"
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._context = dict(context or {})
        self._lock = _lock or Lock()

    @property
    def log_path(self) -> Path:
        return self._path

    def bind(self, **context: Any) -> "DeltaLogger":
        return DeltaLogger(self._working_dir, context={**self._context, **context}, _lock=self._lock)

    # ------------------------------------------------------------------
    def _emit(self, record: Dict[str, Any], level: int) -> None:
        record = {**self._context, **record}
        record.setdefault("ts", datetime.now(timezone.utc).isoformat())
        line = json.dumps(record, sort_keys=True, default=str)
        with self._lock, self._path.open("a", encoding="utf-8") as handle:
            handle.write(f"{line}\n")
        LOGGER.log(level, "%s", line)

    def event(self, *, event: str, phase: str, ok: bool, **extra: Any) -> None:
        ok = bool(ok)
        self._emit({**extra, "event": event, "phase": phase, "ok": ok}, _OK_LEVELS[ok])

    def info(self, event: str, **extra: Any) -> None:
        self._emit({**extra, "event": event, "ok": True}, logging.INFO)

    def warning(self, event: str, **extra: Any) -> None:
        self._emit({**extra, "event": event, "ok": False}, logging.WARNING)

    def error(self, event: str, **extra: Any) -> None:
        self._emit({**extra, "event": event, "ok": False}, logging.ERROR)


__all__ = ["DeltaLogger"]
