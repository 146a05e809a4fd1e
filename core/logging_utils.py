from __future__ import annotations

import json
import logging
import sys
import time
from pathlib import Path
from typing import Any, Dict, Optional, TextIO

from .paths import get_logs_dir

ROOT_LOGGER = "lxdbackup"
_CONSOLE_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class JsonLogFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:  # noqa: D401
        payload: Dict[str, Any] = {
            "ts": time.time(),
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


def configure_logging(
    working_dir: Path,
    *,
    verbose: bool = False,
    stream: Optional[TextIO] = None,
) -> logging.Logger:
    """Attach console and JSONL file handlers to the ``lxdbackup`` logger.

    Verbosity is an explicit argument; calling again replaces the handlers
    installed by a previous call.
    """

    logs_dir = get_logs_dir(Path(working_dir))
    logs_dir.mkdir(parents=True, exist_ok=True)
    log_path = logs_dir / "lxdbackup.log.jsonl"

    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    for handler in list(logger.handlers):
        if getattr(handler, "_lxdbackup_owned", False):
            logger.removeHandler(handler)
            handler.close()

    console = logging.StreamHandler(stream or sys.stderr)
    console.setLevel(logging.INFO if verbose else logging.WARNING)
    console.setFormatter(logging.Formatter(_CONSOLE_FORMAT))
    console._lxdbackup_owned = True  # type: ignore[attr-defined]
    logger.addHandler(console)

    file_handler = logging.FileHandler(log_path, encoding="utf-8")
    file_handler.setLevel(logging.INFO)
    file_handler.setFormatter(JsonLogFormatter())
    file_handler._lxdbackup_owned = True  # type: ignore[attr-defined]
    logger.addHandler(file_handler)

    logger.propagate = False
    return logger
