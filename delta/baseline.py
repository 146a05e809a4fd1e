"""Persist and reload fingerprint tables next to their archives."""
from __future__ import annotations

import csv
import io
from pathlib import Path

from .errors import ArtifactIOError, MalformedRecordError, MissingBaselineError
from .fingerprint import FINGERPRINT_SUFFIX
from .storage import NAME_ERRORS, sibling, write_text_atomic
from .types import FingerprintTable


def fingerprint_path(archive: Path) -> Path:
    return sibling(Path(archive), FINGERPRINT_SUFFIX)


def render_table(table: FingerprintTable) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    for path in sorted(table):
        writer.writerow((path, table[path]))
    return buffer.getvalue()


def persist_table(table: FingerprintTable, destination: Path) -> Path:
    """Write *table* to *destination* as path-sorted ``path,digest`` records."""

    destination = Path(destination)
    write_text_atomic(destination, render_table(table), errors=NAME_ERRORS)
    return destination


def load_table(source: Path) -> FingerprintTable:
    """Read a table written by :func:`persist_table`."""

    source = Path(source)
    try:
        handle = source.open("r", encoding="utf-8", errors=NAME_ERRORS, newline="")
    except FileNotFoundError as exc:
        raise MissingBaselineError(source) from exc
    except OSError as exc:
        raise ArtifactIOError(source, "open", exc) from exc

    table: FingerprintTable = {}
    with handle:
        reader = csv.reader(handle)
        try:
            for record in reader:
                if len(record) != 2:
                    raise MalformedRecordError(source, reader.line_num, f"expected 2 fields, got {len(record)}")
                path, digest = record
                if path in table:
                    raise MalformedRecordError(source, reader.line_num, f"duplicate path {path!r}")
                table[path] = digest
        except csv.Error as exc:
            raise MalformedRecordError(source, reader.line_num, str(exc)) from exc
    return table


__all__ = ["fingerprint_path", "load_table", "persist_table", "render_table"]
