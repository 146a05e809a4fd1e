"""Filesystem helpers for publishing backup artifacts atomically."""
from __future__ import annotations

import os
from pathlib import Path
from typing import Iterable, List

from .errors import ArtifactIOError

# Member names that are not valid UTF-8 arrive from tarfile surrogate-escaped.
NAME_ERRORS = "surrogateescape"


def sibling(path: Path, suffix: str) -> Path:
    """Return ``<path><suffix>`` next to *path*."""

    return path.with_name(path.name + suffix)


def partial_path(path: Path) -> Path:
    return sibling(path, f".partial-{os.getpid()}")


def ensure_dir(path: Path) -> None:
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise ArtifactIOError(path, "mkdir", exc) from exc


def ensure_parent(path: Path) -> None:
    ensure_dir(path.parent)


def publish(temporary: Path, destination: Path) -> None:
    try:
        os.replace(temporary, destination)
    except OSError as exc:
        raise ArtifactIOError(destination, "rename", exc) from exc


def write_text_atomic(path: Path, text: str, *, errors: str = "strict") -> None:
    """Replace *path* with *text*; readers never observe a partial file.

    Pass ``errors="surrogateescape"`` for text carrying undecodable file
    names so they are written back as their original bytes.
    """

    ensure_parent(path)
    temporary = partial_path(path)
    try:
        with open(temporary, "w", encoding="utf-8", errors=errors, newline="") as handle:
            handle.write(text)
    except (OSError, UnicodeError) as exc:
        discard([temporary])
        raise ArtifactIOError(path, "write", exc) from exc
    try:
        publish(temporary, path)
    except ArtifactIOError:
        discard([temporary])
        raise


def discard(paths: Iterable[Path]) -> List[Path]:
    """Delete *paths* if present and return the ones actually removed."""

    removed: List[Path] = []
    for path in paths:
        try:
            path.unlink()
        except FileNotFoundError:
            continue
        except OSError as exc:
            raise ArtifactIOError(path, "delete", exc) from exc
        removed.append(path)
    return removed


__all__ = [
    "NAME_ERRORS",
    "discard",
    "ensure_dir",
    "ensure_parent",
    "partial_path",
    "publish",
    "sibling",
    "write_text_atomic",
]
