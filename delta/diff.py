"""Classify paths of a current fingerprint table against a baseline."""
from __future__ import annotations

from typing import Mapping, Set

from .types import DiffResult


def diff_tables(baseline: Mapping[str, str], current: Mapping[str, str]) -> DiffResult:
    """Compare *current* against *baseline*.

    Every path lands in exactly one of changed, added, removed or
    unchanged. Both tables are walked once.
    """

    changed: Set[str] = set()
    removed: Set[str] = set()
    unchanged = 0
    for path, old_digest in baseline.items():
        new_digest = current.get(path)
        if new_digest is None:
            removed.add(path)
        elif new_digest != old_digest:
            changed.add(path)
        else:
            unchanged += 1

    added = {path for path in current if path not in baseline}
    return DiffResult(
        changed=frozenset(changed),
        added=frozenset(added),
        removed=frozenset(removed),
        unchanged_count=unchanged,
    )


__all__ = ["diff_tables"]
