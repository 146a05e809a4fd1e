"""Verify delta archives against the diff they were built from."""
from __future__ import annotations

from pathlib import Path
from typing import Dict, Mapping, Optional

from .build import parse_removed, removed_manifest_path
from .errors import DeltaVerificationError
from .fingerprint import fingerprint_archive
from .logs import DeltaLogger
from .storage import NAME_ERRORS
from .types import DiffResult


def verify_delta(
    archive: Path,
    diff: DiffResult,
    current: Mapping[str, str],
    *,
    logger: Optional[DeltaLogger] = None,
) -> Dict[str, object]:
    archive = Path(archive)
    if not archive.exists():
        raise DeltaVerificationError(f"delta archive not found at {archive}")
    members = fingerprint_archive(archive)
    expected = diff.changed_or_added

    unexpected = sorted(set(members) - expected)
    if unexpected:
        raise DeltaVerificationError(f"unexpected members in {archive.name}: {unexpected[:5]}")
    missing = sorted(expected - set(members))
    if missing:
        raise DeltaVerificationError(f"missing members in {archive.name}: {missing[:5]}")
    for path, digest in members.items():
        if current.get(path) != digest:
            raise DeltaVerificationError(f"checksum mismatch for {path} in {archive.name}")

    manifest = removed_manifest_path(archive)
    if not manifest.exists():
        raise DeltaVerificationError(f"removal manifest missing for {archive.name}")
    with manifest.open("r", encoding="utf-8", errors=NAME_ERRORS, newline="") as handle:
        listed = parse_removed(handle.read())
    if listed != diff.removed:
        raise DeltaVerificationError(f"removal manifest mismatch for {archive.name}")

    if logger:
        logger.event(event="delta_verified", phase="verify", ok=True, archive=str(archive), members=len(members))
    return {
        "archive": str(archive),
        "member_count": len(members),
        "removed_count": len(listed),
    }


__all__ = ["verify_delta"]
