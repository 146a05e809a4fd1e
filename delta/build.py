"""Materialize delta archives holding only changed or added members."""
from __future__ import annotations

import re
import tarfile
from pathlib import Path
from typing import AbstractSet, BinaryIO, Iterable, List, Optional, Set

from core.paths import safe_label

from .archive import DECODE_ERRORS, ArchiveSource, create_archive, iter_members, open_archive, source_label
from .errors import ArtifactIOError, CorruptArchiveError, DeltaError, TruncatedMemberError
from .logs import DeltaLogger
from .storage import NAME_ERRORS, discard, ensure_parent, partial_path, publish, sibling, write_text_atomic
from .types import DeltaBuildResult, DiffResult

REMOVED_SUFFIX = ".removed"
PROFILE_SUFFIX = ".profile"


def removed_manifest_path(archive: Path) -> Path:
    return sibling(Path(archive), REMOVED_SUFFIX)


def profile_path(archive: Path, profile_name: str) -> Path:
    return sibling(Path(archive), f".{safe_label(profile_name)}{PROFILE_SUFFIX}")


def _escape_removed(path: str) -> str:
    return path.replace("\\", "\\\\").replace("\n", "\\n")


_UNESCAPE = re.compile(r"\\([\\n])")


def render_removed(paths: Iterable[str]) -> str:
    """One sorted path per line; backslash and newline are escaped as \\\\ and \\n."""

    return "".join(f"{_escape_removed(path)}\n" for path in sorted(paths))


def parse_removed(text: str) -> Set[str]:
    lines = text.split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    return {_UNESCAPE.sub(lambda match: "\n" if match.group(1) == "n" else "\\", line) for line in lines}


def write_profile(archive: Path, profile_name: str, profile_text: str) -> Path:
    """Write or overwrite the profile sidecar of *archive*."""

    target = profile_path(archive, profile_name)
    write_text_atomic(target, profile_text)
    return target


class _CountingReader:
    def __init__(self, raw: BinaryIO) -> None:
        self._raw = raw
        self.count = 0

    def read(self, size: int = -1) -> bytes:
        data = self._raw.read(size)
        self.count += len(data)
        return data


def _copy_member(
    tar_in: tarfile.TarFile,
    member: tarfile.TarInfo,
    tar_out: tarfile.TarFile,
    *,
    destination: Path,
) -> None:
    if not member.isreg():
        tar_out.addfile(member)
        return
    payload = tar_in.extractfile(member)
    if payload is None:  # pragma: no cover - isreg() members always have data
        raise TruncatedMemberError(member.name, member.size, 0)
    counter = _CountingReader(payload)
    with payload:
        try:
            tar_out.addfile(member, counter)
        except tarfile.ReadError as exc:
            raise TruncatedMemberError(member.name, member.size, counter.count) from exc
        except OSError as exc:
            if counter.count < member.size:
                raise TruncatedMemberError(member.name, member.size, counter.count) from exc
            raise ArtifactIOError(destination, "write", exc) from exc


def _write_delta_archive(
    source: ArchiveSource,
    wanted: AbstractSet[str],
    temporary: Path,
    *,
    destination: Path,
    level: int,
) -> int:
    label = source_label(source)
    written = 0
    with open_archive(source) as (tar_in, compression):
        try:
            with create_archive(temporary, compression, level=level) as tar_out:
                for member in iter_members(tar_in, label):
                    if member.name not in wanted:
                        continue
                    try:
                        _copy_member(tar_in, member, tar_out, destination=destination)
                    except DECODE_ERRORS as exc:
                        raise CorruptArchiveError(label, f"{member.name}: {exc}") from exc
                    written += 1
        except DeltaError:
            raise
        except OSError as exc:
            raise ArtifactIOError(destination, "write", exc) from exc
    return written


def build_delta(
    source: ArchiveSource,
    diff: DiffResult,
    destination: Path,
    *,
    profile_name: str,
    profile_text: str,
    logger: Optional[DeltaLogger] = None,
    compression_level: int = 3,
) -> DeltaBuildResult:
    """Write the delta archive for *diff* at *destination*.

    An existing *destination* is left untouched. Otherwise *source* is
    streamed once more and every member in ``diff.changed_or_added`` is
    copied unmodified into a new archive using the source's compression.
    The removal manifest and profile sidecar are written next to it. The
    archive only appears under its final name once everything succeeded.
    """

    destination = Path(destination)
    if destination.exists():
        if logger:
            logger.info("delta_exists", destination=str(destination))
        return DeltaBuildResult(destination=destination, status="exists")

    ensure_parent(destination)
    if logger:
        logger.info(
            "delta_start",
            destination=str(destination),
            members=len(diff.changed_or_added),
            removed=len(diff.removed),
        )
    temporary = partial_path(destination)
    written_siblings: List[Path] = []
    try:
        members = _write_delta_archive(
            source,
            diff.changed_or_added,
            temporary,
            destination=destination,
            level=compression_level,
        )
        manifest = removed_manifest_path(destination)
        write_text_atomic(manifest, render_removed(diff.removed), errors=NAME_ERRORS)
        written_siblings.append(manifest)
        written_siblings.append(write_profile(destination, profile_name, profile_text))
        publish(temporary, destination)
    except Exception as exc:
        if logger:
            logger.error("delta_failed", destination=str(destination), error=str(exc))
        discard([temporary, *written_siblings])
        raise

    size = destination.stat().st_size
    if logger:
        logger.event(
            event="delta_built",
            phase="build",
            ok=True,
            destination=str(destination),
            members=members,
            size=size,
        )
    return DeltaBuildResult(
        destination=destination,
        status="built",
        members_written=members,
        removed_listed=len(diff.removed),
        bytes_written=size,
    )


__all__ = [
    "PROFILE_SUFFIX",
    "REMOVED_SUFFIX",
    "build_delta",
    "parse_removed",
    "profile_path",
    "removed_manifest_path",
    "render_removed",
    "write_profile",
]
