"""Content fingerprints for the regular files inside an export archive."""
from __future__ import annotations

import hashlib
import tarfile
from typing import BinaryIO, Optional

from .archive import DECODE_ERRORS, ArchiveSource, iter_members, open_archive, source_label
from .errors import CorruptArchiveError, TruncatedMemberError
from .logs import DeltaLogger
from .types import FingerprintTable

DEFAULT_CHUNK_SIZE = 1024 * 1024
FINGERPRINT_SUFFIX = ".md5sum"


def _new_digest():
    return hashlib.md5(usedforsecurity=False)


def digest_member(
    payload: BinaryIO,
    *,
    name: str,
    size: int,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> str:
    """Hash exactly *size* bytes from *payload* in bounded chunks."""

    digest = _new_digest()
    consumed = 0
    try:
        for chunk in iter(lambda: payload.read(chunk_size), b""):
            digest.update(chunk)
            consumed += len(chunk)
    except tarfile.ReadError as exc:
        raise TruncatedMemberError(name, size, consumed) from exc
    if consumed != size:
        raise TruncatedMemberError(name, size, consumed)
    return digest.hexdigest()


def fingerprint_archive(
    source: ArchiveSource,
    *,
    logger: Optional[DeltaLogger] = None,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> FingerprintTable:
    """Return ``{member path: md5 hex}`` for every regular file in *source*.

    Directories, links and device nodes are skipped without reading their
    payload. The archive is read once, front to back.
    """

    label = source_label(source)
    if logger:
        logger.info("fingerprint_start", source=label)
    table: FingerprintTable = {}
    skipped = 0
    with open_archive(source) as (tar, _compression):
        for member in iter_members(tar, label):
            if not member.isreg():
                skipped += 1
                continue
            payload = tar.extractfile(member)
            if payload is None:  # pragma: no cover - isreg() members always have data
                raise TruncatedMemberError(member.name, member.size, 0)
            try:
                with payload:
                    table[member.name] = digest_member(
                        payload, name=member.name, size=member.size, chunk_size=chunk_size
                    )
            except DECODE_ERRORS as exc:
                raise CorruptArchiveError(label, f"{member.name}: {exc}") from exc
    if logger:
        logger.info("fingerprint_complete", source=label, files=len(table), skipped=skipped)
    return table


__all__ = ["DEFAULT_CHUNK_SIZE", "FINGERPRINT_SUFFIX", "digest_member", "fingerprint_archive"]
