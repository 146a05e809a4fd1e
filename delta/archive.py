"""Streaming access to compressed tar exports."""
from __future__ import annotations

import gzip
import tarfile
import zlib
from contextlib import contextmanager
from pathlib import Path
from typing import BinaryIO, Iterator, Tuple, Union

import zstandard as zstd

from .errors import ArtifactIOError, CorruptArchiveError

ArchiveSource = Union[str, Path, BinaryIO]

COMPRESSION_ZSTD = "zstd"
COMPRESSION_GZIP = "gzip"
COMPRESSION_NONE = "none"

ARCHIVE_EXTENSIONS = {
    COMPRESSION_ZSTD: ".tar.zst",
    COMPRESSION_GZIP: ".tar.gz",
    COMPRESSION_NONE: ".tar",
}


def archive_extension(compression: str) -> str:
    """File extension for archives exported with *compression*."""

    try:
        return ARCHIVE_EXTENSIONS[compression]
    except KeyError:
        supported = ", ".join(sorted(ARCHIVE_EXTENSIONS))
        raise ValueError(f"unsupported export compression {compression!r} (expected one of: {supported})") from None


_ZSTD_MAGIC = b"\x28\xb5\x2f\xfd"
_GZIP_MAGIC = b"\x1f\x8b"

# Anything the decompressors or the tar parser raise for bad input.
DECODE_ERRORS = (tarfile.TarError, zstd.ZstdError, zlib.error, gzip.BadGzipFile, EOFError)


def source_label(source: ArchiveSource) -> str:
    if isinstance(source, (str, Path)):
        return str(source)
    return str(getattr(source, "name", None) or repr(source))


def _sniff(handle: BinaryIO, label: str) -> bytes:
    peek = getattr(handle, "peek", None)
    if peek is not None:
        return peek(len(_ZSTD_MAGIC))[: len(_ZSTD_MAGIC)]
    if handle.seekable():
        position = handle.tell()
        head = handle.read(len(_ZSTD_MAGIC))
        handle.seek(position)
        return head
    raise CorruptArchiveError(label, "stream is neither peekable nor seekable")


def detect_compression(handle: BinaryIO, label: str = "<stream>") -> str:
    """Return the compression scheme of the archive *handle* is positioned at."""

    head = _sniff(handle, label)
    if head.startswith(_ZSTD_MAGIC):
        return COMPRESSION_ZSTD
    if head.startswith(_GZIP_MAGIC):
        return COMPRESSION_GZIP
    return COMPRESSION_NONE


def _decompressed(handle: BinaryIO, compression: str) -> BinaryIO:
    if compression == COMPRESSION_ZSTD:
        return zstd.ZstdDecompressor().stream_reader(handle, read_across_frames=True, closefd=False)
    if compression == COMPRESSION_GZIP:
        return gzip.GzipFile(fileobj=handle, mode="rb")
    return handle


@contextmanager
def _open_handle(source: ArchiveSource, label: str) -> Iterator[BinaryIO]:
    if isinstance(source, (str, Path)):
        try:
            handle = open(source, "rb")
        except OSError as exc:
            raise ArtifactIOError(label, "open", exc) from exc
        with handle:
            yield handle
    else:
        yield source


@contextmanager
def open_archive(source: ArchiveSource) -> Iterator[Tuple[tarfile.TarFile, str]]:
    """Open *source* as a forward-only tar stream.

    Yields the tar reader and the detected compression scheme. The
    underlying file is closed on every exit path when *source* is a path;
    caller supplied streams are left open.
    """

    label = source_label(source)
    with _open_handle(source, label) as handle:
        compression = detect_compression(handle, label)
        stream = _decompressed(handle, compression)
        try:
            try:
                tar = tarfile.open(fileobj=stream, mode="r|")
            except DECODE_ERRORS as exc:
                raise CorruptArchiveError(label, str(exc)) from exc
            with tar:
                yield tar, compression
        finally:
            if stream is not handle:
                stream.close()


def iter_members(tar: tarfile.TarFile, label: str) -> Iterator[tarfile.TarInfo]:
    """Iterate members of *tar*, translating decode failures."""

    iterator = iter(tar)
    while True:
        try:
            member = next(iterator)
        except StopIteration:
            return
        except DECODE_ERRORS as exc:
            raise CorruptArchiveError(label, str(exc)) from exc
        yield member


@contextmanager
def create_archive(destination: Path, compression: str, *, level: int = 3) -> Iterator[tarfile.TarFile]:
    """Create a tar stream at *destination* compressed with *compression*."""

    if compression not in ARCHIVE_EXTENSIONS:
        raise ValueError(f"unsupported compression: {compression}")
    with open(destination, "wb") as raw:
        stream: BinaryIO
        if compression == COMPRESSION_ZSTD:
            stream = zstd.ZstdCompressor(level=level).stream_writer(raw, closefd=False)
        elif compression == COMPRESSION_GZIP:
            stream = gzip.GzipFile(fileobj=raw, mode="wb", compresslevel=min(9, max(1, level)), mtime=0)
        else:
            stream = raw
        try:
            with tarfile.open(fileobj=stream, mode="w|", format=tarfile.PAX_FORMAT) as tar:
                yield tar
        finally:
            if stream is not raw:
                stream.close()


__all__ = [
    "ARCHIVE_EXTENSIONS",
    "COMPRESSION_GZIP",
    "COMPRESSION_NONE",
    "COMPRESSION_ZSTD",
    "DECODE_ERRORS",
    "archive_extension",
    "create_archive",
    "detect_compression",
    "iter_members",
    "open_archive",
    "source_label",
]
