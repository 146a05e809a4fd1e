"""Shared fixtures building small container exports for the delta tests."""
from __future__ import annotations

import gzip
import io
import tarfile
from pathlib import Path
from typing import Dict, Iterable, List, Optional

import pytest
import zstandard as zstd

from containers.runtime import STATE_RUNNING, ContainerInfo


def write_archive(
    path: Path,
    files: Dict[str, bytes],
    *,
    compression: str = "zstd",
    directories: Iterable[str] = (),
    symlinks: Optional[Dict[str, str]] = None,
) -> Path:
    """Write a tar archive holding *files* (path -> payload) to *path*."""

    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w", format=tarfile.PAX_FORMAT) as tar:
        for name in directories:
            info = tarfile.TarInfo(name)
            info.type = tarfile.DIRTYPE
            info.mode = 0o755
            tar.addfile(info)
        for name, target in (symlinks or {}).items():
            info = tarfile.TarInfo(name)
            info.type = tarfile.SYMTYPE
            info.linkname = target
            tar.addfile(info)
        for name, payload in files.items():
            info = tarfile.TarInfo(name)
            info.size = len(payload)
            info.mode = 0o644
            info.mtime = 1700000000
            tar.addfile(info, io.BytesIO(payload))
    raw = buffer.getvalue()
    if compression == "zstd":
        raw = zstd.ZstdCompressor(level=3).compress(raw)
    elif compression == "gzip":
        raw = gzip.compress(raw, mtime=0)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(raw)
    return path


def read_archive(path: Path) -> Dict[str, bytes]:
    """Return ``{name: payload}`` for the regular members of *path*."""

    from delta.archive import open_archive

    members: Dict[str, bytes] = {}
    with open_archive(path) as (tar, _compression):
        for member in tar:
            if member.isreg():
                handle = tar.extractfile(member)
                assert handle is not None
                members[member.name] = handle.read()
    return members


class FakeRuntime:
    """In-memory container manager; exports write archives of ``files``."""

    def __init__(self, containers: List[ContainerInfo], files: Dict[str, Dict[str, bytes]]) -> None:
        self.containers = containers
        self.files = files
        self.calls: List[tuple] = []
        self.fail_export: set = set()
        self.destinations: List[Path] = []
        self.compression = "zstd"

    def list(self) -> List[ContainerInfo]:
        self.calls.append(("list",))
        return list(self.containers)

    def stop(self, name: str) -> None:
        self.calls.append(("stop", name))

    def start(self, name: str) -> None:
        self.calls.append(("start", name))

    def export(self, name: str, destination: Path) -> None:
        from delta.errors import RuntimeCommandError

        self.calls.append(("export", name))
        self.destinations.append(Path(destination))
        if name in self.fail_export:
            raise RuntimeCommandError(f"lxc export {name} failed: instance busy")
        write_archive(Path(destination), self.files[name], compression=self.compression)


@pytest.fixture
def make_archive(tmp_path):
    def _make(name: str, files: Dict[str, bytes], **kwargs) -> Path:
        return write_archive(tmp_path / name, files, **kwargs)

    return _make


@pytest.fixture
def fake_runtime():
    def _make(files_by_name: Dict[str, Dict[str, bytes]], *, state: str = STATE_RUNNING) -> FakeRuntime:
        containers = [
            ContainerInfo(name=name, state=state, host="node1", profile_name="default", profile="config: {}\n")
            for name in files_by_name
        ]
        return FakeRuntime(containers, files_by_name)

    return _make
