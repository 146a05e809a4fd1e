"""Capability interface over the container manager."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import List, Protocol

STATE_RUNNING = "RUNNING"
STATE_STOPPED = "STOPPED"


@dataclass(slots=True)
class ContainerInfo:
    """One backed-up entity as reported by the runtime."""

    name: str
    state: str
    host: str = ""
    profile_name: str = "default"
    profile: str = ""

    @property
    def running(self) -> bool:
        return self.state == STATE_RUNNING


class ContainerRuntime(Protocol):
    def list(self) -> List[ContainerInfo]:
        ...

    def stop(self, name: str) -> None:
        ...

    def start(self, name: str) -> None:
        ...

    def export(self, name: str, destination: Path) -> None:
        ...


__all__ = ["STATE_RUNNING", "STATE_STOPPED", "ContainerInfo", "ContainerRuntime"]
