"""Container runtime adapters used by the backup run loop."""
from __future__ import annotations

from .lxc import LxcRuntime
from .runtime import ContainerInfo, ContainerRuntime

__all__ = ["ContainerInfo", "ContainerRuntime", "LxcRuntime"]
