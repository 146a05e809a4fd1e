"""Check that the external tools a backup run needs are installed."""
from __future__ import annotations

import shutil
from typing import Callable, List, Optional, Sequence

REQUIRED_TOOLS = ("lxc", "zstd")

_HINTS = {
    "lxc": "The lxc client is missing.",
    "zstd": "You have to install zstd to export containers with zstd compression.",
}


def missing_tools(
    tools: Sequence[str] = REQUIRED_TOOLS,
    *,
    which: Callable[[str], Optional[str]] = shutil.which,
) -> List[str]:
    """Return the subset of *tools* not found on PATH."""

    return [tool for tool in tools if which(tool) is None]


def hint_for(tool: str) -> str:
    return _HINTS.get(tool, f"{tool} is not on PATH.")


__all__ = ["REQUIRED_TOOLS", "hint_for", "missing_tools"]
