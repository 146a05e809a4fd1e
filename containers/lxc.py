"""Adapter running the ``lxc`` client for container lifecycle operations."""
from __future__ import annotations

import csv
import io
import logging
import subprocess
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from delta.errors import RuntimeCommandError

from .runtime import STATE_RUNNING, STATE_STOPPED, ContainerInfo

LOGGER = logging.getLogger("lxdbackup.containers")

_LIST_COLUMNS = "nsLP"
_KNOWN_STATES = {STATE_RUNNING, STATE_STOPPED}


def _split_profiles(raw: str) -> List[str]:
    names: List[str] = []
    for part in raw.replace("\n", ",").split(","):
        part = part.strip()
        if part and part not in names:
            names.append(part)
    return names


def parse_list_output(text: str) -> List[Dict[str, object]]:
    """Parse ``lxc list -c nsLP -f csv`` output into row dictionaries."""

    rows: List[Dict[str, object]] = []
    for record in csv.reader(io.StringIO(text)):
        if not record:
            continue
        if len(record) < 4:
            raise RuntimeCommandError(f"unexpected lxc list row: {record!r}")
        name, state, host, profiles = (field.strip() for field in record[:4])
        if state not in _KNOWN_STATES:
            raise RuntimeCommandError(f"unknown state for {name} - {state}")
        rows.append({"name": name, "state": state, "host": host, "profiles": _split_profiles(profiles)})
    return rows


class LxcRuntime:
    """Run ``lxc`` subcommands; every failure surfaces as RuntimeCommandError."""

    def __init__(
        self,
        *,
        binary: str = "lxc",
        timeout_s: float = 3600.0,
        export_compression: str = "zstd",
    ) -> None:
        self._binary = binary
        self._timeout = max(1.0, float(timeout_s))
        self._compression = export_compression

    def _run(self, args: Sequence[str], *, timeout: Optional[float] = None) -> str:
        cmd = [self._binary, *args]
        LOGGER.debug("running %s", " ".join(cmd))
        try:
            completed = subprocess.run(
                cmd,
                capture_output=True,
                check=False,
                text=True,
                timeout=timeout or self._timeout,
            )
        except FileNotFoundError as exc:
            raise RuntimeCommandError(f"{self._binary} not found") from exc
        except subprocess.TimeoutExpired as exc:
            raise RuntimeCommandError(f"{' '.join(cmd)} timed out after {exc.timeout}s") from exc
        if completed.returncode != 0:
            detail = completed.stderr.strip() or completed.stdout.strip() or f"exit code {completed.returncode}"
            raise RuntimeCommandError(f"{' '.join(cmd)} failed: {detail}")
        return completed.stdout

    # ------------------------------------------------------------------
    def profile_show(self, profile: str) -> str:
        return self._run(["profile", "show", profile], timeout=60.0)

    def list(self) -> List[ContainerInfo]:
        rows = parse_list_output(self._run(["list", "-c", _LIST_COLUMNS, "-f", "csv"], timeout=120.0))
        shown: Dict[str, str] = {}
        containers: List[ContainerInfo] = []
        for row in rows:
            profiles = list(row["profiles"]) or ["default"]
            texts = []
            for profile in profiles:
                if profile not in shown:
                    shown[profile] = self.profile_show(profile)
                texts.append(shown[profile])
            containers.append(
                ContainerInfo(
                    name=str(row["name"]),
                    state=str(row["state"]),
                    host=str(row["host"]),
                    profile_name=",".join(profiles),
                    profile="".join(texts),
                )
            )
        return containers

    def stop(self, name: str) -> None:
        LOGGER.info("Stopping %s", name)
        self._run(["stop", name])

    def start(self, name: str) -> None:
        LOGGER.info("Restarting %s", name)
        self._run(["start", name])

    def export(self, name: str, destination: Path) -> None:
        LOGGER.info("Exporting %s to %s", name, destination)
        self._run(
            ["export", name, str(destination), "--instance-only", "-q", "--compression", self._compression]
        )
        LOGGER.info("Exported %s", name)


__all__ = ["LxcRuntime", "parse_list_output"]
