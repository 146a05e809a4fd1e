"""Command line entry point for LXD delta backups."""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from containers.filters import parse_names, select
from containers.lxc import LxcRuntime
from containers.preflight import hint_for, missing_tools
from containers.runtime import ContainerRuntime
from core.logging_utils import configure_logging
from core.paths import resolve_working_dir
from core.settings import load_settings
from delta.api import DeltaBackupService
from delta.errors import DeltaError
from delta.logs import DeltaLogger

LOGGER = logging.getLogger("lxdbackup.cli")


def _parse_args(argv: List[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Primitive delta backup service for LXD containers.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose printing.")
    parser.add_argument("-b", "--backup-dir", default=None, help="Backup output directory.")
    parser.add_argument(
        "--working-dir",
        default=None,
        help="Directory holding settings.json and logs (default: $LXD_BACKUP_HOME or ~/.lxd-backup).",
    )
    parser.add_argument(
        "-ec", "--exclude-containers", default="", help="Containers to exclude from backup. Comma separated."
    )
    parser.add_argument(
        "-ic", "--include-containers", default="", help="Containers to include in backup. Comma separated."
    )
    parser.add_argument("-eh", "--exclude-hosts", default="", help="Hosts to exclude from backup. Comma separated.")
    parser.add_argument("-ih", "--include-hosts", default="", help="Hosts to include in backup. Comma separated.")
    parser.add_argument("--skip-preflight", action="store_true", help=argparse.SUPPRESS)
    args = parser.parse_args(argv)
    if args.exclude_containers and args.include_containers:
        parser.error("You can only include or exclude containers. Not include and exclude.")
    if args.exclude_hosts and args.include_hosts:
        parser.error("You can only include or exclude hosts. Not include and exclude.")
    return args


def _names(cli_value: str, configured: object) -> set:
    names = parse_names(cli_value)
    if not names and isinstance(configured, list):
        names = {str(item) for item in configured if str(item).strip()}
    return names


def main(argv: Optional[List[str]] = None, *, runtime: Optional[ContainerRuntime] = None) -> int:
    args = _parse_args(list(sys.argv[1:] if argv is None else argv))
    working_dir = resolve_working_dir(args.working_dir)
    settings = load_settings(working_dir)
    verbose = bool(args.verbose or settings["logging"].get("verbose"))
    configure_logging(working_dir, verbose=verbose)

    runtime_settings = settings["runtime"]
    if runtime is None:
        if not args.skip_preflight:
            missing = missing_tools()
            if missing:
                for tool in missing:
                    print(hint_for(tool), file=sys.stderr)
                return 1
        runtime = LxcRuntime(
            binary=str(runtime_settings.get("binary") or "lxc"),
            timeout_s=float(runtime_settings.get("timeout_s") or 3600),
            export_compression=str(runtime_settings.get("export_compression") or "zstd"),
        )

    filters = settings["filters"]
    try:
        containers = select(
            runtime.list(),
            include_containers=_names(args.include_containers, filters.get("include_containers")),
            exclude_containers=_names(args.exclude_containers, filters.get("exclude_containers")),
            include_hosts=_names(args.include_hosts, filters.get("include_hosts")),
            exclude_hosts=_names(args.exclude_hosts, filters.get("exclude_hosts")),
        )
    except (DeltaError, ValueError) as exc:
        LOGGER.error("Failed to list containers: %s", exc)
        return 1

    try:
        service = DeltaBackupService(
            working_dir=working_dir,
            backup_dir=Path(args.backup_dir) if args.backup_dir else None,
            settings=settings,
            logger=DeltaLogger(working_dir),
        )
    except ValueError as exc:
        LOGGER.error("Invalid settings: %s", exc)
        return 1
    summary = service.run(runtime, containers)
    for outcome in summary.outcomes:
        if outcome.ok:
            LOGGER.info("Backup of %s done: %s", outcome.entity, outcome.message)
        else:
            detail = "; ".join(f"{key}: {error}" for key, error in sorted(outcome.bucket_errors.items()))
            LOGGER.error("Backup of %s failed: %s", outcome.entity, detail or outcome.message)
    return 0 if summary.ok else 1


if __name__ == "__main__":  # pragma: no cover - CLI entry
    raise SystemExit(main())
