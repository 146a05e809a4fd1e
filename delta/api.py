"""Public API for delta backup runs."""
from __future__ import annotations

import time
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional

from containers.runtime import ContainerInfo, ContainerRuntime
from core.paths import get_backup_dir, resolve_working_dir, safe_label
from core.settings import merge_defaults

from .archive import COMPRESSION_ZSTD, archive_extension
from .baseline import fingerprint_path, load_table, persist_table
from .build import build_delta, write_profile
from .diff import diff_tables
from .errors import DeltaError
from .fingerprint import fingerprint_archive
from .logs import DeltaLogger
from .retention import RetentionPolicy, evict_buckets, plan_rotation, slot_artifacts
from .storage import discard, ensure_dir, partial_path, publish, write_text_atomic
from .types import EntityOutcome, RetentionBucket, RotationPlan, RunSummary
from .verify import verify_delta


class DeltaBackupService:
    """Coordinate export, fingerprinting, rotation and delta builds per entity."""

    def __init__(
        self,
        *,
        working_dir: Optional[Path] = None,
        backup_dir: Optional[Path] = None,
        settings: Optional[Dict[str, Any]] = None,
        logger: Optional[DeltaLogger] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._working_dir = Path(working_dir or resolve_working_dir())
        self._settings = merge_defaults(dict(settings or {}))
        self._backup_dir = Path(backup_dir) if backup_dir else get_backup_dir(self._working_dir, self._settings)
        self._extension = archive_extension(
            str(self._settings["runtime"].get("export_compression") or COMPRESSION_ZSTD)
        )
        self._logger = logger or DeltaLogger(self._working_dir)
        self._clock = clock or datetime.now

    # ------------------------------------------------------------------
    @property
    def backup_dir(self) -> Path:
        return self._backup_dir

    def _option(self, key: str) -> Any:
        return self._settings["backup"].get(key)

    @property
    def prefix(self) -> str:
        return str(self._option("prefix") or "")

    def _policy(self) -> RetentionPolicy:
        return RetentionPolicy(rollover_weekday=int(self._option("rollover_weekday") or 0) % 7)

    # ------------------------------------------------------------------
    def slot_path(self, entity: str, bucket: RetentionBucket) -> Path:
        return self._backup_dir / bucket.filename(self.prefix, safe_label(entity), self._extension)

    def baseline_path(self, entity: str, now: Optional[datetime] = None) -> Path:
        plan = plan_rotation(now or self._clock(), self._policy())
        return self.slot_path(entity, plan.quarter)

    def status_path(self, entity: str) -> Path:
        return self._backup_dir / f"{self.prefix}{safe_label(entity)}.log"

    def temporary_export_path(self) -> Path:
        return self._backup_dir / f"lxd-temporary-backup-{time.time_ns()}{self._extension}"

    def write_status(self, entity: str, now: datetime, message: str) -> Path:
        target = self.status_path(entity)
        write_text_atomic(target, f"{now.isoformat()}: {message}\n")
        return target

    # ------------------------------------------------------------------
    def process_export(
        self,
        entity: str,
        export: Path,
        *,
        profile_name: str,
        profile_text: str,
        now: Optional[datetime] = None,
    ) -> EntityOutcome:
        """Turn a fresh full export of *entity* into a baseline or deltas.

        An export at this quarter's baseline slot, or at its staging name
        (``partial_path`` of the slot), becomes the baseline. A staged
        export is only renamed onto the slot once its fingerprints and
        profile are stored. Any other export is diffed against the stored
        baseline fingerprints and each delta bucket is built from it.
        Stale buckets are evicted in both cases. Failures are reported in
        the returned outcome rather than raised.
        """

        now = now or self._clock()
        export = Path(export)
        plan = plan_rotation(now, self._policy())
        baseline = self.slot_path(entity, plan.quarter)
        staging = partial_path(baseline)
        chunk_size = int(self._option("chunk_size") or 1024 * 1024)
        is_baseline = export.resolve() in (baseline.resolve(), staging.resolve())
        log = self._logger.bind(entity=entity)
        log.event(event="entity_start", phase="process", ok=True, baseline=is_baseline)

        try:
            current = fingerprint_archive(export, logger=log, chunk_size=chunk_size)
            evicted = self._evict(entity, plan, log)
            if is_baseline:
                outcome = self._persist_baseline(entity, export, baseline, current, profile_name, profile_text, log)
            else:
                outcome = self._build_deltas(entity, export, baseline, current, plan, profile_name, profile_text, log)
            outcome.evicted = evicted
        except DeltaError as exc:
            if is_baseline:
                discard([export, *slot_artifacts(baseline), fingerprint_path(baseline)])
            log.event(event="entity_failed", phase="process", ok=False, error=str(exc))
            outcome = EntityOutcome(entity=entity, status="failed", message=str(exc), baseline=baseline)

        try:
            self.write_status(entity, now, outcome.message)
        except DeltaError as exc:
            log.error("status_write_failed", error=str(exc))
        return outcome

    def _evict(self, entity: str, plan: RotationPlan, log: DeltaLogger) -> List[Path]:
        return evict_buckets([self.slot_path(entity, bucket) for bucket in plan.evict], logger=log)

    def _persist_baseline(
        self,
        entity: str,
        export: Path,
        baseline: Path,
        current: Dict[str, str],
        profile_name: str,
        profile_text: str,
        log: DeltaLogger,
    ) -> EntityOutcome:
        persist_table(current, fingerprint_path(baseline))
        write_profile(baseline, profile_name, profile_text)
        if export != baseline:
            publish(export, baseline)
        log.event(event="baseline_created", phase="baseline", ok=True, files=len(current))
        return EntityOutcome(
            entity=entity,
            status="baseline",
            message=f"New baseline with {len(current)} files.",
            baseline=baseline,
        )

    def _build_deltas(
        self,
        entity: str,
        export: Path,
        baseline: Path,
        current: Dict[str, str],
        plan: RotationPlan,
        profile_name: str,
        profile_text: str,
        log: DeltaLogger,
    ) -> EntityOutcome:
        reference = load_table(fingerprint_path(baseline))
        diff = diff_tables(reference, current)
        outcome = EntityOutcome(
            entity=entity,
            status="unchanged" if diff.is_empty else "delta",
            message=diff.status_line(),
            baseline=baseline,
            diff=diff,
        )
        if diff.is_empty:
            log.info("no_changes")
            return outcome

        # Every tier is diffed against the quarter baseline, never against each other.
        level = int(self._option("compression_level") or 3)
        for bucket in plan.deltas:
            destination = self.slot_path(entity, bucket)
            try:
                result = build_delta(
                    export,
                    diff,
                    destination,
                    profile_name=profile_name,
                    profile_text=profile_text,
                    logger=log,
                    compression_level=level,
                )
                if result.built and self._option("verify_deltas"):
                    verify_delta(destination, diff, current, logger=log)
            except DeltaError as exc:
                outcome.bucket_errors[bucket.key] = str(exc)
                log.event(
                    event="bucket_failed",
                    phase="build",
                    ok=False,
                    bucket=bucket.key,
                    destination=str(destination),
                    error=str(exc),
                )
                continue
            outcome.buckets.append(result)
        return outcome

    # ------------------------------------------------------------------
    def _export(self, runtime: ContainerRuntime, container: ContainerInfo, destination: Path) -> None:
        if container.running:
            runtime.stop(container.name)
        try:
            runtime.export(container.name, destination)
        finally:
            if container.running:
                runtime.start(container.name)

    def backup_container(
        self,
        runtime: ContainerRuntime,
        container: ContainerInfo,
        *,
        now: Optional[datetime] = None,
    ) -> EntityOutcome:
        """Export *container* through *runtime* and process the export.

        The first export of a quarter is written to the staging name of
        the baseline slot, so an interrupted run never leaves an archive
        under the baseline name.
        """

        now = now or self._clock()
        ensure_dir(self._backup_dir)
        baseline = self.baseline_path(container.name, now)
        if baseline.exists():
            export = self.temporary_export_path()
            keep = bool(self._option("keep_export"))
        else:
            export = partial_path(baseline)
            keep = False

        try:
            try:
                self._export(runtime, container, export)
            except DeltaError as exc:
                self._logger.event(
                    event="export_failed", phase="export", ok=False, entity=container.name, error=str(exc)
                )
                return EntityOutcome(entity=container.name, status="failed", message=str(exc), baseline=baseline)
            return self.process_export(
                container.name,
                export,
                profile_name=container.profile_name,
                profile_text=container.profile,
                now=now,
            )
        finally:
            if not keep:
                discard([export])

    def run(
        self,
        runtime: ContainerRuntime,
        containers: Optional[Iterable[ContainerInfo]] = None,
        *,
        now: Optional[datetime] = None,
    ) -> RunSummary:
        """Back up every container, isolating failures per container."""

        now = now or self._clock()
        items = list(containers) if containers is not None else runtime.list()
        summary = RunSummary()
        for container in items:
            outcome = self.backup_container(runtime, container, now=now)
            summary.outcomes.append(outcome)
        self._logger.event(
            event="run_complete",
            phase="run",
            ok=summary.ok,
            entities=len(summary.outcomes),
            failed=summary.failed,
        )
        return summary


__all__ = ["DeltaBackupService"]
