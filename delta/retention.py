"""Calendar bucket rotation for delta backups."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path
from typing import Iterable, List, Optional, Union

from .build import removed_manifest_path
from .logs import DeltaLogger
from .storage import discard
from .types import RetentionBucket, RotationPlan

MONDAY = 0


@dataclass(slots=True)
class RetentionPolicy:
    rollover_weekday: int = MONDAY


def quarter_of(day: date) -> int:
    return (day.month - 1) // 3 + 1


def quarter_bucket(day: date) -> RetentionBucket:
    return RetentionBucket("quarter", f"Q{day.year}{quarter_of(day)}")


def delta_buckets(day: date) -> List[RetentionBucket]:
    """Month, week-of-month and weekday slots for *day*, coarse first."""

    _, iso_week, _ = day.isocalendar()
    return [
        RetentionBucket("month", f"M{day.month}"),
        RetentionBucket("week", f"WN{iso_week % 4}"),
        RetentionBucket("day", f"WD{day.weekday()}"),
    ]


def plan_rotation(now: Union[date, datetime], policy: Optional[RetentionPolicy] = None) -> RotationPlan:
    """Decide which delta slots must be cleared before building on *now*.

    The day slot is always cleared. The week slot is cleared on the
    rollover weekday and the month slot on the first of the month. The
    quarter baseline is never evicted here; a new quarter simply yields a
    new key.
    """

    policy = policy or RetentionPolicy()
    day = now.date() if isinstance(now, datetime) else now
    deltas = delta_buckets(day)
    evict: List[RetentionBucket] = []
    for bucket in deltas:
        if bucket.granularity == "month" and day.day == 1:
            evict.append(bucket)
        elif bucket.granularity == "week" and day.weekday() == policy.rollover_weekday:
            evict.append(bucket)
        elif bucket.granularity == "day":
            evict.append(bucket)
    return RotationPlan(quarter=quarter_bucket(day), deltas=deltas, evict=evict)


def slot_artifacts(archive: Path) -> List[Path]:
    """Return the archive plus every sidecar currently stored next to it."""

    archive = Path(archive)
    artifacts = [archive, removed_manifest_path(archive)]
    if archive.parent.exists():
        artifacts.extend(sorted(archive.parent.glob(f"{archive.name}.*.profile")))
    return artifacts


def evict_buckets(
    slots: Iterable[Path],
    *,
    logger: Optional[DeltaLogger] = None,
) -> List[Path]:
    """Delete each slot archive and its sidecars, returning what was removed."""

    removed: List[Path] = []
    for archive in slots:
        gone = discard(slot_artifacts(archive))
        if gone and logger:
            logger.warning("delta_evicted", slot=str(archive), files=len(gone), reason="retention")
        removed.extend(gone)
    return removed


__all__ = [
    "MONDAY",
    "RetentionPolicy",
    "delta_buckets",
    "evict_buckets",
    "plan_rotation",
    "quarter_bucket",
    "quarter_of",
    "slot_artifacts",
]
