"""Common dataclasses shared across delta backup modules."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, FrozenSet, List, Optional

FingerprintTable = Dict[str, str]


@dataclass(frozen=True, slots=True)
class DiffResult:
    """Classification of every path seen in a baseline/current pair.

    ``changed`` and ``added`` together form ``changed_or_added``; none of
    them ever intersect ``removed``. Unchanged paths are only counted.
    """

    changed: FrozenSet[str] = frozenset()
    added: FrozenSet[str] = frozenset()
    removed: FrozenSet[str] = frozenset()
    unchanged_count: int = 0

    @property
    def changed_or_added(self) -> FrozenSet[str]:
        return self.changed | self.added

    @property
    def is_empty(self) -> bool:
        return not self.changed and not self.added and not self.removed

    def status_line(self) -> str:
        if self.is_empty:
            return "No changes"
        return f"{len(self.changed_or_added)} files changed/added, {len(self.removed)} removed."


@dataclass(frozen=True, slots=True)
class RetentionBucket:
    granularity: str
    key: str

    def filename(self, prefix: str, entity: str, extension: str) -> str:
        if self.granularity == "quarter":
            return f"{prefix}{entity}-{self.key}{extension}"
        return f"{prefix}{entity}-{self.key}-delta{extension}"


@dataclass(slots=True)
class RotationPlan:
    quarter: RetentionBucket
    deltas: List[RetentionBucket]
    evict: List[RetentionBucket]


@dataclass(slots=True)
class DeltaBuildResult:
    destination: Path
    status: str
    members_written: int = 0
    removed_listed: int = 0
    bytes_written: int = 0

    @property
    def built(self) -> bool:
        return self.status == "built"


@dataclass(slots=True)
class EntityOutcome:
    entity: str
    status: str
    message: str
    baseline: Optional[Path] = None
    diff: Optional[DiffResult] = None
    buckets: List[DeltaBuildResult] = field(default_factory=list)
    bucket_errors: Dict[str, str] = field(default_factory=dict)
    evicted: List[Path] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.status != "failed" and not self.bucket_errors


@dataclass(slots=True)
class RunSummary:
    outcomes: List[EntityOutcome] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return all(outcome.ok for outcome in self.outcomes)

    @property
    def failed(self) -> List[str]:
        return [outcome.entity for outcome in self.outcomes if not outcome.ok]


__all__ = [
    "DeltaBuildResult",
    "DiffResult",
    "EntityOutcome",
    "FingerprintTable",
    "RetentionBucket",
    "RotationPlan",
    "RunSummary",
]
