"""Delta backups of container filesystem exports."""
from __future__ import annotations

from .api import DeltaBackupService
from .baseline import load_table, persist_table
from .build import build_delta
from .diff import diff_tables
from .errors import (
    ArtifactIOError,
    CorruptArchiveError,
    DeltaError,
    MalformedRecordError,
    MissingBaselineError,
    TruncatedMemberError,
)
from .fingerprint import fingerprint_archive
from .retention import RetentionPolicy, plan_rotation
from .types import DiffResult, EntityOutcome, RunSummary

__all__ = [
    "ArtifactIOError",
    "CorruptArchiveError",
    "DeltaBackupService",
    "DeltaError",
    "DiffResult",
    "EntityOutcome",
    "MalformedRecordError",
    "MissingBaselineError",
    "RetentionPolicy",
    "RunSummary",
    "TruncatedMemberError",
    "build_delta",
    "diff_tables",
    "fingerprint_archive",
    "load_table",
    "persist_table",
    "plan_rotation",
]
