"""Error hierarchy for delta backup operations."""
from __future__ import annotations

from pathlib import Path
from typing import Optional, Union

PathLike = Union[str, Path]


class DeltaError(RuntimeError):
    """Base exception for delta backup related failures."""


class CorruptArchiveError(DeltaError):
    """Raised when archive framing or compression cannot be decoded."""

    def __init__(self, source: object, detail: str) -> None:
        super().__init__(f"corrupt archive {source}: {detail}")
        self.source = source
        self.detail = detail


class TruncatedMemberError(DeltaError):
    """Raised when a member payload is shorter than its declared size."""

    def __init__(self, member: str, expected: int, actual: int) -> None:
        super().__init__(f"truncated member {member}: wanted {expected} bytes, got {actual}")
        self.member = member
        self.expected = expected
        self.actual = actual


class MissingBaselineError(DeltaError):
    """Raised when a fingerprint file is required but absent."""

    def __init__(self, path: PathLike) -> None:
        super().__init__(f"baseline fingerprints not found at {path}")
        self.path = Path(path)


class MalformedRecordError(DeltaError):
    """Raised when a fingerprint file holds an invalid record."""

    def __init__(self, path: PathLike, line: int, reason: str) -> None:
        super().__init__(f"malformed record in {path} at line {line}: {reason}")
        self.path = Path(path)
        self.line = line
        self.reason = reason


class ArtifactIOError(DeltaError):
    """Raised when a filesystem operation on a backup artifact fails."""

    def __init__(self, path: PathLike, operation: str, cause: Optional[BaseException] = None) -> None:
        message = f"{operation} failed for {path}"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)
        self.path = Path(path)
        self.operation = operation
        self.cause = cause


class DeltaVerificationError(DeltaError):
    """Raised when a built delta archive does not match its diff."""


class RuntimeCommandError(DeltaError):
    """Raised when the container runtime tool fails."""


__all__ = [
    "ArtifactIOError",
    "CorruptArchiveError",
    "DeltaError",
    "DeltaVerificationError",
    "MalformedRecordError",
    "MissingBaselineError",
    "RuntimeCommandError",
    "TruncatedMemberError",
]
