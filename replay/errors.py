"""Replay error taxonomy and control-call results.

Exceptions are raised where tracks are opened. The engine's control surface
converts them into ``ControlResult`` values so callers handle every failure
explicitly.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from flightlog.source import SourceUnreadableError


class ReplayErrorCode(str, Enum):
    """Failure reasons reported by replay control calls."""

    SOURCE_UNREADABLE = "source_unreadable"
    EMPTY_SOURCE = "empty_source"
    OPEN_FAILED = "open_failed"
    DUPLICATE_NAME = "duplicate_name"
    INVALID_SCALE = "invalid_scale"
    UNKNOWN_TRACK = "unknown_track"


class ReplayError(Exception):
    """Base class for replay failures."""

    code: ReplayErrorCode = ReplayErrorCode.OPEN_FAILED


class EmptySourceError(ReplayError):
    """A source decoded successfully but yielded no usable fixes."""

    code = ReplayErrorCode.EMPTY_SOURCE

    def __init__(self, identifier: str) -> None:
        super().__init__(f"{identifier}: no usable fixes")
        self.identifier = identifier


class DuplicateNameError(ReplayError):
    """A track or playlist entry with this name already exists."""

    code = ReplayErrorCode.DUPLICATE_NAME

    def __init__(self, name: str) -> None:
        super().__init__(f"duplicate name: {name}")
        self.name = name


def error_code_for(exc: Exception) -> ReplayErrorCode:
    """Map a source or track exception onto its error code."""
    if isinstance(exc, ReplayError):
        return exc.code
    if isinstance(exc, SourceUnreadableError):
        return ReplayErrorCode.SOURCE_UNREADABLE
    return ReplayErrorCode.OPEN_FAILED


@dataclass(frozen=True)
class ControlResult:
    """Outcome of a replay control call.

    Attributes:
        ok: True if the call changed state as requested.
        error: Operation-level failure code (None on success).
        cause: Underlying source failure for OPEN_FAILED, if any.
        message: Human-readable detail.
    """

    ok: bool
    error: ReplayErrorCode | None = None
    cause: ReplayErrorCode | None = None
    message: str = ""

    def __bool__(self) -> bool:
        return self.ok

    @classmethod
    def success(cls, message: str = "") -> ControlResult:
        return cls(ok=True, message=message)

    @classmethod
    def failure(
        cls,
        error: ReplayErrorCode,
        message: str = "",
        cause: ReplayErrorCode | None = None,
    ) -> ControlResult:
        return cls(ok=False, error=error, cause=cause, message=message)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "ok": self.ok,
            "error": self.error.value if self.error else None,
            "cause": self.cause.value if self.cause else None,
            "message": self.message,
        }
