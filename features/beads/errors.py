"""
Tracker error taxonomy and result envelope.

Tracker operations never raise for expected failures (not found, bad input,
a locked database). They return a TrackerResult carrying either data or a
structured TrackerError, so callers decide per call site what a failure means.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, TypeVar

T = TypeVar("T")


class TrackerErrorCode(str, Enum):
    NOT_FOUND = "NOT_FOUND"
    ALREADY_EXISTS = "ALREADY_EXISTS"
    INVALID_INPUT = "INVALID_INPUT"
    LOCKED = "LOCKED"
    TIMEOUT = "TIMEOUT"
    UNAVAILABLE = "UNAVAILABLE"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    INTERNAL = "INTERNAL"
    CONFLICT = "CONFLICT"
    RATE_LIMITED = "RATE_LIMITED"
    UNSUPPORTED = "UNSUPPORTED"


_RETRYABLE = {
    TrackerErrorCode.LOCKED,
    TrackerErrorCode.TIMEOUT,
    TrackerErrorCode.UNAVAILABLE,
    TrackerErrorCode.RATE_LIMITED,
}


def is_retryable_by_default(code: TrackerErrorCode) -> bool:
    return code in _RETRYABLE


@dataclass
class TrackerError:
    code: TrackerErrorCode
    message: str
    retryable: bool = False

    @classmethod
    def of(cls, code: TrackerErrorCode, message: str) -> "TrackerError":
        return cls(code=code, message=message, retryable=is_retryable_by_default(code))

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


@dataclass
class TrackerResult(Generic[T]):
    """Discriminated result: ok=True carries data, ok=False carries error."""
    ok: bool
    data: T | None = None
    error: TrackerError | None = None

    @classmethod
    def success(cls, data: Any = None) -> "TrackerResult":
        return cls(ok=True, data=data)

    @classmethod
    def failure(cls, code: TrackerErrorCode, message: str) -> "TrackerResult":
        return cls(ok=False, error=TrackerError.of(code, message))

    @property
    def error_message(self) -> str:
        return str(self.error) if self.error else "unknown error"


class TrackerOperationError(Exception):
    """Raised by workflow code when a tracker call it depends on fails."""

    def __init__(self, message: str, error: TrackerError | None = None):
        super().__init__(message)
        self.error = error


# Order matters: first matching rule wins.
_CLASSIFICATION_RULES: list[tuple[tuple[str, ...], TrackerErrorCode]] = [
    (("not found", "no such", "does not exist"), TrackerErrorCode.NOT_FOUND),
    (("already exists", "duplicate"), TrackerErrorCode.ALREADY_EXISTS),
    (("lock", "locked", "database is locked"), TrackerErrorCode.LOCKED),
    (("timed out", "timeout"), TrackerErrorCode.TIMEOUT),
    (("permission denied", "unauthorized", "eacces"), TrackerErrorCode.PERMISSION_DENIED),
    (("busy", "unavailable", "unable to open"), TrackerErrorCode.UNAVAILABLE),
]


def classify_error_message(raw: str) -> TrackerErrorCode:
    """Map raw CLI stderr to an error code. Unmatched text is INTERNAL."""
    lower = raw.lower()
    for patterns, code in _CLASSIFICATION_RULES:
        if any(p in lower for p in patterns):
            return code
    return TrackerErrorCode.INTERNAL
