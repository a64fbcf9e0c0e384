"""
Verification lifecycle events — bounded in-memory log for diagnostics.

Process lifetime only; the oldest entries are dropped once the buffer is full.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from enum import Enum

import config

log = logging.getLogger(__name__)


class VerificationEventType(str, Enum):
    QUEUED = "queued"
    DEDUPED = "deduped"
    MISSING_COMMIT = "missing-commit"
    REMEDIATION_STARTED = "remediation-started"
    REMEDIATION_FAILED = "remediation-failed"
    VERIFIER_STARTED = "verifier-started"
    VERIFIER_COMPLETED = "verifier-completed"
    RETRY = "retry"
    CLOSED = "closed"
    NOTES_UPDATED = "notes-updated"
    RETRY_SESSION_STARTED = "retry-session-started"


@dataclass
class VerificationEvent:
    type: VerificationEventType
    bead_id: str
    timestamp: str
    detail: str | None = None

    def to_dict(self) -> dict:
        return asdict(self)


class VerificationEventLog:
    def __init__(self, max_events: int | None = None):
        self._events: deque[VerificationEvent] = deque(maxlen=max_events or config.MAX_VERIFICATION_EVENTS)

    def record(self, type: VerificationEventType, bead_id: str,
               detail: str | None = None) -> VerificationEvent:
        event = VerificationEvent(
            type=type,
            bead_id=bead_id,
            timestamp=datetime.now(timezone.utc).isoformat(),
            detail=detail,
        )
        self._events.append(event)
        log.info("[verification] %s bead=%s%s", type.value, bead_id, f" {detail}" if detail else "")
        return event

    def recent(self, limit: int = 50) -> list[VerificationEvent]:
        if limit <= 0:
            return []
        return list(self._events)[-limit:]

    def __len__(self) -> int:
        return len(self._events)
