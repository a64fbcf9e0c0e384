"""
Data models for the beads feature.

A Bead is a projection of one work item held by the external tracker.
The tracker is the sole source of truth; these objects live for a single
request or workflow and are rebuilt from fresh tracker output every time.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class BeadType(str, Enum):
    BUG = "bug"
    FEATURE = "feature"
    TASK = "task"
    EPIC = "epic"
    CHORE = "chore"
    MERGE_REQUEST = "merge-request"
    MOLECULE = "molecule"
    GATE = "gate"


class BeadStatus(str, Enum):
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    BLOCKED = "blocked"
    DEFERRED = "deferred"
    CLOSED = "closed"


# Statuses that take part in scheduling
ACTIVE_STATUSES = (BeadStatus.OPEN, BeadStatus.IN_PROGRESS, BeadStatus.BLOCKED)


@dataclass
class Bead:
    """A single work item as reported by the tracker."""
    id: str
    title: str = ""
    type: str = BeadType.TASK.value
    status: str = BeadStatus.OPEN.value
    priority: int = 2  # 0 = highest, 4 = lowest
    labels: list[str] = field(default_factory=list)
    description: str = ""
    acceptance: str = ""
    notes: str = ""
    parent: str | None = None

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "Bead":
        """Build a Bead from tracker JSON, tolerating the CLI's field names."""
        labels = [str(label) for label in raw.get("labels") or [] if str(label).strip()]
        priority = raw.get("priority")
        return cls(
            id=str(raw.get("id", "")),
            title=raw.get("title") or "",
            type=raw.get("issue_type") or raw.get("type") or BeadType.TASK.value,
            status=raw.get("status") or BeadStatus.OPEN.value,
            priority=int(priority) if priority is not None else 2,
            labels=labels,
            description=raw.get("description") or "",
            acceptance=raw.get("acceptance_criteria") or raw.get("acceptance") or "",
            notes=raw.get("notes") or "",
            parent=raw.get("parent") or None,
        )


@dataclass
class BeadDependency:
    """One dependency record of a bead, as listed by the tracker.

    `id` is the *other* bead; for dependency_type "blocks" it is the blocker.
    """
    id: str
    dependency_type: str = "blocks"
    status: str | None = None
    title: str = ""

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "BeadDependency":
        return cls(
            id=str(raw.get("id", "")),
            dependency_type=raw.get("dependency_type") or raw.get("type") or "blocks",
            status=raw.get("status"),
            title=raw.get("title") or "",
        )


@dataclass
class BeadUpdate:
    """Fields for a tracker update. Labels are additive, remove_labels subtractive."""
    labels: list[str] = field(default_factory=list)
    remove_labels: list[str] = field(default_factory=list)
    status: str | None = None
    notes: str | None = None

    def is_empty(self) -> bool:
        return not (self.labels or self.remove_labels or self.status is not None or self.notes is not None)
