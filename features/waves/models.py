"""
Data models for wave planning.

A WavePlan layers the active work items into waves: every item in wave N
only depends on items in waves < N. Items caught in a dependency cycle are
kept out of the waves and reported as unschedulable.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any


class Readiness(str, Enum):
    RUNNABLE = "runnable"
    IN_PROGRESS = "in_progress"
    BLOCKED = "blocked"
    VERIFICATION = "verification"
    GATE = "gate"
    UNSCHEDULABLE = "unschedulable"


@dataclass
class WaveItem:
    """A work item as seen by the planner."""
    id: str
    title: str = ""
    type: str = "task"
    status: str = "open"
    priority: int = 2
    labels: list[str] = field(default_factory=list)
    blocked_by: list[str] = field(default_factory=list)
    readiness: Readiness = Readiness.BLOCKED
    readiness_reason: str = ""
    wave_level: int | None = None


@dataclass
class DependencyEdge:
    """`blocker` must be finished before `blocked` may run."""
    blocker: str
    blocked: str


@dataclass
class Wave:
    level: int  # 1-based
    items: list[WaveItem] = field(default_factory=list)
    gate: WaveItem | None = None


@dataclass
class WaveSummary:
    total: int = 0
    runnable: int = 0
    in_progress: int = 0
    blocked: int = 0
    verification: int = 0
    gates: int = 0
    unschedulable: int = 0


@dataclass
class WaveRecommendation:
    bead_id: str
    title: str
    wave_level: int
    reason: str


@dataclass
class WavePlan:
    waves: list[Wave] = field(default_factory=list)
    unschedulable: list[WaveItem] = field(default_factory=list)
    summary: WaveSummary = field(default_factory=WaveSummary)
    runnable_queue: list[WaveRecommendation] = field(default_factory=list)
    recommendation: WaveRecommendation | None = None
    computed_at: str = ""

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    def all_items(self) -> list[WaveItem]:
        """Every item in the plan: wave items, gates, then unschedulable."""
        items: list[WaveItem] = []
        for wave in self.waves:
            items.extend(wave.items)
            if wave.gate is not None:
                items.append(wave.gate)
        items.extend(self.unschedulable)
        return items
