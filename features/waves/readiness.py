"""
Readiness classification — why an item can or cannot be worked right now.

Rules are evaluated in order; the first match wins.
"""

from __future__ import annotations

import re

from features.beads.models import BeadStatus, BeadType
from features.waves.models import (
    Readiness,
    WaveItem,
    WavePlan,
    WaveRecommendation,
    WaveSummary,
)

_TRACKER_PREFIX_RE = re.compile(r"^[^-]+-")


def short_id(bead_id: str) -> str:
    """Strip the tracker prefix: "proj-a1b2" -> "a1b2"."""
    return _TRACKER_PREFIX_RE.sub("", bead_id, count=1)


def classify(item: WaveItem, is_unschedulable: bool,
             is_awaiting_human_review: bool) -> tuple[Readiness, str]:
    if is_unschedulable:
        return Readiness.UNSCHEDULABLE, "Dependency cycle detected. Resolve cycle before shipping."

    if item.type == BeadType.GATE.value:
        return Readiness.GATE, "Gate beat. Requires human verification before progressing."

    if is_awaiting_human_review:
        return Readiness.VERIFICATION, "Awaiting verification. Not eligible for shipping."

    if item.status == BeadStatus.IN_PROGRESS.value:
        return Readiness.IN_PROGRESS, "Already in progress."

    if item.status == BeadStatus.BLOCKED.value or item.blocked_by:
        if item.blocked_by:
            return Readiness.BLOCKED, "Waiting on " + ", ".join(short_id(b) for b in item.blocked_by)
        return Readiness.BLOCKED, "Marked blocked."

    if item.status == BeadStatus.OPEN.value:
        return Readiness.RUNNABLE, "Ready to ship."

    return Readiness.BLOCKED, f"Status is {item.status}."


def compute_summary(plan: WavePlan) -> WaveSummary:
    summary = WaveSummary()
    items = plan.all_items()
    summary.total = len(items)
    for item in items:
        if item.readiness == Readiness.RUNNABLE:
            summary.runnable += 1
        elif item.readiness == Readiness.IN_PROGRESS:
            summary.in_progress += 1
        elif item.readiness == Readiness.BLOCKED:
            summary.blocked += 1
        elif item.readiness == Readiness.VERIFICATION:
            summary.verification += 1
        elif item.readiness == Readiness.GATE:
            summary.gates += 1
    summary.unschedulable = len(plan.unschedulable)
    return summary


def compute_runnable_queue(plan: WavePlan) -> list[WaveRecommendation]:
    """Runnable items ordered by (wave level, priority, id). Head = top recommendation."""
    ranked = sorted(
        (
            (wave.level, item.priority, item.id, item)
            for wave in plan.waves
            for item in wave.items
            if item.readiness == Readiness.RUNNABLE
        ),
        key=lambda row: row[:3],
    )
    return [
        WaveRecommendation(
            bead_id=item.id,
            title=item.title,
            wave_level=level,
            reason=item.readiness_reason,
        )
        for level, _, _, item in ranked
    ]
