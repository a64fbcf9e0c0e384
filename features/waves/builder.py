"""
Wave plan builder — turns a fresh tracker snapshot into a classified plan.

Nothing is cached: the graph is rebuilt from the tracker on every request.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone

from features.beads.errors import TrackerResult
from features.beads.models import ACTIVE_STATUSES, Bead, BeadDependency, BeadStatus
from features.beads.tracker import TrackerPort
from features.verification.labels import is_in_verification
from features.waves.models import DependencyEdge, WaveItem, WavePlan
from features.waves.planner import compute_waves
from features.waves.readiness import classify, compute_runnable_queue, compute_summary

log = logging.getLogger(__name__)

BLOCKS = "blocks"


class WavePlanError(Exception):
    """The tracker snapshot needed for planning could not be loaded."""


async def load_active_beads(tracker: TrackerPort, repo_path: str | None) -> list[Bead]:
    """Open, in-progress and blocked beads, de-duplicated by id."""
    results = await asyncio.gather(
        *(tracker.list({"status": status.value}, repo_path) for status in ACTIVE_STATUSES)
    )
    open_result = results[0]
    if not open_result.ok:
        raise WavePlanError(f"Failed to list beads: {open_result.error_message}")

    beads: list[Bead] = []
    seen: set[str] = set()
    for status, result in zip(ACTIVE_STATUSES, results):
        if not result.ok:
            log.warning("Listing %s beads failed: %s", status.value, result.error_message)
            continue
        for bead in result.data or []:
            if bead.id in seen:
                continue
            seen.add(bead.id)
            beads.append(bead)
    return beads


async def load_blocking_edges(tracker: TrackerPort, beads: list[Bead],
                              repo_path: str | None) -> list[DependencyEdge]:
    """Collect "blocks" edges between active beads. Per-bead failures are skipped."""
    active_ids = {b.id for b in beads}
    results = await asyncio.gather(
        *(tracker.list_dependencies(b.id, repo_path) for b in beads),
        return_exceptions=True,
    )

    edges: list[DependencyEdge] = []
    for bead, result in zip(beads, results):
        if isinstance(result, BaseException):
            log.warning("Dependency lookup for %s raised: %s", bead.id, result)
            continue
        if not isinstance(result, TrackerResult) or not result.ok:
            continue
        for dep in result.data or []:
            if _is_open_blocker(dep, active_ids):
                edges.append(DependencyEdge(blocker=dep.id, blocked=bead.id))
    return edges


def _is_open_blocker(dep: BeadDependency, active_ids: set[str]) -> bool:
    if dep.dependency_type != BLOCKS or not dep.id:
        return False
    if dep.status == BeadStatus.CLOSED.value:
        return False
    return dep.id in active_ids


def to_wave_items(beads: list[Bead], edges: list[DependencyEdge]) -> list[WaveItem]:
    blockers: dict[str, list[str]] = {}
    for edge in edges:
        blockers.setdefault(edge.blocked, [])
        if edge.blocker not in blockers[edge.blocked]:
            blockers[edge.blocked].append(edge.blocker)
    return [
        WaveItem(
            id=b.id,
            title=b.title,
            type=b.type,
            status=b.status,
            priority=b.priority,
            labels=list(b.labels),
            blocked_by=blockers.get(b.id, []),
        )
        for b in beads
    ]


def classify_plan(plan: WavePlan) -> WavePlan:
    """Attach readiness, wave level, summary and runnable queue to a plan."""
    for wave in plan.waves:
        members = wave.items + ([wave.gate] if wave.gate is not None else [])
        for item in members:
            item.readiness, item.readiness_reason = classify(
                item, False, is_in_verification(item.labels),
            )
            item.wave_level = wave.level

    for item in plan.unschedulable:
        item.readiness, item.readiness_reason = classify(
            item, True, is_in_verification(item.labels),
        )

    plan.summary = compute_summary(plan)
    plan.runnable_queue = compute_runnable_queue(plan)
    plan.recommendation = plan.runnable_queue[0] if plan.runnable_queue else None
    plan.computed_at = datetime.now(timezone.utc).isoformat()
    return plan


async def build_wave_plan(tracker: TrackerPort, repo_path: str | None = None) -> WavePlan:
    beads = await load_active_beads(tracker, repo_path)
    edges = await load_blocking_edges(tracker, beads, repo_path)
    plan = compute_waves(to_wave_items(beads, edges), edges)
    classify_plan(plan)
    log.info(
        "Wave plan: %d bead(s), %d wave(s), %d runnable, %d unschedulable",
        plan.summary.total, len(plan.waves), plan.summary.runnable, plan.summary.unschedulable,
    )
    return plan
