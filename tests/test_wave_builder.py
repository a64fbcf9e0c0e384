"""Tests for building a classified wave plan from a tracker snapshot."""

from __future__ import annotations

import pytest

from conftest import FakeTracker
from features.beads.errors import TrackerErrorCode
from features.beads.models import Bead, BeadDependency
from features.waves.builder import WavePlanError, build_wave_plan
from features.waves.models import Readiness


def _tracker() -> FakeTracker:
    beads = [
        Bead(id="p-a", title="Schema", status="open", priority=1),
        Bead(id="p-b", title="API", status="open"),
        Bead(id="p-c", title="UI", status="in_progress"),
        Bead(id="p-d", title="Review", status="open", labels=["stage:verification"]),
        Bead(id="p-old", title="Done", status="closed"),
    ]
    deps = {
        "p-b": [BeadDependency(id="p-a", dependency_type="blocks", status="open")],
        "p-c": [
            BeadDependency(id="p-old", dependency_type="blocks", status="closed"),
            BeadDependency(id="p-a", dependency_type="parent-child", status="open"),
        ],
    }
    return FakeTracker(beads, deps)


@pytest.mark.asyncio
async def test_builds_classified_plan():
    plan = await build_wave_plan(_tracker(), "/repo")

    levels = {i.id: i.wave_level for i in plan.all_items()}
    assert levels == {"p-a": 1, "p-c": 1, "p-d": 1, "p-b": 2}

    by_id = {i.id: i for i in plan.all_items()}
    assert by_id["p-a"].readiness is Readiness.RUNNABLE
    assert by_id["p-b"].readiness is Readiness.BLOCKED
    assert by_id["p-b"].readiness_reason == "Waiting on a"
    assert by_id["p-c"].readiness is Readiness.IN_PROGRESS
    assert by_id["p-d"].readiness is Readiness.VERIFICATION

    assert plan.recommendation.bead_id == "p-a"
    assert plan.summary.total == 4
    assert plan.computed_at


@pytest.mark.asyncio
async def test_closed_and_non_blocking_dependencies_ignored():
    plan = await build_wave_plan(_tracker(), "/repo")

    c = next(i for i in plan.all_items() if i.id == "p-c")
    assert c.blocked_by == []


@pytest.mark.asyncio
async def test_open_listing_failure_raises():
    tracker = _tracker()
    tracker.fail["list:open"] = TrackerErrorCode.UNAVAILABLE

    with pytest.raises(WavePlanError):
        await build_wave_plan(tracker, "/repo")


@pytest.mark.asyncio
async def test_secondary_listing_failure_degrades():
    tracker = _tracker()
    tracker.fail["list:in_progress"] = TrackerErrorCode.TIMEOUT

    plan = await build_wave_plan(tracker, "/repo")
    assert "p-c" not in {i.id for i in plan.all_items()}


@pytest.mark.asyncio
async def test_dependency_failure_skips_edges():
    tracker = _tracker()
    tracker.fail["list_dependencies"] = TrackerErrorCode.INTERNAL

    plan = await build_wave_plan(tracker, "/repo")
    assert len(plan.waves) == 1
    assert plan.summary.runnable == 2


@pytest.mark.asyncio
async def test_cycle_reported_as_unschedulable():
    beads = [Bead(id="p-x"), Bead(id="p-y")]
    deps = {
        "p-x": [BeadDependency(id="p-y", status="open")],
        "p-y": [BeadDependency(id="p-x", status="open")],
    }
    plan = await build_wave_plan(FakeTracker(beads, deps), "/repo")

    assert plan.waves == []
    assert [i.readiness for i in plan.unschedulable] == [Readiness.UNSCHEDULABLE] * 2
    assert plan.summary.unschedulable == 2
    assert plan.recommendation is None
