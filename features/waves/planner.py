"""
Wave planner — layered topological sort over the blocking graph.

Kahn's algorithm, one frontier at a time:
  1. in-degree of an item = number of its blockers present in the graph
  2. items with in-degree 0 form wave 1
  3. remove the wave, decrement dependents, repeat for wave 2, 3, ...
  4. whatever never reaches in-degree 0 sits on or downstream of a cycle
     and is reported as unschedulable

Wave levels are a global frontier index, so disconnected subgraphs share
wave numbers. Closed blockers are not in the graph and are treated as
satisfied. Output ordering is (priority, id) everywhere, so identical input
always yields identical output.
"""

from __future__ import annotations

import logging
from typing import Iterable

from features.beads.models import BeadStatus, BeadType
from features.waves.models import DependencyEdge, Wave, WaveItem, WavePlan

log = logging.getLogger(__name__)


def _sort_key(item: WaveItem) -> tuple[int, str]:
    return (item.priority, item.id)


def compute_waves(items: list[WaveItem], edges: Iterable[DependencyEdge]) -> WavePlan:
    """Compute waves and the unschedulable set. Pure; does not mutate `items`."""
    by_id = {item.id: item for item in items}
    in_degree = {item.id: 0 for item in items}
    dependents: dict[str, list[str]] = {item.id: [] for item in items}

    seen_edges: set[tuple[str, str]] = set()
    for edge in edges:
        key = (edge.blocker, edge.blocked)
        if key in seen_edges:
            continue
        seen_edges.add(key)
        blocker = by_id.get(edge.blocker)
        if blocker is None or edge.blocked not in by_id:
            continue
        if blocker.status == BeadStatus.CLOSED.value:
            continue
        dependents[edge.blocker].append(edge.blocked)
        in_degree[edge.blocked] += 1

    frontier = [item_id for item_id, degree in in_degree.items() if degree == 0]
    placed: set[str] = set()
    waves: list[Wave] = []
    level = 0

    while frontier:
        level += 1
        waves.append(_build_wave(level, [by_id[i] for i in frontier]))
        placed.update(frontier)

        next_frontier: list[str] = []
        for item_id in frontier:
            for dependent in dependents[item_id]:
                in_degree[dependent] -= 1
                if in_degree[dependent] == 0:
                    next_frontier.append(dependent)
        frontier = next_frontier

    unschedulable = sorted((item for item in items if item.id not in placed), key=_sort_key)
    if unschedulable:
        log.info("Dependency cycle: %d item(s) unschedulable", len(unschedulable))

    return WavePlan(waves=waves, unschedulable=unschedulable)


def _build_wave(level: int, members: list[WaveItem]) -> Wave:
    """One wave. The first gate by (priority, id) guards the wave; extra gates stay listed."""
    members = sorted(members, key=_sort_key)
    gates = [m for m in members if m.type == BeadType.GATE.value]
    gate = gates[0] if gates else None
    return Wave(
        level=level,
        items=[m for m in members if m is not gate],
        gate=gate,
    )
