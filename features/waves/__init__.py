"""
Waves feature — dependency scheduling and readiness classification.

Public API:
    from features.waves import compute_waves, build_wave_plan, classify
"""

from features.waves.builder import WavePlanError, build_wave_plan
from features.waves.models import DependencyEdge, Readiness, Wave, WaveItem, WavePlan
from features.waves.planner import compute_waves
from features.waves.readiness import classify, compute_runnable_queue, compute_summary, short_id

__all__ = [
    "DependencyEdge",
    "Readiness",
    "Wave",
    "WaveItem",
    "WavePlan",
    "WavePlanError",
    "build_wave_plan",
    "classify",
    "compute_runnable_queue",
    "compute_summary",
    "compute_waves",
    "short_id",
]
