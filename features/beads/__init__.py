"""
Beads feature — work items held by the external tracker.

Public API:
    from features.beads import Bead, BeadStatus, BeadType, BdCliTracker
"""

from features.beads.errors import TrackerError, TrackerErrorCode, TrackerResult
from features.beads.models import Bead, BeadDependency, BeadStatus, BeadType, BeadUpdate
from features.beads.tracker import BdCliTracker, TrackerPort

__all__ = [
    "Bead",
    "BeadDependency",
    "BeadStatus",
    "BeadType",
    "BeadUpdate",
    "BdCliTracker",
    "TrackerError",
    "TrackerErrorCode",
    "TrackerPort",
    "TrackerResult",
]
