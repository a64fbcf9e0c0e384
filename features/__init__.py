"""
Features package — each sub-package encapsulates a self-contained feature.

Convention:
  features/<feature_name>/
    __init__.py      — public API re-exports
    models.py        — data models specific to this feature
    ...              — feature logic (planner, orchestrator, store, ...)

  beads/         — tracker port and work-item models
  waves/         — dependency scheduling and readiness classification
  verification/  — label state machine and verification orchestrator
  settings/      — user-editable agent and verification settings
"""
