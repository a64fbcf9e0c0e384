"""Shared fixtures: an in-memory tracker that records every call."""

from __future__ import annotations

import pytest

from features.beads.errors import TrackerErrorCode, TrackerResult
from features.beads.models import Bead, BeadDependency, BeadStatus, BeadUpdate
from features.settings.models import RegisteredAgent, VerificationSettings
from features.verification.labels import LabelMutation, apply_mutation


class FakeTracker:
    """TrackerPort over a dict of beads. Failures can be injected per operation."""

    def __init__(self, beads: list[Bead] | None = None,
                 dependencies: dict[str, list[BeadDependency]] | None = None):
        self.beads: dict[str, Bead] = {b.id: b for b in beads or []}
        self.dependencies = dependencies or {}
        self.calls: list[tuple] = []
        self.fail: dict[str, TrackerErrorCode] = {}

    def _failure(self, op: str) -> TrackerResult | None:
        if op in self.fail:
            return TrackerResult.failure(self.fail[op], f"{op} failed")
        return None

    def calls_of(self, op: str) -> list[tuple]:
        return [c for c in self.calls if c[0] == op]

    async def list(self, filters=None, repo_path=None):
        self.calls.append(("list", filters, repo_path))
        status = (filters or {}).get("status")
        failed = self._failure(f"list:{status}") or self._failure("list")
        if failed:
            return failed
        return TrackerResult.success([b for b in self.beads.values() if status is None or b.status == status])

    async def get(self, bead_id, repo_path=None):
        self.calls.append(("get", bead_id, repo_path))
        failed = self._failure("get")
        if failed:
            return failed
        bead = self.beads.get(bead_id)
        if bead is None:
            return TrackerResult.failure(TrackerErrorCode.NOT_FOUND, f"Resource not found: {bead_id}")
        return TrackerResult.success(_copy(bead))

    async def update(self, bead_id, fields: BeadUpdate, repo_path=None):
        self.calls.append(("update", bead_id, fields, repo_path))
        failed = self._failure("update")
        if failed:
            return failed
        bead = self.beads[bead_id]
        bead.labels = apply_mutation(bead.labels, LabelMutation(add=fields.labels, remove=fields.remove_labels))
        if fields.status is not None:
            bead.status = fields.status
        if fields.notes is not None:
            bead.notes = fields.notes
        return TrackerResult.success()

    async def close(self, bead_id, reason=None, repo_path=None):
        self.calls.append(("close", bead_id, reason, repo_path))
        failed = self._failure("close")
        if failed:
            return failed
        self.beads[bead_id].status = BeadStatus.CLOSED.value
        return TrackerResult.success()

    async def list_dependencies(self, bead_id, repo_path=None):
        self.calls.append(("list_dependencies", bead_id, repo_path))
        failed = self._failure("list_dependencies")
        if failed:
            return failed
        return TrackerResult.success(list(self.dependencies.get(bead_id, [])))


def _copy(bead: Bead) -> Bead:
    return Bead(
        id=bead.id,
        title=bead.title,
        type=bead.type,
        status=bead.status,
        priority=bead.priority,
        labels=list(bead.labels),
        description=bead.description,
        acceptance=bead.acceptance,
        notes=bead.notes,
        parent=bead.parent,
    )


class FakeSettings:
    def __init__(self, enabled: bool = True, max_retries: int = 3,
                 agent: RegisteredAgent | None = None):
        self.verification = VerificationSettings(enabled=enabled, max_retries=max_retries)
        self.agent = agent or RegisteredAgent(command="claude")
        self.reads = 0

    def get_verification_settings(self) -> VerificationSettings:
        self.reads += 1
        return self.verification

    def get_verification_agent(self) -> RegisteredAgent:
        return self.agent


@pytest.fixture
def fake_tracker():
    return FakeTracker()


@pytest.fixture
def fake_settings():
    return FakeSettings()


@pytest.fixture(autouse=True)
def _isolated_config(tmp_path, monkeypatch):
    """Keep interaction logs and settings out of the user's home directory."""
    import config

    monkeypatch.setattr(config, "INTERACTION_LOG_DIR", tmp_path / "logs")
    monkeypatch.setattr(config, "SETTINGS_FILE", tmp_path / "settings.toml")
