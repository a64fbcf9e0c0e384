"""HTTP tests for the FastAPI app with fake collaborators."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

import app as app_module
from activities.agent_runner import AgentSpawnError
from activities.sessions import SessionInfo
from conftest import FakeSettings, FakeTracker
from features.beads.errors import TrackerErrorCode
from features.beads.models import Bead, BeadDependency
from features.verification.events import VerificationEventType
from features.verification.orchestrator import VerificationOrchestrator


@pytest.fixture
def wired(monkeypatch):
    tracker = FakeTracker(
        [Bead(id="p-a", title="First"), Bead(id="p-b", title="Second")],
        {"p-b": [BeadDependency(id="p-a", status="open")]},
    )
    orchestrator = VerificationOrchestrator(tracker, FakeSettings(enabled=False), commit_recheck_delay=0)
    sessions = MagicMock()
    monkeypatch.setattr(app_module, "tracker", tracker)
    monkeypatch.setattr(app_module, "orchestrator", orchestrator)
    monkeypatch.setattr(app_module, "sessions", sessions)
    return tracker, orchestrator, sessions


@pytest.fixture
def client():
    # Not used as a context manager, so the lifespan does not replace the fakes.
    return TestClient(app_module.app)


def test_health(client):
    assert client.get("/health").json()["status"] == "ok"


def test_not_ready_before_startup(client, monkeypatch):
    monkeypatch.setattr(app_module, "tracker", None)
    assert client.get("/sessions").status_code == 503


def test_waves(client, wired, tmp_path):
    resp = client.get("/waves", params={"repo": str(tmp_path)})

    assert resp.status_code == 200
    body = resp.json()
    assert [[i["id"] for i in w["items"]] for w in body["waves"]] == [["p-a"], ["p-b"]]
    assert body["recommendation"]["bead_id"] == "p-a"
    assert body["summary"]["blocked"] == 1


def test_waves_rejects_missing_repo(client, wired, tmp_path):
    resp = client.get("/waves", params={"repo": str(tmp_path / "nope")})
    assert resp.status_code == 400


def test_waves_tracker_failure_is_502(client, wired, tmp_path):
    tracker, _, _ = wired
    tracker.fail["list:open"] = TrackerErrorCode.UNAVAILABLE

    resp = client.get("/waves", params={"repo": str(tmp_path)})
    assert resp.status_code == 502


def test_verification_events(client, wired):
    _, orchestrator, _ = wired
    for i in range(3):
        orchestrator.events.record(VerificationEventType.QUEUED, f"p-{i}")

    events = client.get("/verification/events", params={"limit": 2}).json()["events"]
    assert [e["bead_id"] for e in events] == ["p-1", "p-2"]
    assert events[0]["type"] == "queued"


def test_agent_complete_is_accepted(client, wired, tmp_path, monkeypatch):
    spawned = MagicMock(side_effect=lambda description, coro: coro.close())
    monkeypatch.setattr(app_module, "spawn_background", spawned)

    resp = client.post("/verification/agent-complete", json={
        "bead_ids": ["p-a"], "action": "take", "repo_path": str(tmp_path), "exit_code": 0,
    })

    assert resp.status_code == 202
    assert resp.json() == {"status": "accepted"}
    spawned.assert_called_once()


def test_agent_complete_rejects_unknown_action(client, wired, tmp_path):
    resp = client.post("/verification/agent-complete", json={
        "bead_ids": ["p-a"], "action": "deploy", "repo_path": str(tmp_path), "exit_code": 0,
    })
    assert resp.status_code == 400


def test_agent_complete_requires_bead_ids(client, wired, tmp_path):
    resp = client.post("/verification/agent-complete", json={
        "bead_ids": [], "action": "take", "repo_path": str(tmp_path), "exit_code": 0,
    })
    assert resp.status_code == 422


def test_start_take_session(client, wired, tmp_path):
    _, _, sessions = wired
    sessions.create_session = AsyncMock(return_value=SessionInfo(
        id="take-1", bead_ids=["p-a"], action="take", repo_path=str(tmp_path), status="running",
    ))

    resp = client.post("/sessions", json={"bead_ids": ["p-a"], "action": "take", "repo_path": str(tmp_path)})

    assert resp.status_code == 200
    assert resp.json()["id"] == "take-1"
    sessions.create_session.assert_awaited_once_with("p-a", str(tmp_path))


def test_take_session_needs_exactly_one_bead(client, wired, tmp_path):
    resp = client.post("/sessions", json={"bead_ids": ["p-a", "p-b"], "action": "take",
                                          "repo_path": str(tmp_path)})
    assert resp.status_code == 400


def test_start_scene_session(client, wired, tmp_path):
    _, _, sessions = wired
    sessions.create_scene_session = AsyncMock(return_value=SessionInfo(
        id="scene-1", bead_ids=["p-a", "p-b"], action="scene", repo_path=str(tmp_path),
    ))

    resp = client.post("/sessions", json={"bead_ids": ["p-a", "p-b"], "action": "scene",
                                          "repo_path": str(tmp_path)})

    assert resp.json()["bead_ids"] == ["p-a", "p-b"]


def test_session_rejects_planning_action(client, wired, tmp_path):
    resp = client.post("/sessions", json={"bead_ids": ["p-a"], "action": "direct", "repo_path": str(tmp_path)})
    assert resp.status_code == 400


def test_session_spawn_failure_is_502(client, wired, tmp_path):
    _, _, sessions = wired
    sessions.create_session = AsyncMock(side_effect=AgentSpawnError("Failed to start claude"))

    resp = client.post("/sessions", json={"bead_ids": ["p-a"], "repo_path": str(tmp_path)})
    assert resp.status_code == 502


def test_list_sessions(client, wired, tmp_path):
    _, _, sessions = wired
    sessions.list_sessions = MagicMock(return_value=[
        SessionInfo(id="take-1", bead_ids=["p-a"], action="take", repo_path=str(tmp_path)),
    ])

    assert [s["id"] for s in client.get("/sessions").json()["sessions"]] == ["take-1"]
