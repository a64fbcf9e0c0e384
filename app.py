"""
FastAPI application — REST API for Bead Pilot.

Endpoints:
  GET  /health                        — Health check
  GET  /waves?repo=...                — Wave plan for a repository's beads
  GET  /verification/events           — Recent verification lifecycle events
  POST /verification/agent-complete   — Report an implementation agent exit
  POST /sessions                      — Start a take / scene implementation session
  GET  /sessions                      — List tracked sessions
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

import config
from activities.agent_runner import AgentSpawnError
from activities.sessions import SessionManager
from features.beads.tracker import BdCliTracker, TrackerPort
from features.settings.store import SettingsStore
from features.verification.labels import ActionName
from features.verification.orchestrator import VerificationOrchestrator
from features.waves.builder import WavePlanError, build_wave_plan
from utils.background import spawn_background

load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    datefmt="%H:%M:%S",
)
log = logging.getLogger(__name__)

tracker: TrackerPort | None = None
settings_store: SettingsStore | None = None
orchestrator: VerificationOrchestrator | None = None
sessions: SessionManager | None = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    global tracker, settings_store, orchestrator, sessions
    tracker = BdCliTracker()
    settings_store = SettingsStore()
    sessions = SessionManager(settings_store)
    orchestrator = VerificationOrchestrator(tracker, settings_store, sessions=sessions)
    sessions.on_complete = orchestrator.on_agent_complete
    log.info("Bead Pilot ready (tracker=%s, settings=%s)", config.BD_BIN, settings_store.path)
    yield


app = FastAPI(
    title="Bead Pilot",
    description="Dependency waves and automatic verification for bead-tracked work",
    version="1.0.0",
    lifespan=lifespan,
)


def _require_repo(repo_path: str) -> str:
    if not Path(repo_path).is_dir():
        raise HTTPException(status_code=400, detail=f"Repository not found: {repo_path}")
    return repo_path


def _require_ready():
    if tracker is None or orchestrator is None or sessions is None:
        raise HTTPException(status_code=503, detail="Service is still starting")


# ── Health ────────────────────────────────────────────────────────────

@app.get("/health")
def health():
    return {
        "status": "ok",
        "service": "bead-pilot",
        "memory_manager": config.MEMORY_MANAGER,
    }


# ── Waves ─────────────────────────────────────────────────────────────

@app.get("/waves")
async def get_waves(repo: str = str(config.DEFAULT_REPO_PATH)):
    """Compute the wave plan from a fresh tracker snapshot."""
    _require_ready()
    repo_path = _require_repo(repo)
    try:
        plan = await build_wave_plan(tracker, repo_path)
    except WavePlanError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return plan.to_dict()


# ── Verification ──────────────────────────────────────────────────────

class AgentCompleteRequest(BaseModel):
    bead_ids: list[str] = Field(min_length=1)
    action: str
    repo_path: str = str(config.DEFAULT_REPO_PATH)
    exit_code: int


@app.get("/verification/events")
async def list_verification_events(limit: int = 50):
    _require_ready()
    return {"events": [e.to_dict() for e in orchestrator.events.recent(limit)]}


@app.post("/verification/agent-complete", status_code=202)
async def agent_complete(req: AgentCompleteRequest):
    """Hand a finished agent run to the orchestrator; verification runs in the background."""
    _require_ready()
    if req.action not in {a.value for a in ActionName}:
        raise HTTPException(status_code=400, detail=f"Unknown action: {req.action}")
    repo_path = _require_repo(req.repo_path)
    spawn_background(
        f"verification for {', '.join(req.bead_ids)}",
        orchestrator.on_agent_complete(req.bead_ids, req.action, repo_path, req.exit_code),
    )
    return {"status": "accepted"}


# ── Sessions ──────────────────────────────────────────────────────────

class SessionStartRequest(BaseModel):
    bead_ids: list[str] = Field(min_length=1)
    action: str = ActionName.TAKE.value
    repo_path: str = str(config.DEFAULT_REPO_PATH)


@app.post("/sessions")
async def start_session(req: SessionStartRequest):
    """Start an implementation agent for one bead (take) or several (scene)."""
    _require_ready()
    repo_path = _require_repo(req.repo_path)
    try:
        if req.action == ActionName.TAKE.value:
            if len(req.bead_ids) != 1:
                raise HTTPException(status_code=400, detail="A take session implements exactly one bead")
            session = await sessions.create_session(req.bead_ids[0], repo_path)
        elif req.action == ActionName.SCENE.value:
            session = await sessions.create_scene_session(req.bead_ids, repo_path)
        else:
            raise HTTPException(status_code=400, detail=f"Sessions support take or scene, not {req.action}")
    except AgentSpawnError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return session.to_dict()


@app.get("/sessions")
async def list_sessions():
    _require_ready()
    return {"sessions": [s.to_dict() for s in sessions.list_sessions()]}
