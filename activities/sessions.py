"""
Activity: Implementation Sessions — launches agents that implement beads.

A "take" session implements one bead, a "scene" session several at once.
When the agent exits, the completion callback (the verification
orchestrator's `on_agent_complete`) is invoked with the exit code.
"""

from __future__ import annotations

import asyncio
import json
import logging
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Awaitable, Callable

from activities.agent_adapter import build_prompt_mode_args, create_line_normalizer, resolve_dialect
from activities.agent_runner import AgentProcess, extract_text
from features.beads.commands import (
    build_commit_label_command,
    build_show_issue_command,
    resolve_memory_manager,
)
from features.settings.store import SettingsStore
from features.verification.labels import ActionName
from utils.background import spawn_background
from utils.interaction_log import InteractionMeta, open_interaction_log

log = logging.getLogger(__name__)

CompletionCallback = Callable[[list[str], str, str, int], Awaitable[None]]


@dataclass
class SessionInfo:
    id: str
    bead_ids: list[str]
    action: str
    repo_path: str
    status: str = "starting"  # starting | running | completed | error
    started_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    exit_code: int | None = None

    def to_dict(self) -> dict:
        return asdict(self)


def build_implementation_prompt(bead_ids: list[str], memory_manager: str) -> str:
    lines = [
        f"Implement the following bead{'s' if len(bead_ids) > 1 else ''}: {', '.join(bead_ids)}.",
        "",
        "For each bead:",
    ]
    for bead_id in bead_ids:
        lines.append(f"- Read the requirements with: {build_show_issue_command(bead_id, memory_manager)}")
    lines += [
        "",
        "When the work is done, commit it on the current branch, then record the short SHA "
        "of that commit on every bead you implemented:",
        *(f"  {build_commit_label_command(bead_id, memory_manager)}" for bead_id in bead_ids),
        "",
        "Do not close the beads yourself; they are verified automatically.",
    ]
    return "\n".join(lines)


class SessionManager:
    def __init__(self, settings: SettingsStore, on_complete: CompletionCallback | None = None,
                 memory_manager: str | None = None):
        self.settings = settings
        self.on_complete = on_complete
        self.memory_manager = resolve_memory_manager(memory_manager)
        self.sessions: dict[str, SessionInfo] = {}

    async def create_session(self, bead_id: str, repo_path: str) -> SessionInfo:
        return await self._start([bead_id], ActionName.TAKE.value, repo_path)

    async def create_scene_session(self, bead_ids: list[str], repo_path: str) -> SessionInfo:
        return await self._start(list(bead_ids), ActionName.SCENE.value, repo_path)

    def list_sessions(self) -> list[SessionInfo]:
        return list(self.sessions.values())

    async def _start(self, bead_ids: list[str], action: str, repo_path: str) -> SessionInfo:
        if not bead_ids:
            raise ValueError("At least one bead id is required")
        session = SessionInfo(
            id=f"{action}-{uuid.uuid4().hex[:8]}",
            bead_ids=bead_ids,
            action=action,
            repo_path=repo_path,
        )
        loop = asyncio.get_running_loop()
        agent = await loop.run_in_executor(None, self.settings.get_action_agent, action)
        prompt = build_implementation_prompt(bead_ids, self.memory_manager)
        invocation = build_prompt_mode_args(agent, prompt)
        proc = AgentProcess(invocation.command, invocation.args, cwd=repo_path, label=f"{action} {session.id}")
        await proc.start()  # AgentSpawnError propagates to the caller

        self.sessions[session.id] = session
        session.status = "running"
        log.info("Session %s started: %s %s (pid %s)", session.id, action, ", ".join(bead_ids), proc.pid)

        interaction_log = await loop.run_in_executor(None, open_interaction_log, InteractionMeta(
            session_id=session.id,
            interaction_type=action,
            repo_path=repo_path,
            bead_ids=bead_ids,
            agent_name=agent.label or agent.command,
            agent_model=agent.model,
        ))
        interaction_log.log_prompt(prompt)
        spawn_background(f"session {session.id}", self._supervise(session, proc, interaction_log, agent.command))
        return session

    async def _supervise(self, session: SessionInfo, proc: AgentProcess, interaction_log, command: str) -> None:
        normalizer = create_line_normalizer(resolve_dialect(command))
        code: int | None = None
        try:
            async for line in proc.lines():
                interaction_log.log_response(line)
                try:
                    event = normalizer(json.loads(line))
                except json.JSONDecodeError:
                    continue
                if event and event.get("type") == "result":
                    log.info("Session %s result: %s", session.id, extract_text(event)[:200])
            code = await proc.wait()
        except Exception as e:
            log.error("Session %s lost its agent process: %s", session.id, e)

        session.exit_code = code
        session.status = "completed" if code == 0 else "error"
        interaction_log.log_end(code, session.status)
        log.info("Session %s finished with exit code %s", session.id, code)

        if self.on_complete is not None:
            # A lost process reports as a failed run, which is never verified.
            await self.on_complete(session.bead_ids, session.action, session.repo_path,
                                   code if code is not None else -1)
