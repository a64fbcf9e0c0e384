"""
Verification orchestrator — drives the post-implementation verification loop.

Triggered when an implementation agent exits. For every bead of a clean,
code-producing run it:

  1. takes the per-bead lock (a second trigger for the same bead is dropped)
  2. enters verification (labels + in_progress)
  3. makes sure a commit:<sha> label exists, rechecking exactly once
  4. runs the verifier agent against that commit
  5. passes (close) or fails (notes, retry labels, maybe a fresh session)

Beads are processed concurrently and independently. `run_verification_workflow`
is the only place exceptions are caught; whatever goes wrong there leaves the
bead in the retry state and the lock is always released.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import datetime, timezone
from typing import Awaitable, Callable, Protocol

import config
from activities.agent_runner import VerifierResult, run_verifier
from features.beads.commands import resolve_memory_manager
from features.beads.errors import TrackerOperationError, TrackerResult
from features.beads.models import Bead, BeadStatus, BeadUpdate
from features.beads.tracker import TrackerPort
from features.settings.models import RegisteredAgent, VerificationSettings
from features.verification.events import VerificationEventLog, VerificationEventType
from features.verification.labels import (
    ActionName,
    LabelMutation,
    compute_entry_labels,
    compute_pass_labels,
    compute_retry_labels,
    extract_attempt_number,
    extract_commit_label,
    has_transition_lock,
    is_verification_eligible_action,
)
from features.verification.locks import VerificationLockStore
from features.verification.prompt import (
    VerificationOutcome,
    VerifierPromptContext,
    build_verifier_prompt,
)
from utils.background import run_best_effort
from utils.interaction_log import InteractionMeta, open_interaction_log

log = logging.getLogger(__name__)

PASS_CLOSE_REASON = "Auto-verification passed"

VerifierRunner = Callable[..., Awaitable[VerifierResult]]


class VerificationSettingsSource(Protocol):
    def get_verification_settings(self) -> VerificationSettings: ...

    def get_verification_agent(self) -> RegisteredAgent: ...


class RetrySessionLauncher(Protocol):
    async def create_session(self, bead_id: str, repo_path: str): ...

    async def create_scene_session(self, bead_ids: list[str], repo_path: str): ...


def _require(result: TrackerResult, what: str):
    if not result.ok:
        raise TrackerOperationError(f"{what}: {result.error_message}", result.error)
    return result.data


def _mutation_update(mutation: LabelMutation, status: str | None = None) -> BeadUpdate:
    return BeadUpdate(labels=list(mutation.add), remove_labels=list(mutation.remove), status=status)


def format_verifier_notes(existing: str, outcome: VerificationOutcome, output: str,
                          attempt: int, now: datetime | None = None) -> str:
    """Existing notes plus a markdown section describing a failed attempt."""
    timestamp = (now or datetime.now(timezone.utc)).strftime("%Y-%m-%d %H:%M")
    limit = config.MAX_VERIFIER_OUTPUT_CHARS
    excerpt = output if len(output) <= limit else output[:limit] + "\n...(truncated)"
    section = "\n".join([
        "",
        "---",
        f"**Verification attempt {attempt} failed ({timestamp})** reason: {outcome.value}",
        "",
        excerpt,
    ])
    return (existing or "") + section


class VerificationOrchestrator:
    def __init__(
        self,
        tracker: TrackerPort,
        settings: VerificationSettingsSource,
        sessions: RetrySessionLauncher | None = None,
        locks: VerificationLockStore | None = None,
        events: VerificationEventLog | None = None,
        verifier: VerifierRunner = run_verifier,
        commit_recheck_delay: float | None = None,
        memory_manager: str | None = None,
    ):
        self.tracker = tracker
        self.settings = settings
        self.sessions = sessions
        self.locks = locks or VerificationLockStore()
        self.events = events or VerificationEventLog()
        self.verifier = verifier
        self.commit_recheck_delay = (
            commit_recheck_delay if commit_recheck_delay is not None else config.COMMIT_LABEL_RETRY_DELAY_SEC
        )
        self.memory_manager = resolve_memory_manager(memory_manager)

    # ── Entry point ───────────────────────────────────────────────────

    async def on_agent_complete(self, bead_ids: list[str], action: str,
                                repo_path: str, exit_code: int) -> None:
        """Verify the beads of a finished implementation run, if eligible."""
        if exit_code != 0:
            return
        if not is_verification_eligible_action(action):
            return
        loop = asyncio.get_running_loop()
        verification = await loop.run_in_executor(None, self.settings.get_verification_settings)
        if not verification.enabled:
            return

        results = await asyncio.gather(
            *(self.run_verification_workflow(bead_id, action, repo_path) for bead_id in bead_ids),
            return_exceptions=True,
        )
        for bead_id, result in zip(bead_ids, results):
            if isinstance(result, BaseException):
                log.error("Verification workflow for %s crashed: %s", bead_id, result)

    async def run_verification_workflow(self, bead_id: str, action: str, repo_path: str) -> None:
        if not self.locks.acquire(bead_id):
            self.events.record(VerificationEventType.DEDUPED, bead_id, "already has active verification")
            return

        try:
            await self.enter_verification(bead_id, repo_path)

            commit_sha = await self.ensure_commit_label(bead_id, repo_path)
            if not commit_sha:
                self.events.record(VerificationEventType.REMEDIATION_FAILED, bead_id, "no commit label")
                await self.transition_to_retry(bead_id, repo_path)
                return

            result = await self.launch_verifier(bead_id, repo_path, commit_sha)
            await self.apply_outcome(bead_id, action, repo_path, result.outcome, result.output)
        except Exception as e:
            self.events.record(VerificationEventType.REMEDIATION_FAILED, bead_id, str(e))
            try:
                await self.transition_to_retry(bead_id, repo_path)
            except Exception as retry_error:
                log.error("Could not move %s to retry: %s", bead_id, retry_error)
        finally:
            self.locks.release(bead_id)

    # ── Steps ─────────────────────────────────────────────────────────

    async def _load(self, bead_id: str, repo_path: str, purpose: str) -> Bead:
        return _require(await self.tracker.get(bead_id, repo_path), f"Failed to load bead {bead_id} for {purpose}")

    async def enter_verification(self, bead_id: str, repo_path: str) -> None:
        self.events.record(VerificationEventType.QUEUED, bead_id)
        bead = await self._load(bead_id, repo_path, "verification entry")
        if has_transition_lock(bead.labels):
            return

        mutation = compute_entry_labels(bead.labels)
        if mutation.is_empty():
            return
        status = BeadStatus.IN_PROGRESS.value if bead.status != BeadStatus.IN_PROGRESS.value else None
        _require(
            await self.tracker.update(bead_id, _mutation_update(mutation, status), repo_path),
            f"Failed to enter verification for {bead_id}",
        )

    async def ensure_commit_label(self, bead_id: str, repo_path: str) -> str | None:
        """The bead's commit sha, rechecked once after a short delay if missing."""
        result = await self.tracker.get(bead_id, repo_path)
        if not result.ok or result.data is None:
            return None
        sha = extract_commit_label(result.data.labels)
        if sha:
            return sha

        self.events.record(VerificationEventType.MISSING_COMMIT, bead_id)
        for attempt in range(config.MAX_COMMIT_REMEDIATION_ATTEMPTS):
            self.events.record(VerificationEventType.REMEDIATION_STARTED, bead_id, f"recheck={attempt + 1}")
            await asyncio.sleep(self.commit_recheck_delay)
            refreshed = await self.tracker.get(bead_id, repo_path)
            if not refreshed.ok or refreshed.data is None:
                continue
            sha = extract_commit_label(refreshed.data.labels)
            if sha:
                return sha
        return None

    async def launch_verifier(self, bead_id: str, repo_path: str, commit_sha: str) -> VerifierResult:
        self.events.record(VerificationEventType.VERIFIER_STARTED, bead_id, f"commit={commit_sha}")
        bead = await self._load(bead_id, repo_path, "verifier prompt")
        prompt = build_verifier_prompt(VerifierPromptContext(
            bead_id=bead_id,
            title=bead.title,
            commit_sha=commit_sha,
            description=bead.description,
            acceptance=bead.acceptance,
            notes=bead.notes,
            memory_manager=self.memory_manager,
        ))

        loop = asyncio.get_running_loop()
        agent = await loop.run_in_executor(None, self.settings.get_verification_agent)
        interaction_log = await loop.run_in_executor(None, open_interaction_log, InteractionMeta(
            session_id=f"verify-{uuid.uuid4().hex[:12]}",
            interaction_type="verification",
            repo_path=repo_path,
            bead_ids=[bead_id],
            agent_name=agent.label or agent.command,
            agent_model=agent.model,
        ))
        interaction_log.log_prompt(prompt, source="verification_review")

        result = await self.verifier(bead_id, prompt, agent, repo_path, interaction_log)
        self.events.record(VerificationEventType.VERIFIER_COMPLETED, bead_id, f"outcome={result.outcome.value}")
        return result

    async def apply_outcome(self, bead_id: str, action: str, repo_path: str,
                            outcome: VerificationOutcome, output: str) -> None:
        bead = await self._load(bead_id, repo_path, "outcome")

        if outcome is VerificationOutcome.PASS:
            mutation = compute_pass_labels(bead.labels)
            if not mutation.is_empty():
                _require(
                    await self.tracker.update(bead_id, _mutation_update(mutation), repo_path),
                    f"Failed to clear verification labels on {bead_id}",
                )
            _require(
                await self.tracker.close(bead_id, PASS_CLOSE_REASON, repo_path),
                f"Failed to close {bead_id}",
            )
            self.events.record(VerificationEventType.CLOSED, bead_id)
            return

        self.events.record(VerificationEventType.RETRY, bead_id, f"reason={outcome.value}")
        attempt = extract_attempt_number(bead.labels) + 1
        # Notes are a side channel; failing to write them does not change the outcome.
        await run_best_effort(
            f"notes update for {bead_id}",
            self.append_verifier_notes(bead_id, repo_path, bead.notes, outcome, output, attempt),
        )
        await self.transition_to_retry(bead_id, repo_path)
        await run_best_effort(
            f"auto-retry for {bead_id}",
            self.maybe_auto_retry(bead_id, action, repo_path, attempt),
        )

    # ── Helpers ───────────────────────────────────────────────────────

    async def append_verifier_notes(self, bead_id: str, repo_path: str, existing_notes: str,
                                    outcome: VerificationOutcome, output: str, attempt: int) -> None:
        notes = format_verifier_notes(existing_notes, outcome, output, attempt)
        _require(
            await self.tracker.update(bead_id, BeadUpdate(notes=notes), repo_path),
            f"Failed to append notes to {bead_id}",
        )
        self.events.record(VerificationEventType.NOTES_UPDATED, bead_id, f"attempt={attempt}")

    async def maybe_auto_retry(self, bead_id: str, action: str, repo_path: str, attempt: int) -> None:
        loop = asyncio.get_running_loop()
        settings = await loop.run_in_executor(None, self.settings.get_verification_settings)
        max_retries = settings.max_retries
        if max_retries <= 0 or attempt > max_retries:
            log.info("Skipping auto-retry for %s: attempt %d exceeds max_retries %d",
                     bead_id, attempt, max_retries)
            return
        if self.sessions is None:
            log.info("No session launcher configured; not relaunching %s", bead_id)
            return

        if action == ActionName.SCENE.value:
            await self.sessions.create_scene_session([bead_id], repo_path)
        else:
            await self.sessions.create_session(bead_id, repo_path)
        self.events.record(VerificationEventType.RETRY_SESSION_STARTED, bead_id,
                           f"attempt={attempt} action={action}")

    async def transition_to_retry(self, bead_id: str, repo_path: str) -> None:
        result = await self.tracker.get(bead_id, repo_path)
        if not result.ok or result.data is None:
            log.warning("Cannot move %s to retry: %s", bead_id, result.error_message)
            return
        mutation = compute_retry_labels(result.data.labels)
        _require(
            await self.tracker.update(bead_id, _mutation_update(mutation, BeadStatus.OPEN.value), repo_path),
            f"Failed to move {bead_id} to retry",
        )
