"""
Verification label state machine.

The tracker has no verification-state column, so the state lives in labels:

    agent-complete ──► transition:verification + stage:verification
                            │
                            ├── no commit label (after one recheck) → stage:retry + attempt:N
                            ├── verifier pass → labels removed, bead closed
                            └── verifier fail → stage:retry + attempt:N

Label invariants:
  transition:verification  present only while a workflow holds the bead
  stage:verification       set on entry, removed on pass or retry
  stage:retry              set on failure; never together with stage:verification
  attempt:N                one label at most, N increments on every retry
  commit:<sha>             the implementing commit; required before verifying

Every transition is a pure function of the current labels returning the
labels to add and remove. Nothing here talks to the tracker.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

LABEL_TRANSITION_VERIFICATION = "transition:verification"
LABEL_STAGE_VERIFICATION = "stage:verification"
LABEL_STAGE_RETRY = "stage:retry"

LABEL_PREFIX_COMMIT = "commit:"
LABEL_PREFIX_ATTEMPT = "attempt:"


class ActionName(str, Enum):
    TAKE = "take"          # single bead implementation
    SCENE = "scene"        # multi-bead implementation
    DIRECT = "direct"      # planning only
    BREAKDOWN = "breakdown"  # decomposition only


# Only these produce code worth verifying.
_CODE_PRODUCING_ACTIONS = frozenset({ActionName.TAKE, ActionName.SCENE})


def is_verification_eligible_action(action: str) -> bool:
    try:
        return ActionName(action) in _CODE_PRODUCING_ACTIONS
    except ValueError:
        return False


def get_verification_eligible_actions() -> list[str]:
    return sorted(a.value for a in _CODE_PRODUCING_ACTIONS)


class VerificationState(str, Enum):
    IDLE = "idle"
    ACTIVE = "active"
    RETRY = "retry"


def verification_state(labels: list[str]) -> VerificationState:
    if LABEL_TRANSITION_VERIFICATION in labels or LABEL_STAGE_VERIFICATION in labels:
        return VerificationState.ACTIVE
    if LABEL_STAGE_RETRY in labels:
        return VerificationState.RETRY
    return VerificationState.IDLE


@dataclass
class LabelMutation:
    add: list[str] = field(default_factory=list)
    remove: list[str] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not self.add and not self.remove


# ── Label helpers ─────────────────────────────────────────────────────

def extract_commit_label(labels: list[str]) -> str | None:
    """SHA from the first non-empty commit:<sha> label, else None."""
    for label in labels:
        if label.startswith(LABEL_PREFIX_COMMIT):
            sha = label[len(LABEL_PREFIX_COMMIT):].strip()
            if sha:
                return sha
    return None


def build_commit_label(sha: str) -> str:
    return f"{LABEL_PREFIX_COMMIT}{sha}"


def find_commit_label(labels: list[str]) -> str | None:
    return next((label for label in labels if label.startswith(LABEL_PREFIX_COMMIT)), None)


def extract_attempt_number(labels: list[str]) -> int:
    for label in labels:
        if label.startswith(LABEL_PREFIX_ATTEMPT):
            try:
                number = int(label[len(LABEL_PREFIX_ATTEMPT):].strip())
            except ValueError:
                continue
            if number >= 0:
                return number
    return 0


def build_attempt_label(attempt: int) -> str:
    return f"{LABEL_PREFIX_ATTEMPT}{attempt}"


def find_attempt_label(labels: list[str]) -> str | None:
    return next((label for label in labels if label.startswith(LABEL_PREFIX_ATTEMPT)), None)


def has_transition_lock(labels: list[str]) -> bool:
    return LABEL_TRANSITION_VERIFICATION in labels


def is_in_verification(labels: list[str]) -> bool:
    return LABEL_STAGE_VERIFICATION in labels


def is_in_retry(labels: list[str]) -> bool:
    return LABEL_STAGE_RETRY in labels


# ── Transitions ───────────────────────────────────────────────────────

def compute_entry_labels(labels: list[str]) -> LabelMutation:
    """Enter verification. No-op when the transition label is already present."""
    if LABEL_TRANSITION_VERIFICATION in labels:
        return LabelMutation()

    mutation = LabelMutation(add=[LABEL_TRANSITION_VERIFICATION])
    if LABEL_STAGE_VERIFICATION not in labels:
        mutation.add.append(LABEL_STAGE_VERIFICATION)
    if LABEL_STAGE_RETRY in labels:
        mutation.remove.append(LABEL_STAGE_RETRY)
    return mutation


def compute_pass_labels(labels: list[str]) -> LabelMutation:
    """Leave verification on success. Closing the bead is the caller's job."""
    mutation = LabelMutation()
    for label in (LABEL_TRANSITION_VERIFICATION, LABEL_STAGE_VERIFICATION):
        if label in labels:
            mutation.remove.append(label)
    return mutation


def compute_retry_labels(labels: list[str]) -> LabelMutation:
    """Leave verification on failure: drop the commit marker, bump the attempt."""
    mutation = LabelMutation(add=[LABEL_STAGE_RETRY])
    for label in (LABEL_TRANSITION_VERIFICATION, LABEL_STAGE_VERIFICATION):
        if label in labels:
            mutation.remove.append(label)

    commit_label = find_commit_label(labels)
    if commit_label:
        mutation.remove.append(commit_label)

    attempt_label = find_attempt_label(labels)
    if attempt_label:
        mutation.remove.append(attempt_label)
    mutation.add.append(build_attempt_label(extract_attempt_number(labels) + 1))
    return mutation


def apply_mutation(labels: list[str], mutation: LabelMutation) -> list[str]:
    """Labels after a mutation, the way the tracker applies it (remove, then add)."""
    result = [label for label in labels if label not in mutation.remove]
    for label in mutation.add:
        if label not in result:
            result.append(label)
    return result
