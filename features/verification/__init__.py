"""
Verification feature — label state machine, verifier prompt, orchestrator.

Public API:
    from features.verification import compute_retry_labels, parse_verifier_result
    from features.verification.orchestrator import VerificationOrchestrator
"""

from features.verification.events import VerificationEvent, VerificationEventLog, VerificationEventType
from features.verification.labels import (
    ActionName,
    LabelMutation,
    VerificationState,
    build_commit_label,
    compute_entry_labels,
    compute_pass_labels,
    compute_retry_labels,
    extract_commit_label,
    get_verification_eligible_actions,
    is_verification_eligible_action,
    verification_state,
)
from features.verification.locks import VerificationLockStore
from features.verification.prompt import VerificationOutcome, build_verifier_prompt, parse_verifier_result

__all__ = [
    "ActionName",
    "LabelMutation",
    "VerificationEvent",
    "VerificationEventLog",
    "VerificationEventType",
    "VerificationLockStore",
    "VerificationOutcome",
    "VerificationState",
    "build_commit_label",
    "build_verifier_prompt",
    "compute_entry_labels",
    "compute_pass_labels",
    "compute_retry_labels",
    "extract_commit_label",
    "get_verification_eligible_actions",
    "is_verification_eligible_action",
    "parse_verifier_result",
    "verification_state",
]
