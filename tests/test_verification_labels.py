"""Unit tests for the verification label state machine."""

from __future__ import annotations

import pytest

from features.verification.labels import (
    LabelMutation,
    VerificationState,
    apply_mutation,
    build_commit_label,
    compute_entry_labels,
    compute_pass_labels,
    compute_retry_labels,
    extract_attempt_number,
    extract_commit_label,
    get_verification_eligible_actions,
    is_verification_eligible_action,
    verification_state,
)


def test_entry_from_clean_labels():
    mutation = compute_entry_labels(["area:ui"])

    assert mutation.add == ["transition:verification", "stage:verification"]
    assert mutation.remove == []


def test_entry_clears_retry_marker():
    mutation = compute_entry_labels(["stage:retry", "attempt:1"])

    assert mutation.remove == ["stage:retry"]
    assert "stage:verification" in mutation.add


def test_entry_is_idempotent():
    mutation = compute_entry_labels(["transition:verification", "stage:verification"])
    assert mutation == LabelMutation(add=[], remove=[])


def test_entry_keeps_existing_stage_label():
    mutation = compute_entry_labels(["stage:verification"])
    assert mutation.add == ["transition:verification"]


def test_pass_removes_only_present_labels():
    assert compute_pass_labels(["stage:verification", "commit:abc"]) == LabelMutation(
        add=[], remove=["stage:verification"],
    )
    assert compute_pass_labels([]).is_empty()


def test_retry_from_first_attempt():
    mutation = compute_retry_labels(["transition:verification", "stage:verification", "commit:deadbeef"])

    assert mutation.add == ["stage:retry", "attempt:1"]
    assert mutation.remove == ["transition:verification", "stage:verification", "commit:deadbeef"]


def test_retry_increments_existing_attempt():
    mutation = compute_retry_labels(["stage:verification", "attempt:2"])

    assert "attempt:2" in mutation.remove
    assert "attempt:3" in mutation.add


def test_repeated_retries_keep_one_attempt_label():
    labels: list[str] = []
    for n in range(1, 6):
        labels = apply_mutation(labels, compute_entry_labels(labels))
        labels.append(build_commit_label("abc"))
        labels = apply_mutation(labels, compute_retry_labels(labels))

        assert [label for label in labels if label.startswith("attempt:")] == [f"attempt:{n}"]
        assert "stage:retry" in labels
        assert "stage:verification" not in labels
        assert extract_commit_label(labels) is None


def test_commit_label_round_trip():
    assert extract_commit_label([build_commit_label("abc123")]) == "abc123"


@pytest.mark.parametrize(
    "labels, expected",
    [
        ([], None),
        (["commit:"], None),
        (["commit:   "], None),
        (["x", "commit: f00d "], "f00d"),
        (["commit:aaa", "commit:bbb"], "aaa"),
    ],
)
def test_extract_commit_label(labels, expected):
    assert extract_commit_label(labels) == expected


@pytest.mark.parametrize(
    "labels, expected",
    [([], 0), (["attempt:4"], 4), (["attempt:x"], 0), (["attempt:-1"], 0)],
)
def test_extract_attempt_number(labels, expected):
    assert extract_attempt_number(labels) == expected


@pytest.mark.parametrize(
    "action, eligible",
    [("take", True), ("scene", True), ("direct", False), ("breakdown", False), ("bogus", False)],
)
def test_eligible_actions(action, eligible):
    assert is_verification_eligible_action(action) is eligible


def test_eligible_action_list():
    assert get_verification_eligible_actions() == ["scene", "take"]


def test_verification_state():
    assert verification_state([]) is VerificationState.IDLE
    assert verification_state(["transition:verification", "stage:verification"]) is VerificationState.ACTIVE
    assert verification_state(["stage:retry", "attempt:1"]) is VerificationState.RETRY


def test_apply_mutation_removes_before_adding():
    result = apply_mutation(["a", "b"], LabelMutation(add=["b", "c"], remove=["b"]))
    assert result == ["a", "b", "c"]
