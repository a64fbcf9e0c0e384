"""Tests for verifier prompt construction and result parsing."""

from __future__ import annotations

from features.beads.commands import (
    KNOTS,
    build_commit_label_command,
    build_verification_pass_commands,
    build_verification_retry_commands,
    resolve_memory_manager,
)
from features.verification.prompt import (
    VerificationOutcome,
    VerifierPromptContext,
    build_verifier_prompt,
    parse_verifier_result,
)


def _ctx(**overrides) -> VerifierPromptContext:
    fields = dict(
        bead_id="proj-42",
        title="Add login",
        commit_sha="deadbeef",
        description="Users can log in.",
        acceptance="Form validates email.",
        notes="",
    )
    fields.update(overrides)
    return VerifierPromptContext(**fields)


def test_prompt_embeds_bead_fields():
    prompt = build_verifier_prompt(_ctx())

    assert "- Bead ID: proj-42" in prompt
    assert "- Title: Add login" in prompt
    assert "- Commit: deadbeef" in prompt
    assert "## Description\nUsers can log in." in prompt
    assert "## Acceptance Criteria\nForm validates email." in prompt
    assert "## Notes" not in prompt


def test_prompt_contains_tracker_commands_verbatim():
    prompt = build_verifier_prompt(_ctx())

    assert 'bd label remove "proj-42" stage:verification --no-daemon' in prompt
    assert 'bd label add "proj-42" stage:retry --no-daemon' in prompt
    assert 'bd close "proj-42"' in prompt
    assert "REJECTION_SUMMARY:" in prompt
    assert "VERIFICATION_RESULT:fail-requirements" in prompt
    assert "VERIFICATION_RESULT:fail-bugs" in prompt
    assert "VERIFICATION_RESULT:pass" in prompt


def test_prompt_is_deterministic():
    assert build_verifier_prompt(_ctx()) == build_verifier_prompt(_ctx())


def test_knots_prompt_has_no_bd_commands():
    prompt = build_verifier_prompt(_ctx(memory_manager=KNOTS))
    assert "bd label" not in prompt


def test_parse_marker_mid_output():
    output = "blah blah\nVERIFICATION_RESULT:fail-bugs\nmore"
    assert parse_verifier_result(output) is VerificationOutcome.FAIL_BUGS


def test_parse_first_marker_wins():
    output = "VERIFICATION_RESULT:pass then VERIFICATION_RESULT:fail-requirements"
    assert parse_verifier_result(output) is VerificationOutcome.PASS


def test_parse_without_marker():
    assert parse_verifier_result("all good, no marker") is None
    assert parse_verifier_result("VERIFICATION_RESULT:maybe") is None


def test_tracker_commands_per_memory_manager():
    assert resolve_memory_manager("KNOTS") == KNOTS
    assert resolve_memory_manager("something-else") == "beads"
    assert build_verification_retry_commands("p-1", KNOTS) == []
    assert build_verification_pass_commands("p-1")[-1] == 'bd close "p-1"'
    assert build_verification_pass_commands("p-1", no_daemon=True)[-1] == 'bd close "p-1"'
    assert build_commit_label_command("p-1", KNOTS) == 'kno update "p-1" --add-tag commit:<short-sha>'
