"""
Verifier prompt construction and result parsing.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

from features.beads.commands import (
    BEADS,
    build_verification_pass_commands,
    build_verification_retry_commands,
)


class VerificationOutcome(str, Enum):
    PASS = "pass"
    FAIL_REQUIREMENTS = "fail-requirements"
    FAIL_BUGS = "fail-bugs"


RESULT_RE = re.compile(r"VERIFICATION_RESULT:(pass|fail-requirements|fail-bugs)")


@dataclass
class VerifierPromptContext:
    bead_id: str
    title: str
    commit_sha: str
    description: str = ""
    acceptance: str = ""
    notes: str = ""
    memory_manager: str = BEADS


def build_verifier_prompt(ctx: VerifierPromptContext) -> str:
    retry_commands = build_verification_retry_commands(ctx.bead_id, ctx.memory_manager, no_daemon=True)
    pass_commands = build_verification_pass_commands(ctx.bead_id, ctx.memory_manager, no_daemon=True)

    lines = [
        f"Bead {ctx.bead_id} has just been queued for verification. "
        "You are going to verify it with the following steps:",
        "",
        "## Reference",
        f"- Bead ID: {ctx.bead_id}",
        f"- Title: {ctx.title}",
        f"- Commit: {ctx.commit_sha}",
    ]
    if ctx.description:
        lines += ["", "## Description", ctx.description]
    if ctx.acceptance:
        lines += ["", "## Acceptance Criteria", ctx.acceptance]
    if ctx.notes:
        lines += ["", "## Notes", ctx.notes]

    lines += [
        "",
        "## Verification Steps",
        "",
        f"1. Use commit {ctx.commit_sha} as a basis for reference.",
        "2. Check: Does the code on main satisfy the requirements of the bead?",
        "   - If NO: run the following memory manager commands and stop:",
        *(f"     {command}" for command in retry_commands),
        "     Then output a brief rejection summary (2-4 sentences) explaining what is wrong "
        "and what needs to change, prefixed with REJECTION_SUMMARY:",
        "     Example: REJECTION_SUMMARY: The login form component was not updated to handle the "
        "new OAuth flow. The redirect URL is still hardcoded. Update the form to use the dynamic "
        "redirect from config.",
        "     Then output: VERIFICATION_RESULT:fail-requirements",
        "3. Check: Does the commit introduce bugs that require correction?",
        "   - If YES: run the same memory manager commands as step 2 and stop.",
        "     Then output a brief rejection summary explaining the bugs found, prefixed with REJECTION_SUMMARY:",
        "     Then output: VERIFICATION_RESULT:fail-bugs",
        "4. If both checks pass (code satisfies requirements, no bugs):",
        *(f"     {command}" for command in pass_commands),
        "     Then output: VERIFICATION_RESULT:pass",
        "",
        "IMPORTANT: On failure, you MUST output a REJECTION_SUMMARY line followed by a VERIFICATION_RESULT line.",
        "Use the format: REJECTION_SUMMARY: <2-4 sentence explanation of what failed and what to fix>",
        "Then: VERIFICATION_RESULT:<pass|fail-requirements|fail-bugs>",
        "On pass, output only: VERIFICATION_RESULT:pass",
    ]
    return "\n".join(lines)


def parse_verifier_result(output: str) -> VerificationOutcome | None:
    """First VERIFICATION_RESULT marker in the output, or None."""
    match = RESULT_RE.search(output)
    if not match:
        return None
    return VerificationOutcome(match.group(1))
