"""
Tracker shell commands embedded verbatim in agent prompts.

Agents run these themselves, so they are rendered as copy-pasteable command
lines rather than argument lists. Which set is used depends on the memory
manager backing the repository (beads via `bd`, knots via `kno`).
"""

from __future__ import annotations

import json

import config

BEADS = "beads"
KNOTS = "knots"


def _quote(value: str) -> str:
    return json.dumps(value)


def _no_daemon(no_daemon: bool) -> str:
    return " --no-daemon" if no_daemon else ""


def resolve_memory_manager(memory_manager: str | None = None) -> str:
    value = (memory_manager or config.MEMORY_MANAGER or BEADS).strip().lower()
    return KNOTS if value == KNOTS else BEADS


def build_show_issue_command(bead_id: str, memory_manager: str = BEADS) -> str:
    if memory_manager == KNOTS:
        return f"kno show {_quote(bead_id)}"
    return f"bd show {_quote(bead_id)}"


def build_commit_label_command(bead_id: str, memory_manager: str = BEADS) -> str:
    """Command an implementing agent runs to record its commit on the bead."""
    if memory_manager == KNOTS:
        return f"kno update {_quote(bead_id)} --add-tag commit:<short-sha>"
    return f"bd label add {_quote(bead_id)} commit:<short-sha>"


def build_verification_retry_commands(bead_id: str, memory_manager: str = BEADS,
                                      no_daemon: bool = False) -> list[str]:
    if memory_manager == KNOTS:
        return []
    flag = _no_daemon(no_daemon)
    return [
        f"bd label remove {_quote(bead_id)} stage:verification{flag}",
        f"bd label remove {_quote(bead_id)} transition:verification{flag}",
        f"bd label add {_quote(bead_id)} stage:retry{flag}",
    ]


def build_verification_pass_commands(bead_id: str, memory_manager: str = BEADS,
                                     no_daemon: bool = False) -> list[str]:
    if memory_manager == KNOTS:
        return []
    flag = _no_daemon(no_daemon)
    return [
        f"bd label remove {_quote(bead_id)} stage:verification{flag}",
        f"bd label remove {_quote(bead_id)} transition:verification{flag}",
        f"bd close {_quote(bead_id)}",
    ]
