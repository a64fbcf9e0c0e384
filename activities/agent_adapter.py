"""
Activity: Agent Adapter — hides CLI dialect differences between agent tools.

  1. dialect resolution  — which CLI family a command belongs to
  2. arg building        — one-shot prompt invocation per dialect
  3. event normalization — map codex JSONL events onto the claude-shaped
                           events the stream parsers understand
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import PurePath
from typing import Any, Callable

from features.settings.models import RegisteredAgent

LineNormalizer = Callable[[Any], "dict[str, Any] | None"]


class AgentDialect(str, Enum):
    CLAUDE = "claude"
    CODEX = "codex"


@dataclass
class PromptModeArgs:
    command: str
    args: list[str]


def resolve_dialect(command: str) -> AgentDialect:
    """Any command whose basename contains "codex" is codex; everything else claude."""
    base = PurePath(command).name if "/" in command else command
    return AgentDialect.CODEX if "codex" in base.lower() else AgentDialect.CLAUDE


def build_prompt_mode_args(agent: RegisteredAgent, prompt: str) -> PromptModeArgs:
    if resolve_dialect(agent.command) is AgentDialect.CODEX:
        args = ["exec", prompt, "--json", "--dangerously-bypass-approvals-and-sandbox"]
        if agent.model:
            args += ["-m", agent.model]
        return PromptModeArgs(command=agent.command, args=args)

    args = [
        "-p", prompt,
        "--input-format", "text",
        "--output-format", "stream-json",
        "--include-partial-messages",
        "--verbose",
        "--dangerously-skip-permissions",
    ]
    if agent.model:
        args += ["--model", agent.model]
    return PromptModeArgs(command=agent.command, args=args)


def create_line_normalizer(dialect: AgentDialect) -> LineNormalizer:
    """Return a per-stream normalizer. Events to skip normalize to None."""
    if dialect is AgentDialect.CLAUDE:
        return lambda parsed: parsed if isinstance(parsed, dict) else None
    return _CodexNormalizer()


def _text_delta(text: str) -> dict[str, Any]:
    return {
        "type": "stream_event",
        "event": {"type": "content_block_delta", "delta": {"type": "text_delta", "text": text}},
    }


def _result(text: str, is_error: bool) -> dict[str, Any]:
    return {"type": "result", "result": text, "is_error": is_error}


class _CodexNormalizer:
    """Stateful: agent messages accumulate into the final result text."""

    def __init__(self):
        self.accumulated = ""

    def __call__(self, parsed: Any) -> dict[str, Any] | None:
        if not isinstance(parsed, dict):
            return None
        kind = parsed.get("type")

        if kind in ("thread.started", "turn.started"):
            return None

        if kind == "item.completed":
            item = parsed.get("item")
            if not isinstance(item, dict):
                return None
            item_type = item.get("type")
            if item_type == "agent_message":
                text = item.get("text") if isinstance(item.get("text"), str) else ""
                self.accumulated += ("\n" if self.accumulated else "") + text
                return {"type": "assistant", "message": {"content": [{"type": "text", "text": text}]}}
            if item_type == "reasoning":
                text = item.get("text") if isinstance(item.get("text"), str) else ""
                return _text_delta(text)
            if item_type == "command_execution":
                output = item.get("aggregated_output")
                return {
                    "type": "user",
                    "message": {"content": [{"type": "tool_result",
                                             "content": output if isinstance(output, str) else ""}]},
                }
            return None

        if kind == "item.started":
            item = parsed.get("item")
            if isinstance(item, dict) and item.get("type") == "command_execution":
                command = item.get("command") if isinstance(item.get("command"), str) else ""
                return _text_delta(f"[executing] {command}\n")
            return None

        if kind == "turn.completed":
            return _result(self.accumulated, is_error=False)

        if kind == "turn.failed":
            error = parsed.get("error")
            message = error.get("message") if isinstance(error, dict) else None
            return _result(message if isinstance(message, str) else "Turn failed", is_error=True)

        if kind == "error":
            message = parsed.get("message")
            return _result(message if isinstance(message, str) else "Unknown error", is_error=True)

        return None
