"""
Activity: Agent Runner — spawns agent CLIs and streams their NDJSON output.

Output arrives in arbitrary chunks; NdjsonLineSplitter keeps the trailing
partial line between chunks so every complete line is seen exactly once.
"""

from __future__ import annotations

import asyncio
import codecs
import json
import logging
import os
from contextlib import aclosing
from dataclasses import dataclass
from typing import Any, AsyncIterator

from activities.agent_adapter import (
    build_prompt_mode_args,
    create_line_normalizer,
    resolve_dialect,
)
from features.settings.models import RegisteredAgent
from features.verification.prompt import VerificationOutcome, parse_verifier_result
from utils.background import spawn_background
from utils.interaction_log import InteractionLog, NoopInteractionLog

log = logging.getLogger(__name__)

READ_CHUNK = 64 * 1024
STDERR_LOG_CHARS = 200


class AgentSpawnError(Exception):
    """The agent executable could not be started."""


class VerifierError(Exception):
    """The verifier failed without producing a usable result."""


@dataclass
class VerifierResult:
    outcome: VerificationOutcome
    output: str


class NdjsonLineSplitter:
    """Incremental newline splitter for a UTF-8 byte stream."""

    def __init__(self):
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""

    def feed(self, chunk: bytes | str) -> list[str]:
        """Add a chunk; return the complete, non-blank lines it finished."""
        self._buffer += chunk if isinstance(chunk, str) else self._decoder.decode(chunk)
        parts = self._buffer.split("\n")
        self._buffer = parts.pop()
        return [p.rstrip("\r") for p in parts if p.strip()]

    def flush(self) -> str | None:
        """Return the unterminated tail (if any) and reset."""
        self._buffer += self._decoder.decode(b"", final=True)
        tail, self._buffer = self._buffer.rstrip("\r"), ""
        return tail if tail.strip() else None


class AgentProcess:
    """One agent subprocess with stdout streamed as lines and stderr logged."""

    def __init__(self, command: str, args: list[str], cwd: str, label: str):
        self.command = command
        self.args = args
        self.cwd = cwd
        self.label = label
        self._proc: asyncio.subprocess.Process | None = None
        self._stderr_task: asyncio.Task | None = None

    @property
    def pid(self) -> int | None:
        return self._proc.pid if self._proc else None

    async def start(self) -> None:
        try:
            self._proc = await asyncio.create_subprocess_exec(
                self.command, *self.args,
                cwd=self.cwd,
                env=os.environ.copy(),
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise AgentSpawnError(f"Failed to start {self.command}: {e}") from e
        self._stderr_task = asyncio.ensure_future(self._pump_stderr())

    async def _pump_stderr(self) -> None:
        # Chunked reads; readline() gives up on lines over the stream limit.
        assert self._proc is not None and self._proc.stderr is not None
        splitter = NdjsonLineSplitter()
        while True:
            chunk = await self._proc.stderr.read(READ_CHUNK)
            if not chunk:
                break
            for line in splitter.feed(chunk):
                self._log_stderr(line)
        tail = splitter.flush()
        if tail is not None:
            self._log_stderr(tail)

    def _log_stderr(self, line: str) -> None:
        log.info("[%s] stderr: %s", self.label, line.rstrip()[:STDERR_LOG_CHARS])

    async def lines(self) -> AsyncIterator[str]:
        assert self._proc is not None and self._proc.stdout is not None
        splitter = NdjsonLineSplitter()
        while True:
            chunk = await self._proc.stdout.read(READ_CHUNK)
            if not chunk:
                break
            for line in splitter.feed(chunk):
                yield line
        tail = splitter.flush()
        if tail is not None:
            yield tail

    async def wait(self) -> int:
        assert self._proc is not None
        code = await self._proc.wait()
        if self._stderr_task is not None:
            await self._stderr_task
        return code

    async def finish(self) -> int:
        """Discard any remaining stdout and wait for exit."""
        assert self._proc is not None and self._proc.stdout is not None
        while await self._proc.stdout.read(READ_CHUNK):
            pass
        return await self.wait()


def extract_text(event: dict[str, Any]) -> str:
    """Plain text carried by a normalized assistant or result event."""
    if event.get("type") == "assistant":
        message = event.get("message")
        content = message.get("content") if isinstance(message, dict) else None
        if isinstance(content, list):
            return "".join(
                block["text"] for block in content
                if isinstance(block, dict) and block.get("type") == "text" and isinstance(block.get("text"), str)
            )
    if event.get("type") == "result" and isinstance(event.get("result"), str):
        return event["result"]
    return ""


async def run_verifier(
    bead_id: str,
    prompt: str,
    agent: RegisteredAgent,
    repo_path: str,
    interaction_log: InteractionLog | NoopInteractionLog | None = None,
) -> VerifierResult:
    """Run the verification agent and return its outcome.

    Resolves as soon as a terminal result event carries a VERIFICATION_RESULT
    marker; otherwise on exit. A clean exit without a marker is an implicit
    pass. Raises VerifierError on spawn failure or a non-zero exit without a
    marker.
    """
    interaction_log = interaction_log or NoopInteractionLog()
    invocation = build_prompt_mode_args(agent, prompt)
    normalizer = create_line_normalizer(resolve_dialect(agent.command))
    proc = AgentProcess(invocation.command, invocation.args, cwd=repo_path, label=f"verification {bead_id}")

    try:
        await proc.start()
    except AgentSpawnError as e:
        interaction_log.log_end(1, "error")
        raise VerifierError(f"Verifier spawn error: {e}") from e

    output = ""
    outcome: VerificationOutcome | None = None
    async with aclosing(proc.lines()) as lines:
        async for line in lines:
            interaction_log.log_response(line)
            try:
                parsed = json.loads(line)
            except json.JSONDecodeError:
                output += line
                continue
            event = normalizer(parsed)
            if event is None:
                continue
            output += extract_text(event)
            if event.get("type") == "result":
                outcome = parse_verifier_result(output)
                if outcome is not None:
                    break

    if outcome is not None:
        interaction_log.log_end(0, "completed")
        spawn_background(f"draining verifier for {bead_id}", proc.finish())
        return VerifierResult(outcome=outcome, output=output)

    code = await proc.wait()
    outcome = parse_verifier_result(output)
    if outcome is not None:
        interaction_log.log_end(code, "completed")
        return VerifierResult(outcome=outcome, output=output)
    if code == 0:
        interaction_log.log_end(0, "completed")
        log.info("Verifier for %s exited cleanly without a result marker; treating as pass", bead_id)
        return VerifierResult(outcome=VerificationOutcome.PASS, output=output)

    interaction_log.log_end(code, "error")
    raise VerifierError(f"Verifier exited with code {code}, no result marker found")
