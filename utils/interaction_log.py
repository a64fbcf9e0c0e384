"""
Interaction logger — JSONL transcripts of agent sessions.

Layout:
  {INTERACTION_LOG_DIR}/{repo-slug}/{YYYY-MM-DD}/{session-id}.jsonl

Each line has a `kind`: session_start, prompt, response, session_end.
Write failures are logged and dropped; logging never blocks a session.
Response lines are buffered, so the file is complete once session_end is written.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, TextIO

import config

log = logging.getLogger(__name__)


@dataclass
class InteractionMeta:
    session_id: str
    interaction_type: str  # take | scene | direct | breakdown | verification
    repo_path: str
    bead_ids: list[str] = field(default_factory=list)
    agent_name: str | None = None
    agent_model: str | None = None


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def repo_slug(repo_path: str) -> str:
    raw = Path(repo_path).name or "unknown"
    return re.sub(r"[^a-zA-Z0-9._-]", "_", raw)[:64]


class InteractionLog:
    """One session's transcript.

    The file stays open for the life of the session. Response lines are
    buffered; start, prompt and end lines are flushed, and log_end closes
    the file.
    """

    def __init__(self, meta: InteractionMeta, path: Path):
        self.meta = meta
        self.path = path
        self._file: TextIO | None = None

    def _write(self, kind: str, flush: bool = False, **fields: Any) -> None:
        line = {"kind": kind, "ts": _now(), "sessionId": self.meta.session_id, **fields}
        try:
            if self._file is None:
                self._file = open(self.path, "a", encoding="utf-8")
            self._file.write(json.dumps(line) + "\n")
            if flush:
                self._file.flush()
        except OSError as e:
            log.warning("Interaction log write failed (%s): %s", self.path, e)

    def close(self) -> None:
        if self._file is None:
            return
        try:
            self._file.close()
        except OSError as e:
            log.warning("Interaction log close failed (%s): %s", self.path, e)
        self._file = None

    def log_start(self) -> None:
        self._write(
            "session_start",
            flush=True,
            interactionType=self.meta.interaction_type,
            repoPath=self.meta.repo_path,
            beadIds=self.meta.bead_ids,
            agentName=self.meta.agent_name,
            agentModel=self.meta.agent_model,
        )

    def log_prompt(self, prompt: str, source: str | None = None) -> None:
        fields: dict[str, Any] = {"prompt": prompt}
        if source:
            fields["source"] = source
        self._write("prompt", flush=True, **fields)

    def log_response(self, raw_line: str) -> None:
        fields: dict[str, Any] = {"raw": raw_line}
        try:
            fields["parsed"] = json.loads(raw_line)
        except json.JSONDecodeError:
            pass
        self._write("response", **fields)

    def log_end(self, exit_code: int | None, status: str) -> None:
        self._write("session_end", exitCode=exit_code, status=status)
        self.close()


class NoopInteractionLog:
    """Stand-in used when the real log cannot be started."""

    def log_start(self) -> None:
        pass

    def log_prompt(self, prompt: str, source: str | None = None) -> None:
        pass

    def log_response(self, raw_line: str) -> None:
        pass

    def log_end(self, exit_code: int | None, status: str) -> None:
        pass


def start_interaction_log(meta: InteractionMeta, root: Path | None = None) -> InteractionLog:
    """Create the session directory and write the session_start line.

    Raises OSError if the directory cannot be created; callers fall back
    to NoopInteractionLog.
    """
    directory = (root or config.INTERACTION_LOG_DIR) / repo_slug(meta.repo_path) / _now()[:10]
    directory.mkdir(parents=True, exist_ok=True)
    interaction_log = InteractionLog(meta, directory / f"{meta.session_id}.jsonl")
    interaction_log.log_start()
    return interaction_log


def open_interaction_log(meta: InteractionMeta) -> InteractionLog | NoopInteractionLog:
    try:
        return start_interaction_log(meta)
    except Exception as e:
        log.error("Failed to start interaction log for %s: %s", meta.session_id, e)
        return NoopInteractionLog()
