"""
Tracker port — the interface to the external, CLI-driven issue tracker.

Every operation returns a TrackerResult. Expected failures (unknown id,
bad input, locked database) come back as structured errors; only genuinely
unexpected conditions raise.

BdCliTracker drives the `bd` binary with asyncio subprocesses so each call
is a suspension point for the event loop.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Protocol

import config
from features.beads.errors import (
    TrackerErrorCode,
    TrackerResult,
    classify_error_message,
)
from features.beads.models import Bead, BeadDependency, BeadUpdate

log = logging.getLogger(__name__)


class TrackerPort(Protocol):
    async def get(self, bead_id: str, repo_path: str | None = None) -> TrackerResult[Bead]: ...

    async def list(self, filters: dict[str, str] | None = None,
                   repo_path: str | None = None) -> TrackerResult[list[Bead]]: ...

    async def update(self, bead_id: str, fields: BeadUpdate,
                     repo_path: str | None = None) -> TrackerResult[None]: ...

    async def close(self, bead_id: str, reason: str | None = None,
                    repo_path: str | None = None) -> TrackerResult[None]: ...

    async def list_dependencies(self, bead_id: str,
                                repo_path: str | None = None) -> TrackerResult[list[BeadDependency]]: ...


class BdCliTracker:
    """TrackerPort backed by the `bd` command-line tool."""

    LIST_FILTERS = ("status", "type", "label", "assignee", "parent", "priority")

    def __init__(self, binary: str | None = None, db_path: str | None = None,
                 timeout: float | None = None):
        self.binary = binary or config.BD_BIN
        self.db_path = db_path if db_path is not None else config.BD_DB
        self.timeout = timeout or config.TRACKER_TIMEOUT_SEC

    # ── Reads ─────────────────────────────────────────────────────────

    async def list(self, filters: dict[str, str] | None = None,
                   repo_path: str | None = None) -> TrackerResult[list[Bead]]:
        args = ["list", "--json", "--limit", "0"]
        for key, value in (filters or {}).items():
            if key not in self.LIST_FILTERS:
                return TrackerResult.failure(TrackerErrorCode.INVALID_INPUT, f"Unknown list filter: {key}")
            if value:
                args += [f"--{key}", str(value)]
        code, stdout, stderr = await self._run(args, repo_path)
        if code != 0:
            return self._failed("bd list", stderr, code)
        try:
            rows = json.loads(stdout or "[]")
            return TrackerResult.success([Bead.from_dict(r) for r in rows])
        except (json.JSONDecodeError, TypeError, ValueError, AttributeError):
            return TrackerResult.failure(TrackerErrorCode.INTERNAL, "Failed to parse bd list output")

    async def get(self, bead_id: str, repo_path: str | None = None) -> TrackerResult[Bead]:
        code, stdout, stderr = await self._run(["show", bead_id, "--json"], repo_path)
        if code != 0:
            return self._failed("bd show", stderr, code)
        try:
            parsed = json.loads(stdout)
            item = parsed[0] if isinstance(parsed, list) else parsed
            if not item:
                return TrackerResult.failure(TrackerErrorCode.NOT_FOUND, f"Resource not found: {bead_id}")
            return TrackerResult.success(Bead.from_dict(item))
        except (json.JSONDecodeError, TypeError, ValueError, AttributeError, IndexError):
            return TrackerResult.failure(TrackerErrorCode.INTERNAL, "Failed to parse bd show output")

    async def list_dependencies(self, bead_id: str,
                                repo_path: str | None = None) -> TrackerResult[list[BeadDependency]]:
        code, stdout, stderr = await self._run(["dep", "list", bead_id, "--json"], repo_path)
        if code != 0:
            return self._failed("bd dep list", stderr, code)
        try:
            rows = json.loads(stdout or "[]")
            return TrackerResult.success([BeadDependency.from_dict(r) for r in rows])
        except (json.JSONDecodeError, TypeError, ValueError, AttributeError):
            return TrackerResult.failure(TrackerErrorCode.INTERNAL, "Failed to parse bd dep list output")

    # ── Writes ────────────────────────────────────────────────────────

    async def update(self, bead_id: str, fields: BeadUpdate,
                     repo_path: str | None = None) -> TrackerResult[None]:
        """Apply field changes, then label removals, then label additions."""
        if fields.is_empty():
            return TrackerResult.success()

        if fields.status is not None or fields.notes is not None:
            args = ["update", bead_id]
            if fields.status is not None:
                args += ["--status", fields.status]
            if fields.notes is not None:
                args += ["--notes", fields.notes]
            code, _, stderr = await self._run(args, repo_path)
            if code != 0:
                return self._failed("bd update", stderr, code)

        for label in fields.remove_labels:
            code, _, stderr = await self._run(["label", "remove", bead_id, label], repo_path)
            if code != 0:
                return self._failed("bd label remove", stderr, code)

        for label in fields.labels:
            code, _, stderr = await self._run(["label", "add", bead_id, label], repo_path)
            if code != 0:
                return self._failed("bd label add", stderr, code)

        return TrackerResult.success()

    async def close(self, bead_id: str, reason: str | None = None,
                    repo_path: str | None = None) -> TrackerResult[None]:
        args = ["close", bead_id]
        if reason:
            args += ["--reason", reason]
        code, _, stderr = await self._run(args, repo_path)
        if code != 0:
            return self._failed("bd close", stderr, code)
        return TrackerResult.success()

    # ── Internals ─────────────────────────────────────────────────────

    def _base_args(self) -> list[str]:
        return ["--db", self.db_path] if self.db_path else []

    async def _run(self, args: list[str], repo_path: str | None) -> tuple[int, str, str]:
        """Run a bd command. Returns (exit_code, stdout, stderr)."""
        cmd = [self.binary, *self._base_args(), *args]
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                cwd=repo_path or None,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError:
            return 127, "", f"{self.binary} is unavailable (no executable on PATH)"
        except OSError as e:
            return 126, "", f"{self.binary} unavailable: {e}"

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            log.warning("bd %s timed out after %.0fs", " ".join(args[:2]), self.timeout)
            return -1, "", f"bd {args[0]} timed out after {self.timeout:.0f}s"

        return (
            proc.returncode if proc.returncode is not None else -1,
            stdout.decode(errors="replace").strip(),
            stderr.decode(errors="replace").strip(),
        )

    @staticmethod
    def _failed(operation: str, stderr: str, code: int) -> TrackerResult:
        message = stderr or f"{operation} failed (exit {code})"
        error_code = classify_error_message(message)
        log.warning("%s failed: %s", operation, message)
        return TrackerResult.failure(error_code, message)
