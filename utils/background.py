"""
Helpers for side effects whose failure must not change the main outcome.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable

log = logging.getLogger(__name__)

# Strong references so pending tasks are not garbage-collected mid-flight.
_background_tasks: set[asyncio.Task] = set()


async def run_best_effort(description: str, awaitable: Awaitable[Any]) -> bool:
    """Await `awaitable`, logging any exception. Returns True on success."""
    try:
        await awaitable
        return True
    except Exception as e:
        log.error("%s failed: %s", description, e)
        return False


def spawn_background(description: str, awaitable: Awaitable[Any]) -> asyncio.Task:
    """Fire and forget. Exceptions are logged when the task finishes."""
    task = asyncio.ensure_future(run_best_effort(description, awaitable))
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)
    return task
