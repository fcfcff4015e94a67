"""
Fire-and-forget task runner.

Outbound notifications (ERP status sync, tracking SMS) run after the local
transaction commits. They are never awaited by the request path; failures
are logged and dropped.
"""

import asyncio
import logging
from typing import Awaitable, Set

logger = logging.getLogger(__name__)

_pending: Set[asyncio.Task] = set()


async def _run(coro: Awaitable, description: str) -> None:
    try:
        await coro
    except asyncio.CancelledError:
        raise
    except Exception:
        logger.exception("Background task failed: %s", description)


def fire_and_forget(coro: Awaitable, description: str) -> asyncio.Task:
    """Schedule `coro` on the running loop and keep a reference until it finishes."""
    task = asyncio.create_task(_run(coro, description))
    _pending.add(task)
    task.add_done_callback(_pending.discard)
    return task


async def drain(timeout: float = 10.0) -> None:
    """Wait for outstanding background tasks (shutdown and tests)."""
    if not _pending:
        return
    done, not_done = await asyncio.wait(set(_pending), timeout=timeout)
    for task in not_done:
        logger.warning("Cancelling unfinished background task %s", task.get_name())
        task.cancel()
