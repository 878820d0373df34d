"""Caller-supplied deadlines for network-bound operations.

A deadline only applies until an operation reaches its atomic step (the
guarded ledger or status update that is committed as a unit). Services call
``mark_atomic_step()`` right before that point; from then on the operation
runs to completion, so a timeout never reports failure for a write that was
already saved or cancels a commit halfway.
"""

from __future__ import annotations

import asyncio
import logging
from contextvars import ContextVar
from typing import Awaitable, Optional, TypeVar

from config import settings
from services.errors import OperationTimeout

logger = logging.getLogger(__name__)

T = TypeVar("T")

_atomic_step: ContextVar[Optional[asyncio.Event]] = ContextVar("atomic_step", default=None)


def resolve_timeout(requested: Optional[float]) -> float:
    """Clamp a caller-supplied timeout into the configured bounds."""
    default = float(settings.REQUEST_TIMEOUT_SECONDS)
    ceiling = float(settings.MAX_REQUEST_TIMEOUT_SECONDS)
    if requested is None:
        return min(default, ceiling)
    try:
        value = float(requested)
    except (TypeError, ValueError):
        return min(default, ceiling)
    if value <= 0:
        return min(default, ceiling)
    return min(value, ceiling)


def mark_atomic_step() -> None:
    """Record that the enclosing deadline-bound operation started its write."""
    started = _atomic_step.get()
    if started is not None:
        started.set()


async def run_with_timeout(awaitable: Awaitable[T], timeout_seconds: float, operation: str) -> T:
    """Await ``awaitable`` or raise OperationTimeout. Never retries.

    Work before ``mark_atomic_step()`` is cancelled at the deadline; once
    the mark is set the result is awaited regardless of the deadline.
    """
    started = asyncio.Event()

    async def _run() -> T:
        _atomic_step.set(started)
        return await awaitable

    task = asyncio.ensure_future(_run())
    try:
        done, _ = await asyncio.wait({task}, timeout=timeout_seconds)
    except asyncio.CancelledError:
        task.cancel()
        raise
    if task in done:
        return task.result()

    if started.is_set():
        logger.info("%s passed its %.2fs deadline during its atomic step; finishing", operation, timeout_seconds)
        return await task

    task.cancel()
    await asyncio.gather(task, return_exceptions=True)
    logger.warning("%s exceeded %.2fs deadline", operation, timeout_seconds)
    raise OperationTimeout(operation, timeout_seconds)
