"""Normalized result envelopes and the client-side deadline race."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, TypeVar

from .errors import CallTimeout, ErrorKind

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Strong references so abandoned calls are not garbage-collected mid-flight.
_abandoned: set[asyncio.Future] = set()


def success(payload_key: str | None = None, value: Any = None) -> dict:
    """Build ``{"success": True, <payload_key>: value}``."""
    if payload_key is None:
        return {"success": True}
    return {"success": True, payload_key: value}


def failure(kind: ErrorKind, error: str) -> dict:
    """Build ``{"success": False, "error": ..., "kind": ...}``."""
    return {"success": False, "error": error, "kind": kind.value}


def _discard_outcome(task: asyncio.Future) -> None:
    _abandoned.discard(task)
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.info("Abandoned call finished with an error after its deadline: %s", exc)
    else:
        logger.info("Abandoned call finished after its deadline; result discarded")


async def race_deadline(awaitable: Awaitable[T], seconds: float, *, operation: str) -> T:
    """Await ``awaitable`` unless ``seconds`` elapse first.

    On expiry ``CallTimeout`` is raised and the call is abandoned, not
    cancelled: it keeps running and its eventual outcome is discarded.
    """
    task = asyncio.ensure_future(awaitable)
    done, _ = await asyncio.wait({task}, timeout=seconds)
    if task in done:
        return task.result()

    _abandoned.add(task)
    task.add_done_callback(_discard_outcome)
    raise CallTimeout(operation, seconds)
