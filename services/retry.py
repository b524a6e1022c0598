"""Bounded retry for idempotent backend calls (fetch and delete only)."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

from services.errors import TransientError

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


async def retry_transient(
    operation: Callable[[], Awaitable[T]],
    max_attempts: int = 3,
    base_delay: float = 0.2,
) -> T:
    """Run `operation`, retrying on TransientError with a linear backoff.

    Never use this for `store`: a retried upload can create duplicates.
    """
    attempt = 1
    while True:
        try:
            return await operation()
        except TransientError as exc:
            if attempt >= max_attempts:
                raise
            LOGGER.warning("Transient backend failure (attempt %s/%s): %s", attempt, max_attempts, exc)
            await asyncio.sleep(base_delay * attempt)
            attempt += 1
