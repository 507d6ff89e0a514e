"""Exponential backoff for outbound provider calls."""
from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def backoff_delay(attempt: int, base_delay: float) -> float:
    """Delay before attempt number `attempt` (1-based); the first attempt has none."""
    if attempt < 2:
        return 0.0
    return base_delay * (2 ** (attempt - 2))


async def run_with_retry(
    op: Callable[[], Awaitable[T]],
    max_attempts: int = 3,
    base_delay: float = 1.0,
    label: str = "op",
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """
    Await op() up to max_attempts times, sleeping base_delay * 2**(k-2) before attempt k.

    Raises the last error once attempts are exhausted. Cancellation (including an
    enclosing asyncio.wait_for timeout) is a BaseException and is never retried.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be >= 1")

    attempt = 1
    while True:
        try:
            return await op()
        except Exception as e:
            logger.warning(f"[retry] {label} attempt {attempt}/{max_attempts} failed: {e!r}")
            if attempt >= max_attempts:
                raise
        attempt += 1
        await sleep(backoff_delay(attempt, base_delay))
