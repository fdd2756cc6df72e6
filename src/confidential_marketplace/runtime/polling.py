"""
Bounded fixed-interval polling.

Shared by transaction confirmation and the decryption wait.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, Optional, TypeVar

from ..core.errors import PollTimeout

logger = logging.getLogger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]


@dataclass
class PollResult(Generic[T]):
    """Value produced by the probe and the attempt that produced it."""
    value: T
    attempts: int


async def poll_until(
    probe: Callable[[], Awaitable[Optional[T]]],
    *,
    interval: float,
    max_attempts: int,
    retry_on: tuple[type[BaseException], ...] = (),
    sleep: Sleep = asyncio.sleep,
    label: str = "poll",
) -> PollResult[T]:
    """
    Call ``probe`` until it returns a value other than None.

    Errors listed in ``retry_on`` count as a failed attempt and consume the
    same budget; any other exception propagates immediately. There is no
    sleep after the final attempt, so giving up takes at most
    ``max_attempts * interval`` seconds of waiting.

    Args:
        probe: Async callable returning the result, or None if not ready
        interval: Seconds between attempts
        max_attempts: Attempt budget (>= 1)
        retry_on: Transient error types to swallow and retry
        sleep: Sleep coroutine (injectable for tests)
        label: Name used in logs and in the timeout error

    Returns:
        PollResult with the value and the attempt number

    Raises:
        PollTimeout: If the budget is exhausted
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    last_error: Optional[BaseException] = None

    for attempt in range(1, max_attempts + 1):
        try:
            value = await probe()
        except retry_on as e:
            last_error = e
            logger.debug(f"{label}: attempt {attempt}/{max_attempts} failed: {e}")
        else:
            if value is not None:
                return PollResult(value=value, attempts=attempt)
            logger.debug(f"{label}: attempt {attempt}/{max_attempts} not ready")

        if attempt < max_attempts:
            await sleep(interval)

    raise PollTimeout(label, max_attempts, last_error)
