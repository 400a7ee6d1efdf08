"""Fixed inter-page delay."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)

Sleeper = Callable[[float], Awaitable[None]]


class FixedDelay:
    """Waits a constant number of seconds between page requests.

    Not adaptive: provider rate-limit headers are ignored. The default of
    12 seconds keeps a free Polygon plan under 5 requests per minute.

    Parameters
    ----------
    seconds : float
        Delay applied by each ``wait()``. Zero disables waiting.
    sleep : Callable
        Awaitable sleep function; injectable for tests.
    """

    def __init__(self, seconds: float = 12.0, sleep: Sleeper = asyncio.sleep) -> None:
        if seconds < 0:
            raise ValueError(f"delay must be >= 0, got {seconds}")
        self.seconds = seconds
        self._sleep = sleep

    async def wait(self) -> None:
        if self.seconds <= 0:
            return
        logger.info("Sleeping %ss to respect rate limit...", _fmt(self.seconds))
        await self._sleep(self.seconds)


def _fmt(seconds: float) -> str:
    return f"{seconds:g}"
