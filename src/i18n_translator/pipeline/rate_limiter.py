# SPDX-License-Identifier: Apache-2.0
"""Token bucket rate limiter shared by all callers of one tier."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from i18n_translator.pipeline.cancellation import CancellationToken

logger = logging.getLogger(__name__)

Clock = Callable[[], float]
SleepFunc = Callable[[float, "CancellationToken | None"], Awaitable[None]]


async def interruptible_sleep(seconds: float, token: CancellationToken | None) -> None:
    """Sleep, waking early with an error if ``token`` is cancelled."""
    if token is not None:
        await token.sleep(seconds)
    elif seconds > 0:
        await asyncio.sleep(seconds)


@dataclass
class RateLimitState:
    """Mutable bucket state. Guarded by the owning limiter's lock."""

    tokens: float
    capacity: int
    refill_per_second: float
    last_refill: float


class RateLimiter:
    """Token bucket limiting requests per second.

    Capacity and refill rate both equal ``requests_per_second``, so bursts
    are bounded to one second's worth of requests. A rate of 0 disables
    limiting. The limiter never fails; it only delays.

    Concurrent callers are serialized by an :class:`asyncio.Lock`, so a
    waiting caller holds its place in line while it sleeps.
    """

    def __init__(
        self,
        requests_per_second: float,
        clock: Clock = time.monotonic,
        sleep: SleepFunc = interruptible_sleep,
    ) -> None:
        self._clock = clock
        self._sleep = sleep
        self._lock = asyncio.Lock()
        capacity = max(1, int(requests_per_second)) if requests_per_second > 0 else 0
        self._state = RateLimitState(
            tokens=float(capacity),
            capacity=capacity,
            refill_per_second=float(requests_per_second),
            last_refill=clock(),
        )

    @property
    def unlimited(self) -> bool:
        return self._state.refill_per_second <= 0

    @property
    def state(self) -> RateLimitState:
        return self._state

    def _refill(self) -> None:
        now = self._clock()
        elapsed = max(0.0, now - self._state.last_refill)
        self._state.tokens = min(
            float(self._state.capacity),
            self._state.tokens + elapsed * self._state.refill_per_second,
        )
        self._state.last_refill = now

    def try_acquire(self, n: int = 1) -> bool:
        """Take ``n`` tokens if available without waiting.

        Returns:
            True if the tokens were taken.
        """
        if self.unlimited:
            return True
        if self._lock.locked():
            return False
        self._refill()
        if self._state.tokens >= n:
            self._state.tokens -= n
            return True
        return False

    async def acquire(self, n: int = 1, cancel_token: CancellationToken | None = None) -> None:
        """Wait until ``n`` tokens are available, then take them.

        Raises:
            TranslationCancelledError: If cancelled while waiting.
        """
        if self.unlimited:
            return
        async with self._lock:
            self._refill()
            if self._state.tokens >= n:
                self._state.tokens -= n
                return

            wait = (n - self._state.tokens) / self._state.refill_per_second
            logger.debug("Rate limit reached, waiting %.0fms", wait * 1000)
            await self._sleep(wait, cancel_token)

            # One refill after the computed wait. A request larger than the
            # bucket leaves it in debt, which delays the next caller.
            self._refill()
            self._state.tokens -= n
