# SPDX-License-Identifier: Apache-2.0
"""Classification-driven retry with exponential backoff."""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from i18n_translator.pipeline.cancellation import CancellationToken
from i18n_translator.pipeline.rate_limiter import SleepFunc, interruptible_sleep
from i18n_translator.translators.base import (
    AllRetriesExhausted,
    ProviderTimeout,
    RetryAttempt,
    TranslationError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class RetryPolicy:
    """Retry schedule for one tier.

    ``max_retries`` is the total number of attempts, so the default makes at
    most 3 calls.
    """

    max_retries: int = 3
    initial_delay_ms: float = 1000.0
    max_delay_ms: float = 30000.0
    max_jitter: float = 0.1


class RetryExecutor:
    """Runs one provider call with retries on retryable failures.

    Attempt 1 runs immediately. Before attempt ``k`` (k >= 2) the executor
    waits ``initial_delay_ms * 2**(k-2) * (1 + jitter)`` milliseconds,
    capped at ``max_delay_ms``, with ``jitter`` uniform in [0, max_jitter].
    Non-retryable errors are raised on first occurrence; running out of
    attempts raises :class:`AllRetriesExhausted`.
    """

    def __init__(
        self,
        policy: RetryPolicy | None = None,
        timeout: float | None = None,
        provider: str | None = None,
        sleep: SleepFunc = interruptible_sleep,
        jitter: Callable[[], float] = random.random,
    ) -> None:
        """Initialize RetryExecutor.

        Args:
            policy: Retry schedule (defaults apply if None).
            timeout: Per-attempt timeout in seconds; expiry counts as a
                retryable :class:`ProviderTimeout`.
            provider: Provider id used in errors and logs.
            sleep: Backoff sleep, called with (seconds, cancel_token).
            jitter: Source of uniform values in [0, 1).
        """
        self._policy = policy or RetryPolicy()
        self._timeout = timeout
        self._provider = provider
        self._sleep = sleep
        self._jitter = jitter

    @property
    def policy(self) -> RetryPolicy:
        return self._policy

    def compute_delay_ms(self, attempt: int) -> float:
        """Backoff before ``attempt`` (2-based) in milliseconds."""
        base = self._policy.initial_delay_ms * (2 ** max(0, attempt - 2))
        jittered = base * (1 + self._jitter() * self._policy.max_jitter)
        return min(self._policy.max_delay_ms, jittered)

    async def execute(
        self,
        fn: Callable[[], Awaitable[T]],
        cancel_token: CancellationToken | None = None,
    ) -> T:
        """Call ``fn`` until it succeeds or attempts run out.

        Args:
            fn: Zero-argument coroutine function performing one attempt.
            cancel_token: Checked before each attempt and each sleep.

        Returns:
            The first successful result.

        Raises:
            TranslationError: Non-retryable error from ``fn``.
            AllRetriesExhausted: Every attempt failed with a retryable error.
            TranslationCancelledError: If cancelled.
        """
        max_attempts = max(1, self._policy.max_retries)
        history: list[RetryAttempt] = []
        last_error: TranslationError | None = None

        for attempt in range(1, max_attempts + 1):
            if attempt > 1 and last_error is not None:
                delay_ms = self.compute_delay_ms(attempt)
                history.append(
                    RetryAttempt(
                        attempt_number=attempt,
                        delay_ms=delay_ms,
                        error_class=type(last_error).__name__,
                    )
                )
                logger.debug(
                    "Retrying %s in %.0fms (attempt %d/%d)",
                    self._provider,
                    delay_ms,
                    attempt,
                    max_attempts,
                )
                if cancel_token is not None:
                    cancel_token.raise_if_cancelled()
                await self._sleep(delay_ms / 1000, cancel_token)

            if cancel_token is not None:
                cancel_token.raise_if_cancelled()

            try:
                return await self._attempt(fn, cancel_token)
            except TranslationError as exc:
                if not exc.retryable:
                    raise
                last_error = exc
                logger.warning(
                    "%s request failed (attempt %d/%d): %s",
                    self._provider,
                    attempt,
                    max_attempts,
                    exc,
                )

        assert last_error is not None
        raise AllRetriesExhausted(
            provider=self._provider,
            attempts=max_attempts,
            last_error=last_error,
            history=history,
        )

    async def _attempt(
        self,
        fn: Callable[[], Awaitable[T]],
        cancel_token: CancellationToken | None,
    ) -> T:
        call: Awaitable[T] = fn()
        if self._timeout is not None:
            call = asyncio.wait_for(call, timeout=self._timeout)
        try:
            if cancel_token is None:
                return await call
            return await cancel_token.run(call)
        except asyncio.TimeoutError as exc:
            raise ProviderTimeout(
                f"{self._provider} request timed out after {self._timeout}s",
                provider=self._provider,
                status=504,
            ) from exc
