# SPDX-License-Identifier: Apache-2.0
"""Run-level cancellation signal.

A :class:`CancellationToken` is threaded through rate-limiter waits,
retry backoff sleeps, and provider calls. Cancelling it wakes every
pending wait immediately with :class:`TranslationCancelledError`.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from typing import TypeVar

from i18n_translator.translators.base import TranslationCancelledError

T = TypeVar("T")


class CancellationToken:
    """Cooperative cancellation flag backed by an :class:`asyncio.Event`."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        """Signal cancellation to every waiter."""
        self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise TranslationCancelledError("Translation run was cancelled")

    async def sleep(self, seconds: float) -> None:
        """Sleep for ``seconds`` unless cancelled first.

        Raises:
            TranslationCancelledError: If cancelled before or during the sleep.
        """
        self.raise_if_cancelled()
        if seconds <= 0:
            return
        try:
            await asyncio.wait_for(self._event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return
        raise TranslationCancelledError("Translation run was cancelled")

    async def run(self, awaitable: Awaitable[T]) -> T:
        """Await ``awaitable``, abandoning it if the token is cancelled.

        Raises:
            TranslationCancelledError: If cancelled before the awaitable completes.
        """
        self.raise_if_cancelled()
        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            done, _ = await asyncio.wait(
                {task, waiter}, return_when=asyncio.FIRST_COMPLETED
            )
        except BaseException:
            task.cancel()
            waiter.cancel()
            raise

        if task in done:
            waiter.cancel()
            return task.result()

        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        raise TranslationCancelledError("Translation run was cancelled")
