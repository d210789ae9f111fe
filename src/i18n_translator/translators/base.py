# SPDX-License-Identifier: Apache-2.0
"""Base classes and protocols for translation providers."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol, runtime_checkable

RETRYABLE_STATUS_CODES = frozenset({408, 429, 500, 502, 503, 504})
AUTH_STATUS_CODES = frozenset({401, 403})


class TranslatorError(Exception):
    """Base exception for translator module."""

    pass


class ConfigurationError(TranslatorError):
    """Configuration error (missing API key, invalid parameters, etc.).

    This error type is NOT retryable - fix the configuration first.
    """

    pass


class TranslationError(TranslatorError):
    """Error during a provider call.

    Subclasses set ``retryable`` to tell the retry executor whether another
    attempt may succeed.

    Attributes:
        provider: Provider identifier, if known.
        status: HTTP status code, if the failure came from a response.
    """

    retryable = False

    def __init__(
        self,
        message: str,
        provider: str | None = None,
        status: int | None = None,
    ) -> None:
        super().__init__(message)
        self.provider = provider
        self.status = status


class ProviderAuthError(TranslationError, ConfigurationError):
    """Credentials rejected (401/403). Never retried."""


class InvalidRequestError(TranslationError):
    """Request rejected as invalid (400/404 and other client errors)."""


class ProviderRateLimited(TranslationError):
    """Provider throttled the request (429)."""

    retryable = True


class ProviderServerError(TranslationError):
    """Provider-side or network failure (5xx, connection errors)."""

    retryable = True


class ProviderTimeout(TranslationError):
    """Request exceeded its timeout. Treated like a 504."""

    retryable = True


class ArrayLengthMismatchError(TranslationError):
    """Provider returned a different number of translations than requested."""

    def __init__(
        self,
        expected: int,
        actual: int,
        provider: str | None = None,
    ) -> None:
        super().__init__(
            f"Expected {expected} translations but got {actual}",
            provider=provider,
        )
        self.expected = expected
        self.actual = actual


class AllRetriesExhausted(TranslationError):
    """Every attempt of one tier failed with a retryable error.

    Attributes:
        attempts: Number of attempts made.
        last_error: Error raised by the final attempt.
        history: Retry records for the attempts that were followed by a wait.
    """

    def __init__(
        self,
        provider: str | None,
        attempts: int,
        last_error: TranslationError,
        history: list[RetryAttempt] | None = None,
    ) -> None:
        super().__init__(
            f"{provider or 'provider'}: max retries ({attempts}) exceeded. "
            f"Last error: {last_error}",
            provider=provider,
            status=last_error.status,
        )
        self.attempts = attempts
        self.last_error = last_error
        self.history = history or []


class TranslationCancelledError(TranslatorError):
    """The run was cancelled while waiting or calling a provider."""


@dataclass(frozen=True)
class RetryAttempt:
    """Record of a failed attempt and the wait scheduled after it."""

    attempt_number: int
    delay_ms: float
    error_class: str


@dataclass(frozen=True)
class RateLimitInfo:
    """Provider-reported (or configured) request allowance."""

    limit: int | None
    remaining: int | None
    reset_at: datetime | None = None


def error_for_status(
    status: int,
    message: str,
    provider: str | None = None,
) -> TranslationError:
    """Map an HTTP status code onto the error taxonomy.

    Args:
        status: HTTP status code of a failed response.
        message: Error description (must not contain credentials).
        provider: Provider identifier.

    Returns:
        Error instance of the matching class.
    """
    if status in AUTH_STATUS_CODES:
        return ProviderAuthError(message, provider=provider, status=status)
    if status == 429:
        return ProviderRateLimited(message, provider=provider, status=status)
    if status == 408 or status == 504:
        return ProviderTimeout(message, provider=provider, status=status)
    if status in RETRYABLE_STATUS_CODES:
        return ProviderServerError(message, provider=provider, status=status)
    if status >= 500:
        # Non-standard 5xx codes are not in the retry list.
        return TranslationError(message, provider=provider, status=status)
    return InvalidRequestError(message, provider=provider, status=status)


@runtime_checkable
class ProviderClient(Protocol):
    """Protocol definition for translation providers.

    All provider implementations must conform to this protocol. The router
    only ever talks to providers through it.
    """

    @property
    def name(self) -> str:
        """Provider name ("systran", "deepl", "google", "openai")."""
        ...

    async def translate_batch(
        self,
        texts: list[str],
        source_lang: str,
        target_lang: str,
    ) -> list[str]:
        """Translate multiple texts in batch.

        Args:
            texts: List of texts to translate.
            source_lang: Source language code.
            target_lang: Target language code.

        Returns:
            List of translated texts (same order and length as input).

        Raises:
            TranslationError: On translation failure.
        """
        ...

    async def get_rate_limit_info(self) -> RateLimitInfo:
        """Return the provider's current request allowance."""
        ...

    async def close(self) -> None:
        """Release network resources."""
        ...
