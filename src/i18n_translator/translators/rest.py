# SPDX-License-Identifier: Apache-2.0
"""Shared aiohttp plumbing for REST translation providers.

Vendor differences (endpoint, batch limit, authentication header, request
body, response parsing) are declared by subclasses; the request/response
loop and error classification live here.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, ClassVar

from i18n_translator.translators.base import (
    ArrayLengthMismatchError,
    ConfigurationError,
    InvalidRequestError,
    ProviderServerError,
    ProviderTimeout,
    RateLimitInfo,
    error_for_status,
)

if TYPE_CHECKING:
    import aiohttp

logger = logging.getLogger(__name__)

USER_AGENT = "i18n-translator/0.1.0"


class RestTranslator:
    """Base class for providers reached through a JSON REST endpoint.

    Subclasses set the class attributes and implement
    :meth:`_build_payload` and :meth:`_parse_response`.
    """

    PROVIDER_NAME: ClassVar[str] = ""
    DEFAULT_API_URL: ClassVar[str] = ""
    MAX_TEXTS_PER_REQUEST: ClassVar[int] = 50
    MAX_REQUEST_SIZE: ClassVar[int | None] = None
    AUTH_HEADER: ClassVar[str] = "Authorization"
    AUTH_SCHEME: ClassVar[str] = ""

    def __init__(
        self,
        api_key: str,
        api_url: str | None = None,
        requests_per_second: float | None = None,
    ) -> None:
        """Initialize the translator.

        Args:
            api_key: Provider API key.
            api_url: Endpoint override (default: provider's public endpoint).
            requests_per_second: Configured request rate, reported by
                :meth:`get_rate_limit_info` until the provider reports its own.

        Raises:
            ConfigurationError: If API key is not provided.
            ImportError: If aiohttp is not installed.
        """
        if not api_key:
            raise ConfigurationError(f"{self.display_name} API key is required")

        # Lazy import aiohttp
        try:
            import aiohttp as _aiohttp

            self._aiohttp = _aiohttp
        except ImportError:
            raise ImportError(
                f"aiohttp is required for {self.display_name} backend. "
                "Install with: pip install i18n-translator"
            ) from None

        self._api_key = api_key
        self._api_url = api_url or self.DEFAULT_API_URL
        self._session: aiohttp.ClientSession | None = None
        self._rate_limit = RateLimitInfo(
            limit=int(requests_per_second) if requests_per_second else None,
            remaining=None,
        )

    @property
    def name(self) -> str:
        """Return backend name."""
        return self.PROVIDER_NAME

    @property
    def display_name(self) -> str:
        return type(self).__name__.removesuffix("Translator")

    def __repr__(self) -> str:
        return f"{type(self).__name__}(api_url={self._api_url!r})"

    async def __aenter__(self) -> RestTranslator:
        """Enter async context manager."""
        await self._ensure_session()
        return self

    async def __aexit__(self, *args: Any) -> None:
        """Exit async context manager."""
        await self.close()

    async def _ensure_session(self) -> aiohttp.ClientSession:
        """Ensure aiohttp session exists."""
        if self._session is None:
            self._session = self._aiohttp.ClientSession(
                headers={"User-Agent": USER_AGENT}
            )
        return self._session

    async def translate(
        self,
        text: str,
        source_lang: str,
        target_lang: str,
    ) -> str:
        """Translate a single text."""
        # Early return for empty or whitespace-only text
        if not text or not text.strip():
            return text

        results = await self.translate_batch([text], source_lang, target_lang)
        return results[0]

    async def translate_batch(
        self,
        texts: list[str],
        source_lang: str,
        target_lang: str,
    ) -> list[str]:
        """Translate multiple texts, chunking to the provider's limits.

        Args:
            texts: List of texts to translate.
            source_lang: Source language code.
            target_lang: Target language code.

        Returns:
            List of translated texts (same order and length as input).

        Raises:
            TranslationError: On translation failure.
        """
        if not texts:
            return []

        # Track empty/whitespace indices for restoration
        results: list[str] = [""] * len(texts)
        non_empty_indices: list[int] = []
        non_empty_texts: list[str] = []

        for i, text in enumerate(texts):
            if text and text.strip():
                non_empty_indices.append(i)
                non_empty_texts.append(text)
            else:
                results[i] = text  # Preserve original empty/whitespace

        if not non_empty_texts:
            return results

        translated_texts: list[str] = []
        for chunk in self._chunk_texts(non_empty_texts):
            translated_texts.extend(
                await self._translate_chunk(chunk, source_lang, target_lang)
            )

        # Restore translations to original positions
        for i, translated in zip(non_empty_indices, translated_texts):
            results[i] = translated

        return results

    def _chunk_texts(self, texts: list[str]) -> list[list[str]]:
        """Split texts into chunks respecting API limits."""
        chunks: list[list[str]] = []
        current_chunk: list[str] = []
        current_size = 0

        for text in texts:
            text_size = len(text.encode("utf-8"))

            if current_chunk and (
                len(current_chunk) >= self.MAX_TEXTS_PER_REQUEST
                or (
                    self.MAX_REQUEST_SIZE is not None
                    and current_size + text_size > self.MAX_REQUEST_SIZE
                )
            ):
                chunks.append(current_chunk)
                current_chunk = []
                current_size = 0

            current_chunk.append(text)
            current_size += text_size

        if current_chunk:
            chunks.append(current_chunk)

        return chunks

    def _auth_headers(self) -> dict[str, str]:
        value = f"{self.AUTH_SCHEME} {self._api_key}" if self.AUTH_SCHEME else self._api_key
        return {self.AUTH_HEADER: value}

    def _build_payload(
        self,
        texts: list[str],
        source_lang: str,
        target_lang: str,
    ) -> dict[str, Any]:
        raise NotImplementedError

    def _parse_response(self, data: Any) -> list[str]:
        raise NotImplementedError

    async def _translate_chunk(
        self,
        texts: list[str],
        source_lang: str,
        target_lang: str,
    ) -> list[str]:
        """Send one request and classify the outcome.

        Raises:
            TranslationError: On translation failure (subclass by status).
        """
        session = await self._ensure_session()
        payload = self._build_payload(texts, source_lang, target_lang)
        logger.debug("%s: sending %d text(s)", self.display_name, len(texts))

        try:
            async with session.post(
                self._api_url, json=payload, headers=self._auth_headers()
            ) as response:
                self._update_rate_limit(response.headers)
                if response.status == 200:
                    try:
                        data = await response.json()
                        translations = self._parse_response(data)
                    except (
                        KeyError,
                        TypeError,
                        ValueError,
                        self._aiohttp.ContentTypeError,
                    ) as e:
                        raise InvalidRequestError(
                            f"{self.display_name} returned an unexpected response: {e}",
                            provider=self.name,
                        ) from e
                    if len(translations) != len(texts):
                        raise ArrayLengthMismatchError(
                            expected=len(texts),
                            actual=len(translations),
                            provider=self.name,
                        )
                    return translations

                error_text = await response.text()
                raise error_for_status(
                    response.status,
                    f"{self.display_name} API error (status {response.status}): "
                    f"{error_text[:200]}",
                    provider=self.name,
                )
        except asyncio.TimeoutError as e:
            raise ProviderTimeout(
                f"{self.display_name} request timed out", provider=self.name
            ) from e
        except self._aiohttp.ClientError as e:
            # Exception text may embed the request URL, never the headers.
            raise ProviderServerError(
                f"{self.display_name} request failed: {type(e).__name__}",
                provider=self.name,
            ) from e

    def _update_rate_limit(self, headers: Any) -> None:
        limit = _header_int(headers, "X-RateLimit-Limit")
        remaining = _header_int(headers, "X-RateLimit-Remaining")
        reset = _header_int(headers, "X-RateLimit-Reset")
        if limit is None and remaining is None:
            return
        self._rate_limit = RateLimitInfo(
            limit=limit if limit is not None else self._rate_limit.limit,
            remaining=remaining,
            reset_at=(
                datetime.fromtimestamp(reset, tz=timezone.utc)
                if reset is not None
                else None
            ),
        )

    async def get_rate_limit_info(self) -> RateLimitInfo:
        """Return the last known request allowance."""
        return self._rate_limit

    async def close(self) -> None:
        """Close the HTTP session."""
        if self._session:
            await self._session.close()
            self._session = None


def _header_int(headers: Any, name: str) -> int | None:
    if not isinstance(headers, Mapping):
        return None
    value = headers.get(name)
    if value is None:
        return None
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return None
