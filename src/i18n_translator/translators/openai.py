# SPDX-License-Identifier: Apache-2.0
"""OpenAI GPT translation backend."""

from __future__ import annotations

import logging
import os
from typing import TYPE_CHECKING, Any

from i18n_translator.core.placeholders import (
    extract_placeholders,
    find_placeholder_mismatch,
)
from i18n_translator.translators.base import (
    ArrayLengthMismatchError,
    ConfigurationError,
    InvalidRequestError,
    ProviderAuthError,
    ProviderRateLimited,
    ProviderServerError,
    ProviderTimeout,
    RateLimitInfo,
    TranslationError,
    error_for_status,
)

if TYPE_CHECKING:
    from openai import AsyncOpenAI

logger = logging.getLogger(__name__)

# Language code to full name mapping for prompts
LANGUAGE_NAMES = {
    "ar": "Arabic",
    "cs": "Czech",
    "da": "Danish",
    "de": "German",
    "en": "English",
    "es": "Spanish",
    "fi": "Finnish",
    "fr": "French",
    "it": "Italian",
    "ja": "Japanese",
    "ko": "Korean",
    "nl": "Dutch",
    "no": "Norwegian",
    "pl": "Polish",
    "pt": "Portuguese",
    "ru": "Russian",
    "sv": "Swedish",
    "th": "Thai",
    "vi": "Vietnamese",
    "zh": "Chinese",
    "auto": "the source language",
}

DEFAULT_SYSTEM_PROMPT = (
    "You are a professional translator specializing in user interface text. "
    "Translate the given texts accurately while preserving the original "
    "meaning, tone, and formatting. Return only the translations without "
    "any explanations."
)


class OpenAITranslator:
    """OpenAI GPT translation backend.

    This backend uses OpenAI's GPT models with Structured Outputs
    to ensure reliable array-based translation responses.

    Every placeholder found in the batch is listed in the prompt with an
    instruction to keep it verbatim. Translations whose placeholders differ
    from the source are logged as warnings and returned unchanged.

    Attributes:
        name: Backend identifier ("openai").
    """

    DEFAULT_MODEL = "gpt-4o-mini"
    # The API takes any batch size; requests are chunked to keep prompts small.
    CHUNK_SIZE = 40

    def __init__(
        self,
        api_key: str,
        model: str | None = None,
        system_prompt: str | None = None,
        requests_per_second: float | None = None,
    ) -> None:
        """Initialize OpenAITranslator.

        Args:
            api_key: OpenAI API key.
            model: Model to use. Priority: argument > OPENAI_MODEL env > default.
            system_prompt: Custom system prompt for translation.
            requests_per_second: Configured request rate, reported by
                :meth:`get_rate_limit_info`.

        Raises:
            ConfigurationError: If API key is not provided.
            ImportError: If openai package is not installed.
        """
        if not api_key:
            raise ConfigurationError("OpenAI API key is required")

        # Lazy import openai and pydantic
        try:
            from openai import AsyncOpenAI as _AsyncOpenAI

            self._AsyncOpenAI = _AsyncOpenAI
        except ImportError:
            raise ImportError(
                "openai is required for OpenAI backend. "
                "Install with: pip install i18n-translator"
            ) from None

        try:
            from pydantic import BaseModel as _BaseModel
            from pydantic import ValidationError as _ValidationError

            # Create the response model class here
            class TranslationResult(_BaseModel):
                translations: list[str]

            self._TranslationResult = TranslationResult
            self._ValidationError = _ValidationError
        except ImportError:
            raise ImportError(
                "pydantic is required for OpenAI backend. "
                "Install with: pip install i18n-translator"
            ) from None

        self._api_key = api_key
        env_model = os.environ.get("OPENAI_MODEL")
        self._model = model or env_model or self.DEFAULT_MODEL
        self._system_prompt = system_prompt or DEFAULT_SYSTEM_PROMPT
        self._client: AsyncOpenAI | None = None
        self._rate_limit = RateLimitInfo(
            limit=int(requests_per_second) if requests_per_second else None,
            remaining=None,
        )

    @property
    def name(self) -> str:
        """Return backend name."""
        return "openai"

    def __repr__(self) -> str:
        return f"OpenAITranslator(model={self._model!r})"

    def _ensure_client(self) -> AsyncOpenAI:
        """Ensure OpenAI client exists.

        The SDK's own retries are disabled; the retry executor owns retries.
        """
        if self._client is None:
            self._client = self._AsyncOpenAI(api_key=self._api_key, max_retries=0)
        return self._client

    def _get_language_name(self, lang_code: str) -> str:
        """Convert language code to full name."""
        return LANGUAGE_NAMES.get(lang_code.lower(), lang_code)

    async def translate(
        self,
        text: str,
        source_lang: str,
        target_lang: str,
    ) -> str:
        """Translate a single text using OpenAI."""
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
        """Translate multiple texts in batch using OpenAI Structured Outputs.

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
        for start in range(0, len(non_empty_texts), self.CHUNK_SIZE):
            chunk = non_empty_texts[start : start + self.CHUNK_SIZE]
            translated_texts.extend(
                await self._translate_with_structured_output(
                    chunk, source_lang, target_lang
                )
            )

        # Restore translations to original positions
        for i, translated in zip(non_empty_indices, translated_texts):
            results[i] = translated

        return results

    def build_prompt(
        self,
        texts: list[str],
        source_lang: str,
        target_lang: str,
    ) -> str:
        """Build the user prompt, enumerating placeholders to preserve."""
        source_name = self._get_language_name(source_lang)
        target_name = self._get_language_name(target_lang)

        placeholders: list[str] = []
        for text in texts:
            for name in extract_placeholders(text):
                if name not in placeholders:
                    placeholders.append(name)

        user_content = (
            f"Translate the following {len(texts)} text(s) from {source_name} "
            f"to {target_name}. Return exactly {len(texts)} translations "
            f"in the same order.\n"
        )
        if placeholders:
            listed = ", ".join(placeholders)
            user_content += (
                "The texts contain placeholders written as {name} or {{name}}. "
                f"Copy these placeholders verbatim, braces included: {listed}. "
                "Do not translate, rename, drop, or add placeholders; translate "
                "only the surrounding text.\n"
            )
        user_content += "\nTexts to translate:\n"
        for i, text in enumerate(texts, 1):
            user_content += f"{i}. {text}\n"
        return user_content

    async def _translate_with_structured_output(
        self,
        texts: list[str],
        source_lang: str,
        target_lang: str,
    ) -> list[str]:
        """Translate texts using Structured Outputs.

        Raises:
            TranslationError: On translation failure.
        """
        client = self._ensure_client()
        user_content = self.build_prompt(texts, source_lang, target_lang)

        try:
            response = await client.beta.chat.completions.parse(
                model=self._model,
                messages=[
                    {"role": "system", "content": self._system_prompt},
                    {"role": "user", "content": user_content},
                ],
                response_format=self._TranslationResult,
                temperature=0.2,
            )
        except self._get_openai_errors() as e:
            raise self._map_openai_error(e) from e
        except self._ValidationError as e:
            raise TranslationError(
                f"OpenAI returned a malformed structured response: {e.error_count()} error(s)",
                provider=self.name,
            ) from e

        result = response.choices[0].message.parsed
        if result is None:
            raise TranslationError("OpenAI returned empty response", provider=self.name)

        # Validate response length
        translations: list[str] = list(result.translations)
        if len(translations) != len(texts):
            raise ArrayLengthMismatchError(
                expected=len(texts),
                actual=len(translations),
                provider=self.name,
            )

        for index, (source, translated) in enumerate(zip(texts, translations), 1):
            mismatch = find_placeholder_mismatch(
                f"#{index}", source, translated, provider_id=self.name
            )
            if mismatch is not None:
                logger.warning(
                    "OpenAI changed placeholders in text %d: missing=%s unexpected=%s",
                    index,
                    list(mismatch.missing),
                    list(mismatch.unexpected),
                )

        return translations

    def _get_openai_errors(self) -> tuple[type[Exception], ...]:
        """Get OpenAI exception types for error handling."""
        from openai import OpenAIError

        return (OpenAIError,)

    def _map_openai_error(self, error: Any) -> TranslationError:
        """Convert an OpenAI SDK error into the provider error taxonomy."""
        from openai import (
            APIConnectionError,
            APIStatusError,
            APITimeoutError,
            AuthenticationError,
            NotFoundError,
            PermissionDeniedError,
            RateLimitError,
        )

        if isinstance(error, (AuthenticationError, PermissionDeniedError)):
            return ProviderAuthError(
                "Invalid OpenAI API key", provider=self.name, status=error.status_code
            )
        if isinstance(error, RateLimitError):
            return ProviderRateLimited(
                "OpenAI rate limit exceeded, please retry later",
                provider=self.name,
                status=429,
            )
        if isinstance(error, NotFoundError):
            return InvalidRequestError(
                f"Model '{self._model}' is not available. "
                f"Set OPENAI_MODEL environment variable to use a different model "
                f"(e.g., 'gpt-4o-mini', 'gpt-4o').",
                provider=self.name,
                status=404,
            )
        # APITimeoutError subclasses APIConnectionError
        if isinstance(error, APITimeoutError):
            return ProviderTimeout("OpenAI request timed out", provider=self.name)
        if isinstance(error, APIConnectionError):
            return ProviderServerError("OpenAI connection failed", provider=self.name)
        if isinstance(error, APIStatusError):
            return error_for_status(
                error.status_code, f"OpenAI API error: {error.message}", self.name
            )

        # Check for model not found/access error via error code or message
        error_code = getattr(error, "code", None) or ""
        error_str = str(error).lower()
        is_model_error = error_code in ("model_not_found", "invalid_model") or (
            "model" in error_str
            and ("not found" in error_str or "does not exist" in error_str)
        )
        if is_model_error:
            return InvalidRequestError(
                f"Model '{self._model}' is not available. "
                f"Set OPENAI_MODEL environment variable to use a different model.",
                provider=self.name,
            )

        return TranslationError(f"OpenAI API error: {error}", provider=self.name)

    async def get_rate_limit_info(self) -> RateLimitInfo:
        """Return the configured request allowance."""
        return self._rate_limit

    async def close(self) -> None:
        """Close the OpenAI client."""
        if self._client:
            await self._client.close()
            self._client = None

    async def __aenter__(self) -> OpenAITranslator:
        self._ensure_client()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()
