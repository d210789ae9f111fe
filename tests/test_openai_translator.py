# SPDX-License-Identifier: Apache-2.0
"""Tests for the OpenAI translator."""

from __future__ import annotations

import logging
import os
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from i18n_translator.translators.base import (
    ArrayLengthMismatchError,
    ConfigurationError,
    InvalidRequestError,
    ProviderAuthError,
    ProviderRateLimited,
    ProviderServerError,
    ProviderTimeout,
    TranslationError,
)
from i18n_translator.translators.openai import OpenAITranslator


def _parsed_response(translations: list[str]) -> MagicMock:
    mock_result = MagicMock()
    mock_result.translations = translations
    mock_response = MagicMock()
    mock_response.choices = [MagicMock()]
    mock_response.choices[0].message.parsed = mock_result
    return mock_response


def _status_response(status: int) -> httpx.Response:
    request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    return httpx.Response(status, request=request)


class TestOpenAITranslatorModel:
    """Tests for model configuration."""

    def test_requires_api_key(self) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            OpenAITranslator(api_key="")
        assert "API key is required" in str(exc_info.value)

    def test_default_model(self) -> None:
        assert OpenAITranslator.DEFAULT_MODEL == "gpt-4o-mini"

    @patch.dict(os.environ, {"OPENAI_MODEL": "gpt-4o"}, clear=False)
    def test_model_from_env_variable(self) -> None:
        """Model can be set via OPENAI_MODEL environment variable."""
        translator = OpenAITranslator(api_key="test-key")
        assert translator._model == "gpt-4o"

    @patch.dict(os.environ, {"OPENAI_MODEL": "gpt-4o"}, clear=False)
    def test_model_constructor_overrides_env(self) -> None:
        translator = OpenAITranslator(api_key="test-key", model="gpt-4.1-mini")
        assert translator._model == "gpt-4.1-mini"

    def test_custom_system_prompt(self) -> None:
        custom_prompt = "You are a specialized UI translator."
        translator = OpenAITranslator(api_key="test-key", system_prompt=custom_prompt)
        assert translator._system_prompt == custom_prompt

    def test_sdk_retries_disabled(self) -> None:
        """The SDK must not retry on its own."""
        with patch("openai.AsyncOpenAI") as mock_class:
            translator = OpenAITranslator(api_key="test-key")
            translator._ensure_client()
        mock_class.assert_called_once_with(api_key="test-key", max_retries=0)

    def test_repr_hides_key(self) -> None:
        assert "test-key" not in repr(OpenAITranslator(api_key="test-key"))

    @pytest.mark.asyncio
    async def test_context_manager_closes_client(self) -> None:
        with patch("openai.AsyncOpenAI") as mock_class:
            mock_class.return_value.close = AsyncMock()
            async with OpenAITranslator(api_key="test-key") as translator:
                assert translator._client is mock_class.return_value
            mock_class.return_value.close.assert_awaited_once()
            assert translator._client is None


class TestPrompt:
    """Tests for prompt construction."""

    def test_language_names(self) -> None:
        prompt = OpenAITranslator(api_key="k").build_prompt(["Hello"], "en", "fr")
        assert "from English to French" in prompt
        assert "1. Hello" in prompt

    def test_placeholders_listed(self) -> None:
        """Every placeholder in the batch is named in the instructions."""
        prompt = OpenAITranslator(api_key="k").build_prompt(
            ["{{n}} item", "Hello {name}"], "en", "fr"
        )
        assert "verbatim" in prompt
        assert "n, name" in prompt

    def test_no_placeholder_instruction_without_placeholders(self) -> None:
        prompt = OpenAITranslator(api_key="k").build_prompt(["Hello"], "en", "fr")
        assert "verbatim" not in prompt


class TestOpenAITranslatorCalls:
    """Tests for the structured output call."""

    @pytest.fixture
    def mock_translator(self) -> OpenAITranslator:
        """Create a translator with mocked OpenAI client."""
        translator = OpenAITranslator(api_key="test-key")
        translator._client = AsyncMock()
        return translator

    @pytest.mark.asyncio
    async def test_translate_batch(self, mock_translator: OpenAITranslator) -> None:
        parse = AsyncMock(return_value=_parsed_response(["Bonjour", "Monde"]))
        mock_translator._client.beta.chat.completions.parse = parse

        result = await mock_translator.translate_batch(["Hello", "  ", "World"], "en", "fr")

        assert result == ["Bonjour", "  ", "Monde"]
        kwargs = parse.call_args.kwargs
        assert kwargs["model"] == mock_translator._model
        assert kwargs["messages"][0]["role"] == "system"

    @pytest.mark.asyncio
    async def test_translate_batch_all_empty(self, mock_translator: OpenAITranslator) -> None:
        result = await mock_translator.translate_batch(["", "  "], "en", "fr")
        assert result == ["", "  "]

    @pytest.mark.asyncio
    async def test_chunked(self, mock_translator: OpenAITranslator) -> None:
        texts = [f"text {i}" for i in range(OpenAITranslator.CHUNK_SIZE + 1)]
        mock_translator._client.beta.chat.completions.parse = AsyncMock(
            side_effect=[
                _parsed_response([f"t{i}" for i in range(OpenAITranslator.CHUNK_SIZE)]),
                _parsed_response(["last"]),
            ]
        )
        result = await mock_translator.translate_batch(texts, "en", "fr")
        assert len(result) == len(texts)
        assert result[-1] == "last"

    @pytest.mark.asyncio
    async def test_array_length_mismatch_raises_error(
        self, mock_translator: OpenAITranslator
    ) -> None:
        mock_translator._client.beta.chat.completions.parse = AsyncMock(
            return_value=_parsed_response(["translation1", "translation2"])
        )

        with pytest.raises(ArrayLengthMismatchError) as exc_info:
            await mock_translator.translate_batch(["text1", "text2", "text3"], "en", "fr")

        assert exc_info.value.expected == 3
        assert exc_info.value.actual == 2

    @pytest.mark.asyncio
    async def test_placeholder_change_logged_not_rejected(
        self,
        mock_translator: OpenAITranslator,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        """A dropped placeholder is a warning; the translation is kept."""
        mock_translator._client.beta.chat.completions.parse = AsyncMock(
            return_value=_parsed_response(["un article"])
        )
        with caplog.at_level(logging.WARNING):
            result = await mock_translator.translate_batch(["{{n}} item"], "en", "fr")
        assert result == ["un article"]
        assert "OpenAI changed placeholders" in caplog.text

    @pytest.mark.asyncio
    async def test_empty_parsed_response(self, mock_translator: OpenAITranslator) -> None:
        response = _parsed_response([])
        response.choices[0].message.parsed = None
        mock_translator._client.beta.chat.completions.parse = AsyncMock(
            return_value=response
        )
        with pytest.raises(TranslationError):
            await mock_translator.translate_batch(["Hello"], "en", "fr")


class TestOpenAIErrorMapping:
    """SDK errors are mapped onto the provider error taxonomy."""

    @pytest.fixture
    def mock_translator(self) -> OpenAITranslator:
        translator = OpenAITranslator(api_key="test-key")
        translator._client = AsyncMock()
        return translator

    async def _raise(self, translator: OpenAITranslator, error: Exception) -> None:
        translator._client.beta.chat.completions.parse = AsyncMock(side_effect=error)
        await translator.translate_batch(["Hello"], "en", "fr")

    @pytest.mark.asyncio
    async def test_authentication_error(self, mock_translator: OpenAITranslator) -> None:
        from openai import AuthenticationError

        error = AuthenticationError(
            "Incorrect API key provided: test-key", response=_status_response(401), body=None
        )
        with pytest.raises(ProviderAuthError) as exc_info:
            await self._raise(mock_translator, error)
        assert "test-key" not in str(exc_info.value)
        assert exc_info.value.status == 401

    @pytest.mark.asyncio
    async def test_rate_limit_error(self, mock_translator: OpenAITranslator) -> None:
        from openai import RateLimitError

        error = RateLimitError("slow down", response=_status_response(429), body=None)
        with pytest.raises(ProviderRateLimited):
            await self._raise(mock_translator, error)

    @pytest.mark.asyncio
    async def test_server_error(self, mock_translator: OpenAITranslator) -> None:
        from openai import InternalServerError

        error = InternalServerError("oops", response=_status_response(503), body=None)
        with pytest.raises(ProviderServerError) as exc_info:
            await self._raise(mock_translator, error)
        assert exc_info.value.status == 503

    @pytest.mark.asyncio
    async def test_timeout_error(self, mock_translator: OpenAITranslator) -> None:
        from openai import APITimeoutError

        error = APITimeoutError(request=httpx.Request("POST", "https://api.openai.com"))
        with pytest.raises(ProviderTimeout):
            await self._raise(mock_translator, error)

    @pytest.mark.asyncio
    async def test_malformed_structured_output(self, mock_translator: OpenAITranslator) -> None:
        """A response that fails schema validation is a translation error."""
        from pydantic import ValidationError

        with pytest.raises(ValidationError) as captured:
            mock_translator._TranslationResult.model_validate({"translations": 1})
        with pytest.raises(TranslationError) as exc_info:
            await self._raise(mock_translator, captured.value)
        assert "malformed structured response" in str(exc_info.value)
        assert not exc_info.value.retryable

    @pytest.mark.asyncio
    async def test_model_not_found_error_guidance(
        self, mock_translator: OpenAITranslator
    ) -> None:
        """Should provide guidance when model is not found."""
        from openai import OpenAIError

        error = OpenAIError("The model 'gpt-x' does not exist or you do not have access")
        with pytest.raises(InvalidRequestError) as exc_info:
            await self._raise(mock_translator, error)

        error_msg = str(exc_info.value)
        assert "not available" in error_msg
        assert "OPENAI_MODEL" in error_msg
        assert not exc_info.value.retryable
