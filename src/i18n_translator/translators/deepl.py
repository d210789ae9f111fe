# SPDX-License-Identifier: Apache-2.0
"""DeepL translation backend."""

from __future__ import annotations

import logging
from typing import Any

from i18n_translator.translators.base import RateLimitInfo
from i18n_translator.translators.rest import RestTranslator

logger = logging.getLogger(__name__)

# DeepL requires a regional variant for some target languages.
TARGET_LANGUAGE_VARIANTS = {
    "en": "EN-US",
    "pt": "PT-BR",
}


class DeepLTranslator(RestTranslator):
    """DeepL translation backend.

    This backend uses DeepL API for high-quality translation.
    Requires an API key (free or pro).

    Supports batch translation with multiple text entries in a single request.

    Attributes:
        name: Backend identifier ("deepl").
    """

    PROVIDER_NAME = "deepl"
    DEFAULT_API_URL = "https://api-free.deepl.com/v2/translate"
    MAX_TEXTS_PER_REQUEST = 50
    MAX_REQUEST_SIZE = 128 * 1024  # 128KB
    AUTH_SCHEME = "DeepL-Auth-Key"

    @staticmethod
    def target_language_code(lang: str) -> str:
        """Convert a language code to DeepL's target format."""
        return TARGET_LANGUAGE_VARIANTS.get(lang.lower(), lang.upper())

    def _build_payload(
        self,
        texts: list[str],
        source_lang: str,
        target_lang: str,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "text": texts,
            "target_lang": self.target_language_code(target_lang),
        }
        # DeepL doesn't support "auto" - omit source_lang for auto-detection
        if source_lang.lower() != "auto":
            payload["source_lang"] = source_lang.split("-")[0].upper()
        return payload

    def _parse_response(self, data: Any) -> list[str]:
        return [t["text"] for t in data["translations"]]

    @property
    def usage_url(self) -> str:
        """Usage endpoint next to the configured translate endpoint."""
        return self._api_url.rsplit("/", 1)[0] + "/usage"

    async def get_rate_limit_info(self) -> RateLimitInfo:
        """Query the character allowance from DeepL's usage endpoint.

        Falls back to the last known request allowance if the usage endpoint
        cannot be reached.
        """
        session = await self._ensure_session()
        try:
            async with session.get(
                self.usage_url, headers=self._auth_headers()
            ) as response:
                if response.status != 200:
                    logger.debug("DeepL usage query failed (status %d)", response.status)
                    return self._rate_limit
                data = await response.json()
        except self._aiohttp.ClientError as e:
            logger.debug("DeepL usage query failed: %s", type(e).__name__)
            return self._rate_limit

        limit = int(data.get("character_limit", 0))
        count = int(data.get("character_count", 0))
        return RateLimitInfo(limit=limit, remaining=max(0, limit - count))
