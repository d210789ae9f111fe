# SPDX-License-Identifier: Apache-2.0
"""Google Cloud Translation backend (v2 REST API)."""

from __future__ import annotations

from typing import Any

from i18n_translator.translators.rest import RestTranslator


class GoogleTranslator(RestTranslator):
    """Google Cloud Translation backend.

    Uses the v2 ``translate`` endpoint with an API key. The key travels in
    the ``X-Goog-Api-Key`` header rather than the query string so it never
    shows up in request URLs.

    Attributes:
        name: Backend identifier ("google").
    """

    PROVIDER_NAME = "google"
    DEFAULT_API_URL = "https://translation.googleapis.com/language/translate/v2"
    MAX_TEXTS_PER_REQUEST = 100
    MAX_REQUEST_SIZE = 100 * 1024  # 100KB recommended maximum
    AUTH_HEADER = "X-Goog-Api-Key"

    def _build_payload(
        self,
        texts: list[str],
        source_lang: str,
        target_lang: str,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "q": texts,
            "target": target_lang,
            # "text" keeps Google from HTML-escaping the output
            "format": "text",
        }
        if source_lang.lower() != "auto":
            payload["source"] = source_lang
        return payload

    def _parse_response(self, data: Any) -> list[str]:
        return [t["translatedText"] for t in data["data"]["translations"]]
