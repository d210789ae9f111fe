# SPDX-License-Identifier: Apache-2.0
"""Systran translation backend."""

from __future__ import annotations

from typing import Any

from i18n_translator.translators.rest import RestTranslator


class SystranTranslator(RestTranslator):
    """Systran Translate API backend.

    Neural machine translation with enterprise accuracy. Requires an API
    key, sent as ``Authorization: Key <api_key>``.

    Attributes:
        name: Backend identifier ("systran").
    """

    PROVIDER_NAME = "systran"
    DEFAULT_API_URL = "https://api-translate.systran.net/translation/text/translate"
    MAX_TEXTS_PER_REQUEST = 50
    AUTH_SCHEME = "Key"

    def _build_payload(
        self,
        texts: list[str],
        source_lang: str,
        target_lang: str,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "input": texts,
            "target": target_lang.lower(),
        }
        if source_lang.lower() != "auto":
            payload["source"] = source_lang.lower()
        return payload

    def _parse_response(self, data: Any) -> list[str]:
        return [output["output"] for output in data["outputs"]]
