# SPDX-License-Identifier: Apache-2.0
"""Translation provider modules.

This module provides clients for Systran, DeepL, Google Cloud Translation,
and OpenAI behind the :class:`ProviderClient` protocol. All four require
an API key.

Usage:
    # Resolve a client from a configured tier
    from i18n_translator.translators import create_translator
    translator = create_translator(tier)
    result = await translator.translate_batch(["Hello"], "en", "fr")

    # Or import a class lazily
    from i18n_translator.translators import get_openai_translator
    OpenAITranslator = get_openai_translator()
    translator = OpenAITranslator(api_key="your-api-key")
"""

from __future__ import annotations

from importlib import import_module
from typing import TYPE_CHECKING, Any

from i18n_translator.translators.base import (
    AllRetriesExhausted,
    ArrayLengthMismatchError,
    ConfigurationError,
    InvalidRequestError,
    ProviderAuthError,
    ProviderClient,
    ProviderRateLimited,
    ProviderServerError,
    ProviderTimeout,
    RateLimitInfo,
    RetryAttempt,
    TranslationCancelledError,
    TranslationError,
    TranslatorError,
    error_for_status,
)

if TYPE_CHECKING:
    from i18n_translator.pipeline.config import ProviderTier

__all__ = [
    # Protocol and exceptions
    "ProviderClient",
    "RateLimitInfo",
    "RetryAttempt",
    "TranslatorError",
    "TranslationError",
    "ConfigurationError",
    "ProviderAuthError",
    "InvalidRequestError",
    "ProviderRateLimited",
    "ProviderServerError",
    "ProviderTimeout",
    "ArrayLengthMismatchError",
    "AllRetriesExhausted",
    "TranslationCancelledError",
    "error_for_status",
    # Lazy import functions
    "TRANSLATOR_CLASSES",
    "create_translator",
    "get_translator_class",
    "get_systran_translator",
    "get_deepl_translator",
    "get_google_translator",
    "get_openai_translator",
]

# Vendor name -> "module:ClassName", imported on first use.
TRANSLATOR_CLASSES: dict[str, str] = {
    "systran": "i18n_translator.translators.systran:SystranTranslator",
    "deepl": "i18n_translator.translators.deepl:DeepLTranslator",
    "google": "i18n_translator.translators.google:GoogleTranslator",
    "openai": "i18n_translator.translators.openai:OpenAITranslator",
}


def get_translator_class(vendor: str) -> type:
    """Get a translator class by vendor name with lazy import.

    Args:
        vendor: Registered vendor name ("systran", "deepl", "google", "openai").

    Returns:
        Translator class.

    Raises:
        ConfigurationError: If the vendor is not registered.
        ImportError: If the vendor's client library is not installed.
    """
    try:
        target = TRANSLATOR_CLASSES[vendor.lower()]
    except KeyError:
        raise ConfigurationError(
            f"Unknown translation provider '{vendor}'. "
            f"Available: {', '.join(sorted(TRANSLATOR_CLASSES))}"
        ) from None
    module_name, class_name = target.split(":")
    cls: type = getattr(import_module(module_name), class_name)
    return cls


def create_translator(tier: ProviderTier) -> Any:
    """Instantiate the client configured for a tier.

    Args:
        tier: Tier configuration (vendor, credentials, vendor options).

    Returns:
        A :class:`ProviderClient` implementation.

    Raises:
        ConfigurationError: If the vendor is unknown or the API key is missing.
    """
    cls = get_translator_class(tier.vendor_name)
    return cls(
        api_key=tier.api_key or "",
        requests_per_second=tier.requests_per_second,
        **tier.options,
    )


def get_systran_translator() -> type:
    """Get SystranTranslator class with lazy import."""
    return get_translator_class("systran")


def get_deepl_translator() -> type:
    """Get DeepLTranslator class with lazy import.

    Returns:
        DeepLTranslator class.

    Raises:
        ImportError: If aiohttp is not installed.
    """
    return get_translator_class("deepl")


def get_google_translator() -> type:
    """Get GoogleTranslator class with lazy import."""
    return get_translator_class("google")


def get_openai_translator() -> type:
    """Get OpenAITranslator class with lazy import.

    This function imports OpenAITranslator only when called,
    avoiding import errors when openai package is not installed.

    Returns:
        OpenAITranslator class.

    Raises:
        ImportError: If openai package is not installed.
    """
    return get_translator_class("openai")
