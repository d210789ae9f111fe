# SPDX-License-Identifier: Apache-2.0
"""Translation cache package."""

from .translation_cache import (
    CACHE_FORMAT_VERSION,
    DEFAULT_CACHE_DIR,
    CacheCorruptionError,
    CacheStats,
    TranslationCache,
)

__all__ = [
    "CACHE_FORMAT_VERSION",
    "DEFAULT_CACHE_DIR",
    "CacheCorruptionError",
    "CacheStats",
    "TranslationCache",
]
