# SPDX-License-Identifier: Apache-2.0
"""Core data model and resource structure handling."""

from .models import (
    BatchResult,
    CacheEntry,
    MapKey,
    PassthroughLeaf,
    PlaceholderMismatch,
    PluralForm,
    TranslationUnit,
)
from .placeholders import extract_placeholders, find_placeholder_mismatch
from .structure import FlatResource, StructureCodec, StructureError

__all__ = [
    "BatchResult",
    "CacheEntry",
    "FlatResource",
    "MapKey",
    "PassthroughLeaf",
    "PlaceholderMismatch",
    "PluralForm",
    "StructureCodec",
    "StructureError",
    "TranslationUnit",
    "extract_placeholders",
    "find_placeholder_mismatch",
]
