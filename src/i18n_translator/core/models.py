# SPDX-License-Identifier: Apache-2.0
"""Data models shared by the translation engine.

This module defines the units that flow between the structure codec,
the translation cache, and the fallback router.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union

KEY_SEPARATOR = "."
KEY_ESCAPE = "\\"


@dataclass(frozen=True)
class MapKey:
    """Map key that is not a string, such as ``404`` from a YAML loader."""

    value: Any

    def __str__(self) -> str:
        return str(self.value)


# A path segment is a string map key, an array index (int), or a MapKey.
PathSegment = Union[str, int, MapKey]


def split_key(key: str, separator: str = KEY_SEPARATOR) -> list[str]:
    """Split a dot-path key on unescaped separators and unescape the parts."""
    parts: list[str] = []
    current: list[str] = []
    chars = iter(key)
    for char in chars:
        if char == KEY_ESCAPE:
            current.append(next(chars, KEY_ESCAPE))
        elif char == separator:
            parts.append("".join(current))
            current = []
        else:
            current.append(char)
    parts.append("".join(current))
    return parts


class PluralForm(Enum):
    """CLDR plural category of a translation unit."""

    NONE = "none"
    ZERO = "zero"
    ONE = "one"
    TWO = "two"
    FEW = "few"
    MANY = "many"
    OTHER = "other"

    @classmethod
    def from_key(cls, key: str) -> PluralForm:
        """Detect the plural form from a key's suffix.

        Args:
            key: Last key segment (e.g., "count_one").

        Returns:
            Matching plural form, or NONE if the key carries no plural suffix.
        """
        for form in PLURAL_SUFFIXES:
            if key.endswith(f"_{form.value}") and len(key) > len(form.value) + 1:
                return form
        return cls.NONE


PLURAL_SUFFIXES = (
    PluralForm.ZERO,
    PluralForm.ONE,
    PluralForm.TWO,
    PluralForm.FEW,
    PluralForm.MANY,
    PluralForm.OTHER,
)


@dataclass(frozen=True)
class TranslationUnit:
    """One translatable string leaf of a resource tree.

    Attributes:
        key: Dot-joined path of the leaf (plural suffix retained).
        source_text: Source-language string.
        plural_form: Plural category derived from the key suffix.
        path: Structured path used for reconstruction. Derived from the key
            when not given.
    """

    key: str
    source_text: str
    plural_form: PluralForm = PluralForm.NONE
    path: tuple[PathSegment, ...] = ()

    def __post_init__(self) -> None:
        if not self.path and self.key:
            object.__setattr__(self, "path", tuple(split_key(self.key)))


@dataclass(frozen=True)
class PassthroughLeaf:
    """Non-translatable leaf (number, boolean, null, empty container)."""

    path: tuple[PathSegment, ...]
    value: Any


@dataclass
class CacheEntry:
    """A cached translation of one unit into one language."""

    key: str
    target_lang: str
    namespace: str
    source_text: str
    translated_text: str
    provider_id: str
    timestamp: int = field(default_factory=lambda: int(time.time()))
    metadata: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to the on-disk entry representation (key excluded)."""
        return {
            "source_text": self.source_text,
            "translated_text": self.translated_text,
            "provider": self.provider_id,
            "timestamp": self.timestamp,
            "metadata": dict(self.metadata),
        }

    @classmethod
    def from_dict(
        cls,
        key: str,
        target_lang: str,
        namespace: str,
        data: dict[str, Any],
    ) -> CacheEntry:
        """Create from the on-disk entry representation."""
        metadata = data.get("metadata") or {}
        return cls(
            key=key,
            target_lang=target_lang,
            namespace=namespace,
            source_text=str(data["source_text"]),
            translated_text=str(data["translated_text"]),
            provider_id=str(data["provider"]),
            timestamp=int(data["timestamp"]),
            metadata={str(k): str(v) for k, v in metadata.items()},
        )


@dataclass
class BatchResult:
    """Outcome of one tier attempt over the outstanding work batch."""

    provider_used: str
    units_translated: dict[str, str] = field(default_factory=dict)
    units_failed: set[str] = field(default_factory=set)


@dataclass(frozen=True)
class PlaceholderMismatch:
    """Warning: a translation does not carry the source's placeholders."""

    key: str
    expected: tuple[str, ...]
    actual: tuple[str, ...]
    provider_id: str | None = None

    @property
    def missing(self) -> tuple[str, ...]:
        """Placeholders present in the source but absent in the translation."""
        return tuple(name for name in self.expected if name not in self.actual)

    @property
    def unexpected(self) -> tuple[str, ...]:
        """Placeholders introduced by the translation."""
        return tuple(name for name in self.actual if name not in self.expected)

    def __str__(self) -> str:
        return (
            f"Placeholder mismatch in '{self.key}': "
            f"missing={list(self.missing)} unexpected={list(self.unexpected)}"
        )
