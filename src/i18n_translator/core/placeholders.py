# SPDX-License-Identifier: Apache-2.0
"""Placeholder extraction and validation.

Placeholders are embedded variable tokens written as ``{name}`` or
``{{name}}``. They must survive translation unchanged; a translation that
drops or invents one is reported as a :class:`PlaceholderMismatch`, never
rejected.
"""

from __future__ import annotations

import re

from i18n_translator.core.models import PlaceholderMismatch

# Double braces first so "{{n}}" is not read as "{" + "{n}" + "}".
PLACEHOLDER_PATTERN = re.compile(
    r"\{\{\s*(?P<double>[A-Za-z_][\w.\-]*)\s*\}\}|\{(?P<single>[A-Za-z_][\w.\-]*)\}"
)


def extract_placeholders(text: str) -> list[str]:
    """Extract the ordered set of distinct placeholder names in text.

    Args:
        text: Text to scan.

    Returns:
        Placeholder names in first-occurrence order, without duplicates.

    Example:
        >>> extract_placeholders("{{n}} of {total} ({{n}})")
        ['n', 'total']
    """
    names: list[str] = []
    for match in PLACEHOLDER_PATTERN.finditer(text):
        name = match.group("double") or match.group("single")
        if name not in names:
            names.append(name)
    return names


def find_placeholder_mismatch(
    key: str,
    source_text: str,
    translated_text: str,
    provider_id: str | None = None,
) -> PlaceholderMismatch | None:
    """Compare the placeholder sets of a source and its translation.

    Order is not compared: translations legitimately move placeholders.

    Returns:
        A mismatch record, or None if both texts carry the same placeholders.
    """
    expected = extract_placeholders(source_text)
    actual = extract_placeholders(translated_text)
    if set(expected) == set(actual):
        return None
    return PlaceholderMismatch(
        key=key,
        expected=tuple(expected),
        actual=tuple(actual),
        provider_id=provider_id,
    )
