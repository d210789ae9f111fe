# SPDX-License-Identifier: Apache-2.0
"""Flatten nested resource trees into translation units and rebuild them.

A resource tree is any nesting of maps, arrays, strings, and scalar leaves
as produced by a JSON or YAML loader. Every string leaf becomes exactly one
:class:`TranslationUnit`, however deep it sits. Scalars and empty
containers are carried as passthrough leaves so the tree can be rebuilt
losslessly.
"""

from __future__ import annotations

import copy
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any, Union

from i18n_translator.core.models import (
    KEY_ESCAPE,
    KEY_SEPARATOR,
    MapKey,
    PassthroughLeaf,
    PathSegment,
    PluralForm,
    TranslationUnit,
)

Leaf = Union[TranslationUnit, PassthroughLeaf]


class StructureError(ValueError):
    """Resource tree cannot be flattened into unique unit keys."""


@dataclass
class FlatResource:
    """Flattened resource: translation units plus passthrough leaves.

    Iterating yields the translation units only, in depth-first order.
    """

    leaves: list[Leaf] = field(default_factory=list)

    @property
    def units(self) -> list[TranslationUnit]:
        """Translatable units in depth-first order."""
        return [leaf for leaf in self.leaves if isinstance(leaf, TranslationUnit)]

    def source_map(self) -> dict[str, str]:
        """Map each unit key to its source text."""
        return {unit.key: unit.source_text for unit in self.units}

    def __iter__(self) -> Iterator[TranslationUnit]:
        return iter(self.units)

    def __len__(self) -> int:
        return len(self.units)


class StructureCodec:
    """Converts between nested resource trees and flat translation batches."""

    def __init__(self, separator: str = KEY_SEPARATOR) -> None:
        self._separator = separator

    def flatten(self, tree: Any) -> FlatResource:
        """Walk a resource tree depth-first.

        Map keys are joined with the separator, array elements use their
        index. A separator or backslash inside a map key is escaped with a
        backslash, so ``{"a.b": ...}`` and ``{"a": {"b": ...}}`` get distinct
        keys. Non-string map keys keep their type through the round trip. String leaves whose last key segment ends in a plural suffix
        (``_zero``, ``_one``, ``_two``, ``_few``, ``_many``, ``_other``)
        get the matching plural form; the key keeps the suffix.

        Args:
            tree: Root map (or array) of the resource.

        Returns:
            Flattened resource.

        Raises:
            StructureError: If two leaves map to the same key, as with
                ``{404: ..., "404": ...}`` in one map.
        """
        result = FlatResource()
        self._walk(tree, (), result.leaves)
        seen: set[str] = set()
        for unit in result.units:
            if unit.key in seen:
                raise StructureError(f"Duplicate translation key: {unit.key!r}")
            seen.add(unit.key)
        return result

    def _walk(
        self,
        node: Any,
        path: tuple[PathSegment, ...],
        leaves: list[Leaf],
    ) -> None:
        if isinstance(node, Mapping):
            if not node and path:
                leaves.append(PassthroughLeaf(path=path, value={}))
                return
            for key, child in node.items():
                segment = key if isinstance(key, str) else MapKey(key)
                self._walk(child, path + (segment,), leaves)
        elif isinstance(node, list):
            if not node:
                leaves.append(PassthroughLeaf(path=path, value=[]))
                return
            for index, child in enumerate(node):
                self._walk(child, path + (index,), leaves)
        elif isinstance(node, str):
            last = path[-1] if path else ""
            plural_form = (
                PluralForm.from_key(last) if isinstance(last, str) else PluralForm.NONE
            )
            leaves.append(
                TranslationUnit(
                    key=self.join_path(path),
                    source_text=node,
                    plural_form=plural_form,
                    path=path,
                )
            )
        else:
            leaves.append(PassthroughLeaf(path=path, value=copy.deepcopy(node)))

    def join_path(self, path: tuple[PathSegment, ...]) -> str:
        """Join path segments into a dot-path key."""
        return self._separator.join(self._escape(str(segment)) for segment in path)

    def _escape(self, segment: str) -> str:
        return segment.replace(KEY_ESCAPE, KEY_ESCAPE * 2).replace(
            self._separator, KEY_ESCAPE + self._separator
        )

    def reconstruct(
        self,
        flat: FlatResource | list[TranslationUnit],
        translations: Mapping[str, str],
    ) -> Any:
        """Rebuild a nested tree from flattened units.

        Each unit's value is its translation when one exists, otherwise its
        source text; a unit is never dropped or set to None.

        Args:
            flat: Result of :meth:`flatten`, or a plain list of units.
            translations: Translated text by unit key.

        Returns:
            Rebuilt tree.
        """
        leaves = flat.leaves if isinstance(flat, FlatResource) else list(flat)
        root: Any = None
        for leaf in leaves:
            if isinstance(leaf, TranslationUnit):
                value: Any = translations.get(leaf.key, leaf.source_text)
                if value is None:
                    value = leaf.source_text
            else:
                value = copy.deepcopy(leaf.value)
            if not leaf.path:
                return value
            root = self._assign(root, leaf.path, value)
        return root if root is not None else {}

    def _assign(
        self,
        root: Any,
        path: tuple[PathSegment, ...],
        value: Any,
    ) -> Any:
        if root is None:
            root = self._new_container(path[0])
        node = root
        for segment, next_segment in zip(path, path[1:]):
            child = self._get_child(node, segment)
            if child is None:
                child = self._new_container(next_segment)
                self._set_child(node, segment, child)
            node = child
        self._set_child(node, path[-1], value)
        return root

    @staticmethod
    def _new_container(segment: PathSegment) -> Any:
        return [] if isinstance(segment, int) else {}

    @staticmethod
    def _get_child(node: Any, segment: PathSegment) -> Any:
        if isinstance(node, list):
            if isinstance(segment, int) and segment < len(node):
                return node[segment]
            return None
        return node.get(_map_key(segment))

    @staticmethod
    def _set_child(node: Any, segment: PathSegment, value: Any) -> None:
        if isinstance(node, list):
            index = int(segment)
            while len(node) <= index:
                node.append(None)
            node[index] = value
        else:
            node[_map_key(segment)] = value


def _map_key(segment: PathSegment) -> Any:
    return segment.value if isinstance(segment, MapKey) else segment
