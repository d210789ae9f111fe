# SPDX-License-Identifier: Apache-2.0
"""File-based translation cache.

Translations are stored per (language, namespace) partition so files stay
small and can be cleared selectively::

    .i18n-translator-cache/
      fr/
        common.json
        settings.json
      de/
        common.json

Each partition file has the layout::

    {"version": 1, "entries": {"<key>": {"source_text": ..., "translated_text": ...,
                                         "provider": ..., "timestamp": ...,
                                         "metadata": {...}}}}

An entry is only returned while its stored source text equals the current
source text; there is no TTL.
"""

from __future__ import annotations

import json
import logging
import os
import shutil
import tempfile
import threading
from collections import defaultdict
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from i18n_translator.core.models import CacheEntry

logger = logging.getLogger(__name__)

CACHE_FORMAT_VERSION = 1
DEFAULT_CACHE_DIR = Path(".i18n-translator-cache")


class CacheCorruptionError(Exception):
    """A partition file could not be parsed.

    Raised internally and recovered as an empty partition; never propagated
    to callers of :class:`TranslationCache`.
    """

    def __init__(self, path: Path, reason: str) -> None:
        super().__init__(f"Corrupt cache partition {path}: {reason}")
        self.path = path
        self.reason = reason


@dataclass
class CacheStats:
    """Summary of one language's cache."""

    total_entries: int = 0
    total_namespaces: int = 0
    providers: dict[str, int] = field(default_factory=dict)


def _check_name(name: str, kind: str) -> None:
    if not name or name in (".", "..") or "/" in name or "\\" in name or "\0" in name:
        raise ValueError(f"Invalid cache {kind}: {name!r}")


class TranslationCache:
    """Durable key -> translation store with source-text staleness detection.

    Writers to the same partition are serialized by a per-partition lock;
    different partitions are independent. Partition files are replaced
    atomically (write to a temporary file, then rename).
    """

    def __init__(self, cache_dir: Path | str = DEFAULT_CACHE_DIR) -> None:
        self._cache_dir = Path(cache_dir)
        self._locks: dict[tuple[str, str], threading.Lock] = {}
        self._locks_guard = threading.Lock()
        # (lang, namespace) -> (mtime_ns, size, entries)
        self._loaded: dict[tuple[str, str], tuple[int, int, dict[str, dict[str, Any]]]] = {}

    @property
    def cache_dir(self) -> Path:
        return self._cache_dir

    def partition_path(self, target_lang: str, namespace: str) -> Path:
        """Return the file backing one (language, namespace) partition.

        Raises:
            ValueError: If the language or namespace is not a plain file name.
        """
        _check_name(target_lang, "language")
        _check_name(namespace, "namespace")
        return self._cache_dir / target_lang / f"{namespace}.json"

    def _lock_for(self, target_lang: str, namespace: str) -> threading.Lock:
        with self._locks_guard:
            key = (target_lang, namespace)
            if key not in self._locks:
                self._locks[key] = threading.Lock()
            return self._locks[key]

    def get(
        self,
        key: str,
        target_lang: str,
        namespace: str,
        source_text: str,
    ) -> str | None:
        """Get a cached translation.

        Args:
            key: Unit key.
            target_lang: Target language code.
            namespace: Cache namespace.
            source_text: Current source text of the unit.

        Returns:
            Cached translation, or None on a miss or a stale entry. Stale
            entries are left in place until overwritten.
        """
        entries = self._read_partition(target_lang, namespace)
        entry = entries.get(key)
        if entry is None:
            return None
        if entry.get("source_text") != source_text:
            logger.debug("Cache miss: %s -> %s (source text changed)", key, target_lang)
            return None
        logger.debug("Cache hit: %s -> %s (%s)", key, target_lang, entry.get("provider"))
        return str(entry.get("translated_text"))

    def get_entry(
        self,
        key: str,
        target_lang: str,
        namespace: str,
    ) -> CacheEntry | None:
        """Get the stored entry for a key regardless of staleness."""
        data = self._read_partition(target_lang, namespace).get(key)
        if data is None:
            return None
        return CacheEntry.from_dict(key, target_lang, namespace, data)

    def set_batch(self, entries: list[CacheEntry]) -> None:
        """Store entries, writing each affected partition once.

        Raises:
            OSError: If a partition file cannot be written.
        """
        grouped: dict[tuple[str, str], list[CacheEntry]] = defaultdict(list)
        for entry in entries:
            grouped[(entry.target_lang, entry.namespace)].append(entry)

        for (target_lang, namespace), partition_entries in grouped.items():
            with self._lock_for(target_lang, namespace):
                current = dict(self._read_partition(target_lang, namespace))
                for entry in partition_entries:
                    current[entry.key] = entry.to_dict()
                self._write_partition(target_lang, namespace, current)
            logger.debug(
                "Cached %d translation(s): %s/%s",
                len(partition_entries),
                target_lang,
                namespace,
            )

    def clear(self, namespace: str | None = None, language: str | None = None) -> None:
        """Remove cached translations.

        Args:
            namespace: Restrict to one namespace (in every language if
                ``language`` is None).
            language: Restrict to one language.
        """
        if language is not None and namespace is not None:
            with self._lock_for(language, namespace):
                self.partition_path(language, namespace).unlink(missing_ok=True)
                self._loaded.pop((language, namespace), None)
            logger.debug("Cleared cache: %s -> %s", language, namespace)
            return

        if language is not None:
            _check_name(language, "language")
            shutil.rmtree(self._cache_dir / language, ignore_errors=True)
            self._forget(lambda lang, _ns: lang == language)
            logger.debug("Cleared all cache for: %s", language)
            return

        if namespace is not None:
            for lang in self.languages():
                with self._lock_for(lang, namespace):
                    self.partition_path(lang, namespace).unlink(missing_ok=True)
            self._forget(lambda _lang, ns: ns == namespace)
            logger.debug("Cleared namespace %s in all languages", namespace)
            return

        shutil.rmtree(self._cache_dir, ignore_errors=True)
        self._forget(lambda _lang, _ns: True)
        logger.debug("Cleared entire cache")

    def languages(self) -> list[str]:
        """List languages that have a cache directory."""
        if not self._cache_dir.is_dir():
            return []
        return sorted(p.name for p in self._cache_dir.iterdir() if p.is_dir())

    def stats(self, language: str) -> CacheStats:
        """Get cache statistics for one language."""
        _check_name(language, "language")
        stats = CacheStats()
        lang_dir = self._cache_dir / language
        if not lang_dir.is_dir():
            return stats

        providers: dict[str, int] = defaultdict(int)
        for path in sorted(lang_dir.glob("*.json")):
            try:
                entries = self._load_file(path)
            except CacheCorruptionError as e:
                logger.warning("%s", e)
                continue
            stats.total_namespaces += 1
            stats.total_entries += len(entries)
            for data in entries.values():
                providers[str(data.get("provider", "unknown"))] += 1
        stats.providers = dict(providers)
        return stats

    def _forget(self, predicate: Any) -> None:
        for lang, ns in list(self._loaded):
            if predicate(lang, ns):
                self._loaded.pop((lang, ns), None)

    def _read_partition(self, target_lang: str, namespace: str) -> dict[str, dict[str, Any]]:
        """Load a partition, treating a missing or corrupt file as empty."""
        path = self.partition_path(target_lang, namespace)
        try:
            stat = path.stat()
        except FileNotFoundError:
            self._loaded.pop((target_lang, namespace), None)
            return {}

        cached = self._loaded.get((target_lang, namespace))
        if cached is not None and cached[:2] == (stat.st_mtime_ns, stat.st_size):
            return cached[2]

        try:
            entries = self._load_file(path)
        except CacheCorruptionError as e:
            logger.warning("%s; treating partition as empty", e)
            entries = {}
        self._loaded[(target_lang, namespace)] = (stat.st_mtime_ns, stat.st_size, entries)
        return entries

    @staticmethod
    def _load_file(path: Path) -> dict[str, dict[str, Any]]:
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            raise CacheCorruptionError(path, str(e)) from e

        if not isinstance(data, dict):
            raise CacheCorruptionError(path, "top level is not an object")
        version = data.get("version", CACHE_FORMAT_VERSION)
        if version != CACHE_FORMAT_VERSION:
            raise CacheCorruptionError(
                path, f"unsupported version {version} (expected {CACHE_FORMAT_VERSION})"
            )
        entries = data.get("entries", {})
        if not isinstance(entries, dict):
            raise CacheCorruptionError(path, "entries is not an object")
        for key, entry in entries.items():
            if not isinstance(entry, dict) or "translated_text" not in entry:
                raise CacheCorruptionError(path, f"malformed entry '{key}'")
        return entries

    def _write_partition(
        self,
        target_lang: str,
        namespace: str,
        entries: dict[str, dict[str, Any]],
    ) -> None:
        path = self.partition_path(target_lang, namespace)
        path.parent.mkdir(parents=True, exist_ok=True)
        payload = json.dumps(
            {"version": CACHE_FORMAT_VERSION, "entries": entries},
            indent=2,
            ensure_ascii=False,
        )

        temp_path: Path | None = None
        try:
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=path.parent,
                prefix=f".{path.stem}.",
                suffix=".tmp",
                delete=False,
            ) as f:
                temp_path = Path(f.name)
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            os.replace(temp_path, path)
        finally:
            if temp_path is not None:
                temp_path.unlink(missing_ok=True)

        stat = path.stat()
        self._loaded[(target_lang, namespace)] = (stat.st_mtime_ns, stat.st_size, entries)
