# SPDX-License-Identifier: Apache-2.0
"""Tests for the file-based translation cache."""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from unittest.mock import patch

import pytest

from i18n_translator.cache import CACHE_FORMAT_VERSION, TranslationCache
from i18n_translator.core.models import CacheEntry


def _entry(
    key: str,
    translated: str,
    *,
    source: str = "Hello",
    lang: str = "fr",
    namespace: str = "common",
    provider: str = "deepl",
) -> CacheEntry:
    return CacheEntry(
        key=key,
        target_lang=lang,
        namespace=namespace,
        source_text=source,
        translated_text=translated,
        provider_id=provider,
        timestamp=1700000000,
    )


class TestGetAndSet:
    """Test lookups and writes."""

    def test_miss_on_empty_cache(self, tmp_path: Path) -> None:
        cache = TranslationCache(tmp_path)
        assert cache.get("greeting", "fr", "common", "Hello") is None

    def test_hit_after_set(self, tmp_path: Path) -> None:
        cache = TranslationCache(tmp_path)
        cache.set_batch([_entry("greeting", "Bonjour")])
        assert cache.get("greeting", "fr", "common", "Hello") == "Bonjour"

    def test_changed_source_text_is_a_miss(self, tmp_path: Path) -> None:
        """An entry is only valid for the source text it was made from."""
        cache = TranslationCache(tmp_path)
        cache.set_batch([_entry("greeting", "Bonjour", source="Hello")])
        assert cache.get("greeting", "fr", "common", "Hello!") is None
        # Stale entries stay until overwritten
        assert cache.get_entry("greeting", "fr", "common") is not None

    def test_partitions_are_independent(self, tmp_path: Path) -> None:
        cache = TranslationCache(tmp_path)
        cache.set_batch(
            [
                _entry("greeting", "Bonjour"),
                _entry("greeting", "Hallo", lang="de"),
                _entry("greeting", "Salut", namespace="settings"),
            ]
        )
        assert cache.get("greeting", "fr", "common", "Hello") == "Bonjour"
        assert cache.get("greeting", "de", "common", "Hello") == "Hallo"
        assert cache.get("greeting", "fr", "settings", "Hello") == "Salut"

    def test_overwrite_existing_key(self, tmp_path: Path) -> None:
        cache = TranslationCache(tmp_path)
        cache.set_batch([_entry("greeting", "Bonjour")])
        cache.set_batch([_entry("greeting", "Salut", source="Hi")])
        assert cache.get("greeting", "fr", "common", "Hi") == "Salut"
        assert cache.get("greeting", "fr", "common", "Hello") is None

    def test_visible_to_new_instance(self, tmp_path: Path) -> None:
        """Entries are durable across cache instances."""
        TranslationCache(tmp_path).set_batch([_entry("greeting", "Bonjour")])
        assert TranslationCache(tmp_path).get("greeting", "fr", "common", "Hello") == (
            "Bonjour"
        )

    def test_get_entry_round_trip(self, tmp_path: Path) -> None:
        cache = TranslationCache(tmp_path)
        entry = _entry("greeting", "Bonjour", provider="tier2")
        entry.metadata["model"] = "gpt-4o-mini"
        cache.set_batch([entry])
        assert cache.get_entry("greeting", "fr", "common") == entry


class TestFileLayout:
    """Test the on-disk format."""

    def test_partition_file_format(self, tmp_path: Path) -> None:
        cache = TranslationCache(tmp_path)
        cache.set_batch([_entry("app.title", "Bonjour", provider="tier2")])

        path = tmp_path / "fr" / "common.json"
        assert cache.partition_path("fr", "common") == path
        data = json.loads(path.read_text(encoding="utf-8"))
        assert data == {
            "version": CACHE_FORMAT_VERSION,
            "entries": {
                "app.title": {
                    "source_text": "Hello",
                    "translated_text": "Bonjour",
                    "provider": "tier2",
                    "timestamp": 1700000000,
                    "metadata": {},
                }
            },
        }

    def test_non_ascii_written_verbatim(self, tmp_path: Path) -> None:
        cache = TranslationCache(tmp_path)
        cache.set_batch([_entry("greeting", "こんにちは", lang="ja")])
        text = (tmp_path / "ja" / "common.json").read_text(encoding="utf-8")
        assert "こんにちは" in text

    def test_no_temporary_files_left(self, tmp_path: Path) -> None:
        """Writes go through a temporary file that is renamed into place."""
        cache = TranslationCache(tmp_path)
        cache.set_batch([_entry("a", "A")])
        cache.set_batch([_entry("b", "B")])
        assert sorted(p.name for p in (tmp_path / "fr").iterdir()) == ["common.json"]

    @pytest.mark.parametrize("target", ["os.fsync", "os.replace"])
    def test_failed_write_removes_temporary_file(self, tmp_path: Path, target: str) -> None:
        """A write that fails part way leaves neither a temp file nor a partition."""
        cache = TranslationCache(tmp_path)
        with patch(
            f"i18n_translator.cache.translation_cache.{target}",
            side_effect=OSError("disk full"),
        ):
            with pytest.raises(OSError):
                cache.set_batch([_entry("a", "A")])
        assert list((tmp_path / "fr").iterdir()) == []


class TestPartitionNames:
    """Languages and namespaces must be plain file names."""

    @pytest.mark.parametrize("namespace", ["../x", "a/b", "a\\b", "..", ".", ""])
    def test_invalid_namespace_rejected(self, tmp_path: Path, namespace: str) -> None:
        cache = TranslationCache(tmp_path / "cache")
        with pytest.raises(ValueError, match="Invalid cache namespace"):
            cache.set_batch([_entry("a", "A", namespace=namespace)])
        with pytest.raises(ValueError):
            cache.get("a", "fr", namespace, "Hello")
        assert not (tmp_path / "x.json").exists()
        assert not (tmp_path / "cache").exists()

    @pytest.mark.parametrize("language", ["..", "fr/../..", "/tmp"])
    def test_invalid_language_rejected(self, tmp_path: Path, language: str) -> None:
        cache = TranslationCache(tmp_path)
        with pytest.raises(ValueError, match="Invalid cache language"):
            cache.partition_path(language, "common")
        with pytest.raises(ValueError):
            cache.clear(language=language)
        with pytest.raises(ValueError):
            cache.stats(language)

    def test_dotted_namespace_allowed(self, tmp_path: Path) -> None:
        cache = TranslationCache(tmp_path)
        cache.set_batch([_entry("a", "A", namespace="app.settings")])
        assert (tmp_path / "fr" / "app.settings.json").exists()
        assert cache.stats("fr").total_entries == 1


class TestCorruption:
    """Corrupt partitions are recovered as empty, never raised."""

    @pytest.mark.parametrize(
        "content",
        [
            "{not json",
            "[]",
            '{"version": 99, "entries": {}}',
            '{"version": 1, "entries": []}',
            '{"version": 1, "entries": {"k": "v"}}',
        ],
    )
    def test_corrupt_partition_is_a_miss(
        self,
        tmp_path: Path,
        content: str,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        path = tmp_path / "fr" / "common.json"
        path.parent.mkdir(parents=True)
        path.write_text(content, encoding="utf-8")

        cache = TranslationCache(tmp_path)
        with caplog.at_level(logging.WARNING):
            assert cache.get("k", "fr", "common", "Hello") is None
        assert "Corrupt cache partition" in caplog.text

    def test_write_replaces_corrupt_partition(self, tmp_path: Path) -> None:
        path = tmp_path / "fr" / "common.json"
        path.parent.mkdir(parents=True)
        path.write_text("garbage", encoding="utf-8")

        cache = TranslationCache(tmp_path)
        cache.set_batch([_entry("greeting", "Bonjour")])
        assert cache.get("greeting", "fr", "common", "Hello") == "Bonjour"

    def test_other_partitions_unaffected(self, tmp_path: Path) -> None:
        cache = TranslationCache(tmp_path)
        cache.set_batch([_entry("greeting", "Hallo", lang="de")])
        bad = tmp_path / "fr" / "common.json"
        bad.parent.mkdir(parents=True)
        bad.write_text("garbage", encoding="utf-8")

        assert cache.get("greeting", "de", "common", "Hello") == "Hallo"


class TestClear:
    """Test TranslationCache.clear."""

    @pytest.fixture
    def cache(self, tmp_path: Path) -> TranslationCache:
        cache = TranslationCache(tmp_path)
        cache.set_batch(
            [
                _entry("a", "A-fr"),
                _entry("b", "B-fr", namespace="settings"),
                _entry("a", "A-de", lang="de"),
                _entry("b", "B-de", lang="de", namespace="settings"),
            ]
        )
        return cache

    def test_clear_partition(self, cache: TranslationCache) -> None:
        cache.clear(namespace="common", language="fr")
        assert cache.get("a", "fr", "common", "Hello") is None
        assert cache.get("b", "fr", "settings", "Hello") == "B-fr"
        assert cache.get("a", "de", "common", "Hello") == "A-de"

    def test_clear_language(self, cache: TranslationCache) -> None:
        cache.clear(language="fr")
        assert cache.get("a", "fr", "common", "Hello") is None
        assert cache.get("b", "fr", "settings", "Hello") is None
        assert cache.get("a", "de", "common", "Hello") == "A-de"
        assert cache.languages() == ["de"]

    def test_clear_namespace_in_all_languages(self, cache: TranslationCache) -> None:
        cache.clear(namespace="settings")
        assert cache.get("b", "fr", "settings", "Hello") is None
        assert cache.get("b", "de", "settings", "Hello") is None
        assert cache.get("a", "fr", "common", "Hello") == "A-fr"

    def test_clear_everything(self, cache: TranslationCache) -> None:
        cache.clear()
        assert cache.languages() == []
        assert cache.get("a", "de", "common", "Hello") is None

    def test_clear_missing_partition_is_noop(self, tmp_path: Path) -> None:
        TranslationCache(tmp_path / "missing").clear(namespace="x", language="fr")


class TestStats:
    """Test TranslationCache.stats."""

    def test_stats(self, tmp_path: Path) -> None:
        cache = TranslationCache(tmp_path)
        cache.set_batch(
            [
                _entry("a", "A", provider="deepl"),
                _entry("b", "B", provider="deepl"),
                _entry("c", "C", namespace="settings", provider="google"),
                _entry("a", "A", lang="de"),
            ]
        )
        stats = cache.stats("fr")
        assert stats.total_entries == 3
        assert stats.total_namespaces == 2
        assert stats.providers == {"deepl": 2, "google": 1}

    def test_stats_unknown_language(self, tmp_path: Path) -> None:
        stats = TranslationCache(tmp_path).stats("xx")
        assert stats.total_entries == 0
        assert stats.total_namespaces == 0


class TestConcurrentWriters:
    """Writers to one partition serialize without losing entries."""

    def test_threads_writing_same_partition(self, tmp_path: Path) -> None:
        cache = TranslationCache(tmp_path)

        def write(index: int) -> None:
            cache.set_batch([_entry(f"key{index}", f"value{index}")])

        threads = [threading.Thread(target=write, args=(i,)) for i in range(20)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        fresh = TranslationCache(tmp_path)
        for i in range(20):
            assert fresh.get(f"key{i}", "fr", "common", "Hello") == f"value{i}"
