# SPDX-License-Identifier: Apache-2.0
"""Fallback router: cache lookup, tiered provider dispatch, reconstruction."""

from __future__ import annotations

import asyncio
import logging
import random
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from functools import partial
from typing import Any

from i18n_translator.cache.translation_cache import TranslationCache
from i18n_translator.core.models import (
    BatchResult,
    CacheEntry,
    PlaceholderMismatch,
    TranslationUnit,
)
from i18n_translator.core.placeholders import find_placeholder_mismatch
from i18n_translator.core.structure import StructureCodec
from i18n_translator.pipeline.config import EngineConfig, ProviderTier, RunOptions
from i18n_translator.pipeline.errors import AllProvidersExhausted
from i18n_translator.pipeline.rate_limiter import (
    Clock,
    RateLimiter,
    SleepFunc,
    interruptible_sleep,
)
from i18n_translator.pipeline.retry import RetryExecutor, RetryPolicy
from i18n_translator.translators import create_translator
from i18n_translator.translators.base import (
    ArrayLengthMismatchError,
    ConfigurationError,
    ProviderClient,
    TranslationCancelledError,
    TranslationError,
    TranslatorError,
)

logger = logging.getLogger(__name__)

CACHE_PROVIDER = "cache"


@dataclass
class ProviderUsage:
    """Request accounting for one tier."""

    provider: str
    requests: int = 0
    characters: int = 0
    units_translated: int = 0
    failures: int = 0
    skipped: str | None = None

    def add(self, other: ProviderUsage) -> None:
        self.requests += other.requests
        self.characters += other.characters
        self.units_translated += other.units_translated
        self.failures += other.failures


@dataclass
class TranslationOutcome:
    """Result of one :meth:`FallbackRouter.translate_resource` run.

    Unresolved units keep their source text in ``tree``; they are absent
    from ``translations``.

    Attributes:
        tree: Reconstructed resource tree.
        target_lang: Target language code.
        translations: Resolved translation by unit key.
        key_providers: Tier id (or ``"cache"``) that resolved each key.
        stats: Usage of each tier in resolved order, including skipped ones.
        unresolved_keys: Keys no tier could translate, in resource order.
        placeholder_warnings: Translations that changed placeholders.
        cache_hits: Units served from the cache.
        error: Set when some keys remain unresolved.
    """

    tree: Any
    target_lang: str
    translations: dict[str, str] = field(default_factory=dict)
    key_providers: dict[str, str] = field(default_factory=dict)
    stats: dict[str, ProviderUsage] = field(default_factory=dict)
    unresolved_keys: list[str] = field(default_factory=list)
    placeholder_warnings: list[PlaceholderMismatch] = field(default_factory=list)
    cache_hits: int = 0
    error: AllProvidersExhausted | None = None

    @property
    def complete(self) -> bool:
        return not self.unresolved_keys

    def raise_for_unresolved(self) -> None:
        """Raise the exhaustion error if any key is unresolved.

        Raises:
            AllProvidersExhausted: If ``unresolved_keys`` is not empty.
        """
        if self.error is not None:
            raise self.error


class FallbackRouter:
    """Translates resource trees through an ordered chain of provider tiers.

    The router owns one :class:`RateLimiter` and one :class:`RetryExecutor`
    per tier, plus the shared :class:`TranslationCache`. Tiers are attempted
    strictly in resolved order; chunks within a tier are sent sequentially.
    A tier is abandoned on its first unrecoverable chunk and the remaining
    work falls through to the next tier. Chunks that already succeeded are
    kept and cached.
    """

    def __init__(
        self,
        config: EngineConfig,
        cache: TranslationCache | None = None,
        clients: dict[str, ProviderClient] | None = None,
        clock: Clock = time.monotonic,
        sleep: SleepFunc = interruptible_sleep,
        jitter: Callable[[], float] = random.random,
    ) -> None:
        """Initialize FallbackRouter.

        Args:
            config: Resolved engine configuration.
            cache: Translation cache (defaults to one at ``config.cache_dir``).
            clients: Pre-built clients by tier id. Tiers without one get a
                client from the registry on first use. Injected clients
                are not closed by :meth:`close`.
            clock: Monotonic clock used by the rate limiters.
            sleep: Sleep used for rate-limit waits and retry backoff.
            jitter: Source of uniform values in [0, 1) for backoff jitter.

        Raises:
            ConfigurationError: If no tier is enabled, tier ids repeat, or a
                tier has invalid values.
        """
        seen: set[str] = set()
        for tier in config.tiers:
            tier.validate()
            if tier.id in seen:
                raise ConfigurationError(f"Duplicate provider id '{tier.id}'")
            seen.add(tier.id)
        if not any(tier.enabled for tier in config.tiers):
            raise ConfigurationError("No translation provider is enabled")

        self._config = config
        self._cache = cache if cache is not None else TranslationCache(config.cache_dir)
        self._codec = StructureCodec()
        self._clients: dict[str, ProviderClient] = dict(clients or {})
        self._owned_clients: set[str] = set()
        self._limiters = {
            tier.id: RateLimiter(tier.requests_per_second, clock=clock, sleep=sleep)
            for tier in config.tiers
        }
        self._executors = {
            tier.id: RetryExecutor(
                RetryPolicy(
                    max_retries=tier.max_retries,
                    initial_delay_ms=tier.retry_delay_ms,
                    max_delay_ms=tier.max_delay_ms,
                ),
                timeout=tier.timeout_secs,
                provider=tier.id,
                sleep=sleep,
                jitter=jitter,
            )
            for tier in config.tiers
        }
        self._usage = {tier.id: ProviderUsage(tier.id) for tier in config.tiers}

    async def __aenter__(self) -> FallbackRouter:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()

    @property
    def config(self) -> EngineConfig:
        return self._config

    @property
    def cache(self) -> TranslationCache:
        return self._cache

    @property
    def usage(self) -> dict[str, ProviderUsage]:
        """Cumulative usage per tier across all runs of this router."""
        return self._usage

    def rate_limiter(self, tier_id: str) -> RateLimiter:
        return self._limiters[tier_id]

    def resolve_tier_order(
        self,
        target_lang: str,
        options: RunOptions | None = None,
    ) -> list[ProviderTier]:
        """Order the tiers for one run.

        Enabled tiers are sorted by priority, with tiers that prefer
        ``target_lang`` moved ahead of the rest (the sort is stable, so
        equal tiers keep their configured order). A forced provider
        replaces the chain with that single tier.

        Raises:
            ConfigurationError: If the forced provider is not configured.
        """
        options = options or RunOptions()
        if options.provider is not None:
            tier = self._config.tier(options.provider)
            if tier is None:
                raise ConfigurationError(
                    f"Unknown translation provider '{options.provider}'"
                )
            return [tier]

        enabled = [tier for tier in self._config.tiers if tier.enabled]
        return sorted(enabled, key=lambda t: (not t.prefers(target_lang), t.priority))

    async def translate_resource(
        self,
        tree: Any,
        source_lang: str,
        target_lang: str,
        options: RunOptions | None = None,
    ) -> TranslationOutcome:
        """Translate every string leaf of ``tree`` into ``target_lang``.

        Args:
            tree: Nested resource (maps, arrays, strings, scalars).
            source_lang: Source language code.
            target_lang: Target language code.
            options: Per-run options.

        Returns:
            Outcome with the rebuilt tree. When some keys stay untranslated
            the outcome carries an :class:`AllProvidersExhausted` error
            instead of raising it.

        Raises:
            ConfigurationError: If the forced provider is unknown.
            TranslationCancelledError: If the run is cancelled.
            StructureError: If two leaves of the tree share a key.
        """
        options = options or RunOptions()
        flat = self._codec.flatten(tree)
        units = flat.units
        total = len(units)

        outcome = TranslationOutcome(tree=None, target_lang=target_lang)
        cached: dict[str, str] = {}
        if options.use_cache:
            cached = await asyncio.to_thread(
                self._lookup_cache, units, target_lang, options.namespace
            )
        pending: list[TranslationUnit] = []
        for unit in units:
            if unit.key in cached:
                outcome.translations[unit.key] = cached[unit.key]
                outcome.key_providers[unit.key] = CACHE_PROVIDER
            else:
                pending.append(unit)
        outcome.cache_hits = total - len(pending)
        self._notify(options, "cache", outcome.cache_hits, total, target_lang)
        logger.debug(
            "%s: %d/%d unit(s) served from cache", target_lang, outcome.cache_hits, total
        )

        order = self.resolve_tier_order(target_lang, options)
        failures: dict[str, str] = {}
        failed_tiers = 0

        for index, tier in enumerate(order):
            if not pending and self._config.fallback.stop_on_first_success:
                break
            usage = ProviderUsage(tier.id)
            outcome.stats[tier.id] = usage

            if not pending:
                usage.skipped = "nothing left to translate"
                continue

            skip_reason = self._skip_reason(tier, options)
            if skip_reason is not None:
                usage.skipped = skip_reason
                failures[tier.id] = f"skipped ({skip_reason})"
                logger.info("Skipping %s for %s: %s", tier.id, target_lang, skip_reason)
                continue

            logger.info(
                "Translating %d unit(s) to %s with %s [%d/%d]",
                len(pending),
                target_lang,
                tier.id,
                index + 1,
                len(order),
            )
            result, error = await self._run_tier(
                tier, pending, source_lang, target_lang, options, outcome, usage, total
            )
            self._usage[tier.id].add(usage)

            if result.units_translated:
                pending = [u for u in pending if u.key not in result.units_translated]
                if failed_tiers and self._config.fallback.log_fallback_events:
                    logger.warning(
                        "Used fallback provider %s for %s after %d failure(s)",
                        tier.id,
                        target_lang,
                        failed_tiers,
                    )

            if error is not None:
                failed_tiers += 1
                failures[tier.id] = str(error)
                if self._config.fallback.log_fallback_events:
                    logger.warning(
                        "%s failed for %s, %d unit(s) fall through: %s",
                        tier.id,
                        target_lang,
                        len(result.units_failed),
                        error,
                    )
            else:
                logger.info(
                    "Translation to %s with %s succeeded (%d unit(s))",
                    target_lang,
                    tier.id,
                    len(result.units_translated),
                )

        outcome.tree = self._codec.reconstruct(flat, outcome.translations)
        if pending:
            outcome.unresolved_keys = [unit.key for unit in pending]
            outcome.error = AllProvidersExhausted(outcome.unresolved_keys, failures)
            logger.error("%s: %s", target_lang, outcome.error)
        return outcome

    async def translate_languages(
        self,
        tree: Any,
        source_lang: str,
        target_langs: list[str],
        options: RunOptions | None = None,
    ) -> dict[str, TranslationOutcome]:
        """Translate ``tree`` into several languages concurrently.

        Returns:
            Outcome per target language.
        """
        outcomes = await asyncio.gather(
            *(
                self.translate_resource(tree, source_lang, lang, options)
                for lang in target_langs
            )
        )
        return dict(zip(target_langs, outcomes))

    async def close(self) -> None:
        """Close the clients this router created."""
        for tier_id in sorted(self._owned_clients):
            client = self._clients.pop(tier_id, None)
            if client is not None:
                await client.close()
        self._owned_clients.clear()

    def _skip_reason(self, tier: ProviderTier, options: RunOptions) -> str | None:
        if tier.id in options.disabled_providers:
            return "disabled for this run"
        if not tier.has_credentials and self._config.fallback.skip_on_missing_key:
            return "missing API key"
        return None

    def _client_for(self, tier: ProviderTier) -> ProviderClient:
        client = self._clients.get(tier.id)
        if client is None:
            client = create_translator(tier)
            self._clients[tier.id] = client
            self._owned_clients.add(tier.id)
        return client

    async def _run_tier(
        self,
        tier: ProviderTier,
        pending: list[TranslationUnit],
        source_lang: str,
        target_lang: str,
        options: RunOptions,
        outcome: TranslationOutcome,
        usage: ProviderUsage,
        total: int,
    ) -> tuple[BatchResult, TranslatorError | None]:
        """Send the pending units to one tier chunk by chunk.

        Returns:
            The tier's batch result and the error that ended it, if any.
            Every unit not translated by this tier is in ``units_failed``.
        """
        result = BatchResult(provider_used=tier.id)
        token = options.cancel_token

        try:
            client = self._client_for(tier)
        except (ConfigurationError, ImportError) as exc:
            usage.failures += 1
            result.units_failed = {unit.key for unit in pending}
            return result, _as_tier_error(exc, tier.id)

        limiter = self._limiters[tier.id]
        executor = self._executors[tier.id]
        chunks = self._chunk_units(pending, tier.batch_size)

        for position, chunk in enumerate(chunks):
            texts = [unit.source_text for unit in chunk]
            await limiter.acquire(1, token)
            usage.requests += 1
            usage.characters += sum(len(text) for text in texts)
            try:
                translated = await executor.execute(
                    partial(client.translate_batch, texts, source_lang, target_lang),
                    cancel_token=token,
                )
                if len(translated) != len(chunk):
                    raise ArrayLengthMismatchError(
                        len(chunk), len(translated), provider=tier.id
                    )
            except TranslationCancelledError:
                raise
            except Exception as exc:
                usage.failures += 1
                for remaining in chunks[position:]:
                    result.units_failed.update(unit.key for unit in remaining)
                return result, _as_tier_error(exc, tier.id)

            entries = []
            for unit, text in zip(chunk, translated):
                result.units_translated[unit.key] = text
                outcome.translations[unit.key] = text
                outcome.key_providers[unit.key] = tier.id
                mismatch = find_placeholder_mismatch(
                    unit.key, unit.source_text, text, provider_id=tier.id
                )
                if mismatch is not None:
                    logger.warning("%s (%s)", mismatch, tier.id)
                    outcome.placeholder_warnings.append(mismatch)
                entries.append(
                    CacheEntry(
                        key=unit.key,
                        target_lang=target_lang,
                        namespace=options.namespace,
                        source_text=unit.source_text,
                        translated_text=text,
                        provider_id=tier.id,
                    )
                )
            usage.units_translated += len(chunk)
            await self._write_cache(entries)
            self._notify(
                options,
                "translate",
                len(outcome.translations),
                total,
                f"{target_lang}: {tier.id}",
            )

        return result, None

    def _lookup_cache(
        self,
        units: list[TranslationUnit],
        target_lang: str,
        namespace: str,
    ) -> dict[str, str]:
        hits: dict[str, str] = {}
        for unit in units:
            text = self._cache.get(unit.key, target_lang, namespace, unit.source_text)
            if text is not None:
                hits[unit.key] = text
        return hits

    async def _write_cache(self, entries: list[CacheEntry]) -> None:
        try:
            await asyncio.to_thread(self._cache.set_batch, entries)
        except OSError as exc:
            # The translations are still returned; only persistence is lost.
            logger.warning("Failed to write %d cache entries: %s", len(entries), exc)

    @staticmethod
    def _chunk_units(
        units: list[TranslationUnit],
        batch_size: int,
    ) -> list[list[TranslationUnit]]:
        if batch_size <= 0:
            return [list(units)]
        return [units[i : i + batch_size] for i in range(0, len(units), batch_size)]

    @staticmethod
    def _notify(
        options: RunOptions,
        stage: str,
        current: int,
        total: int,
        message: str = "",
    ) -> None:
        if options.progress_callback is None:
            return
        options.progress_callback(stage, current, total, message)


def _as_tier_error(exc: Exception, tier_id: str) -> TranslatorError:
    """Wrap an unexpected exception so it ends the tier instead of the run."""
    if isinstance(exc, TranslatorError):
        return exc
    return TranslationError(f"{type(exc).__name__}: {exc}", provider=tier_id)


async def translate_resource(
    tree: Any,
    source_lang: str,
    target_lang: str,
    options: RunOptions | None = None,
    *,
    config: EngineConfig | None = None,
    router: FallbackRouter | None = None,
) -> TranslationOutcome:
    """Translate one resource tree.

    Uses ``router`` when given (so rate limits and clients are shared
    across calls); otherwise builds a router from ``config`` or the
    environment and closes it afterwards.

    Returns:
        Outcome with the translated tree, per-tier usage and any
        unresolved keys.
    """
    if router is not None:
        return await router.translate_resource(tree, source_lang, target_lang, options)

    async with FallbackRouter(config or EngineConfig.from_env()) as owned:
        return await owned.translate_resource(tree, source_lang, target_lang, options)
