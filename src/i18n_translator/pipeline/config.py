# SPDX-License-Identifier: Apache-2.0
"""Resolved engine configuration.

Configuration files and command-line flags are resolved by the caller;
this module only defines the resolved structures and the per-vendor
defaults.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, ClassVar

from i18n_translator.cache.translation_cache import DEFAULT_CACHE_DIR
from i18n_translator.pipeline.cancellation import CancellationToken
from i18n_translator.pipeline.progress import ProgressCallback
from i18n_translator.translators.base import ConfigurationError


@dataclass
class ProviderTier:
    """One translation provider in the fallback chain.

    ``batch_size`` of 0 means unbounded; ``requests_per_second`` of 0 means
    no rate limiting. ``api_key`` is excluded from ``repr`` so it cannot
    leak into logs.
    """

    id: str
    priority: int
    enabled: bool = True
    timeout_secs: float = 30.0
    max_retries: int = 3
    batch_size: int = 50
    requests_per_second: float = 10.0
    preferred_languages: frozenset[str] = frozenset()
    retry_delay_ms: int = 1000
    max_delay_ms: int = 30000
    api_key: str | None = field(default=None, repr=False)
    vendor: str | None = None
    options: dict[str, Any] = field(default_factory=dict)

    # Vendor defaults: priority, timeout_secs, batch_size, requests_per_second
    VENDOR_DEFAULTS: ClassVar[dict[str, tuple[int, float, int, float]]] = {
        "systran": (1, 45.0, 50, 100.0),
        "deepl": (2, 30.0, 50, 10.0),
        "google": (3, 30.0, 100, 100.0),
        "openai": (4, 60.0, 0, 0.0),
    }

    # Environment variable names for API keys
    API_KEY_ENV_VARS: ClassVar[dict[str, str]] = {
        "systran": "SYSTRAN_API_KEY",
        "deepl": "DEEPL_API_KEY",
        "google": "GOOGLE_API_KEY",
        "openai": "OPENAI_API_KEY",
    }

    def __post_init__(self) -> None:
        self.preferred_languages = frozenset(
            lang.lower() for lang in self.preferred_languages
        )

    @property
    def vendor_name(self) -> str:
        """Registry name of the client implementing this tier."""
        return (self.vendor or self.id).lower()

    @property
    def has_credentials(self) -> bool:
        return bool(self.api_key)

    def prefers(self, language: str) -> bool:
        """Return True if this tier declares ``language`` as preferred."""
        return language.lower() in self.preferred_languages

    def validate(self) -> None:
        """Check value ranges.

        Raises:
            ConfigurationError: On an invalid value.
        """
        if self.priority < 1:
            raise ConfigurationError(
                f"Provider '{self.id}': priority must be >= 1 (got {self.priority})"
            )
        if self.timeout_secs <= 0:
            raise ConfigurationError(
                f"Provider '{self.id}': timeout_secs must be positive"
            )
        if self.max_retries < 1:
            raise ConfigurationError(
                f"Provider '{self.id}': max_retries must be >= 1"
            )
        if self.batch_size < 0 or self.requests_per_second < 0:
            raise ConfigurationError(
                f"Provider '{self.id}': batch_size and requests_per_second "
                "must not be negative"
            )

    @classmethod
    def defaults_for(cls, vendor: str, **overrides: Any) -> ProviderTier:
        """Build a tier with the vendor's default limits.

        Args:
            vendor: "systran", "deepl", "google" or "openai".
            **overrides: Field values replacing the defaults.

        Raises:
            ConfigurationError: If the vendor has no defaults.
        """
        try:
            priority, timeout, batch_size, rate = cls.VENDOR_DEFAULTS[vendor]
        except KeyError:
            raise ConfigurationError(f"No defaults for provider '{vendor}'") from None
        tier = cls(
            id=vendor,
            priority=priority,
            timeout_secs=timeout,
            batch_size=batch_size,
            requests_per_second=rate,
        )
        return replace(tier, **overrides) if overrides else tier

    @classmethod
    def systran_defaults(cls, **overrides: Any) -> ProviderTier:
        return cls.defaults_for("systran", **overrides)

    @classmethod
    def deepl_defaults(cls, **overrides: Any) -> ProviderTier:
        return cls.defaults_for("deepl", **overrides)

    @classmethod
    def google_defaults(cls, **overrides: Any) -> ProviderTier:
        return cls.defaults_for("google", **overrides)

    @classmethod
    def openai_defaults(cls, **overrides: Any) -> ProviderTier:
        return cls.defaults_for("openai", **overrides)


@dataclass
class FallbackConfig:
    """Fallback chain behaviour."""

    skip_on_missing_key: bool = True
    stop_on_first_success: bool = True
    log_fallback_events: bool = True


@dataclass
class EngineConfig:
    """Resolved configuration for a :class:`FallbackRouter`."""

    tiers: list[ProviderTier] = field(default_factory=list)
    fallback: FallbackConfig = field(default_factory=FallbackConfig)
    cache_dir: Path = DEFAULT_CACHE_DIR

    def tier(self, tier_id: str) -> ProviderTier | None:
        """Look up a tier by id."""
        for tier in self.tiers:
            if tier.id == tier_id:
                return tier
        return None

    @classmethod
    def from_env(
        cls,
        dotenv_path: Path | str | None = None,
        cache_dir: Path | str | None = None,
    ) -> EngineConfig:
        """Build the default four-tier configuration from the environment.

        Credentials come from ``SYSTRAN_API_KEY``, ``DEEPL_API_KEY``,
        ``GOOGLE_API_KEY`` and ``OPENAI_API_KEY``; ``OPENAI_MODEL`` selects
        the OpenAI model.

        Args:
            dotenv_path: Optional ``.env`` file loaded first (existing
                environment variables win).
            cache_dir: Cache directory override.
        """
        if dotenv_path is not None:
            from dotenv import load_dotenv

            load_dotenv(dotenv_path)

        tiers = []
        for vendor, env_var in ProviderTier.API_KEY_ENV_VARS.items():
            options: dict[str, Any] = {}
            if vendor == "openai" and os.environ.get("OPENAI_MODEL"):
                options["model"] = os.environ["OPENAI_MODEL"]
            tiers.append(
                ProviderTier.defaults_for(
                    vendor,
                    api_key=os.environ.get(env_var) or None,
                    options=options,
                )
            )
        return cls(
            tiers=tiers,
            cache_dir=Path(cache_dir) if cache_dir is not None else DEFAULT_CACHE_DIR,
        )


@dataclass
class RunOptions:
    """Per-run options for :meth:`FallbackRouter.translate_resource`.

    Attributes:
        provider: Force a single tier by id, disabling fallback.
        disabled_providers: Tier ids excluded from this run.
        namespace: Cache partition for this resource (e.g. its file name).
        use_cache: Read cached translations (writes happen regardless).
        cancel_token: Cancels rate-limiter waits, backoff sleeps and calls.
        progress_callback: Receives progress notifications.
    """

    provider: str | None = None
    disabled_providers: frozenset[str] = frozenset()
    namespace: str = "default"
    use_cache: bool = True
    cancel_token: CancellationToken | None = None
    progress_callback: ProgressCallback | None = None
