# SPDX-License-Identifier: Apache-2.0
"""Translation pipeline package."""

from .cancellation import CancellationToken
from .config import EngineConfig, FallbackConfig, ProviderTier, RunOptions
from .errors import AllProvidersExhausted, PipelineError
from .fallback_router import (
    FallbackRouter,
    ProviderUsage,
    TranslationOutcome,
    translate_resource,
)
from .progress import ProgressCallback
from .rate_limiter import RateLimiter, RateLimitState
from .retry import RetryExecutor, RetryPolicy

__all__ = [
    "AllProvidersExhausted",
    "CancellationToken",
    "EngineConfig",
    "FallbackConfig",
    "FallbackRouter",
    "PipelineError",
    "ProgressCallback",
    "ProviderTier",
    "ProviderUsage",
    "RateLimitState",
    "RateLimiter",
    "RetryExecutor",
    "RetryPolicy",
    "RunOptions",
    "TranslationOutcome",
    "translate_resource",
]
