# SPDX-License-Identifier: Apache-2.0
"""Translation delivery engine for nested i18n resources.

Usage:
    from i18n_translator import EngineConfig, translate_resource

    config = EngineConfig.from_env()
    outcome = await translate_resource(tree, "en", "fr", config=config)
    print(outcome.tree, outcome.unresolved_keys)
"""

from i18n_translator.pipeline import (
    EngineConfig,
    FallbackRouter,
    RunOptions,
    TranslationOutcome,
    translate_resource,
)

__version__ = "0.1.0"

__all__ = [
    "EngineConfig",
    "FallbackRouter",
    "RunOptions",
    "TranslationOutcome",
    "translate_resource",
]
