#!/usr/bin/env python3
# SPDX-License-Identifier: Apache-2.0
"""Resource translation example.

Translates a nested JSON resource into several languages through the
provider fallback chain and writes one file per language.

Usage:
    pip install -e .
    python examples/translate_resource.py

Environment variables (loaded from .env in the project root):
    SYSTRAN_API_KEY, DEEPL_API_KEY, GOOGLE_API_KEY, OPENAI_API_KEY:
        Credentials; tiers without a key are skipped.
    OPENAI_MODEL: OpenAI model (default: gpt-4o-mini)
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from pathlib import Path

from i18n_translator import EngineConfig, FallbackRouter, RunOptions

PROJECT_ROOT = Path(__file__).parent.parent

# =============================================================================
# Settings
# =============================================================================

SOURCE_LANG = "en"
TARGET_LANGS = ["fr", "de", "fi"]

# Cache namespace; one per resource file
NAMESPACE = "common"

# Force a single provider ("systran" | "deepl" | "google" | "openai"), or None
# to use the full fallback chain
PROVIDER: str | None = None

SAMPLE_RESOURCE = {
    "app": {
        "title": "Hello",
        "count_one": "{{n}} item",
        "count_other": "{{n}} items",
    },
    "settings": {
        "save": "Save changes",
        "greeting": "Welcome back, {name}!",
        "max_items": 50,
    },
}

OUTPUT_DIR = Path(__file__).parent / "outputs"
CACHE_DIR = OUTPUT_DIR / ".cache"


def print_progress(stage: str, current: int, total: int, message: str = "") -> None:
    print(f"  [{stage}] {current}/{total} {message}")


async def main() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = EngineConfig.from_env(
        dotenv_path=PROJECT_ROOT / ".env",
        cache_dir=CACHE_DIR,
    )
    if not any(tier.has_credentials for tier in config.tiers):
        print("Error: no provider API key is set")
        print("Set at least one of SYSTRAN_API_KEY, DEEPL_API_KEY, GOOGLE_API_KEY, OPENAI_API_KEY")
        sys.exit(1)

    print("=" * 60)
    print("Resource Translation Example")
    print("=" * 60)
    print(f"Languages:   {SOURCE_LANG} -> {', '.join(TARGET_LANGS)}")
    print(f"Providers:   {', '.join(t.id for t in config.tiers if t.has_credentials)}")
    print(f"Cache:       {CACHE_DIR}")
    print("=" * 60)

    options = RunOptions(
        provider=PROVIDER,
        namespace=NAMESPACE,
        progress_callback=print_progress,
    )

    OUTPUT_DIR.mkdir(parents=True, exist_ok=True)
    async with FallbackRouter(config) as router:
        outcomes = await router.translate_languages(
            SAMPLE_RESOURCE, SOURCE_LANG, TARGET_LANGS, options
        )

    for lang, outcome in outcomes.items():
        output_path = OUTPUT_DIR / f"{NAMESPACE}.{lang}.json"
        output_path.write_text(
            json.dumps(outcome.tree, indent=2, ensure_ascii=False) + "\n",
            encoding="utf-8",
        )
        print(f"\n{lang}: {output_path}")
        print(f"  cache hits:  {outcome.cache_hits}")
        for usage in outcome.stats.values():
            status = usage.skipped or f"{usage.units_translated} unit(s), {usage.requests} request(s)"
            print(f"  {usage.provider:<8} {status}")
        for warning in outcome.placeholder_warnings:
            print(f"  warning: {warning}")
        if outcome.unresolved_keys:
            print(f"  untranslated: {', '.join(outcome.unresolved_keys)}")

    print("\nDone!")


if __name__ == "__main__":
    asyncio.run(main())
