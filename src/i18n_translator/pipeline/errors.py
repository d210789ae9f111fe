# SPDX-License-Identifier: Apache-2.0
"""Pipeline error definitions."""

from __future__ import annotations


class PipelineError(Exception):
    """Base exception for pipeline errors."""

    def __init__(
        self,
        message: str,
        stage: str,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.stage = stage
        self.cause = cause


class AllProvidersExhausted(PipelineError):
    """Every tier failed or was skipped for some units.

    Reported on the run outcome alongside the partially translated tree;
    only raised when the caller asks for it.

    Attributes:
        unresolved_keys: Keys left without a translation.
        failures: Last failure message per attempted tier.
    """

    def __init__(
        self,
        unresolved_keys: list[str],
        failures: dict[str, str] | None = None,
        cause: Exception | None = None,
    ) -> None:
        self.unresolved_keys = list(unresolved_keys)
        self.failures = dict(failures or {})
        preview = ", ".join(self.unresolved_keys[:5])
        if len(self.unresolved_keys) > 5:
            preview += ", ..."
        if self.failures:
            reasons = "; ".join(f"{tier}: {reason}" for tier, reason in self.failures.items())
        else:
            reasons = "no provider was attempted"
        super().__init__(
            f"All translation providers exhausted; {len(self.unresolved_keys)} "
            f"key(s) untranslated ({preview}). {reasons}",
            stage="translate",
            cause=cause,
        )
