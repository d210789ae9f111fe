# SPDX-License-Identifier: Apache-2.0
"""Progress callback protocol for translation runs.

Stages reported by the fallback router:

- ``"cache"``: cache lookup finished (current = hits, total = units).
- ``"translate"``: a chunk was translated (current = units resolved).
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class ProgressCallback(Protocol):
    """Progress callback protocol."""

    def __call__(
        self,
        stage: str,
        current: int,
        total: int,
        message: str = "",
    ) -> None: ...
