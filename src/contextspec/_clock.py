"""Clock port used to time variant runs.

Durations reported in :class:`~contextspec._results.VariantResult` are
differences between two ``now()`` readings, so only a monotonic source
makes sense here.  Tests inject :class:`~contextspec.testing.FakeClock`
for reproducible values.
"""

from __future__ import annotations

import time
from typing import Protocol, runtime_checkable


@runtime_checkable
class ClockPort(Protocol):
    """Monotonic clock for duration measurement."""

    def now(self) -> float:
        """Return monotonic time in seconds from an arbitrary epoch."""
        ...


class SystemClock:
    """Production clock wrapping ``time.perf_counter()``."""

    def now(self) -> float:
        """Return monotonic time in seconds."""
        return time.perf_counter()
