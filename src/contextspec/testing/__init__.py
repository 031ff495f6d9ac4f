"""Public test-support utilities for contextspec.

Re-exports test doubles and factories so that test suites exercising
fixtures programmatically can import everything from a single
``contextspec.testing`` namespace instead of reaching into private
modules.

Provided symbols:

- :class:`SpecHarness` — builds and runs fixtures with isolated settings
  and a fake clock.
- :class:`FakeClock` — deterministic clock for duration tests.
- :func:`make_settings` — factory for ``Settings`` without ``.env`` files.
"""

from contextspec.testing._clock import FakeClock
from contextspec.testing._harness import SpecHarness
from contextspec.testing._settings import make_settings

__all__ = [
    "FakeClock",
    "SpecHarness",
    "make_settings",
]
