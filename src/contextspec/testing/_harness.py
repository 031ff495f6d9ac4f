"""Test harness building and running fixtures without pytest collection.

Provides :class:`SpecHarness` — a one-liner setup for tests that need
to look at variants and their results directly, with isolated settings
and a deterministic clock.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Self

from contextspec._hierarchy import FixtureNode
from contextspec._lifecycle import Lifecycle
from contextspec._results import VariantResult
from contextspec._settings import Settings
from contextspec._suite import build_suite
from contextspec._variants import VariantDescriptor
from contextspec.testing._clock import FakeClock
from contextspec.testing._settings import make_settings


@dataclass
class SpecHarness:
    """Builds and runs fixtures with pre-configured test doubles.

    Usage::

        harness = SpecHarness.create(audit={"auto_verify_mocks": True})

        results = harness.run(when_sum_is_called)
        assert results["then_result[operand=1]"].passed
    """

    settings: Settings
    clock: FakeClock

    @classmethod
    def create(cls, *, clock_step: float = 0.0, **settings_overrides: Any) -> Self:
        """Create a harness with fresh test doubles.

        Args:
            clock_step: Seconds the fake clock advances per reading;
                every variant then reports this exact duration.
            **settings_overrides: Forwarded to :func:`make_settings`.
        """
        return cls(
            settings=make_settings(**settings_overrides),
            clock=FakeClock(step=clock_step),
        )

    def build(self, fixture: type) -> FixtureNode:
        """Build *fixture* with the harness settings."""
        return build_suite(fixture, self.settings)

    def variants(self, fixture: type) -> list[VariantDescriptor]:
        return list(self.build(fixture).variants)

    def lifecycle(self, variant: VariantDescriptor) -> Lifecycle:
        """A fresh, not yet started lifecycle for *variant*."""
        return Lifecycle(variant, audit=self.settings.audit, clock=self.clock)

    def run(self, fixture: type) -> dict[str, VariantResult]:
        """Run every variant of *fixture*, keyed by variant name."""
        return {
            variant.name: self.lifecycle(variant).run() for variant in self.variants(fixture)
        }
