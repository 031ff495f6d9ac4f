"""Host-agnostic discovery, build and execution hooks.

A host test runner needs three things from the framework and nothing
else:

* **discovery** — :func:`can_build_from` answers whether an object is a
  fixture the framework builds;
* **build** — :func:`build_suite` turns one fixture into its node path
  with variants attached;
* **execution** — :func:`~contextspec._lifecycle.run_variant` runs one
  variant and returns its :class:`~contextspec._results.VariantResult`.

The pytest plugin and the command-line runner are both written against
these hooks only.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from types import ModuleType

from contextspec._clock import ClockPort
from contextspec._hierarchy import FixtureNode, build_hierarchy
from contextspec._lifecycle import run_variant
from contextspec._registry import DEFAULT_ASSERTION_PREFIX
from contextspec._results import VariantResult
from contextspec._settings import Settings
from contextspec._specification import is_fixture

logger = logging.getLogger(__name__)


def can_build_from(obj: object) -> bool:
    """True for fixture classes the framework should build.

    Template fixtures are included: they group their descendants.
    Classes setting ``__test__ = False`` (pytest's opt-out) are not.
    """
    return is_fixture(obj) and getattr(obj, "__test__", True) is not False


def collect_fixtures(namespace: ModuleType | Mapping[str, object]) -> list[type]:
    """Fixture classes of *namespace*, nested ones included.

    Classes are returned in definition order, each enclosing class
    before the classes nested in it.  When *namespace* is a module,
    fixtures imported from elsewhere are skipped so that a shared
    template is not collected once per importing module.
    """
    module_name: str | None = None
    if isinstance(namespace, ModuleType):
        module_name = namespace.__name__
        namespace = vars(namespace)

    found: list[type] = []

    def visit(values: Iterable[object], qualname_prefix: str) -> None:
        for value in values:
            if not isinstance(value, type) or not can_build_from(value) or value in found:
                continue
            if module_name is not None and value.__module__ != module_name:
                continue
            if qualname_prefix and not value.__qualname__.startswith(qualname_prefix):
                continue
            found.append(value)
            visit(vars(value).values(), f"{value.__qualname__}.")

    visit(list(namespace.values()), "")
    return found


def build_suite(fixture: type, settings: Settings | None = None) -> FixtureNode:
    """Build hook: node path of *fixture*, its own node returned.

    Raises:
        ConfigurationError: If *fixture* is not a fixture class.
    """
    prefix = (
        settings.collection.assertion_prefix if settings is not None else DEFAULT_ASSERTION_PREFIX
    )
    return build_hierarchy(fixture, assertion_prefix=prefix)


def run_suite(
    node: FixtureNode,
    *,
    settings: Settings | None = None,
    clock: ClockPort | None = None,
) -> list[VariantResult]:
    """Run every variant below *node*, one at a time, in build order."""
    results = [
        run_variant(variant, settings=settings, clock=clock) for variant in node.iter_variants()
    ]
    logger.debug("Ran %d variants of %s", len(results), node.fixture.__qualname__)
    return results
