"""Pytest plugin collecting and running context specifications.

Registered through the ``pytest11`` entry point, so any project that
installs contextspec gets its fixtures collected without touching
``conftest.py``.

Collection tree for one module::

    test_calculator.py
        given_a_calculator              (FixtureCollector, template)
            when_sum_is_called          (FixtureCollector)
                then_result[operand=1]  (VariantItem)
                then_result[operand=2]  (VariantItem)

Template fixtures only collect the fixtures lexically nested in them.
Every variant also matches the names of all its fixture ancestors with
``-k``, wherever those ancestors are defined.  Methods whose variants
cannot be built become :class:`BuildErrorItem` nodes that error in
setup, so a broken declaration reads as ERROR, never as a failing test.

Settings come from :class:`~contextspec._settings.Settings` (environment
and ``.env``), overridden by these ini options::

    [pytest]
    contextspec_auto_verify_mocks = true
    contextspec_check_setups_are_matched_with_verify_calls = true
    contextspec_assertion_prefix = it_

**Why lazy imports?** This module is loaded by pytest during plugin
discovery, *before* coverage measurement starts.  Importing contextspec
modules at the top would make them look untested under ``pytest-cov``,
so they are imported inside the hooks and nodes that need them.
"""

from __future__ import annotations

import inspect
import traceback
from typing import TYPE_CHECKING, Any

import pytest

if TYPE_CHECKING:
    from contextspec._errors import BuildError
    from contextspec._results import VariantResult
    from contextspec._settings import Settings
    from contextspec._variants import VariantDescriptor

SETTINGS_KEY = pytest.StashKey["Settings"]()

_AUDIT_FLAGS = ("auto_verify_mocks", "check_setups_are_matched_with_verify_calls")
_TRUE = frozenset({"1", "true", "yes", "on"})
_FALSE = frozenset({"0", "false", "no", "off"})


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addini(
        "contextspec_auto_verify_mocks",
        "Fail variants whose mock setups were never invoked (true/false).",
        default="",
    )
    parser.addini(
        "contextspec_check_setups_are_matched_with_verify_calls",
        "Fail variants whose verifiable setups are never verified (true/false).",
        default="",
    )
    parser.addini(
        "contextspec_assertion_prefix",
        "Name prefix of assertion methods (default: then_).",
        default="",
    )


def _parse_flag(name: str, raw: str) -> bool:
    value = raw.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    msg = f"Invalid value for ini option {name}: {raw!r} (expected true or false)"
    raise pytest.UsageError(msg)


def load_settings(config: pytest.Config) -> Settings:
    """Build the settings of a pytest session.

    Raises:
        pytest.UsageError: If the environment or an ini option holds an
            invalid value.
    """
    from pydantic import ValidationError

    from contextspec._settings import CollectionSettings, Settings

    try:
        settings = Settings()
        audit_updates = {
            flag: _parse_flag(f"contextspec_{flag}", raw)
            for flag in _AUDIT_FLAGS
            if (raw := str(config.getini(f"contextspec_{flag}")))
        }
        collection = settings.collection
        prefix = str(config.getini("contextspec_assertion_prefix"))
        if prefix:
            collection = CollectionSettings(assertion_prefix=prefix)
    except ValidationError as exc:
        msg = f"Invalid contextspec settings: {exc}"
        raise pytest.UsageError(msg) from exc

    return settings.model_copy(
        update={
            "audit": settings.audit.model_copy(update=audit_updates),
            "collection": collection,
        },
    )


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line(
        "markers",
        "contextspec: variant generated from a ContextSpecification fixture",
    )
    config.stash[SETTINGS_KEY] = load_settings(config)


# ---------------------------------------------------------------------------
# Collection
# ---------------------------------------------------------------------------


@pytest.hookimpl(tryfirst=True)
def pytest_pycollect_makeitem(
    collector: pytest.Module | pytest.Class,
    name: str,
    obj: object,
) -> FixtureCollector | list[pytest.Item] | None:
    from contextspec._suite import can_build_from

    if not can_build_from(obj):
        return None
    if getattr(obj, "__module__", None) != collector.module.__name__:
        # Imported fixture: collected in the module defining it.
        return []
    return FixtureCollector.from_parent(collector, name=name)


class FixtureCollector(pytest.Class):
    """Collects the variants of one fixture class and its nested fixtures."""

    def collect(self) -> list[pytest.Item | pytest.Collector]:
        from contextspec._suite import build_suite, can_build_from

        fixture = self.obj
        node = build_suite(fixture, self.config.stash[SETTINGS_KEY])
        children: list[pytest.Item | pytest.Collector] = [
            VariantItem.from_parent(self, name=variant.name, variant=variant)
            for variant in node.variants
        ]
        children.extend(
            BuildErrorItem.from_parent(self, name=method_name, error=error)
            for method_name, error in node.build_errors.items()
        )
        children.extend(
            FixtureCollector.from_parent(self, name=name)
            for name, value in vars(fixture).items()
            if can_build_from(value) and value.__qualname__ == f"{fixture.__qualname__}.{name}"
        )
        return children


# ---------------------------------------------------------------------------
# Items
# ---------------------------------------------------------------------------


class VariantFailure(Exception):
    """Raised by :class:`VariantItem` when a variant did not pass."""

    def __init__(self, result: VariantResult) -> None:
        super().__init__(result.describe())
        self.result = result


def _source_line(obj: Any) -> int | None:
    try:
        return inspect.getsourcelines(obj)[1] - 1
    except (OSError, TypeError):
        return None


class VariantItem(pytest.Item):
    """One variant: fixture + assertion method + combination.

    Attributes:
        variant: The variant this item runs.
        result: The lifecycle result, once the item has run.
    """

    def __init__(self, *, variant: VariantDescriptor, **kwargs: Any) -> None:
        from contextspec._specification import fixture_chain

        super().__init__(**kwargs)
        self.variant = variant
        self.result: VariantResult | None = None
        self.add_marker("contextspec")
        self.extra_keyword_matches.update(cls.__name__ for cls in fixture_chain(variant.fixture))

    def runtest(self) -> None:
        from contextspec._lifecycle import Lifecycle

        settings = self.config.stash[SETTINGS_KEY]
        self.result = Lifecycle(self.variant, audit=settings.audit).run()
        if not self.result.passed:
            raise VariantFailure(self.result)

    def repr_failure(
        self,
        excinfo: pytest.ExceptionInfo[BaseException],
        style: Any = None,
    ) -> str | Any:
        if not isinstance(excinfo.value, VariantFailure):
            return super().repr_failure(excinfo, style=style)

        result = excinfo.value.result
        sections = [result.describe()]
        for exc in result.assertion_errors:
            sections.append("".join(traceback.format_exception(exc)).rstrip())
        if result.error is not None:
            sections.append("".join(traceback.format_exception(result.error)).rstrip())
        return "\n\n".join(sections)

    def reportinfo(self) -> tuple[Any, int | None, str]:
        method = getattr(self.variant.fixture, self.variant.method_name, None)
        path = " > ".join(
            node.name for node in self.listchain() if isinstance(node, FixtureCollector)
        )
        return self.path, _source_line(method), f"{path} > {self.variant.display_name}"


class BuildErrorItem(pytest.Item):
    """An assertion method whose variants could not be built."""

    def __init__(self, *, error: BuildError, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.error = error

    def setup(self) -> None:
        raise self.error

    def runtest(self) -> None:
        """Never reached: :meth:`setup` always raises."""

    def reportinfo(self) -> tuple[Any, int | None, str]:
        return self.path, None, f"{self.name} (build error)"
