"""Fixture base classes and their recorded declarations.

A fixture is a subclass of :class:`ContextSpecification` describing one
nested context in "given / when / with" style.  Each class contributes
its *own* pieces and never calls ``super()`` for them:

* ``establish_context(self)`` — one establishment step.  Steps of the
  whole chain run ancestor first.
* ``cleanup(self)`` — one teardown step.  Steps run most-derived first.
* ``then_*`` methods — assertions, inherited by every descendant.
* ``triangulate(...)`` attributes — triangulated context properties.

``because`` and ``create_subject_under_test`` are ordinary methods: the
most-derived definition wins.

Declarations are recorded once, when the class is created
(``__init_subclass__``), into a :class:`FixtureDeclaration`.  Everything
downstream (registry, hierarchy, lifecycle) reads those records instead
of inspecting classes again.

Example::

    class given_a_calculator(ContextSpecification, abstract=True):
        def establish_context(self) -> None:
            self.adder = self.create_mock(Adder)

        def create_subject_under_test(self) -> Calculator:
            return Calculator(self.adder.object)

    class when_sum_is_called(given_a_calculator):
        operand = triangulate(1, 2)

        def establish_context(self) -> None:
            self.adder.setup("add", ANY, ANY).returns(3)

        def because(self) -> None:
            self.result = self.sut.sum(self.operand, 2)

        def then_result_comes_from_adder(self) -> None:
            assert self.result == 3
"""

from __future__ import annotations

import abc
import inspect
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, ClassVar, NamedTuple

from contextspec._errors import ConfigurationError
from contextspec._mocking import MockBehavior, MockRepository, SpecMock
from contextspec._triangulation import TriangulatedProperty, Triangulation

_DECLARATION_ATTR = "__contextspec_declaration__"

# Framework-provided bases: recognised as fixtures' ancestors but never
# part of a fixture chain themselves.
_FRAMEWORK_BASES: set[type] = set()


@dataclass(frozen=True, slots=True)
class FixtureDeclaration:
    """What one fixture class declares in its own body.

    Attributes:
        fixture: The class.
        parent: Nearest fixture ancestor, or ``None`` for a root fixture.
        abstract: Declared with ``abstract=True``.
        triangulations: Triangulated properties declared in the body.
        names: Every attribute name defined in the body; used to
            resolve shadowing along the chain.
        members: Public functions defined in the body, in order.
        establish: The class's own ``establish_context``, if any.
        cleanup: The class's own ``cleanup``, if any.
    """

    fixture: type
    parent: type | None
    abstract: bool
    triangulations: tuple[TriangulatedProperty, ...]
    names: frozenset[str]
    members: tuple[str, ...]
    establish: Callable[[Any], object] | None
    cleanup: Callable[[Any], object] | None


class Step(NamedTuple):
    """One establishment or cleanup step bound to its declaring fixture."""

    fixture: type
    func: Callable[[Any], object]

    @property
    def name(self) -> str:
        return f"{self.fixture.__qualname__}.{self.func.__name__}"


@dataclass(frozen=True, slots=True)
class Pipeline:
    """Ordered steps for one leaf fixture.

    ``establish`` runs root to leaf, ``cleanup`` leaf to root.
    """

    establish: tuple[Step, ...] = ()
    cleanup: tuple[Step, ...] = ()


def _own_function(cls: type, name: str) -> Callable[[Any], object] | None:
    value = cls.__dict__.get(name)
    return value if inspect.isfunction(value) else None


def _fixture_parent(cls: type) -> type | None:
    parents = [
        base
        for base in cls.__bases__
        if issubclass(base, ContextSpecification) and base not in _FRAMEWORK_BASES
    ]
    if len(parents) > 1:
        names = ", ".join(p.__qualname__ for p in parents)
        msg = (
            f"Fixture {cls.__qualname__} derives from several fixtures ({names}); "
            f"a fixture may extend at most one other fixture"
        )
        raise ConfigurationError(msg, fixture=cls)
    return parents[0] if parents else None


def _declare(cls: type, *, abstract: bool) -> FixtureDeclaration:
    body = cls.__dict__
    return FixtureDeclaration(
        fixture=cls,
        parent=_fixture_parent(cls),
        abstract=abstract,
        triangulations=tuple(
            value.declared() for value in body.values() if isinstance(value, Triangulation)
        ),
        names=frozenset(body),
        members=tuple(
            name
            for name, value in body.items()
            if not name.startswith("_") and inspect.isfunction(value)
        ),
        establish=_own_function(cls, "establish_context"),
        cleanup=_own_function(cls, "cleanup"),
    )


class ContextSpecification(abc.ABC):
    """Base class of every fixture.

    Class keyword ``abstract=True`` marks a template fixture: it groups
    descendants in reports and shares its steps and assertions with
    them, but never runs on its own.  A fixture without a ``because``
    is abstract as well.

    Class attributes tune the mock audit for the fixture and its
    descendants; ``None`` defers to :class:`~contextspec._settings.AuditSettings`.
    """

    auto_verify_mocks: ClassVar[bool | None] = None
    check_setups_are_matched_with_verify_calls: ClassVar[bool | None] = None
    mock_behavior: ClassVar[MockBehavior] = MockBehavior.LOOSE

    _subject_created_in_because: ClassVar[bool] = False

    def __init_subclass__(cls, *, abstract: bool = False, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        setattr(cls, _DECLARATION_ATTR, _declare(cls, abstract=abstract))

    def __init__(self) -> None:
        self.mock_repository = MockRepository(default_behavior=type(self).mock_behavior)
        self.sut: Any = None

    def create_mock(
        self,
        spec: Any = None,
        *,
        behavior: MockBehavior | None = None,
        name: str | None = None,
    ) -> SpecMock:
        """Create a test double tracked by this context's repository."""
        return self.mock_repository.create_mock(spec, behavior=behavior, name=name)

    def create_subject_under_test(self) -> Any:
        """Build the subject under test once the context is established.

        The result is stored as ``self.sut``.  Returns ``None`` unless
        overridden.
        """
        return None

    @abc.abstractmethod
    def because(self) -> None:
        """The action under specification.  Runs exactly once per variant."""


class SubjectInstantiationSpecification(ContextSpecification):
    """Fixture whose action *is* the creation of the subject under test.

    Implement :meth:`because_sut_is_created`; its return value becomes
    ``self.sut``.  ``create_subject_under_test`` is not called.
    """

    _subject_created_in_because: ClassVar[bool] = True

    def because(self) -> None:
        self.sut = self.because_sut_is_created()

    @abc.abstractmethod
    def because_sut_is_created(self) -> Any:
        """Create and return the subject under test."""


_FRAMEWORK_BASES.update({ContextSpecification, SubjectInstantiationSpecification})


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


def is_fixture(obj: object) -> bool:
    """True for user-defined fixture classes."""
    return (
        inspect.isclass(obj)
        and issubclass(obj, ContextSpecification)
        and obj not in _FRAMEWORK_BASES
    )


def declaration_of(fixture: type) -> FixtureDeclaration:
    """Return the declaration recorded for *fixture*.

    Raises:
        ConfigurationError: If *fixture* is not a fixture class.
    """
    if not is_fixture(fixture):
        msg = f"{fixture!r} is not a ContextSpecification fixture"
        raise ConfigurationError(msg)
    return fixture.__dict__[_DECLARATION_ATTR]


def is_abstract_fixture(fixture: type) -> bool:
    """True for template fixtures that contribute no variants."""
    return declaration_of(fixture).abstract or inspect.isabstract(fixture)


def fixture_chain(fixture: type) -> tuple[type, ...]:
    """Fixture classes from the root fixture down to *fixture*."""
    chain: list[type] = []
    current: type | None = fixture
    while current is not None:
        chain.append(current)
        current = declaration_of(current).parent
    chain.reverse()
    return tuple(chain)


def compose_pipeline(chain: tuple[type, ...]) -> Pipeline:
    """Compose the steps of a root-to-leaf *chain* into a pipeline."""
    declarations = [declaration_of(fixture) for fixture in chain]
    establish = tuple(
        Step(d.fixture, d.establish) for d in declarations if d.establish is not None
    )
    cleanup = tuple(
        Step(d.fixture, d.cleanup) for d in reversed(declarations) if d.cleanup is not None
    )
    return Pipeline(establish=establish, cleanup=cleanup)
