"""Expectation-based test doubles on top of :mod:`unittest.mock`.

``unittest.mock`` records calls but has no notion of a *configured
expectation*.  This module adds one: a :class:`SpecMock` wraps a
``Mock(spec=...)`` and lets a fixture declare behaviours up front
(``setup``), flag some of them as ``verifiable``, and later check them
(``verify``, ``verify_all``).  Every call still lands in the wrapped
mock's ``call_args_list``, so the usual ``assert_called_with`` helpers
keep working on :attr:`SpecMock.object`.

Example::

    repository = MockRepository()
    calculator = repository.create_mock(Calculator)
    calculator.setup("sum", ANY, ANY).returns(3).verifiable()

    assert calculator.object.sum(1, 2) == 3
    calculator.verify("sum", 1, ANY, times=Times.once())

Argument matching uses plain equality with the configured value on the
left, so literal values, :data:`ANY` and :func:`matching` predicates can
be mixed freely.  When several setups match a call, the one configured
last wins.

Properties are doubled with ``PropertyMock`` on the double's own class:
``setup_get`` / ``setup_set`` configure reads and writes like calls,
``setup_property`` turns a property into a plain stored value, and
``verify_get`` / ``verify_set`` check the recorded accesses.

The audit in :mod:`contextspec._audit` only reads from this module:
:attr:`SpecMock.setups`, :attr:`SpecMock.verifications` and
:meth:`SpecMock.verify_all`.
"""

from __future__ import annotations

import inspect
import logging
import typing
from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, Literal, Self
from unittest import mock

logger = logging.getLogger(__name__)

ANY = mock.ANY
"""Matches any single argument (re-exported from :mod:`unittest.mock`)."""


class MockException(AssertionError):
    """An expectation configured on a mock was not met.

    Subclasses :class:`AssertionError` so that test runners report it
    as a failed check rather than a crash.

    Attributes:
        setups: The setups the failure refers to (may be empty).
    """

    def __init__(self, message: str, *, setups: tuple[Setup, ...] = ()) -> None:
        super().__init__(message)
        self.setups = setups


class MockBehavior(Enum):
    """How a mock answers calls no setup matches.

    ``LOOSE`` falls back to the wrapped mock's ``return_value``;
    ``STRICT`` raises :class:`MockException`.
    """

    LOOSE = "loose"
    STRICT = "strict"


# ---------------------------------------------------------------------------
# Argument matching
# ---------------------------------------------------------------------------


class ArgMatcher:
    """Argument matcher accepting every value *predicate* accepts."""

    def __init__(self, predicate: Callable[[Any], bool], description: str = "") -> None:
        self._predicate = predicate
        self._description = description or getattr(predicate, "__name__", "predicate")

    def __eq__(self, other: object) -> bool:
        if other is ANY:
            return True
        if isinstance(other, ArgMatcher):
            return self._predicate is other._predicate
        return bool(self._predicate(other))

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"<matching {self._description}>"


def matching(predicate: Callable[[Any], bool], description: str = "") -> Any:
    """Build an argument matcher from *predicate*.

    Typed as ``Any`` so it can stand in for an argument of any type::

        mock.setup("charge", matching(lambda amount: amount > 0))
    """
    return ArgMatcher(predicate, description)


def _arguments_match(
    matchers: tuple[Any, ...],
    kw_matchers: Mapping[str, Any],
    args: tuple[Any, ...],
    kwargs: Mapping[str, Any],
) -> bool:
    if len(matchers) != len(args) or set(kw_matchers) != set(kwargs):
        return False
    if not all(expected == actual for expected, actual in zip(matchers, args, strict=True)):
        return False
    return all(kw_matchers[key] == kwargs[key] for key in kw_matchers)


Accessor = Literal["call", "get", "set"]


def _format_call(member: str, args: tuple[Any, ...], kwargs: Mapping[str, Any]) -> str:
    parts = [repr(arg) for arg in args]
    parts.extend(f"{key}={value!r}" for key, value in kwargs.items())
    return f"{member}({', '.join(parts)})"


def _format_access(
    member: str, accessor: Accessor, args: tuple[Any, ...], kwargs: Mapping[str, Any]
) -> str:
    if accessor == "get":
        return member
    if accessor == "set":
        return f"{member} = {args[0]!r}"
    return _format_call(member, args, kwargs)


def _spec_class(spec: Any) -> type | None:
    if spec is None:
        return None
    return spec if isinstance(spec, type) else type(spec)


def _declared_type(spec: Any, member: str) -> Any:
    """Return annotation of a spec method, or the type of a spec property."""
    owner = _spec_class(spec)
    attribute = inspect.getattr_static(owner, member, None) if owner is not None else None
    if isinstance(attribute, property):
        target: Any = attribute.fget
    elif isinstance(attribute, (staticmethod, classmethod)):
        target = attribute.__func__
    else:
        target = attribute
    if not callable(target):
        return None
    try:
        return typing.get_type_hints(target).get("return")
    except (NameError, TypeError):
        return None


# ---------------------------------------------------------------------------
# Times
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Times:
    """Allowed range for the number of matching invocations."""

    minimum: int
    maximum: int | None
    description: str

    @classmethod
    def once(cls) -> Times:
        return cls(1, 1, "exactly once")

    @classmethod
    def never(cls) -> Times:
        return cls(0, 0, "never")

    @classmethod
    def exactly(cls, count: int) -> Times:
        return cls(count, count, f"exactly {count} times")

    @classmethod
    def at_least(cls, count: int) -> Times:
        return cls(count, None, f"at least {count} times")

    @classmethod
    def at_least_once(cls) -> Times:
        return cls(1, None, "at least once")

    @classmethod
    def at_most(cls, count: int) -> Times:
        return cls(0, count, f"at most {count} times")

    @classmethod
    def between(cls, minimum: int, maximum: int) -> Times:
        if minimum > maximum:
            msg = f"Invalid range: minimum {minimum} exceeds maximum {maximum}"
            raise ValueError(msg)
        return cls(minimum, maximum, f"between {minimum} and {maximum} times")

    def validate(self, count: int) -> bool:
        """Return whether *count* invocations satisfy this range."""
        if count < self.minimum:
            return False
        return self.maximum is None or count <= self.maximum

    def __str__(self) -> str:
        return self.description


# ---------------------------------------------------------------------------
# Setups and verification records
# ---------------------------------------------------------------------------


class Setup:
    """One configured behaviour of a :class:`SpecMock` member.

    Created by :meth:`SpecMock.setup`; configured fluently::

        mock.setup("fetch", "key").returns(42).verifiable()

    ``accessor`` tells method calls (``"call"``) from property reads
    (``"get"``) and writes (``"set"``, the value being the only
    argument).
    """

    def __init__(
        self,
        owner: SpecMock,
        member: str,
        args: tuple[Any, ...],
        kwargs: dict[str, Any],
        *,
        accessor: Accessor = "call",
    ) -> None:
        self.owner = owner
        self.member = member
        self.args = args
        self.kwargs = kwargs
        self.accessor = accessor
        self.is_verifiable = False
        self.invocation_count = 0
        self._response: Any = None
        self._error: BaseException | type[BaseException] | None = None
        self._callback: Callable[..., object] | None = None

    def returns(self, value: Any) -> Self:
        """Answer matching calls with *value*."""
        self._response = value
        return self

    def raises(self, error: BaseException | type[BaseException]) -> Self:
        """Raise *error* from matching calls."""
        self._error = error
        return self

    def callback(self, func: Callable[..., object]) -> Self:
        """Call *func* with the call's arguments before answering."""
        self._callback = func
        return self

    def verifiable(self) -> Self:
        """Flag this setup for :meth:`SpecMock.verify` and the audit."""
        self.is_verifiable = True
        return self

    @property
    def matcher(self) -> str:
        """Printable form of the member and argument matchers."""
        access = _format_access(self.member, self.accessor, self.args, self.kwargs)
        return f"{self.owner.name}.{access}"

    def matches(self, args: tuple[Any, ...], kwargs: Mapping[str, Any]) -> bool:
        return _arguments_match(self.args, self.kwargs, args, kwargs)

    def invoke(self, args: tuple[Any, ...], kwargs: dict[str, Any]) -> Any:
        self.invocation_count += 1
        if self._callback is not None:
            self._callback(*args, **kwargs)
        if self._error is not None:
            raise self._error
        return self._response

    def __repr__(self) -> str:
        flag = ", verifiable" if self.is_verifiable else ""
        return f"<Setup {self.matcher}{flag}, invoked {self.invocation_count}x>"


@dataclass(frozen=True, slots=True)
class VerificationCall:
    """Record of one explicit :meth:`SpecMock.verify` call.

    ``phase`` is whatever the owning repository's ``phase`` was at the
    time of the call; the lifecycle sets it so the audit can tell
    verification-phase checks from others.
    """

    member: str
    args: tuple[Any, ...]
    kwargs: dict[str, Any]
    phase: object | None
    accessor: Accessor = "call"

    def covers(self, setup: Setup) -> bool:
        """Whether this verification targets *setup*.

        True when both refer to the same member through the same
        accessor and every argument the setup constrains is compatible
        with the verified one.
        """
        if setup.member != self.member or setup.accessor != self.accessor:
            return False
        return _arguments_match(setup.args, setup.kwargs, self.args, self.kwargs)


# ---------------------------------------------------------------------------
# SpecMock
# ---------------------------------------------------------------------------


class SpecMock:
    """Expectation-aware wrapper around ``unittest.mock.Mock(spec=...)``.

    Args:
        spec: Class or instance the double imitates.  Accessing members
            the spec does not have raises :class:`AttributeError`.
        behavior: Answer for unmatched calls, see :class:`MockBehavior`.
        name: Label used in failure messages.  Defaults to the spec's
            class name.
        repository: Owning repository, consulted for the current phase
            when recording verifications.
    """

    def __init__(
        self,
        spec: Any = None,
        *,
        behavior: MockBehavior = MockBehavior.LOOSE,
        name: str | None = None,
        repository: MockRepository | None = None,
    ) -> None:
        if name is None:
            if spec is None:
                name = "mock"
            else:
                name = getattr(spec, "__name__", None) or type(spec).__name__
        self.spec = spec
        self.behavior = behavior
        self.name = name
        self._repository = repository
        self._double = mock.Mock(spec=spec, name=name)
        self._setups: list[Setup] = []
        self._verifications: list[VerificationCall] = []
        self._dispatching: set[str] = set()
        self._properties: dict[str, mock.PropertyMock] = {}
        self._stored: dict[str, Any] = {}
        self._return_defaults: dict[Any, Any] = {}

        for member in self._spec_properties():
            self._install_property(member)
        if behavior is MockBehavior.STRICT:
            for member in self._spec_methods():
                self._install_dispatcher(member)

    def _spec_methods(self) -> Iterator[str]:
        if self.spec is None:
            return
        for member in dir(self.spec):
            if member.startswith("_") or member in self._properties:
                continue
            if callable(getattr(self.spec, member, None)):
                yield member

    def _spec_properties(self) -> Iterator[str]:
        owner = _spec_class(self.spec)
        if owner is None:
            return
        for member in dir(owner):
            if member.startswith("_"):
                continue
            if isinstance(inspect.getattr_static(owner, member, None), property):
                yield member

    @property
    def object(self) -> Any:
        """The double to hand to the subject under test."""
        return self._double

    @property
    def setups(self) -> tuple[Setup, ...]:
        return tuple(self._setups)

    @property
    def verifications(self) -> tuple[VerificationCall, ...]:
        return tuple(self._verifications)

    # -- configuration --------------------------------------------------------

    def setup(self, member: str, /, *args: Any, **kwargs: Any) -> Setup:
        """Configure the answer to calls of *member* matching the arguments.

        Raises:
            TypeError: If *member* is a property; use :meth:`setup_get`
                or :meth:`setup_set` instead.
        """
        if member in self._properties:
            msg = f"{self.name}.{member} is a property; use setup_get or setup_set"
            raise TypeError(msg)
        self._install_dispatcher(member)
        return self._add(Setup(self, member, args, kwargs))

    def setup_get(self, name: str) -> Setup:
        """Configure the answer to reads of the property *name*."""
        self._install_property(name)
        return self._add(Setup(self, name, (), {}, accessor="get"))

    def setup_set(self, name: str, value: Any) -> Setup:
        """Configure writes of *value* (a literal or matcher) to *name*."""
        self._install_property(name)
        return self._add(Setup(self, name, (value,), {}, accessor="set"))

    def setup_property(self, name: str, initial: Any = None) -> None:
        """Make *name* behave like a plain attribute starting at *initial*.

        Writes are stored and returned by later reads.  Setups made
        with :meth:`setup_get` / :meth:`setup_set` still take precedence.
        """
        self._install_property(name)
        self._stored[name] = initial

    def set_returns_default(self, return_type: Any, value: Any) -> None:
        """Answer unmatched calls with *value* when the member returns *return_type*.

        Applies to ``LOOSE`` mocks only and uses the spec's annotations,
        so members without a declared return type keep the wrapped
        mock's ``return_value``.
        """
        self._return_defaults[return_type] = value
        for member in self._spec_methods():
            self._install_dispatcher(member)

    def _add(self, configured: Setup) -> Setup:
        self._setups.append(configured)
        logger.debug("Configured %r", configured)
        return configured

    def _install_dispatcher(self, member: str) -> None:
        if member in self._dispatching:
            return
        getattr(self._double, member).side_effect = self._dispatcher(member)
        self._dispatching.add(member)

    def _install_property(self, name: str) -> None:
        if name in self._properties:
            return
        if self.spec is not None and name not in dir(self.spec):
            msg = f"Mock object has no attribute {name!r}"
            raise AttributeError(msg)
        # PropertyMock only works on the class; Mock gives each instance its own.
        accessor = mock.PropertyMock(side_effect=self._property_dispatcher(name))
        setattr(type(self._double), name, accessor)
        self._properties[name] = accessor

    def _find(
        self, member: str, accessor: Accessor, args: tuple[Any, ...], kwargs: dict[str, Any]
    ) -> Setup | None:
        for candidate in reversed(self._setups):
            if (
                candidate.member == member
                and candidate.accessor == accessor
                and candidate.matches(args, kwargs)
            ):
                return candidate
        return None

    def _unmatched(
        self, member: str, accessor: Accessor, args: tuple[Any, ...], kwargs: dict[str, Any]
    ) -> Any:
        if self.behavior is MockBehavior.STRICT:
            msg = (
                f"{self.name}.{_format_access(member, accessor, args, kwargs)} invocation "
                f"failed with mock behavior STRICT: all invocations on the "
                f"mock must have a corresponding setup."
            )
            raise MockException(msg)
        if accessor != "set" and self._return_defaults:
            declared = _declared_type(self.spec, member)
            if declared is not None and declared in self._return_defaults:
                return self._return_defaults[declared]
        return mock.DEFAULT

    def _dispatcher(self, member: str) -> Callable[..., Any]:
        def dispatch(*args: Any, **kwargs: Any) -> Any:
            configured = self._find(member, "call", args, kwargs)
            if configured is not None:
                return configured.invoke(args, kwargs)
            return self._unmatched(member, "call", args, kwargs)

        return dispatch

    def _property_dispatcher(self, name: str) -> Callable[..., Any]:
        def dispatch(*args: Any) -> Any:
            accessor: Accessor = "set" if args else "get"
            configured = self._find(name, accessor, args, {})
            if configured is not None:
                result = configured.invoke(args, {})
                if args and name in self._stored:
                    self._stored[name] = args[0]
                return result
            if name in self._stored:
                if args:
                    self._stored[name] = args[0]
                    return None
                return self._stored[name]
            return self._unmatched(name, accessor, args, {})

        return dispatch

    # -- queries --------------------------------------------------------------

    def invocations_matching(self, member: str, /, *args: Any, **kwargs: Any) -> int:
        """Count recorded calls of *member* matching the given matchers."""
        if member in self._properties:
            msg = f"{self.name}.{member} is a property; use verify_get or verify_set"
            raise TypeError(msg)
        calls = getattr(self._double, member).call_args_list
        return sum(
            1 for call in calls if _arguments_match(args, kwargs, call.args, call.kwargs)
        )

    # -- verification ---------------------------------------------------------

    def verify(
        self,
        member: str | None = None,
        /,
        *args: Any,
        times: Times | None = None,
        **kwargs: Any,
    ) -> None:
        """Check invocations of *member*, or all verifiable setups.

        With a member, asserts that the number of matching calls lies
        within *times* (default: at least once) and records the check
        for the audit.  Without one, asserts that every verifiable
        setup was invoked at least once.

        Raises:
            MockException: If the expectation is not met.
        """
        if member is None:
            self._verify_setups(s for s in self._setups if s.is_verifiable)
            return

        count = self.invocations_matching(member, *args, **kwargs)
        self._record(member, "call", args, kwargs)
        self._check(member, "call", args, kwargs, count, times)

    def verify_get(self, name: str, *, times: Times | None = None) -> None:
        """Check reads of the property *name* (default: at least once).

        Raises:
            MockException: If the expectation is not met.
        """
        self._record(name, "get", (), {})
        count = sum(1 for c in self._accesses(name) if not c.args)
        self._check(name, "get", (), {}, count, times)

    def verify_set(self, name: str, value: Any, *, times: Times | None = None) -> None:
        """Check writes of *value* (a literal or matcher) to *name*.

        Raises:
            MockException: If the expectation is not met.
        """
        self._record(name, "set", (value,), {})
        count = sum(
            1 for c in self._accesses(name) if _arguments_match((value,), {}, c.args, {})
        )
        self._check(name, "set", (value,), {}, count, times)

    def _record(
        self, member: str, accessor: Accessor, args: tuple[Any, ...], kwargs: dict[str, Any]
    ) -> None:
        phase = self._repository.phase if self._repository is not None else None
        self._verifications.append(VerificationCall(member, args, kwargs, phase, accessor))

    def _accesses(self, member: str) -> list[Any]:
        if member in self._properties:
            return list(self._properties[member].call_args_list)
        if member in self._stored or self.spec is None or member in dir(self.spec):
            return []
        msg = f"Mock object has no attribute {member!r}"
        raise AttributeError(msg)

    def _check(
        self,
        member: str,
        accessor: Accessor,
        args: tuple[Any, ...],
        kwargs: dict[str, Any],
        count: int,
        times: Times | None,
    ) -> None:
        expected = times if times is not None else Times.at_least_once()
        if expected.validate(count):
            return
        if accessor == "call":
            performed = [
                (c.args, c.kwargs) for c in getattr(self._double, member).call_args_list
            ]
        else:
            performed = [
                (c.args, {})
                for c in self._accesses(member)
                if bool(c.args) == (accessor == "set")
            ]
        listing = "".join(
            f"\n    {self.name}.{_format_access(member, accessor, a, kw)}" for a, kw in performed
        ) or "\n    (none)"
        msg = (
            f"Expected invocation on the mock {expected}, but was {count} times: "
            f"{self.name}.{_format_access(member, accessor, args, kwargs)}"
            f"\n  Performed invocations:{listing}"
        )
        raise MockException(msg)

    def verify_all(self) -> None:
        """Assert that every setup, verifiable or not, was invoked.

        Raises:
            MockException: Listing the setups that never matched a call.
        """
        self._verify_setups(self._setups)

    def _verify_setups(self, setups: Any) -> None:
        unmet = tuple(s for s in setups if s.invocation_count == 0)
        if unmet:
            listing = "".join(f"\n  {s.matcher}" for s in unmet)
            msg = f"The following setups were not matched by any invocation:{listing}"
            raise MockException(msg, setups=unmet)

    def reset_call_counts(self) -> None:
        """Forget recorded calls and invocation counts, keeping every setup."""
        for configured in self._setups:
            configured.invocation_count = 0
        self._double.reset_mock()
        for accessor in self._properties.values():
            accessor.reset_mock()

    def reset(self) -> None:
        """Forget setups, verifications, stored values and recorded calls."""
        self.reset_call_counts()
        self._setups.clear()
        self._verifications.clear()
        self._stored.clear()
        self._return_defaults.clear()

    def __repr__(self) -> str:
        return f"<SpecMock {self.name} ({len(self._setups)} setups)>"


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class MockRepository:
    """Creates and tracks the doubles of one execution context.

    Attributes:
        phase: Label stamped onto verification records.  The lifecycle
            keeps it pointed at the phase currently running.
    """

    def __init__(self, *, default_behavior: MockBehavior = MockBehavior.LOOSE) -> None:
        self.default_behavior = default_behavior
        self.phase: object | None = None
        self._mocks: list[SpecMock] = []

    @property
    def mocks(self) -> tuple[SpecMock, ...]:
        return tuple(self._mocks)

    def create_mock(
        self,
        spec: Any = None,
        *,
        behavior: MockBehavior | None = None,
        name: str | None = None,
    ) -> SpecMock:
        """Create a :class:`SpecMock` owned by this repository."""
        created = SpecMock(
            spec,
            behavior=behavior or self.default_behavior,
            name=name,
            repository=self,
        )
        self._mocks.append(created)
        return created

    def verify(self) -> None:
        """Run :meth:`SpecMock.verify` on every mock."""
        for double in self._mocks:
            double.verify()

    def verify_all(self) -> None:
        """Run :meth:`SpecMock.verify_all` on every mock."""
        for double in self._mocks:
            double.verify_all()

    def reset_call_counts(self) -> None:
        """Run :meth:`SpecMock.reset_call_counts` on every mock."""
        for double in self._mocks:
            double.reset_call_counts()

    def reset(self) -> None:
        """Drop every tracked mock."""
        self._mocks.clear()
        self.phase = None
