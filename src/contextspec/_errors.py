"""Error taxonomy and structured error payloads.

Three families of errors, kept apart so that a misconfigured suite is
never mistaken for a failing test:

* **Build errors** (:class:`BuildError`) — raised while turning fixture
  declarations into variants.  Fatal to the affected assertion method
  only; sibling methods and fixtures still build.
* **Phase errors** (:class:`PhaseError`) — raised by user code while a
  variant runs.  Each wraps the original exception as ``__cause__``
  and marks the variant ``ERRORED``.  Teardown still runs.
* **Audit errors** — :class:`UnverifiedSetupError` here, plus the
  mocking layer's own :class:`~contextspec._mocking.MockException`.
  They mark the variant ``FAILED``.  Anything else the audit raises is
  wrapped in :class:`AuditError` and marks the variant ``ERRORED``.

:func:`build_error_payload` converts any of them into an
:class:`ErrorPayload` for machine-readable reports.

Payload schema::

    {
        "error_type": "establishment_error",
        "message": "Human-readable error description",
        "variant": "when_x.then_y[A=1]" | null,
        "phase": "establish_context" | null,
        "timestamp": "2026-02-14T12:34:56+00:00",
        "details": {}
    }
"""

from __future__ import annotations

import json
from collections.abc import Callable, Sequence
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from contextspec._mocking import MockException

if TYPE_CHECKING:
    from contextspec._mocking import Setup
    from contextspec._results import Phase


class ContextSpecError(Exception):
    """Base class for every error raised by contextspec itself."""


# ---------------------------------------------------------------------------
# Build time
# ---------------------------------------------------------------------------


class BuildError(ContextSpecError):
    """A fixture's declarations cannot be turned into variants.

    Attributes:
        fixture: The fixture class being built, when known.
        method_name: The assertion method whose build failed, when known.
    """

    def __init__(
        self,
        message: str,
        *,
        fixture: type | None = None,
        method_name: str | None = None,
    ) -> None:
        super().__init__(message)
        self.fixture = fixture
        self.method_name = method_name


class ConfigurationError(BuildError):
    """Malformed declaration, e.g. a triangulated property without values."""


class NamingCollisionError(BuildError):
    """Two combinations of one method derive the same variant name.

    Attributes:
        identifier: The colliding identifier.
        combinations: The two combinations that produced it.
    """

    def __init__(
        self,
        message: str,
        *,
        identifier: str,
        combinations: tuple[object, object],
        fixture: type | None = None,
        method_name: str | None = None,
    ) -> None:
        super().__init__(message, fixture=fixture, method_name=method_name)
        self.identifier = identifier
        self.combinations = combinations


# ---------------------------------------------------------------------------
# Run time
# ---------------------------------------------------------------------------


class PhaseError(ContextSpecError):
    """User code raised during a lifecycle phase.

    The original exception is chained as ``__cause__``.

    Attributes:
        phase: The phase that was running.
    """

    def __init__(self, message: str, *, phase: Phase) -> None:
        super().__init__(message)
        self.phase = phase


class ConstructionError(PhaseError):
    """The fixture or the subject-under-test factory could not be created."""


class EstablishmentError(PhaseError):
    """An establish-context step raised."""


class ActionError(PhaseError):
    """The ``because`` action raised."""


class TeardownError(PhaseError):
    """A cleanup step raised (all remaining steps were still attempted)."""


class AuditError(PhaseError):
    """Checking the mock doubles raised something other than an assertion.

    Typically a user argument matcher that cannot handle the value it
    is compared against.
    """


class LifecycleError(ContextSpecError, RuntimeError):
    """The lifecycle was driven through an illegal phase transition."""


# ---------------------------------------------------------------------------
# Audit
# ---------------------------------------------------------------------------


class UnverifiedSetupError(ContextSpecError, AssertionError):
    """Verifiable setups were never checked by an explicit ``verify`` call.

    Distinct from :class:`~contextspec._mocking.MockException`: the
    configured calls may well have happened, the test just never
    asserts that they did.

    Attributes:
        setups: The setups lacking a matching ``verify`` call.
    """

    def __init__(self, setups: Sequence[Setup]) -> None:
        self.setups = tuple(setups)
        listing = "".join(f"\n  {s.matcher}" for s in self.setups)
        super().__init__(
            "The following verifiable setups were not matched by a verify "
            f"call during verification:{listing}"
        )


# ---------------------------------------------------------------------------
# Payloads
# ---------------------------------------------------------------------------

DEFAULT_ERROR_TYPES: dict[type[BaseException], str] = {
    ConfigurationError: "configuration_error",
    NamingCollisionError: "naming_collision",
    ConstructionError: "construction_error",
    EstablishmentError: "establishment_error",
    ActionError: "action_error",
    TeardownError: "teardown_error",
    AuditError: "audit_error",
    LifecycleError: "lifecycle_error",
    UnverifiedSetupError: "unverified_setup",
    MockException: "expectation_not_met",
    AssertionError: "assertion_failed",
}


@dataclass(frozen=True, slots=True)
class ErrorPayload:
    """Immutable structured description of one error."""

    error_type: str
    message: str
    variant: str | None
    phase: str | None
    timestamp: str
    details: dict[str, object] = field(default_factory=dict)

    def to_dict(self) -> dict[str, object]:
        return asdict(self)

    def to_json(self) -> str:
        """Serialise to a JSON string."""
        return json.dumps(self.to_dict())


def build_error_payload(
    error: BaseException,
    *,
    error_type_map: dict[type[BaseException], str] | None = None,
    variant: str | None = None,
    phase: Phase | None = None,
    details: dict[str, object] | None = None,
    clock: Callable[[], datetime] | None = None,
) -> ErrorPayload:
    """Convert an exception into a structured :class:`ErrorPayload`.

    Looks up the exact class of the exception; subclasses are not
    matched.  *error_type_map* entries take precedence over
    :data:`DEFAULT_ERROR_TYPES`.

    Args:
        error: The exception to convert.
        error_type_map: Extra mapping from exception types to
            ``error_type`` strings.  Unmapped types fall back to
            ``"error"``.
        variant: Full name of the variant the error belongs to.
        phase: Lifecycle phase the error was raised in.  Defaults to
            ``error.phase`` for :class:`PhaseError`.
        details: Additional context.  When the error has a
            ``__cause__``, its type and message are added as
            ``cause_type`` / ``cause``.
        clock: Callable returning the timestamp; defaults to
            ``datetime.now(UTC)``.
    """
    resolved_map = {**DEFAULT_ERROR_TYPES, **(error_type_map or {})}
    error_type = resolved_map.get(type(error), "error")
    if phase is None and isinstance(error, PhaseError):
        phase = error.phase
    extra: dict[str, object] = dict(details or {})
    if error.__cause__ is not None:
        extra.setdefault("cause_type", type(error.__cause__).__name__)
        extra.setdefault("cause", str(error.__cause__))
    now = clock() if clock is not None else datetime.now(UTC)
    return ErrorPayload(
        error_type=error_type,
        message=str(error),
        variant=variant,
        phase=phase.value if phase is not None else None,
        timestamp=now.isoformat(),
        details=extra,
    )
