"""Tests for contextspec._errors — error taxonomy and payloads.

Test Techniques Used:
    - Specification-based Testing: ErrorPayload construction and serialisation
    - Classification Tree: error families and their base classes
    - Clock Injection: Deterministic timestamps via injected clock callable
    - Cause Propagation: wrapped exceptions surface in payload details
"""

from __future__ import annotations

import json
from dataclasses import FrozenInstanceError
from datetime import UTC, datetime

import pytest

from contextspec._errors import (
    ActionError,
    AuditError,
    BuildError,
    ConfigurationError,
    ConstructionError,
    ContextSpecError,
    ErrorPayload,
    EstablishmentError,
    LifecycleError,
    NamingCollisionError,
    PhaseError,
    TeardownError,
    UnverifiedSetupError,
    build_error_payload,
)
from contextspec._mocking import MockException, SpecMock
from contextspec._results import Phase

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

FIXED_DT = datetime(2026, 2, 14, 12, 0, 0, tzinfo=UTC)
FIXED_ISO = FIXED_DT.isoformat()


def _fixed_clock() -> datetime:
    """Return a deterministic datetime for testing."""
    return FIXED_DT


def _establishment_error() -> EstablishmentError:
    try:
        try:
            raise KeyError("missing")
        except KeyError as exc:
            raise EstablishmentError(
                "given.establish_context raised", phase=Phase.ESTABLISH_CONTEXT
            ) from exc
    except EstablishmentError as wrapped:
        return wrapped


# ---------------------------------------------------------------------------
# Taxonomy
# ---------------------------------------------------------------------------


class TestTaxonomy:
    """Error families.

    Technique: Classification Tree — each error sits under the right
    family so that callers can catch a whole family at once.
    """

    @pytest.mark.parametrize("error_type", [ConfigurationError, NamingCollisionError])
    def test_build_errors(self, error_type: type[Exception]) -> None:
        """Configuration problems are BuildErrors."""
        assert issubclass(error_type, BuildError)
        assert issubclass(error_type, ContextSpecError)

    @pytest.mark.parametrize(
        "error_type",
        [ConstructionError, EstablishmentError, ActionError, AuditError, TeardownError],
    )
    def test_phase_errors(self, error_type: type[Exception]) -> None:
        """Run-time failures of user code are PhaseErrors."""
        assert issubclass(error_type, PhaseError)

    def test_audit_errors_are_assertion_errors(self) -> None:
        """Audit violations read as failed checks."""
        assert issubclass(UnverifiedSetupError, AssertionError)
        assert issubclass(MockException, AssertionError)

    def test_lifecycle_error_is_runtime_error(self) -> None:
        """Illegal transitions are internal runtime errors."""
        assert issubclass(LifecycleError, RuntimeError)

    def test_build_error_carries_location(self) -> None:
        """fixture and method_name are kept on the error."""
        error = ConfigurationError("bad", fixture=int, method_name="then_x")
        assert error.fixture is int
        assert error.method_name == "then_x"

    def test_unverified_setup_error_lists_setups(self) -> None:
        """The message names every unverified setup."""
        double = SpecMock(list, name="items")
        setup = double.setup("append", 1)
        error = UnverifiedSetupError([setup])
        assert error.setups == (setup,)
        assert "items.append(1)" in str(error)


# ---------------------------------------------------------------------------
# ErrorPayload
# ---------------------------------------------------------------------------


class TestErrorPayload:
    """ErrorPayload value object tests.

    Technique: Specification-based Testing — verifying immutability,
    defaults, and JSON serialisation.
    """

    def test_default_details_is_empty_dict(self) -> None:
        """details defaults to an empty dict when not provided."""
        payload = ErrorPayload(
            error_type="error",
            message="boom",
            variant=None,
            phase=None,
            timestamp=FIXED_ISO,
        )
        assert payload.details == {}

    def test_to_json_produces_valid_json_with_correct_keys(self) -> None:
        """to_json() returns valid JSON containing all payload fields."""
        payload = ErrorPayload(
            error_type="action_error",
            message="because raised",
            variant="when_x.then_y[A=1]",
            phase="because",
            timestamp=FIXED_ISO,
            details={"cause_type": "ValueError"},
        )
        assert json.loads(payload.to_json()) == {
            "error_type": "action_error",
            "message": "because raised",
            "variant": "when_x.then_y[A=1]",
            "phase": "because",
            "timestamp": FIXED_ISO,
            "details": {"cause_type": "ValueError"},
        }

    def test_frozen_immutable(self) -> None:
        """ErrorPayload fields cannot be reassigned."""
        payload = ErrorPayload(
            error_type="error",
            message="boom",
            variant=None,
            phase=None,
            timestamp=FIXED_ISO,
        )
        with pytest.raises(FrozenInstanceError):
            payload.message = "changed"  # type: ignore[misc]


# ---------------------------------------------------------------------------
# build_error_payload
# ---------------------------------------------------------------------------


class TestBuildErrorPayload:
    """Conversion of exceptions to payloads.

    Technique: Specification-based Testing.
    """

    def test_phase_error_type_and_phase(self) -> None:
        """A PhaseError maps to its type and reports its phase."""
        payload = build_error_payload(_establishment_error(), clock=_fixed_clock)
        assert payload.error_type == "establishment_error"
        assert payload.phase == "establish_context"
        assert payload.timestamp == FIXED_ISO

    def test_cause_added_to_details(self) -> None:
        """The wrapped exception's type and message land in details."""
        payload = build_error_payload(_establishment_error(), details={"attempt": 1})
        assert payload.details == {
            "attempt": 1,
            "cause_type": "KeyError",
            "cause": "'missing'",
        }

    def test_audit_errors_mapped(self) -> None:
        """MockException reads as an unmet expectation."""
        payload = build_error_payload(MockException("not met"))
        assert payload.error_type == "expectation_not_met"

    def test_raising_audit_mapped_with_phase(self) -> None:
        """An AuditError keeps the audit phase and its cause."""
        error = AuditError("mock audit raised TypeError", phase=Phase.AUDIT)
        error.__cause__ = TypeError("not comparable")
        payload = build_error_payload(error)
        assert payload.error_type == "audit_error"
        assert payload.phase == "audit"
        assert payload.details["cause_type"] == "TypeError"

    def test_exact_class_lookup(self) -> None:
        """Subclasses of mapped errors are not matched."""
        class CustomAssertion(AssertionError):
            pass

        assert build_error_payload(CustomAssertion("x")).error_type == "error"

    def test_custom_error_type_map(self) -> None:
        """Caller entries are added to and override the defaults."""
        payload = build_error_payload(
            ValueError("bad"),
            error_type_map={ValueError: "bad_value"},
        )
        assert payload.error_type == "bad_value"

    def test_variant_and_explicit_phase(self) -> None:
        """variant and phase arguments are passed through."""
        payload = build_error_payload(
            AssertionError("nope"),
            variant="when_x.then_y",
            phase=Phase.VERIFICATION,
        )
        assert payload.variant == "when_x.then_y"
        assert payload.phase == "verification"
        assert payload.error_type == "assertion_failed"

    def test_default_clock_timestamp_close_to_now(self) -> None:
        """Without a clock the timestamp is the current UTC time."""
        before = datetime.now(UTC)
        payload = build_error_payload(RuntimeError("x"))
        after = datetime.now(UTC)
        assert before <= datetime.fromisoformat(payload.timestamp) <= after
