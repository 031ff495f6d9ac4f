"""Lifecycle state machine driving one variant from construction to teardown.

Phases run strictly in this order, each at most once::

    CONSTRUCT → ESTABLISH_CONTEXT → BECAUSE → VERIFICATION → AUDIT → TEARDOWN

* **Construct** instantiates the fixture (which allocates its mock
  repository).
* **Establish context** injects the combination's values, runs the
  establishment steps root fixture first, then creates the subject
  under test.
* **Because** runs the action once.
* **Verification** runs each assertion method; failures are collected
  one by one and never stop sibling assertions.
* **Audit** checks mock expectations (:mod:`contextspec._audit`).
* **Teardown** runs the cleanup steps most-derived fixture first,
  attempting every step, then releases the execution context.

An error in construct, establish or because skips the remaining phases
up to the audit.  Audit and teardown always run, whatever happened
before.  The terminal outcome is ``ERRORED`` for any error outside an
assertion, else ``FAILED`` for assertion or audit failures, else
``PASSED``.  An audit that raises something other than an assertion
error is an :class:`~contextspec._errors.AuditError` and counts as an
error.

Log records carry the variant name and the running phase as the
``variant`` and ``phase`` extras (see :mod:`contextspec._logging`).
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from contextspec._audit import audit_mocks, resolve_audit_settings
from contextspec._clock import ClockPort, SystemClock
from contextspec._errors import (
    ActionError,
    AuditError,
    ConstructionError,
    EstablishmentError,
    LifecycleError,
    PhaseError,
    TeardownError,
)
from contextspec._mocking import MockRepository
from contextspec._results import Outcome, Phase, VariantResult
from contextspec._settings import AuditSettings, Settings
from contextspec._variants import VariantDescriptor

logger = logging.getLogger(__name__)


def _describe(exc: BaseException) -> str:
    message = str(exc)
    return f"{type(exc).__name__}: {message}" if message else type(exc).__name__


@dataclass
class ExecutionContext:
    """Live state of one variant run.

    Attributes:
        variant: The variant being run.
        instance: The fixture instance; ``None`` before construction
            and after release.
        phase: The phase currently running.
        injected: Triangulated values injected into the instance.
    """

    variant: VariantDescriptor
    instance: Any = None
    phase: Phase | None = None
    injected: dict[str, object] = field(default_factory=dict)

    @property
    def repository(self) -> MockRepository | None:
        return getattr(self.instance, "mock_repository", None)

    def release(self) -> None:
        """Drop the fixture instance and its doubles."""
        repository = self.repository
        if repository is not None:
            repository.reset()
        self.instance = None
        self.injected.clear()


class Lifecycle:
    """Runs one variant through every phase, exactly once.

    Args:
        variant: The variant to run.
        audit: Audit defaults; the fixture's class-level flags override
            them.  Defaults to both checks off.
        clock: Clock used to measure the run's duration.
        assertions: Assertion methods to run in the verification phase.
            Defaults to the variant's own method.
    """

    def __init__(
        self,
        variant: VariantDescriptor,
        *,
        audit: AuditSettings | None = None,
        clock: ClockPort | None = None,
        assertions: Sequence[str] | None = None,
    ) -> None:
        self.variant = variant
        self.audit_settings = resolve_audit_settings(variant.fixture, audit or AuditSettings())
        self._clock = clock or SystemClock()
        self._assertions = (
            tuple(assertions) if assertions is not None else (variant.method_name,)
        )
        self.context = ExecutionContext(variant)
        self._phases: list[Phase] = []
        self._started = False

    @property
    def phases(self) -> tuple[Phase, ...]:
        """Phases entered so far, in order."""
        return tuple(self._phases)

    def _enter(self, phase: Phase) -> None:
        current = self.context.phase
        if current is not None and phase.position <= current.position:
            msg = (
                f"Illegal phase transition {current.value} -> {phase.value} "
                f"for {self.variant.full_name}"
            )
            raise LifecycleError(msg)
        self.context.phase = phase
        self._phases.append(phase)
        repository = self.context.repository
        if repository is not None:
            repository.phase = phase
        self._log(logging.DEBUG, "entering %s", phase.value)

    def _log(self, level: int, msg: str, *args: object, **extra: object) -> None:
        phase = self.context.phase
        context = {
            "variant": self.variant.full_name,
            "phase": phase.value if phase is not None else None,
            **extra,
        }
        logger.log(level, msg, *args, extra=context)

    # -- phases ---------------------------------------------------------------

    def _construct(self) -> None:
        self._enter(Phase.CONSTRUCT)
        fixture = self.variant.fixture
        try:
            self.context.instance = fixture()
        except Exception as exc:
            msg = f"Cannot instantiate fixture {fixture.__qualname__}: {_describe(exc)}"
            raise ConstructionError(msg, phase=Phase.CONSTRUCT) from exc
        repository = self.context.repository
        if repository is not None:
            repository.phase = Phase.CONSTRUCT

    def _establish(self) -> None:
        self._enter(Phase.ESTABLISH_CONTEXT)
        instance = self.context.instance
        for name, value in self.variant.combination:
            setattr(instance, name, value)
            self.context.injected[name] = value

        for step in self.variant.pipeline.establish:
            try:
                step.func(instance)
            except Exception as exc:
                msg = f"{step.name} raised {_describe(exc)}"
                raise EstablishmentError(msg, phase=Phase.ESTABLISH_CONTEXT) from exc

        if not type(instance)._subject_created_in_because:
            try:
                instance.sut = instance.create_subject_under_test()
            except Exception as exc:
                msg = f"create_subject_under_test raised {_describe(exc)}"
                raise ConstructionError(msg, phase=Phase.ESTABLISH_CONTEXT) from exc

    def _because(self) -> None:
        self._enter(Phase.BECAUSE)
        try:
            self.context.instance.because()
        except Exception as exc:
            msg = f"because raised {_describe(exc)}"
            raise ActionError(msg, phase=Phase.BECAUSE) from exc

    def _verify(self) -> list[BaseException]:
        self._enter(Phase.VERIFICATION)
        instance = self.context.instance
        failed: list[BaseException] = []
        for name in self._assertions:
            try:
                getattr(instance, name)()
            except Exception as exc:
                self._log(logging.INFO, "assertion %s failed: %s", name, exc)
                exc.add_note(f"assertion: {name}")
                failed.append(exc)
        return failed

    def _audit(self) -> AssertionError | AuditError | None:
        self._enter(Phase.AUDIT)
        repository = self.context.repository
        if repository is None:
            return None
        try:
            audit_mocks(repository, self.audit_settings)
        except AssertionError as exc:
            self._log(logging.INFO, "audit failed: %s", exc)
            return exc
        except Exception as exc:
            self._log(logging.WARNING, "audit raised %s", _describe(exc))
            error = AuditError(f"mock audit raised {_describe(exc)}", phase=Phase.AUDIT)
            error.__cause__ = exc
            return error
        return None

    def _teardown(self) -> TeardownError | None:
        self._enter(Phase.TEARDOWN)
        first: TeardownError | None = None
        instance = self.context.instance
        if instance is not None:
            for step in self.variant.pipeline.cleanup:
                try:
                    step.func(instance)
                except Exception as exc:
                    self._log(logging.WARNING, "%s raised %s", step.name, exc)
                    if first is None:
                        msg = f"{step.name} raised {_describe(exc)}"
                        first = TeardownError(msg, phase=Phase.TEARDOWN)
                        first.__cause__ = exc
        self.context.release()
        return first

    # -- driver ---------------------------------------------------------------

    def run(self) -> VariantResult:
        """Run every phase and return the variant's result.

        Raises:
            LifecycleError: If this lifecycle already ran.
        """
        if self._started:
            msg = f"Lifecycle of {self.variant.full_name} already ran"
            raise LifecycleError(msg)
        self._started = True

        started = self._clock.now()
        error: PhaseError | None = None
        failed: list[BaseException] = []
        audit_error: AssertionError | AuditError | None = None
        teardown_error: TeardownError | None = None
        try:
            try:
                self._construct()
                self._establish()
                self._because()
                failed = self._verify()
            except PhaseError as exc:
                self._log(logging.INFO, "%s", exc)
                error = exc
            finally:
                audit_error = self._audit()
        finally:
            teardown_error = self._teardown()

        result = self._result(error, failed, audit_error, teardown_error)
        result.duration = self._clock.now() - started
        outcome = result.outcome.value
        self._log(logging.DEBUG, "finished: %s", outcome, outcome=outcome)
        return result

    def _result(
        self,
        error: PhaseError | None,
        failed: list[BaseException],
        audit_error: AssertionError | AuditError | None,
        teardown_error: TeardownError | None,
    ) -> VariantResult:
        messages = [_describe(exc) for exc in failed]
        if audit_error is not None:
            messages.append(f"audit: {_describe(audit_error)}")

        if error is None and isinstance(audit_error, AuditError):
            error = audit_error
        primary: BaseException | None = error or teardown_error
        if primary is not None:
            outcome = Outcome.ERRORED
            if error is not None and teardown_error is not None:
                messages.append(f"teardown: {teardown_error}")
        elif failed or audit_error is not None:
            outcome = Outcome.FAILED
            primary = audit_error if not failed else None
        else:
            outcome = Outcome.PASSED

        return VariantResult(
            name=self.variant.full_name,
            outcome=outcome,
            failures=messages,
            error=primary,
            from_audit=primary is not None and primary is audit_error,
            phases=list(self._phases),
            assertion_errors=failed,
        )


def run_variant(
    variant: VariantDescriptor,
    *,
    settings: Settings | None = None,
    clock: ClockPort | None = None,
) -> VariantResult:
    """Execution hook: run *variant* once with a fresh lifecycle."""
    audit = settings.audit if settings is not None else None
    return Lifecycle(variant, audit=audit, clock=clock).run()
