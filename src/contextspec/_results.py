"""Lifecycle phases, terminal outcomes and per-variant results.

Kept free of framework imports so that the mocking layer, the audit and
the lifecycle can all share :class:`Phase` without import cycles.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class Phase(Enum):
    """Ordered phases of one variant execution.

    The enum order *is* the execution order; the lifecycle refuses any
    transition that does not move strictly forward.
    """

    CONSTRUCT = "construct"
    ESTABLISH_CONTEXT = "establish_context"
    BECAUSE = "because"
    VERIFICATION = "verification"
    AUDIT = "audit"
    TEARDOWN = "teardown"

    @property
    def position(self) -> int:
        return _PHASE_ORDER.index(self)


_PHASE_ORDER: tuple[Phase, ...] = tuple(Phase)


class Outcome(Enum):
    """Terminal state reported to the host runner."""

    PASSED = "passed"
    FAILED = "failed"
    ERRORED = "errored"


@dataclass
class VariantResult:
    """Outcome of running one variant through the lifecycle.

    Attributes:
        name: Variant name (``then_x[A=1 B=x]``).
        outcome: Terminal state.
        failures: One message per failed assertion step, followed by
            audit violations.
        error: The exception behind an ``ERRORED`` outcome, or the
            audit violation behind an audit-only ``FAILED`` outcome.
        from_audit: True when :attr:`error` is the audit's own
            exception, i.e. nothing earlier already decided the
            outcome.  An audit violation that merely accompanies an
            earlier error only shows up in :attr:`failures`.
        phases: Phases that actually ran, in order.
        duration: Wall time in seconds, measured with the lifecycle's
            clock.
        assertion_errors: Exceptions raised by the assertion steps, in
            the order of :attr:`failures`.
    """

    name: str
    outcome: Outcome
    failures: list[str] = field(default_factory=list)
    error: BaseException | None = None
    from_audit: bool = False
    phases: list[Phase] = field(default_factory=list)
    duration: float = 0.0
    assertion_errors: list[BaseException] = field(default_factory=list, repr=False)

    @property
    def passed(self) -> bool:
        return self.outcome is Outcome.PASSED

    @property
    def error_message(self) -> str | None:
        """Message of :attr:`error`, including its cause when wrapped."""
        if self.error is None:
            return None
        cause = self.error.__cause__
        if cause is not None:
            return f"{self.error}: {type(cause).__name__}: {cause}"
        return str(self.error)

    def describe(self) -> str:
        """Multi-line, human-readable summary for reports."""
        lines = [f"{self.name}: {self.outcome.value.upper()}"]
        if self.outcome is Outcome.ERRORED and self.error is not None:
            lines.append(f"  error: {self.error_message}")
        lines.extend(f"  - {message}" for message in self.failures)
        return "\n".join(lines)
