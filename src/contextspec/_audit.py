"""Teardown-time audit of the mock expectations of one execution context.

Two independent checks, both off by default:

* ``check_setups_are_matched_with_verify_calls`` — every setup flagged
  ``verifiable()`` must be covered by an explicit ``verify(...)`` call
  made while the assertion methods ran.  Raises
  :class:`~contextspec._errors.UnverifiedSetupError`: the call may well
  have happened, but no assertion says so.
* ``auto_verify_mocks`` — every setup must have matched at least one
  invocation.  Raises the mocking layer's own
  :class:`~contextspec._mocking.MockException`.

The audit only reads mock state; it never configures or resets doubles.
"""

from __future__ import annotations

import logging

from contextspec._errors import UnverifiedSetupError
from contextspec._mocking import MockRepository, Setup
from contextspec._results import Phase
from contextspec._settings import AuditSettings

logger = logging.getLogger(__name__)

_FLAGS = ("check_setups_are_matched_with_verify_calls", "auto_verify_mocks")


def resolve_audit_settings(fixture: type, defaults: AuditSettings) -> AuditSettings:
    """Apply *fixture*'s class-level flags (when not ``None``) over *defaults*."""
    overrides = {
        flag: value for flag in _FLAGS if (value := getattr(fixture, flag, None)) is not None
    }
    if not overrides:
        return defaults
    return defaults.model_copy(update=overrides)


def unverified_setups(repository: MockRepository) -> list[Setup]:
    """Verifiable setups not covered by a verification-phase ``verify`` call."""
    missing: list[Setup] = []
    for double in repository.mocks:
        checks = [v for v in double.verifications if v.phase is Phase.VERIFICATION]
        missing.extend(
            setup
            for setup in double.setups
            if setup.is_verifiable and not any(check.covers(setup) for check in checks)
        )
    return missing


def audit_mocks(repository: MockRepository, settings: AuditSettings) -> None:
    """Run the enabled checks against *repository*.

    The explicit-verification check runs first; only the first
    violation is raised.

    Raises:
        UnverifiedSetupError: A verifiable setup was never verified.
        MockException: A setup was never invoked (``auto_verify_mocks``).
    """
    if settings.check_setups_are_matched_with_verify_calls:
        missing = unverified_setups(repository)
        if missing:
            logger.info("%d verifiable setups were never verified", len(missing))
            raise UnverifiedSetupError(missing)

    if settings.auto_verify_mocks:
        repository.verify_all()
