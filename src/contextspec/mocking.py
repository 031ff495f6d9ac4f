"""Public mocking API.

Expectation-based doubles for fixtures::

    from contextspec.mocking import ANY, Times, matching

Fixtures normally create doubles with
:meth:`~contextspec.ContextSpecification.create_mock`, which ties them
to the execution context audited at teardown.
"""

from contextspec._mocking import (
    ANY,
    ArgMatcher,
    MockBehavior,
    MockException,
    MockRepository,
    Setup,
    SpecMock,
    Times,
    VerificationCall,
    matching,
)

__all__ = [
    "ANY",
    "ArgMatcher",
    "MockBehavior",
    "MockException",
    "MockRepository",
    "Setup",
    "SpecMock",
    "Times",
    "VerificationCall",
    "matching",
]
