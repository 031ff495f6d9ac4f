"""contextspec.

Context-specification testing for pytest: nested "given / when / then"
fixtures, triangulated context properties expanded into one test per
combination, and a fixed lifecycle that audits mock expectations.
"""

from importlib.metadata import PackageNotFoundError, version

from contextspec._audit import audit_mocks, resolve_audit_settings
from contextspec._clock import ClockPort, SystemClock
from contextspec._combinations import Combination, enumerate_combinations
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
from contextspec._hierarchy import FixtureNode, build_hierarchy
from contextspec._lifecycle import ExecutionContext, Lifecycle, run_variant
from contextspec._logging import JsonFormatter, VariantTextFormatter, configure_logging
from contextspec._mocking import ANY, MockBehavior, MockException, Times, matching
from contextspec._registry import declared_properties, discover
from contextspec._results import Outcome, Phase, VariantResult
from contextspec._settings import AuditSettings, CollectionSettings, LoggingSettings, Settings
from contextspec._specification import (
    ContextSpecification,
    SubjectInstantiationSpecification,
)
from contextspec._suite import build_suite, can_build_from, collect_fixtures, run_suite
from contextspec._triangulation import TriangulatedProperty, triangulate
from contextspec._variants import VariantDescriptor, build_variants

try:
    __version__ = version("contextspec")
except PackageNotFoundError:
    # Source checkout without installed metadata
    __version__ = "0.0.0+unknown"

__all__ = [
    # Version
    "__version__",
    # Fixtures
    "ContextSpecification",
    "SubjectInstantiationSpecification",
    "TriangulatedProperty",
    "triangulate",
    # Mocking
    "ANY",
    "MockBehavior",
    "MockException",
    "Times",
    "matching",
    # Build
    "Combination",
    "FixtureNode",
    "VariantDescriptor",
    "build_hierarchy",
    "build_variants",
    "declared_properties",
    "discover",
    "enumerate_combinations",
    # Run
    "ExecutionContext",
    "Lifecycle",
    "Outcome",
    "Phase",
    "VariantResult",
    "audit_mocks",
    "resolve_audit_settings",
    "run_variant",
    # Host hooks
    "build_suite",
    "can_build_from",
    "collect_fixtures",
    "run_suite",
    # Clock
    "ClockPort",
    "SystemClock",
    # Errors
    "ActionError",
    "AuditError",
    "BuildError",
    "ConfigurationError",
    "ConstructionError",
    "ContextSpecError",
    "ErrorPayload",
    "EstablishmentError",
    "LifecycleError",
    "NamingCollisionError",
    "PhaseError",
    "TeardownError",
    "UnverifiedSetupError",
    "build_error_payload",
    # Logging
    "JsonFormatter",
    "VariantTextFormatter",
    "configure_logging",
    # Settings
    "AuditSettings",
    "CollectionSettings",
    "LoggingSettings",
    "Settings",
]
