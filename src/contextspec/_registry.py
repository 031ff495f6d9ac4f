"""Value source registry: triangulated properties and assertion methods.

Resolves, for a fixture and one of its assertion methods, the candidate
values of every triangulated property visible from the fixture.  The
fixture chain is walked from the fixture itself up to its root fixture;
a name defined on a descendant shadows the same name further up, just
like attribute lookup, so a descendant can narrow a property
(``operand = triangulate(1)``) or pin it (``operand = 1``).

Declarations are immutable once their class exists, so results are
cached per ``(fixture, method, prefix)``.  The cache is an LRU holding at
most :data:`DISCOVERY_CACHE_SIZE` entries, so fixtures built on the fly
are eventually released.
"""

from __future__ import annotations

import functools
import logging
from collections.abc import Mapping
from types import MappingProxyType

from contextspec._errors import ConfigurationError
from contextspec._specification import declaration_of, fixture_chain
from contextspec._triangulation import TriangulatedProperty

logger = logging.getLogger(__name__)

DEFAULT_ASSERTION_PREFIX = "then_"

DISCOVERY_CACHE_SIZE = 1024


def declared_properties(fixture: type) -> tuple[TriangulatedProperty, ...]:
    """Triangulated properties visible from *fixture*, sorted by name."""
    seen: set[str] = set()
    found: dict[str, TriangulatedProperty] = {}
    for cls in reversed(fixture_chain(fixture)):
        declaration = declaration_of(cls)
        declared = {prop.name: prop for prop in declaration.triangulations}
        for name in declaration.names - seen:
            seen.add(name)
            if name in declared:
                found[name] = declared[name]
    return tuple(found[name] for name in sorted(found))


def assertion_methods(
    fixture: type,
    prefix: str = DEFAULT_ASSERTION_PREFIX,
) -> tuple[str, ...]:
    """Names of the assertion methods *fixture* runs, in declaration order.

    Methods are inherited along the fixture chain.  Redefining one keeps
    its original position; rebinding the name to a non-function (for
    instance ``then_x = None``) drops it.
    """
    ordered: dict[str, None] = {}
    for cls in fixture_chain(fixture):
        declaration = declaration_of(cls)
        for name in declaration.names - set(declaration.members):
            if name.startswith(prefix):
                ordered.pop(name, None)
        for name in declaration.members:
            if name.startswith(prefix):
                ordered.setdefault(name)
    return tuple(ordered)


@functools.lru_cache(maxsize=DISCOVERY_CACHE_SIZE)
def discover(
    fixture: type,
    method_name: str,
    prefix: str = DEFAULT_ASSERTION_PREFIX,
) -> Mapping[str, tuple[object, ...]]:
    """Map each triangulated property of *fixture* to its candidate values.

    Args:
        fixture: The concrete fixture owning the method.
        method_name: An assertion method of *fixture*.
        prefix: Assertion method prefix in effect.

    Returns:
        A read-only mapping, ordered by property name.  Empty when the
        fixture declares no triangulated property.

    Raises:
        ConfigurationError: If *method_name* is not an assertion method
            of *fixture*, or a property declares no candidate values.
    """
    if method_name not in assertion_methods(fixture, prefix):
        msg = f"{fixture.__qualname__} has no assertion method {method_name!r}"
        raise ConfigurationError(msg, fixture=fixture, method_name=method_name)

    candidates: dict[str, tuple[object, ...]] = {}
    for prop in declared_properties(fixture):
        if not prop.values:
            msg = (
                f"Triangulated property {prop.owner.__qualname__}.{prop.name} "
                f"declares no candidate values"
            )
            raise ConfigurationError(msg, fixture=fixture, method_name=method_name)
        candidates[prop.name] = prop.values

    logger.debug(
        "Discovered %d triangulated properties for %s.%s",
        len(candidates),
        fixture.__qualname__,
        method_name,
    )
    return MappingProxyType(candidates)
