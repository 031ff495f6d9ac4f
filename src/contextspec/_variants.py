"""Variant naming and construction.

A variant binds one assertion method of a fixture to one combination.
Its identifier is derived from the combination alone::

    then_result_matches[operand1=10 operand2=-7]

The identifier must tell every combination of a method apart, so
:func:`display_form` never renders two distinct primitive values the
same way (``1``, ``1.0``, ``'1'``, ``True`` and ``None`` all differ).
Whatever still collides (duplicated candidates, objects sharing a
``repr``) aborts the method's build with :class:`NamingCollisionError`
instead of silently merging two variants.
"""

from __future__ import annotations

import enum
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field

from contextspec._combinations import Combination, enumerate_combinations
from contextspec._errors import NamingCollisionError
from contextspec._specification import Pipeline

_BARE_STRING = re.compile(r"[\w-]+")
_LITERAL = re.compile(
    r"None|True|False|[-+]?(?:nan|inf)|[-+]?(?:\d[\d_]*\.?\d*|\.\d+)(?:[eE][-+]?\d+)?j?",
    re.IGNORECASE,
)


def display_form(value: object) -> str:
    """Render *value* for use in a variant identifier.

    Strings stay bare when they are made of word characters and
    hyphens and cannot be read as another literal; any other string is
    quoted.  Enum members render as ``Type.NAME``; everything else uses
    ``repr``.
    """
    if isinstance(value, str):
        if _BARE_STRING.fullmatch(value) and not _LITERAL.fullmatch(value):
            return value
        return repr(value)
    if isinstance(value, enum.Enum):
        return f"{type(value).__name__}.{value.name}"
    return repr(value)


def variant_identifier(combination: Combination) -> str:
    """Join ``name=value`` for every assignment, in combination order."""
    return " ".join(f"{name}={display_form(value)}" for name, value in combination)


@dataclass(frozen=True, slots=True)
class VariantDescriptor:
    """A runnable unit: fixture + assertion method + combination.

    Attributes:
        fixture: The concrete fixture class the variant runs on.
        method_name: The assertion method.
        combination: Values injected before establishment.
        identifier: :func:`variant_identifier` of the combination;
            empty for the identity combination.
        pipeline: Establishment and cleanup steps of the fixture chain.
    """

    fixture: type
    method_name: str
    combination: Combination
    identifier: str
    pipeline: Pipeline = field(default_factory=Pipeline, compare=False)

    @property
    def name(self) -> str:
        """Method name, followed by the identifier in brackets when triangulated."""
        if not self.identifier:
            return self.method_name
        return f"{self.method_name}[{self.identifier}]"

    @property
    def full_name(self) -> str:
        return f"{self.fixture.__qualname__}.{self.name}"

    @property
    def display_name(self) -> str:
        """Sentence-like name: ``then result matches [operand=1]``."""
        sentence = self.method_name.replace("_", " ").strip()
        if not self.identifier:
            return sentence
        return f"{sentence} [{self.identifier}]"


def build_variant(
    fixture: type,
    method_name: str,
    combination: Combination,
    *,
    pipeline: Pipeline | None = None,
) -> VariantDescriptor:
    """Bind *method_name* of *fixture* to *combination*."""
    return VariantDescriptor(
        fixture=fixture,
        method_name=method_name,
        combination=combination,
        identifier=variant_identifier(combination),
        pipeline=pipeline if pipeline is not None else Pipeline(),
    )


def build_variants(
    fixture: type,
    method_name: str,
    candidates: Mapping[str, Sequence[object]],
    *,
    pipeline: Pipeline | None = None,
) -> tuple[VariantDescriptor, ...]:
    """Build one variant per combination of *candidates*.

    Raises:
        NamingCollisionError: If two combinations derive the same
            identifier.
    """
    seen: dict[str, Combination] = {}
    variants: list[VariantDescriptor] = []
    for combination in enumerate_combinations(candidates):
        variant = build_variant(fixture, method_name, combination, pipeline=pipeline)
        previous = seen.get(variant.identifier)
        if previous is not None:
            msg = (
                f"{fixture.__qualname__}.{method_name}: combinations "
                f"{previous.indices} and {combination.indices} both render as "
                f"{variant.identifier!r}"
            )
            raise NamingCollisionError(
                msg,
                identifier=variant.identifier,
                combinations=(previous, combination),
                fixture=fixture,
                method_name=method_name,
            )
        seen[variant.identifier] = combination
        variants.append(variant)
    return tuple(variants)
