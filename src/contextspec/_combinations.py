"""Cartesian enumeration of triangulated property values.

The candidate-index vector is treated as a mixed-radix counter with one
digit per property.  Digits are ordered by property name; the first
digit turns fastest::

    A ∈ (1, 2), B ∈ ("x", "y", "z")

    A=1 B=x, A=2 B=x, A=1 B=y, A=2 B=y, A=1 B=z, A=2 B=z

The counter yields exactly ``n1 * n2 * ... * nk`` combinations, none
twice, in the same order on every run.  With no property at all it
yields a single empty combination, so an untriangulated method still
runs once.
"""

from __future__ import annotations

import math
from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass

from contextspec._errors import ConfigurationError


@dataclass(frozen=True, slots=True)
class Combination:
    """One value per triangulated property.

    Attributes:
        assignments: ``(property_name, value)`` pairs ordered by name.
        indices: Candidate index chosen for each property, same order.
    """

    assignments: tuple[tuple[str, object], ...] = ()
    indices: tuple[int, ...] = ()

    @property
    def is_identity(self) -> bool:
        """True for the empty combination of an untriangulated method."""
        return not self.assignments

    def as_dict(self) -> dict[str, object]:
        return dict(self.assignments)

    def __iter__(self) -> Iterator[tuple[str, object]]:
        return iter(self.assignments)

    def __len__(self) -> int:
        return len(self.assignments)


IDENTITY = Combination()


def count_combinations(candidates: Mapping[str, Sequence[object]]) -> int:
    """Number of combinations :func:`enumerate_combinations` yields."""
    return math.prod(len(values) for values in candidates.values())


def enumerate_combinations(
    candidates: Mapping[str, Sequence[object]],
) -> Iterator[Combination]:
    """Yield every combination of *candidates*, odometer order.

    Args:
        candidates: Property name to candidate values.

    Raises:
        ConfigurationError: If a property has no candidate values.
    """
    names = sorted(candidates)
    radices = [len(candidates[name]) for name in names]
    for name, radix in zip(names, radices, strict=True):
        if radix == 0:
            msg = f"Triangulated property {name!r} declares no candidate values"
            raise ConfigurationError(msg)

    digits = [0] * len(names)
    while True:
        yield Combination(
            assignments=tuple(
                (name, candidates[name][digit]) for name, digit in zip(names, digits, strict=True)
            ),
            indices=tuple(digits),
        )

        position = 0
        while position < len(digits):
            digits[position] += 1
            if digits[position] < radices[position]:
                break
            digits[position] = 0
            position += 1
        else:
            return
