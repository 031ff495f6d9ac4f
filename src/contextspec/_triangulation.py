"""Declaration of triangulated context properties.

A triangulated property lists the finite set of values a fixture's
context must be exercised with::

    class when_sum_is_called(given_a_calculator):
        operand1 = triangulate(10)
        operand2 = triangulate(7, -7, 8)

Every assertion method of the fixture then runs once per combination
of candidate values (three times here).  Reading the attribute on a
fixture instance yields the value injected for the running variant.

The descriptor is pure metadata.  It learns its name and declaring
class through ``__set_name__``; the fixture base class records it when
the class is created (see :mod:`contextspec._specification`).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True, slots=True)
class TriangulatedProperty:
    """A context property declared as a triangulation input.

    Attributes:
        owner: The fixture class declaring the property.
        name: Attribute name.
        values: Candidate values, in declaration order.
    """

    owner: type
    name: str
    values: tuple[object, ...]


class Triangulation:
    """Class-level descriptor holding a property's candidate values.

    A non-data descriptor: once the lifecycle injects a value into the
    instance ``__dict__``, attribute access no longer reaches it.
    """

    def __init__(self, *values: object) -> None:
        self.values = values
        self.name: str | None = None
        self.owner: type | None = None

    def __set_name__(self, owner: type, name: str) -> None:
        self.owner = owner
        self.name = name

    def __get__(self, instance: object | None, owner: type | None = None) -> Any:
        if instance is None:
            return self
        msg = (
            f"Triangulated property {self.name!r} has no value yet: values "
            f"are injected when a variant starts establishing its context"
        )
        raise AttributeError(msg)

    def declared(self) -> TriangulatedProperty:
        """Freeze this declaration into a :class:`TriangulatedProperty`."""
        if self.owner is None or self.name is None:
            msg = "triangulate() must be assigned to a class attribute"
            raise TypeError(msg)
        return TriangulatedProperty(owner=self.owner, name=self.name, values=self.values)

    def __repr__(self) -> str:
        values = ", ".join(repr(v) for v in self.values)
        return f"triangulate({values})"


def triangulate(*values: object) -> Any:
    """Declare the candidate values of a context property.

    Typed as ``Any`` so that the attribute can be annotated with the
    type of its values::

        quantity: int = triangulate(0, 1, 50)
    """
    return Triangulation(*values)
