"""Fixture hierarchy: one node per fixture class along a chain.

:func:`build_hierarchy` turns a fixture class into a path of
:class:`FixtureNode` objects, root fixture first, and attaches the
fixture's variants to its own node.  Template (abstract) ancestors
appear as intermediate nodes so that reports can group variants by the
"given / when" context they share; they never own variants themselves.

Each call builds fresh nodes.  Two concrete fixtures extending the same
template each get their own path: they share the template class, never
a node instance.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import dataclass, field

from contextspec._errors import BuildError
from contextspec._registry import DEFAULT_ASSERTION_PREFIX, assertion_methods, discover
from contextspec._specification import (
    Pipeline,
    Step,
    compose_pipeline,
    declaration_of,
    fixture_chain,
    is_abstract_fixture,
)
from contextspec._variants import VariantDescriptor, build_variants

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class FixtureNode:
    """A fixture class in a built hierarchy.

    Attributes:
        fixture: The wrapped fixture class.
        parent: Node of the nearest fixture ancestor; ``None`` at the root.
        children: Nodes built beneath this one.
        variants: Variants owned by this node (leaf of a build only).
        build_errors: Build failure per assertion method name.
    """

    fixture: type
    parent: FixtureNode | None = None
    children: list[FixtureNode] = field(default_factory=list)
    variants: list[VariantDescriptor] = field(default_factory=list)
    build_errors: dict[str, BuildError] = field(default_factory=dict)

    @property
    def name(self) -> str:
        return self.fixture.__name__

    @property
    def abstract(self) -> bool:
        return is_abstract_fixture(self.fixture)

    @property
    def root(self) -> FixtureNode:
        node = self
        while node.parent is not None:
            node = node.parent
        return node

    @property
    def path(self) -> tuple[FixtureNode, ...]:
        """Nodes from the root down to this one."""
        nodes: list[FixtureNode] = []
        node: FixtureNode | None = self
        while node is not None:
            nodes.append(node)
            node = node.parent
        return tuple(reversed(nodes))

    @property
    def establish_steps(self) -> tuple[Step, ...]:
        """This fixture's own establishment steps."""
        step = declaration_of(self.fixture).establish
        return (Step(self.fixture, step),) if step is not None else ()

    @property
    def cleanup_steps(self) -> tuple[Step, ...]:
        """This fixture's own cleanup steps."""
        step = declaration_of(self.fixture).cleanup
        return (Step(self.fixture, step),) if step is not None else ()

    def pipeline(self) -> Pipeline:
        """Steps of the whole path, composed for this node."""
        return compose_pipeline(tuple(node.fixture for node in self.path))

    def walk(self) -> Iterator[FixtureNode]:
        """This node and every node below it, depth first."""
        yield self
        for child in self.children:
            yield from child.walk()

    def iter_variants(self) -> Iterator[VariantDescriptor]:
        for node in self.walk():
            yield from node.variants

    def __repr__(self) -> str:
        return (
            f"<FixtureNode {self.fixture.__qualname__} "
            f"variants={len(self.variants)} children={len(self.children)}>"
        )


def build_hierarchy(
    fixture: type,
    *,
    assertion_prefix: str = DEFAULT_ASSERTION_PREFIX,
) -> FixtureNode:
    """Build the node path of *fixture* and return its own node.

    Concrete fixtures get one variant per assertion method and
    combination.  A method whose variants cannot be built (see
    :class:`~contextspec._errors.BuildError`) is recorded in
    ``build_errors`` and contributes no variant; other methods are
    unaffected.

    Raises:
        ConfigurationError: If *fixture* is not a fixture class.
    """
    root, *descendants = fixture_chain(fixture)
    leaf = FixtureNode(fixture=root)
    for cls in descendants:
        node = FixtureNode(fixture=cls, parent=leaf)
        leaf.children.append(node)
        leaf = node

    if leaf.abstract:
        logger.debug("Built template fixture %s (no variants)", fixture.__qualname__)
        return leaf

    pipeline = leaf.pipeline()
    for method_name in assertion_methods(fixture, assertion_prefix):
        try:
            candidates = discover(fixture, method_name, assertion_prefix)
            leaf.variants.extend(
                build_variants(fixture, method_name, candidates, pipeline=pipeline)
            )
        except BuildError as exc:
            logger.warning("Cannot build %s.%s: %s", fixture.__qualname__, method_name, exc)
            leaf.build_errors[method_name] = exc

    logger.debug(
        "Built %s: %d variants, %d build errors",
        fixture.__qualname__,
        len(leaf.variants),
        len(leaf.build_errors),
    )
    return leaf
