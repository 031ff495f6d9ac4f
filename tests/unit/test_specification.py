"""Unit tests for contextspec._specification — fixture declarations.

Test Techniques Used:
    - Specification-based Testing: declarations recorded at class creation
    - Structural Testing: fixture chains and composed pipelines
    - Error Condition Testing: several fixture parents, non-fixtures
"""

from __future__ import annotations

import pytest

from contextspec import (
    ConfigurationError,
    ContextSpecification,
    SubjectInstantiationSpecification,
    triangulate,
)
from contextspec._mocking import MockBehavior, MockRepository
from contextspec._specification import (
    compose_pipeline,
    declaration_of,
    fixture_chain,
    is_abstract_fixture,
    is_fixture,
)


class given_a_root(ContextSpecification, abstract=True):
    def establish_context(self) -> None:
        pass

    def cleanup(self) -> None:
        pass


class given_a_middle(given_a_root, abstract=True):
    size = triangulate(1, 2)

    def then_inherited(self) -> None:
        pass


class when_acting(given_a_middle):
    def establish_context(self) -> None:
        pass

    def because(self) -> None:
        pass

    def cleanup(self) -> None:
        pass

    def then_own(self) -> None:
        pass

    def _helper(self) -> None:
        pass


class without_because(ContextSpecification):
    def then_unreachable(self) -> None:
        pass


# ---------------------------------------------------------------------------
# TestDeclaration
# ---------------------------------------------------------------------------


class TestDeclaration:
    """__init_subclass__ records what each class declares.

    Technique: Specification-based Testing.
    """

    def test_parent_is_nearest_fixture(self) -> None:
        """parent links to the direct fixture base."""
        assert declaration_of(when_acting).parent is given_a_middle
        assert declaration_of(given_a_root).parent is None

    def test_abstract_keyword_recorded(self) -> None:
        """abstract=True is stored on the declaration."""
        assert declaration_of(given_a_middle).abstract
        assert not declaration_of(when_acting).abstract

    def test_own_triangulations_only(self) -> None:
        """Only properties declared in the class body are recorded."""
        assert [p.name for p in declaration_of(given_a_middle).triangulations] == ["size"]
        assert declaration_of(when_acting).triangulations == ()

    def test_members_are_public_functions_in_order(self) -> None:
        """Private helpers are not members."""
        assert declaration_of(when_acting).members == (
            "establish_context",
            "because",
            "cleanup",
            "then_own",
        )

    def test_own_steps_recorded(self) -> None:
        """establish/cleanup point at the class's own functions."""
        declaration = declaration_of(given_a_middle)
        assert declaration.establish is None
        assert declaration.cleanup is None
        assert declaration_of(when_acting).establish is when_acting.__dict__["establish_context"]

    def test_several_fixture_parents_rejected(self) -> None:
        """A fixture may extend at most one other fixture."""
        class other_root(ContextSpecification, abstract=True):
            pass

        with pytest.raises(ConfigurationError, match="several fixtures"):
            class both(given_a_root, other_root):  # noqa: F811
                def because(self) -> None:
                    pass

    def test_declaration_of_non_fixture_raises(self) -> None:
        """Plain classes have no declaration."""
        with pytest.raises(ConfigurationError, match="not a ContextSpecification"):
            declaration_of(object)


# ---------------------------------------------------------------------------
# TestQueries
# ---------------------------------------------------------------------------


class TestQueries:
    """Fixture predicates and chains.

    Technique: Structural Testing.
    """

    def test_framework_bases_are_not_fixtures(self) -> None:
        """The framework's own bases never count as fixtures."""
        assert not is_fixture(ContextSpecification)
        assert not is_fixture(SubjectInstantiationSpecification)
        assert not is_fixture(42)
        assert is_fixture(when_acting)

    def test_abstract_by_keyword_or_missing_because(self) -> None:
        """Templates and fixtures lacking because are abstract."""
        assert is_abstract_fixture(given_a_root)
        assert is_abstract_fixture(without_because)
        assert not is_abstract_fixture(when_acting)

    def test_chain_runs_root_to_leaf(self) -> None:
        """fixture_chain lists ancestors first."""
        assert fixture_chain(when_acting) == (given_a_root, given_a_middle, when_acting)

    def test_pipeline_orders_steps(self) -> None:
        """Establishment runs root first, cleanup leaf first."""
        pipeline = compose_pipeline(fixture_chain(when_acting))
        assert [s.fixture for s in pipeline.establish] == [given_a_root, when_acting]
        assert [s.fixture for s in pipeline.cleanup] == [when_acting, given_a_root]

    def test_step_name_is_qualified(self) -> None:
        """Step names combine fixture and function."""
        step = compose_pipeline((given_a_root,)).establish[0]
        assert step.name == "given_a_root.establish_context"


# ---------------------------------------------------------------------------
# TestContextSpecificationInstance
# ---------------------------------------------------------------------------


class TestContextSpecificationInstance:
    """Per-instance state of a fixture.

    Technique: State-based Testing.
    """

    def test_instance_owns_fresh_repository(self) -> None:
        """Each instance gets its own MockRepository."""
        first, second = when_acting(), when_acting()
        assert isinstance(first.mock_repository, MockRepository)
        assert first.mock_repository is not second.mock_repository

    def test_create_mock_is_tracked(self) -> None:
        """create_mock registers the double with the repository."""
        spec = when_acting()
        double = spec.create_mock(list)
        assert spec.mock_repository.mocks == (double,)

    def test_mock_behavior_class_attribute(self) -> None:
        """mock_behavior sets the repository default."""
        class strict(when_acting):
            mock_behavior = MockBehavior.STRICT

        assert strict().mock_repository.default_behavior is MockBehavior.STRICT

    def test_default_subject_is_none(self) -> None:
        """create_subject_under_test returns None unless overridden."""
        assert when_acting().create_subject_under_test() is None

    def test_subject_instantiation_because_sets_sut(self) -> None:
        """because() stores because_sut_is_created() as sut."""
        class after_creating(SubjectInstantiationSpecification):
            def because_sut_is_created(self) -> str:
                return "created"

        spec = after_creating()
        spec.because()
        assert spec.sut == "created"
