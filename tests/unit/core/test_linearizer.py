"""
Unit tests for PlanLinearizer.

Tests verify:
- Dependencies are ordered before their dependents
- Independent actions keep submission order
- Dependencies may name output keys
- Names outside the plan are ignored
- Cycles are detected and reported
"""

import pytest

from aiwe.core.domain.errors import CycleError, ErrorKind
from aiwe.core.domain.linearizer import PlanLinearizer
from aiwe.core.domain.models import Action


def ids(actions):
    return [a.id for a in actions]


class TestPlanLinearizer:
    """Test suite for PlanLinearizer.order."""

    def test_independent_actions_keep_submission_order(self):
        plan = [Action("c", "svc"), Action("a", "svc"), Action("b", "svc")]

        assert ids(PlanLinearizer().order(plan)) == ["c", "a", "b"]

    def test_dependency_runs_before_dependent(self):
        """An action submitted before its dependency is moved after it."""
        plan = [
            Action("use", "svc", depends_on=("fetch",)),
            Action("fetch", "svc"),
        ]

        assert ids(PlanLinearizer().order(plan)) == ["fetch", "use"]

    def test_every_action_follows_its_dependencies(self):
        plan = [
            Action("d", "svc", depends_on=("b", "c")),
            Action("b", "svc", depends_on=("a",)),
            Action("c", "svc", depends_on=("a",)),
            Action("a", "svc"),
            Action("e", "svc"),
        ]

        order = ids(PlanLinearizer().order(plan))

        assert sorted(order) == ["a", "b", "c", "d", "e"]
        for action in plan:
            for dependency in action.depends_on:
                assert order.index(dependency) < order.index(action.id)

    def test_dependency_on_output_key(self):
        plan = [
            Action("use", "svc", depends_on=("k1",)),
            Action("fetch", "svc", output_key="k1"),
        ]

        assert ids(PlanLinearizer().order(plan)) == ["fetch", "use"]

    def test_external_dependency_is_ignored(self):
        plan = [Action("use", "svc", depends_on=("earlier-session-action",))]

        assert ids(PlanLinearizer().order(plan)) == ["use"]

    def test_two_action_cycle(self):
        plan = [
            Action("a", "svc", depends_on=("b",)),
            Action("b", "svc", depends_on=("a",)),
        ]

        with pytest.raises(CycleError) as exc_info:
            PlanLinearizer().order(plan)

        assert exc_info.value.kind is ErrorKind.CYCLE
        assert "Circular dependency detected" in exc_info.value.message
        assert exc_info.value.details["cycle"] == ["a", "b", "a"]

    def test_self_dependency_is_a_cycle(self):
        with pytest.raises(CycleError):
            PlanLinearizer().order([Action("a", "svc", depends_on=("a",))])

    def test_longer_cycle_behind_acyclic_prefix(self):
        plan = [
            Action("root", "svc"),
            Action("x", "svc", depends_on=("root", "z")),
            Action("y", "svc", depends_on=("x",)),
            Action("z", "svc", depends_on=("y",)),
        ]

        with pytest.raises(CycleError) as exc_info:
            PlanLinearizer().order(plan)

        assert exc_info.value.details["cycle"] == ["x", "z", "y", "x"]

    def test_long_chain_submitted_in_reverse(self):
        """A chain deeper than the recursion limit is still ordered."""
        length = 5000
        plan = [
            Action(f"a{i}", "svc", depends_on=(f"a{i - 1}",) if i else ())
            for i in reversed(range(length))
        ]

        order = ids(PlanLinearizer().order(plan))

        assert order == [f"a{i}" for i in range(length)]

    def test_long_chain_closing_into_cycle(self):
        length = 3000
        plan = [Action("a0", "svc", depends_on=(f"a{length - 1}",))] + [
            Action(f"a{i}", "svc", depends_on=(f"a{i - 1}",)) for i in range(1, length)
        ]

        with pytest.raises(CycleError) as exc_info:
            PlanLinearizer().order(plan)

        cycle = exc_info.value.details["cycle"]
        assert cycle[0] == cycle[-1] == "a0"
        assert len(cycle) == length + 1
