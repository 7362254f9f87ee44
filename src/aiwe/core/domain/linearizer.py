"""
Plan Linearizer

Turns a set of actions with declared dependencies into an execution order.

Depth-first: actions are visited in submission order; each visit first visits
the action's in-plan dependencies (in declared order), then appends the action.
An action therefore never precedes anything it depends on, and independent
actions keep their submission order. A dependency reached again while still on
the visit stack is a cycle.
"""

from enum import Enum

import structlog

from aiwe.core.domain.errors import CycleError
from aiwe.core.domain.models import Action


class _Mark(Enum):
    VISITING = 1
    DONE = 2


class PlanLinearizer:
    """Orders actions so dependencies run first."""

    def __init__(self):
        self.logger = structlog.get_logger().bind(component="plan_linearizer")

    def order(self, actions: list[Action]) -> list[Action]:
        """
        Linearize a plan.

        Dependency names are matched against action identifiers first, then
        against output keys. Names matching nothing in the plan are ignored here;
        the runner checks them against the output store.

        Args:
            actions: Plan in submission order

        Returns:
            Actions in a valid execution order

        Raises:
            CycleError: If the dependency graph contains a cycle
        """
        by_id = {action.id: action for action in actions}
        by_output = {}
        for action in actions:
            if action.output_key and action.output_key not in by_output:
                by_output[action.output_key] = action

        marks: dict[str, _Mark] = {}
        ordered: list[Action] = []

        def lookup(name: str) -> Action | None:
            return by_id.get(name) or by_output.get(name)

        def cycle_error(action: Action, path: list[str]) -> CycleError:
            cycle = path[path.index(action.id):] + [action.id]
            return CycleError(
                "Circular dependency detected in action plan: " + " -> ".join(cycle),
                action_id=action.id,
                service_name=action.service_name,
                details={"cycle": cycle},
            )

        # Explicit stack of (action, remaining dependencies) frames.
        for root in actions:
            if marks.get(root.id) is _Mark.DONE:
                continue

            marks[root.id] = _Mark.VISITING
            path = [root.id]
            stack = [(root, iter(root.depends_on))]

            while stack:
                action, pending = stack[-1]
                for dependency in pending:
                    target = lookup(dependency)
                    if target is None:
                        continue
                    mark = marks.get(target.id)
                    if mark is _Mark.DONE:
                        continue
                    if mark is _Mark.VISITING:
                        raise cycle_error(target, path)
                    marks[target.id] = _Mark.VISITING
                    path.append(target.id)
                    stack.append((target, iter(target.depends_on)))
                    break
                else:
                    stack.pop()
                    path.pop()
                    marks[action.id] = _Mark.DONE
                    ordered.append(action)

        self.logger.debug("plan.linearized", order=[a.id for a in ordered])
        return ordered
