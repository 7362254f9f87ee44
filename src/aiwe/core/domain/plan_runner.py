"""
Plan Runner

Top-level execution loop for one plan:

1. Validate and linearize the plan (PlanLinearizer)
2. Seed the output store with every completed action's result, keyed by id
3. For each action in order:
   - reuse a prior completion unless `always_execute` is set
   - check declared dependencies are materialized
   - resolve parameters (ParameterResolver)
   - execute under the retry policy (RetryCoordinator)
   - on success publish the output and record the completion
4. Return the ordered list of ActionResults

Actions run strictly one after another. Malformed-plan errors (cycle,
missing dependency, missing catalog, bad reference) abort the run without
consulting the oracle.
"""

import json
from datetime import datetime
from typing import Callable, Optional

import structlog

from aiwe.core.domain.catalog import CapabilityCatalog
from aiwe.core.domain.errors import (
    CatalogMissingError,
    EngineError,
    MissingDependencyError,
    UnresolvedReferenceError,
)
from aiwe.core.domain.linearizer import PlanLinearizer
from aiwe.core.domain.models import (
    Action,
    ActionResult,
    ActionStatus,
    CompletedAction,
    OutputStore,
    ProgressUpdate,
    utcnow,
    validate_plan,
)
from aiwe.core.domain.resolver import ParameterResolver
from aiwe.core.domain.retry import RetryCoordinator

ProgressCallback = Callable[[ProgressUpdate], None]
CompletionCallback = Callable[[str, CompletedAction], None]


class PlanRunner:
    """Executes a plan in dependency order with retry and recovery.

    One runner instance serves one run at a time; its transcript is reset at
    the start of every run.
    """

    def __init__(
        self,
        retry_coordinator: RetryCoordinator,
        linearizer: Optional[PlanLinearizer] = None,
        resolver: Optional[ParameterResolver] = None,
        progress_callback: Optional[ProgressCallback] = None,
        completion_callback: Optional[CompletionCallback] = None,
    ):
        """
        Args:
            retry_coordinator: Executes one action under the retry policy
            linearizer: Plan ordering (default PlanLinearizer)
            resolver: Parameter resolution (default ParameterResolver)
            progress_callback: Receives ProgressUpdates
            completion_callback: Records a successful execution as
                `(action_id, record)`; the default writes into the
                completed-actions map passed to `run`
        """
        self.retry = retry_coordinator
        self.linearizer = linearizer or PlanLinearizer()
        self.resolver = resolver or ParameterResolver()
        self.progress_callback = progress_callback
        self.completion_callback = completion_callback
        self.transcript: list[dict[str, str]] = []
        self.outputs = OutputStore()
        self.logger = structlog.get_logger().bind(component="plan_runner")

    async def run(
        self,
        actions: list[Action],
        catalogs: dict[str, CapabilityCatalog],
        completed_actions: dict[str, CompletedAction],
    ) -> list[ActionResult]:
        """
        Execute a plan.

        Args:
            actions: Plan in submission order
            catalogs: Catalog per service name, resolved for this run
            completed_actions: The session's completed-action map; successful
                executions are recorded into it (through `completion_callback`
                when one is set)

        Returns:
            ActionResults in execution order (skipped, success, and error)

        Raises:
            PlanValidationError, CycleError: Before any execution
            MissingDependencyError, CatalogMissingError, UnresolvedReferenceError:
                Malformed plan detected at the failing action
            FatalActionError: Escalation decided to stop
            CredentialError: Missing credentials, never retried
        """
        plan = validate_plan(actions)
        ordered = self.linearizer.order(plan)

        self.transcript = []
        self.outputs = OutputStore({aid: rec.result for aid, rec in completed_actions.items()})
        results: list[ActionResult] = []

        self.logger.info(
            "plan.execution.started",
            actions=[a.id for a in ordered],
            completed=len(completed_actions),
        )

        try:
            for action in ordered:
                results.append(await self._run_action(action, catalogs, completed_actions))
        except EngineError as e:
            self.logger.error(
                "plan.execution.aborted",
                action_id=e.action_id,
                service_name=e.service_name,
                error_kind=e.kind.value,
                error=e.message,
                attempts=e.attempts,
            )
            raise

        self.logger.info(
            "plan.execution.completed",
            succeeded=sum(1 for r in results if r.status == ActionStatus.SUCCESS),
            failed=sum(1 for r in results if r.status == ActionStatus.ERROR),
            skipped=sum(1 for r in results if r.status == ActionStatus.SKIPPED),
        )
        return results

    async def _run_action(
        self,
        action: Action,
        catalogs: dict[str, CapabilityCatalog],
        completed_actions: dict[str, CompletedAction],
    ) -> ActionResult:
        previous = completed_actions.get(action.id)
        if previous is not None and not action.always_execute:
            return self._reuse(action, previous)

        for dependency in action.depends_on:
            if not self.outputs.satisfies(dependency):
                raise MissingDependencyError(
                    f"Cannot execute action {action.id}: missing required dependency {dependency}",
                    action_id=action.id,
                    service_name=action.service_name,
                    details={"dependency": dependency},
                )

        try:
            params = self.resolver.resolve(action.parameters, self.outputs)
        except UnresolvedReferenceError as e:
            e.action_id = action.id
            e.service_name = action.service_name
            raise

        catalog = catalogs.get(action.service_name)
        if catalog is None:
            raise CatalogMissingError(
                f"No configuration found for service {action.service_name}",
                action_id=action.id,
                service_name=action.service_name,
            )

        self._emit("action.started", f"Executing {action.id} on {action.service_name}", action)
        result = await self.retry.execute(action, params, catalog, self.transcript)

        if result.status == ActionStatus.SUCCESS:
            if action.output_key:
                self.outputs.set(action.output_key, result.result)
            if action.id in completed_actions:
                # Forced re-run of a historical action: its id was seeded with
                # the old result.
                self.outputs.set(action.id, result.result)
            self.outputs.mark_produced(action.id)
            record = CompletedAction(
                service_name=action.service_name,
                result=result.result,
                timestamp=utcnow(),
                parameters=params,
            )
            if self.completion_callback:
                self.completion_callback(action.id, record)
            else:
                completed_actions[action.id] = record
            self.transcript.append(
                {
                    "role": "user",
                    "content": f'Action "{action.id}" on {action.service_name} returned: '
                    f"{json.dumps(result.result, default=str)}",
                }
            )
            self._emit("action.succeeded", f"{action.id} succeeded", action, retry_count=result.retry_count)
        else:
            self.transcript.append(
                {
                    "role": "assistant",
                    "content": f'Abandoned action "{action.id}" on {action.service_name}: '
                    f"{result.escalation_reason or result.error}",
                }
            )
            self._emit("action.failed", f"{action.id} failed: {result.error}", action, error=result.error)

        return result

    def _reuse(self, action: Action, previous: CompletedAction) -> ActionResult:
        if action.output_key:
            self.outputs.set(action.output_key, previous.result)
        self.outputs.mark_produced(action.id)
        self.transcript.append(
            {
                "role": "assistant",
                "content": f'Skipping action "{action.id}" on {action.service_name} as it was '
                f"already completed at {previous.timestamp.isoformat()}",
            }
        )
        self.logger.info("action.skipped", action_id=action.id, completed_at=previous.timestamp.isoformat())
        self._emit("action.skipped", f"{action.id} already completed", action)
        return ActionResult(
            status=ActionStatus.SKIPPED,
            action_id=action.id,
            service_name=action.service_name,
            result=previous.result,
        )

    def _emit(self, event_type: str, message: str, action: Action, **details) -> None:
        if not self.progress_callback:
            return
        self.progress_callback(
            ProgressUpdate(
                timestamp=datetime.now(),
                event_type=event_type,
                message=message,
                details={"action_id": action.id, "service_name": action.service_name, **details},
            )
        )
