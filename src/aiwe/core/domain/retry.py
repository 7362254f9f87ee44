"""
Retry Coordinator

Wraps ActionExecutor with a bounded retry policy and an escalation hook.

Per action:
- success returns immediately
- a retryable failure increments the attempt counter; below `max_attempts` the
  coordinator sleeps `base_delay * attempt` and tries again
- at `max_attempts` the failure is escalated to the oracle, which answers
  stop (abort the run), retry (reset the counter) or continue (abandon the
  action and move on)
- non-retryable errors (credentials in particular) propagate untouched

Escalation retries are bounded by `max_escalation_resets`; once spent, a further
retry decision aborts the run like a stop.
"""

import asyncio
from typing import Any, Awaitable, Callable, Optional

import structlog

from aiwe.core.domain.action_executor import ActionExecutor
from aiwe.core.domain.catalog import CapabilityCatalog
from aiwe.core.domain.errors import EngineError, EscalationError, ExecutionError, FatalActionError
from aiwe.core.domain.models import Action, ActionResult, ActionStatus
from aiwe.core.domain.oracle_models import Decision, EscalationDecision
from aiwe.core.interfaces.oracle import EscalationOracleProtocol

MAX_ATTEMPTS = 3
BASE_DELAY_SECONDS = 1.0
MAX_ESCALATION_RESETS = 3


class RetryCoordinator:
    """Bounded retry with oracle escalation around an ActionExecutor."""

    def __init__(
        self,
        executor: ActionExecutor,
        oracle: EscalationOracleProtocol,
        max_attempts: int = MAX_ATTEMPTS,
        base_delay: float = BASE_DELAY_SECONDS,
        max_escalation_resets: Optional[int] = MAX_ESCALATION_RESETS,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        """
        Initialize the coordinator.

        Args:
            executor: Executor performing single attempts
            oracle: Escalation oracle consulted after exhausting attempts
            max_attempts: Attempts before escalation
            base_delay: Delay unit in seconds; the n-th failure waits n units
            max_escalation_resets: Retry decisions allowed per action (None = unbounded)
            sleep: Awaitable sleep, injectable for tests
        """
        self.executor = executor
        self.oracle = oracle
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_escalation_resets = max_escalation_resets
        self._sleep = sleep
        self.logger = structlog.get_logger().bind(component="retry_coordinator")

    async def execute(
        self,
        action: Action,
        params: dict[str, Any],
        catalog: CapabilityCatalog,
        transcript: list[dict[str, str]],
    ) -> ActionResult:
        """
        Execute an action under the retry/escalation policy.

        Args:
            action: Action being executed
            params: Resolved parameters
            catalog: Catalog of the action's service
            transcript: Run transcript, extended with the failure and passed to the oracle

        Returns:
            Success result, or an error result when escalation said continue

        Raises:
            FatalActionError: Escalation decided stop (or the retry budget ran out)
            EscalationError: The oracle failed to decide
            EngineError: Non-retryable errors such as CredentialError, unchanged
        """
        result = ActionResult(
            status=ActionStatus.ERROR,
            action_id=action.id,
            service_name=action.service_name,
        )
        resets = 0

        while True:
            try:
                payload = await self.executor.execute(action.id, action.service_name, params, catalog)
            except EngineError as e:
                if not e.retryable:
                    e.attempts = result.attempts + 1
                    self.logger.warning(
                        "action.attempt.fatal",
                        action_id=action.id,
                        service_name=action.service_name,
                        error_kind=e.kind.value,
                        error=e.message,
                    )
                    raise
                error = e
            except Exception as e:
                error = ExecutionError(str(e) or type(e).__name__, action_id=action.id)
            else:
                result.attempts += 1
                result.status = ActionStatus.SUCCESS
                result.result = payload
                result.error = None
                self.logger.info(
                    "action.attempt.succeeded",
                    action_id=action.id,
                    service_name=action.service_name,
                    retry_count=result.retry_count,
                )
                return result

            result.attempts += 1
            result.retry_count += 1
            result.error = error.message
            self.logger.warning(
                "action.attempt.failed",
                action_id=action.id,
                service_name=action.service_name,
                attempt=result.retry_count,
                error_kind=error.kind.value,
                error=error.message,
            )

            if result.retry_count < self.max_attempts:
                await self._sleep(self.base_delay * result.retry_count)
                continue

            transcript.append(
                {
                    "role": "user",
                    "content": (
                        f'Action "{action.id}" on {action.service_name} failed after '
                        f"{self.max_attempts} attempts: {result.error}"
                    ),
                }
            )
            decision = await self._escalate(action, result, transcript)

            if decision.decision is Decision.RETRY:
                if self.max_escalation_resets is None or resets < self.max_escalation_resets:
                    resets += 1
                    result.retry_count = 0
                    continue
                raise self._fatal(
                    action,
                    result,
                    f"escalation retry budget exhausted after {resets} resets ({decision.reason})",
                )

            if decision.decision is Decision.STOP:
                raise self._fatal(action, result, decision.reason)

            result.escalation_reason = decision.reason
            return result

    async def _escalate(
        self, action: Action, result: ActionResult, transcript: list[dict[str, str]]
    ) -> EscalationDecision:
        failure = {
            "action": action.id,
            "service": action.service_name,
            "attempts": result.attempts,
            "error": result.error,
        }
        try:
            decision = await self.oracle.decide_escalation(failure, list(transcript))
        except Exception as e:
            raise EscalationError(
                f"Escalation failed for action {action.id}: {e}",
                action_id=action.id,
                service_name=action.service_name,
                attempts=result.attempts,
            ) from e

        if isinstance(decision, dict):
            decision = EscalationDecision.from_raw(decision)

        self.logger.info(
            "escalation.decision",
            action_id=action.id,
            service_name=action.service_name,
            decision=decision.decision.value,
            reason=decision.reason,
        )
        return decision

    @staticmethod
    def _fatal(action: Action, result: ActionResult, reason: str) -> FatalActionError:
        return FatalActionError(
            f"Fatal error in action {action.id}: {result.error}\nReason: {reason}",
            reason=reason,
            action_id=action.id,
            service_name=action.service_name,
            attempts=result.attempts,
        )
