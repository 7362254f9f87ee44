"""
Unit tests for RetryCoordinator.

Tests verify:
- Linear backoff between attempts (1x, 2x base delay)
- Escalation after max attempts: stop, continue, retry
- Bounded escalation resets
- Non-retryable errors propagate without retry
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from aiwe.core.domain.errors import (
    CredentialError,
    EscalationError,
    ExecutionError,
    FatalActionError,
)
from aiwe.core.domain.models import Action, ActionStatus
from aiwe.core.domain.oracle_models import Decision, EscalationDecision
from aiwe.core.domain.retry import RetryCoordinator


def executor_with(*outcomes):
    executor = MagicMock()
    executor.execute = AsyncMock(side_effect=list(outcomes))
    return executor


def decisions(*values):
    oracle = MagicMock()
    oracle.decide_escalation = AsyncMock(
        side_effect=[EscalationDecision(decision=d, reason=f"{d.value} reason") for d in values]
    )
    return oracle


@pytest.fixture
def action():
    return Action("fetch", "svc")


@pytest.fixture
def catalog(catalog_factory):
    return catalog_factory("svc", ["fetch"])


class TestRetryCoordinator:
    """Test suite for RetryCoordinator.execute."""

    @pytest.mark.asyncio
    async def test_success_first_attempt(self, action, catalog, escalation_oracle, recording_sleep):
        coordinator = RetryCoordinator(
            executor_with({"total": 7}), escalation_oracle, sleep=recording_sleep
        )

        result = await coordinator.execute(action, {}, catalog, [])

        assert result.status is ActionStatus.SUCCESS
        assert result.result == {"total": 7}
        assert result.retry_count == 0
        assert recording_sleep.delays == []

    @pytest.mark.asyncio
    async def test_two_failures_then_success(self, action, catalog, escalation_oracle, recording_sleep):
        """Delays scale with the attempt number and no escalation happens."""
        coordinator = RetryCoordinator(
            executor_with(ExecutionError("boom"), ExecutionError("boom"), {"ok": True}),
            escalation_oracle,
            sleep=recording_sleep,
        )

        result = await coordinator.execute(action, {}, catalog, [])

        assert result.status is ActionStatus.SUCCESS
        assert result.retry_count == 2
        assert result.attempts == 3
        assert recording_sleep.delays == [1.0, 2.0]
        escalation_oracle.decide_escalation.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_base_delay_scales(self, action, catalog, escalation_oracle, recording_sleep):
        coordinator = RetryCoordinator(
            executor_with(ExecutionError("x"), ExecutionError("x"), "done"),
            escalation_oracle,
            base_delay=0.5,
            sleep=recording_sleep,
        )

        await coordinator.execute(action, {}, catalog, [])

        assert recording_sleep.delays == [0.5, 1.0]

    @pytest.mark.asyncio
    async def test_stop_decision_is_fatal(self, action, catalog, recording_sleep):
        executor = executor_with(*[ExecutionError("down")] * 3)
        coordinator = RetryCoordinator(executor, decisions(Decision.STOP), sleep=recording_sleep)

        with pytest.raises(FatalActionError) as exc_info:
            await coordinator.execute(action, {}, catalog, [])

        assert exc_info.value.reason == "stop reason"
        assert exc_info.value.attempts == 3
        assert "Fatal error in action fetch" in exc_info.value.message
        assert executor.execute.await_count == 3
        # No delay after the final attempt
        assert recording_sleep.delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_continue_decision_records_failure(self, action, catalog, recording_sleep):
        coordinator = RetryCoordinator(
            executor_with(*[ExecutionError("down")] * 3),
            decisions(Decision.CONTINUE),
            sleep=recording_sleep,
        )

        result = await coordinator.execute(action, {}, catalog, [])

        assert result.status is ActionStatus.ERROR
        assert result.error == "down"
        assert result.result is None
        assert result.retry_count == 3
        assert result.escalation_reason == "continue reason"

    @pytest.mark.asyncio
    async def test_retry_decision_resets_counter(self, action, catalog, recording_sleep):
        executor = executor_with(*[ExecutionError("flaky")] * 3, {"ok": True})
        coordinator = RetryCoordinator(executor, decisions(Decision.RETRY), sleep=recording_sleep)

        result = await coordinator.execute(action, {}, catalog, [])

        assert result.status is ActionStatus.SUCCESS
        assert executor.execute.await_count == 4
        assert result.attempts == 4
        assert result.retry_count == 0

    @pytest.mark.asyncio
    async def test_escalation_reset_budget(self, action, catalog, recording_sleep):
        executor = executor_with(*[ExecutionError("always")] * 6)
        oracle = decisions(Decision.RETRY, Decision.RETRY)
        coordinator = RetryCoordinator(
            executor, oracle, max_escalation_resets=1, sleep=recording_sleep
        )

        with pytest.raises(FatalActionError, match="escalation retry budget exhausted"):
            await coordinator.execute(action, {}, catalog, [])

        assert executor.execute.await_count == 6
        assert oracle.decide_escalation.await_count == 2

    @pytest.mark.asyncio
    async def test_credential_error_is_not_retried(self, action, catalog, escalation_oracle, recording_sleep):
        executor = executor_with(CredentialError("Missing credentials", missing=["X-Key"]))
        coordinator = RetryCoordinator(executor, escalation_oracle, sleep=recording_sleep)

        with pytest.raises(CredentialError):
            await coordinator.execute(action, {}, catalog, [])

        assert executor.execute.await_count == 1
        assert recording_sleep.delays == []
        escalation_oracle.decide_escalation.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unexpected_exception_is_retryable(self, action, catalog, recording_sleep):
        coordinator = RetryCoordinator(
            executor_with(ValueError("bad"), "ok"), decisions(), sleep=recording_sleep
        )

        result = await coordinator.execute(action, {}, catalog, [])

        assert result.status is ActionStatus.SUCCESS
        assert result.retry_count == 1

    @pytest.mark.asyncio
    async def test_transcript_passed_to_oracle(self, action, catalog, recording_sleep):
        oracle = decisions(Decision.CONTINUE)
        transcript = [{"role": "user", "content": "earlier"}]
        coordinator = RetryCoordinator(
            executor_with(*[ExecutionError("down")] * 3), oracle, sleep=recording_sleep
        )

        await coordinator.execute(action, {}, catalog, transcript)

        failure, seen = oracle.decide_escalation.await_args.args
        assert failure == {"action": "fetch", "service": "svc", "attempts": 3, "error": "down"}
        assert seen[0] == {"role": "user", "content": "earlier"}
        assert "failed after 3 attempts" in seen[-1]["content"]

    @pytest.mark.asyncio
    async def test_raw_dict_decision_accepted(self, action, catalog, recording_sleep):
        oracle = MagicMock()
        oracle.decide_escalation = AsyncMock(return_value={"decision": "skip", "reason": "optional"})
        coordinator = RetryCoordinator(
            executor_with(*[ExecutionError("down")] * 3), oracle, sleep=recording_sleep
        )

        result = await coordinator.execute(action, {}, catalog, [])

        assert result.status is ActionStatus.ERROR
        assert result.escalation_reason == "optional"

    @pytest.mark.asyncio
    async def test_oracle_failure_raises_escalation_error(self, action, catalog, recording_sleep):
        oracle = MagicMock()
        oracle.decide_escalation = AsyncMock(side_effect=RuntimeError("llm down"))
        coordinator = RetryCoordinator(
            executor_with(*[ExecutionError("down")] * 3), oracle, sleep=recording_sleep
        )

        with pytest.raises(EscalationError):
            await coordinator.execute(action, {}, catalog, [])
