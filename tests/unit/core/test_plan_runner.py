"""
Unit tests for PlanRunner.

Tests verify:
- Dependency-ordered execution with output threading
- Skip-if-completed and alwaysExecute
- Malformed plans abort before or without execution
- Escalated failures continue to the next action without writing outputs
- Progress events and transcript entries
"""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from aiwe.core.domain.action_executor import ActionExecutor
from aiwe.core.domain.errors import (
    CatalogMissingError,
    CycleError,
    ExecutionError,
    FatalActionError,
    MissingDependencyError,
    PlanValidationError,
    UnresolvedReferenceError,
)
from aiwe.core.domain.models import Action, ActionStatus, CompletedAction, ConfigSource, parse_plan
from aiwe.core.domain.oracle_models import Decision, EscalationDecision
from aiwe.core.domain.plan_runner import PlanRunner
from aiwe.core.domain.retry import RetryCoordinator

EARLIER = datetime(2024, 1, 1, tzinfo=timezone.utc)


def post_by_action(results):
    """post_json side effect answering per native action name."""

    async def post_json(url, body, headers=None):
        outcome = results[body["action"]]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    return post_json


@pytest.fixture
def catalogs(catalog_factory):
    return {"svc": catalog_factory("svc", ["fetch", "use", "other"])}


@pytest.fixture
def make_runner(mock_transport, empty_adapters, escalation_oracle, recording_sleep):
    def _make(oracle=None, progress_callback=None, completion_callback=None):
        executor = ActionExecutor(
            mock_transport, empty_adapters, {"svc": ConfigSource.NATIVE_MANIFEST}
        )
        retry = RetryCoordinator(executor, oracle or escalation_oracle, sleep=recording_sleep)
        return PlanRunner(
            retry, progress_callback=progress_callback, completion_callback=completion_callback
        )

    return _make


def posted(mock_transport):
    return [(c.args[1]["action"], c.args[1]["parameters"]) for c in mock_transport.post_json.await_args_list]


class TestPlanRunner:
    """Test suite for PlanRunner.run."""

    @pytest.mark.asyncio
    async def test_fetch_then_use_threads_output(self, make_runner, mock_transport, catalogs):
        mock_transport.post_json.side_effect = post_by_action({"fetch": {"total": 7}, "use": {"ok": True}})
        plan = parse_plan(
            [
                {"id": "use", "serviceName": "svc", "parameters": {"v": "$outputs.k1.total"}, "dependsOn": ["fetch"]},
                {"id": "fetch", "serviceName": "svc", "outputKey": "k1"},
            ]
        )
        completed = {}

        results = await make_runner().run(plan, catalogs, completed)

        assert posted(mock_transport) == [("fetch", {}), ("use", {"v": 7})]
        assert [r.action_id for r in results] == ["fetch", "use"]
        assert all(r.status is ActionStatus.SUCCESS for r in results)
        assert completed["use"].parameters == {"v": 7}
        assert completed["fetch"].result == {"total": 7}

    @pytest.mark.asyncio
    async def test_cycle_aborts_before_execution(self, make_runner, mock_transport, catalogs):
        plan = [
            Action("fetch", "svc", depends_on=("use",)),
            Action("use", "svc", depends_on=("fetch",)),
        ]

        with pytest.raises(CycleError):
            await make_runner().run(plan, catalogs, {})

        mock_transport.post_json.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_empty_and_duplicate_plans_rejected(self, make_runner, catalogs):
        with pytest.raises(PlanValidationError):
            await make_runner().run([], catalogs, {})
        with pytest.raises(PlanValidationError, match="Duplicate"):
            await make_runner().run([Action("fetch", "svc"), Action("fetch", "svc")], catalogs, {})

    @pytest.mark.asyncio
    async def test_skip_if_completed(self, make_runner, mock_transport, catalogs):
        """A prior completion is reused as output and keeps its timestamp."""
        mock_transport.post_json.side_effect = post_by_action({"use": {"ok": True}})
        completed = {"fetch": CompletedAction("svc", {"total": 3}, timestamp=EARLIER)}
        plan = [
            Action("fetch", "svc", output_key="k1"),
            Action("use", "svc", parameters={"v": "$outputs.k1.total"}, depends_on=("fetch",)),
        ]

        results = await make_runner().run(plan, catalogs, completed)

        assert results[0].status is ActionStatus.SKIPPED
        assert results[0].result == {"total": 3}
        assert posted(mock_transport) == [("use", {"v": 3})]
        assert completed["fetch"].timestamp == EARLIER

    @pytest.mark.asyncio
    async def test_historical_result_reachable_by_action_id(self, make_runner, mock_transport, catalogs):
        mock_transport.post_json.side_effect = post_by_action({"use": {"ok": True}})
        completed = {"fetch": CompletedAction("svc", {"total": 3}, timestamp=EARLIER)}
        plan = [Action("use", "svc", parameters={"v": "$outputs.fetch.total"}, depends_on=("fetch",))]

        await make_runner().run(plan, catalogs, completed)

        assert posted(mock_transport) == [("use", {"v": 3})]

    @pytest.mark.asyncio
    async def test_always_execute_overwrites_record(self, make_runner, mock_transport, catalogs):
        mock_transport.post_json.side_effect = post_by_action({"fetch": {"total": 9}})
        completed = {"fetch": CompletedAction("svc", {"total": 3}, timestamp=EARLIER)}

        results = await make_runner().run(
            [Action("fetch", "svc", always_execute=True)], catalogs, completed
        )

        assert results[0].status is ActionStatus.SUCCESS
        assert completed["fetch"].result == {"total": 9}
        assert completed["fetch"].timestamp > EARLIER

    @pytest.mark.asyncio
    async def test_forced_rerun_refreshes_reference_by_id(self, make_runner, mock_transport, catalogs):
        mock_transport.post_json.side_effect = post_by_action({"fetch": {"total": 9}, "use": {"ok": True}})
        completed = {"fetch": CompletedAction("svc", {"total": 3}, timestamp=EARLIER)}
        plan = [
            Action("fetch", "svc", always_execute=True),
            Action("use", "svc", parameters={"v": "$outputs.fetch.total"}, depends_on=("fetch",)),
        ]

        await make_runner().run(plan, catalogs, completed)

        assert posted(mock_transport) == [("fetch", {}), ("use", {"v": 9})]

    @pytest.mark.asyncio
    async def test_completion_callback_records_successes(self, make_runner, mock_transport, catalogs):
        mock_transport.post_json.side_effect = post_by_action({"fetch": {"total": 7}})
        recorded = []
        completed = {}

        await make_runner(completion_callback=lambda aid, rec: recorded.append((aid, rec))).run(
            [Action("fetch", "svc")], catalogs, completed
        )

        assert [(aid, rec.result) for aid, rec in recorded] == [("fetch", {"total": 7})]
        assert completed == {}

    @pytest.mark.asyncio
    async def test_missing_runtime_dependency(self, make_runner, mock_transport, catalogs):
        with pytest.raises(MissingDependencyError, match="missing required dependency ghost"):
            await make_runner().run([Action("use", "svc", depends_on=("ghost",))], catalogs, {})

        mock_transport.post_json.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_missing_catalog(self, make_runner, catalogs):
        with pytest.raises(CatalogMissingError, match="No configuration found for service elsewhere"):
            await make_runner().run([Action("fetch", "elsewhere")], catalogs, {})

    @pytest.mark.asyncio
    async def test_unresolved_reference_carries_action(self, make_runner, catalogs):
        plan = [Action("use", "svc", parameters={"v": "$outputs.nothing.total"})]

        with pytest.raises(UnresolvedReferenceError) as exc_info:
            await make_runner().run(plan, catalogs, {})

        assert exc_info.value.action_id == "use"
        assert exc_info.value.parameter == "v"

    @pytest.mark.asyncio
    async def test_continue_after_escalation(self, make_runner, mock_transport, catalogs):
        """An abandoned action writes no output and the next action still runs."""
        oracle = MagicMock()
        oracle.decide_escalation = AsyncMock(
            return_value=EscalationDecision(decision=Decision.CONTINUE, reason="optional")
        )
        mock_transport.post_json.side_effect = post_by_action(
            {"fetch": ExecutionError("down"), "other": {"ok": True}}
        )
        completed = {}
        plan = [Action("fetch", "svc", output_key="k1"), Action("other", "svc")]

        runner = make_runner(oracle=oracle)
        results = await runner.run(plan, catalogs, completed)

        assert [r.status for r in results] == [ActionStatus.ERROR, ActionStatus.SUCCESS]
        assert "k1" not in runner.outputs
        assert "fetch" not in completed
        assert "other" in completed

    @pytest.mark.asyncio
    async def test_dependent_of_abandoned_action_fails(self, make_runner, mock_transport, catalogs):
        oracle = MagicMock()
        oracle.decide_escalation = AsyncMock(
            return_value=EscalationDecision(decision=Decision.CONTINUE, reason="optional")
        )
        mock_transport.post_json.side_effect = post_by_action({"fetch": ExecutionError("down")})
        plan = [Action("fetch", "svc"), Action("use", "svc", depends_on=("fetch",))]

        with pytest.raises(MissingDependencyError):
            await make_runner(oracle=oracle).run(plan, catalogs, {})

    @pytest.mark.asyncio
    async def test_stop_keeps_earlier_completions(self, make_runner, mock_transport, catalogs):
        mock_transport.post_json.side_effect = post_by_action(
            {"fetch": {"total": 1}, "use": ExecutionError("down")}
        )
        completed = {}
        plan = [Action("fetch", "svc"), Action("use", "svc", depends_on=("fetch",))]

        with pytest.raises(FatalActionError):
            await make_runner().run(plan, catalogs, completed)

        assert list(completed) == ["fetch"]

    @pytest.mark.asyncio
    async def test_progress_and_transcript(self, make_runner, mock_transport, catalogs):
        mock_transport.post_json.side_effect = post_by_action({"use": {"ok": True}})
        updates = []
        completed = {"fetch": CompletedAction("svc", {"total": 3}, timestamp=EARLIER)}
        runner = make_runner(progress_callback=updates.append)

        await runner.run([Action("fetch", "svc"), Action("use", "svc")], catalogs, completed)

        assert [u.event_type for u in updates] == ["action.skipped", "action.started", "action.succeeded"]
        assert updates[1].details["action_id"] == "use"
        assert runner.transcript[0]["content"].startswith('Skipping action "fetch"')
        assert 'Action "use" on svc returned' in runner.transcript[-1]["content"]
