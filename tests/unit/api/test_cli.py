"""Unit tests for the aiwe CLI."""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from typer.testing import CliRunner

from aiwe import __version__
from aiwe.api.cli.main import app
from aiwe.core.domain.errors import CycleError
from aiwe.core.domain.models import ActionResult, ActionStatus, ConversationResponse

runner = CliRunner()

PLAN = {
    "actions": [
        {"id": "balance", "serviceName": "stripe", "parameters": {}, "dependsOn": []},
    ]
}


@pytest.fixture
def engine():
    engine = MagicMock()
    engine.transport.close = AsyncMock()
    engine.run_plan = AsyncMock(
        return_value=[
            ActionResult(
                status=ActionStatus.SUCCESS,
                action_id="balance",
                service_name="stripe",
                result={"available": [{"amount": 1000}]},
            )
        ]
    )
    engine.process_instruction = AsyncMock(
        return_value=ConversationResponse(session_id="s-1", response="You have $10.00")
    )
    return engine


@pytest.fixture
def factory(engine):
    with patch("aiwe.api.cli.commands.run.EngineFactory") as factory_cls:
        factory_cls.return_value.create_engine.return_value = engine
        yield factory_cls


@pytest.fixture
def plan_file(tmp_path):
    path = tmp_path / "plan.json"
    path.write_text(json.dumps(PLAN))
    return path


def test_version():
    result = runner.invoke(app, ["version"])

    assert result.exit_code == 0
    assert __version__ in result.stdout


class TestRunPlan:
    def test_runs_plan_and_prints_results(self, factory, engine, plan_file):
        result = runner.invoke(app, ["--profile", "prod", "run", "plan", str(plan_file)])

        assert result.exit_code == 0
        assert "balance" in result.stdout
        factory.return_value.create_engine.assert_called_once_with(profile="prod")
        plan = engine.run_plan.await_args.args[0]
        assert [a.id for a in plan] == ["balance"]
        engine.transport.close.assert_awaited_once()

    def test_command_profile_overrides_global(self, factory, plan_file):
        runner.invoke(app, ["run", "plan", str(plan_file), "-p", "staging"])

        factory.return_value.create_engine.assert_called_once_with(profile="staging")

    def test_invalid_plan(self, factory, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text(json.dumps([{"id": "x"}]))

        result = runner.invoke(app, ["run", "plan", str(path)])

        assert result.exit_code == 1
        assert "Invalid plan" in result.stdout
        factory.return_value.create_engine.assert_not_called()

    def test_engine_error_exits_nonzero(self, factory, engine, plan_file):
        engine.run_plan.side_effect = CycleError("Circular dependency detected in action plan: a")

        result = runner.invoke(app, ["run", "plan", str(plan_file)])

        assert result.exit_code == 1
        assert "Circular dependency" in result.stdout

    def test_failed_action_exits_nonzero(self, factory, engine, plan_file):
        engine.run_plan.return_value = [
            ActionResult(
                status=ActionStatus.ERROR,
                action_id="balance",
                service_name="stripe",
                error="HTTP 500",
            )
        ]

        result = runner.invoke(app, ["run", "plan", str(plan_file)])

        assert result.exit_code == 1


class TestRunAsk:
    def test_prints_response(self, factory, engine):
        result = runner.invoke(app, ["run", "ask", "What is my balance?"])

        assert result.exit_code == 0
        assert "You have $10.00" in result.stdout
        engine.process_instruction.assert_awaited_once_with("What is my balance?")

    def test_error_status_exits_nonzero(self, factory, engine):
        engine.process_instruction.return_value = ConversationResponse(
            session_id="s-1", response="Error: boom", status="error"
        )

        result = runner.invoke(app, ["run", "ask", "go"])

        assert result.exit_code == 1
