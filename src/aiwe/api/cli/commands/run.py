"""Run command - Execute plans and instructions."""

import asyncio
import json
import uuid
from pathlib import Path
from typing import Any, Optional

import typer
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.prompt import Prompt
from rich.table import Table

from aiwe.application.engine import AiweEngine
from aiwe.application.factory import EngineFactory
from aiwe.core.domain.errors import EngineError
from aiwe.core.domain.models import ActionResult, ActionStatus, parse_plan
from aiwe.core.domain.oracle_models import Decision, EscalationDecision

app = typer.Typer(help="Execute plans and instructions")
console = Console()

STATUS_STYLES = {
    ActionStatus.SUCCESS: "green",
    ActionStatus.ERROR: "red",
    ActionStatus.SKIPPED: "yellow",
}


class OperatorEscalation:
    """Escalation oracle that asks the operator at the terminal."""

    def __init__(self, console: Console):
        self.console = console

    async def decide_escalation(
        self, failure: dict[str, Any], transcript: list[dict[str, str]]
    ) -> EscalationDecision:
        self.console.print(
            f"[red]Action {failure['action']} on {failure['service']} failed after "
            f"{failure['attempts']} attempts:[/red] {failure['error']}"
        )
        choice = Prompt.ask(
            "Decision",
            choices=[d.value for d in Decision],
            default=Decision.STOP.value,
            console=self.console,
        )
        return EscalationDecision(decision=Decision.parse(choice), reason="operator decision")


def _load_plan_file(plan_file: Path) -> list[dict[str, Any]]:
    data = json.loads(plan_file.read_text())
    if isinstance(data, dict):
        data = data.get("actions", [])
    return data


def _results_table(results: list[ActionResult]) -> Table:
    table = Table(title="Action results")
    table.add_column("Action")
    table.add_column("Service")
    table.add_column("Status")
    table.add_column("Retries", justify="right")
    table.add_column("Result / Error")
    for r in results:
        style = STATUS_STYLES[r.status]
        detail = r.error if r.status == ActionStatus.ERROR else json.dumps(r.result, default=str)
        table.add_row(
            r.action_id,
            r.service_name,
            f"[{style}]{r.status.value}[/{style}]",
            str(r.retry_count),
            (detail or "")[:120],
        )
    return table


def _create_engine(ctx: typer.Context, profile: Optional[str]) -> AiweEngine:
    global_opts = ctx.obj or {}
    factory = EngineFactory(config_dir=global_opts.get("config_dir", "configs"))
    return factory.create_engine(profile=profile or global_opts.get("profile", "dev"))


async def _close(engine: AiweEngine) -> None:
    close = getattr(engine.transport, "close", None)
    if close is not None:
        await close()


@app.command("plan")
def run_plan(
    ctx: typer.Context,
    plan_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="JSON plan file"),
    profile: Optional[str] = typer.Option(None, "--profile", "-p", help="Configuration profile (overrides global --profile)"),
):
    """Execute a JSON action plan directly.

    The file holds a list of actions, or an object with an "actions" list.
    Escalation decisions are asked interactively.

    Examples:
        aiwe run plan plan.json
        aiwe --debug run plan plan.json --profile prod
    """
    try:
        plan = parse_plan(_load_plan_file(plan_file))
    except (ValueError, EngineError) as e:
        console.print(f"[red]Invalid plan:[/red] {e}")
        raise typer.Exit(code=1)

    engine = _create_engine(ctx, profile)
    session_id = str(uuid.uuid4())

    async def _run() -> list[ActionResult]:
        try:
            return await engine.run_plan(
                plan,
                session_id=session_id,
                escalation_oracle=OperatorEscalation(console),
                progress_callback=lambda update: console.print(f"[dim]> {update.message}[/dim]"),
            )
        finally:
            await _close(engine)

    try:
        results = asyncio.run(_run())
    except EngineError as e:
        console.print(f"[red]Error:[/red] {e.message}")
        raise typer.Exit(code=1)

    console.print(_results_table(results))
    if any(r.status == ActionStatus.ERROR for r in results):
        raise typer.Exit(code=1)


@app.command("ask")
def run_ask(
    ctx: typer.Context,
    instruction: str = typer.Argument(..., help="Natural-language instruction"),
    profile: Optional[str] = typer.Option(None, "--profile", "-p", help="Configuration profile (overrides global --profile)"),
):
    """Process a natural-language instruction end to end.

    Examples:
        aiwe run ask "What is my Stripe balance?"
    """
    engine = _create_engine(ctx, profile)

    async def _ask():
        try:
            return await engine.process_instruction(instruction)
        finally:
            await _close(engine)

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
        transient=True,
    ) as progress:
        progress.add_task("[>] Working...", total=None)
        result = asyncio.run(_ask())

    console.print(result.response)
    if result.status == "error":
        raise typer.Exit(code=1)
