"""AIWE CLI entry point."""

import logging

import structlog
import typer
from rich.console import Console

from aiwe.api.cli.commands import run

app = typer.Typer(
    name="aiwe",
    help="AIWE - natural-language action execution across third-party services",
    add_completion=True,
    no_args_is_help=True,
    rich_markup_mode="rich",
)

console = Console()

# Register command groups
app.add_typer(run.app, name="run", help="Execute plans and instructions")


def configure_logging(debug: bool) -> None:
    level = logging.DEBUG if debug else logging.WARNING
    logging.basicConfig(level=level, format="%(message)s")
    structlog.configure(wrapper_class=structlog.make_filtering_bound_logger(level))


@app.callback()
def main(
    ctx: typer.Context,
    profile: str = typer.Option("dev", "--profile", "-p", help="Configuration profile"),
    config_dir: str = typer.Option("configs", "--config-dir", help="Directory of profile YAML files"),
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging"),
):
    """AIWE CLI."""
    configure_logging(debug)
    # Store global options in context for subcommands
    ctx.obj = {"profile": profile, "config_dir": config_dir, "debug": debug}


@app.command()
def version():
    """Show AIWE version."""
    from aiwe import __version__

    console.print(f"[bold blue]AIWE[/bold blue] version [cyan]{__version__}[/cyan]")


if __name__ == "__main__":
    app()
