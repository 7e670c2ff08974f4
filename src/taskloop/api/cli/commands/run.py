"""Run command - Drive one goal through the execution loop."""

import asyncio
import logging
import signal
from pathlib import Path
from typing import Optional

import structlog
import typer
from rich.console import Console
from rich.panel import Panel

from taskloop.application.factory import LoopFactory
from taskloop.application.settings import LoopSettings
from taskloop.core.domain.models import ExecutionResult, TerminationReason
from taskloop.infrastructure.interrupt import InterruptService

console = Console()

FAILED_REASONS = (TerminationReason.ERROR, TerminationReason.TIMEOUT)


def configure_logging(level_name: str) -> None:
    level = getattr(logging, level_name.upper(), logging.WARNING)
    logging.basicConfig(level=level, format="%(message)s")
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(level),
    )


def run_goal(
    goal: str = typer.Argument(..., help="Goal for the agent"),
    max_iterations: Optional[int] = typer.Option(
        None, "--max-iterations", "-n", min=1, help="Override the iteration budget"
    ),
    model: Optional[str] = typer.Option(None, "--model", "-m", help="LiteLLM model name"),
    config_path: Optional[Path] = typer.Option(
        None, "--config", "-c", help="YAML settings file"
    ),
    no_plan: bool = typer.Option(False, "--no-plan", help="Skip the initial planning phase"),
    debug: bool = typer.Option(False, "--debug", help="Enable debug output"),
):
    """Run the agent loop for a goal.

    Examples:
        taskloop run "Add a --verbose flag to the CLI"

        taskloop run "Fix the failing test" --max-iterations 10 --debug
    """
    settings = LoopSettings.load_from_file(config_path) if config_path else LoopSettings()
    if max_iterations is not None:
        settings.max_iterations = max_iterations
    if model:
        settings.model = model
    if no_plan:
        settings.plan_first = False

    configure_logging("DEBUG" if debug else settings.log_level)

    console.print(Panel(goal, title="[bold blue]Goal[/bold blue]", border_style="blue"))

    interrupt = InterruptService()
    interrupt.start_task()
    loop = LoopFactory(settings).create_loop(interrupt=interrupt)

    def handle_sigint(signum, frame):
        if interrupt.is_interrupted():
            raise KeyboardInterrupt
        console.print("[yellow]Interrupt requested, stopping after the current step...[/yellow]")
        interrupt.interrupt()

    previous_handler = signal.signal(signal.SIGINT, handle_sigint)
    try:
        with console.status("[bold green]Working...[/bold green]"):
            result = asyncio.run(loop.run(goal))
    finally:
        signal.signal(signal.SIGINT, previous_handler)

    print_result(result)

    if result.termination_reason in FAILED_REASONS:
        raise typer.Exit(1)


def print_result(result: ExecutionResult) -> None:
    reason = result.termination_reason
    summary = f"{reason.value} after {result.iteration_count} iteration(s)"

    if reason == TerminationReason.FINISHED:
        console.print(f"[bold green]✓[/bold green] {summary}")
        if result.final_message:
            console.print(Panel(result.final_message, title="Result", border_style="green"))
    elif reason in FAILED_REASONS:
        console.print(f"[bold red]✗[/bold red] {summary}")
        if result.error:
            console.print(f"[red]{result.error}[/red]")
    else:
        console.print(f"[bold yellow]•[/bold yellow] {summary}")
        if reason == TerminationReason.WAITING_FOR_USER and result.iterations:
            console.print(result.iterations[-1].decision.reasoning)
