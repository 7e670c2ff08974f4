"""Taskloop CLI entry point."""

import typer
from rich.console import Console

from taskloop.api.cli.commands import config, run

app = typer.Typer(
    name="taskloop",
    help="Taskloop - bounded decide-act-observe agent loop",
    add_completion=True,
    no_args_is_help=True,
    rich_markup_mode="rich",
)

console = Console()

app.command("run")(run.run_goal)
app.add_typer(config.app, name="config", help="Configuration management")


@app.command()
def version():
    """Show Taskloop version."""
    from taskloop import __version__

    console.print(f"[bold blue]Taskloop[/bold blue] version [cyan]{__version__}[/cyan]")


if __name__ == "__main__":
    app()
