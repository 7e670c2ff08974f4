"""Config command - Show and write loop settings."""

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from taskloop.application.settings import LoopSettings

app = typer.Typer(help="Configuration management")
console = Console()


@app.command("show")
def show_config(
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help="YAML settings file"),
):
    """Show effective settings (defaults, environment and file)."""
    settings = LoopSettings.load_from_file(config_path) if config_path else LoopSettings()

    table = Table(title="Loop Settings")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="white")

    for key, value in settings.model_dump().items():
        table.add_row(key, str(value))

    console.print(table)


@app.command("init")
def init_config(
    config_path: Path = typer.Argument(..., help="Where to write the YAML file"),
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite an existing file"),
):
    """Write the effective settings to a YAML file."""
    if config_path.exists() and not force:
        console.print(f"[red]{config_path} already exists (use --force to overwrite)[/red]")
        raise typer.Exit(1)

    LoopSettings().save_to_file(config_path)
    console.print(f"[green]Settings written to {config_path}[/green]")
