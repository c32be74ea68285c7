"""``claude-task setup``: prepare the agent machine without running Claude."""

from __future__ import annotations

import typer
from rich.console import Console
from rich.table import Table

from claude_task.core.environment import (
    EnvironmentSetupError,
    ensure_claude_installed,
    setup_environment,
)
from claude_task.core.settings import setup_claude_code_settings

console = Console()


def setup(
    install: bool = typer.Option(
        True, "--install/--no-install", help="Install Claude Code with npm if it is missing"
    ),
) -> None:
    """Export agent directories, install Claude Code and write its settings."""
    try:
        task_env = setup_environment()
        version = ensure_claude_installed(install=install)
        settings_path = setup_claude_code_settings()
    except (EnvironmentSetupError, OSError) as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    table = Table(title="Claude Task Environment", show_header=False)
    table.add_column("Key", style="cyan")
    table.add_column("Value")
    table.add_row("Temp directory", str(task_env.temp_dir))
    table.add_row("Build directory", str(task_env.build_dir))
    table.add_row("Claude Code", version)
    table.add_row("Settings", str(settings_path))
    console.print(table)


__all__ = ["setup"]
