"""
claude-task - run Claude Code as a CI pipeline task.

Usage:
    claude-task run --prompt-file prompt.md --max-turns 5
    claude-task setup
"""

from __future__ import annotations

import logging

import typer

from claude_task.cli.commands import register_commands

__version__ = "0.3.0"

LOG_FORMAT = "[%(levelname)s] %(message)s"

app = typer.Typer(
    name="claude-task",
    help="Run Claude Code on a prompt inside a CI pipeline",
    add_completion=False,
    no_args_is_help=True,
)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"claude-task {__version__}")
        raise typer.Exit()


@app.callback()
def callback(
    log_level: str = typer.Option(
        "INFO", "--log-level", envvar="CLAUDE_TASK_LOG_LEVEL", help="Logging level"
    ),
    version: bool = typer.Option(
        False, "--version", callback=_version_callback, is_eager=True, help="Show version and exit"
    ),
) -> None:
    """Configure logging for every command."""
    level = getattr(logging, log_level.upper(), None)
    if not isinstance(level, int):
        raise typer.BadParameter(f"Unknown log level: {log_level}", param_hint="--log-level")
    logging.basicConfig(level=level, format=LOG_FORMAT, force=True)


register_commands(app)


def main():
    app()


if __name__ == "__main__":
    main()
