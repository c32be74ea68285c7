"""CLI command modules for claude-task."""

from __future__ import annotations

import typer

from . import run as run_module
from . import setup as setup_module


def register_commands(app: typer.Typer) -> None:
    """Attach every command to the root app."""
    app.command()(run_module.run)
    app.command()(setup_module.setup)


__all__ = ["register_commands"]
