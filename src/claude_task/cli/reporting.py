"""Azure Pipelines logging commands.

The agent reads ``##vso[...]`` lines from a task's stdout to set output
variables, raise warnings and record the task result.
"""

from __future__ import annotations

import typer

from claude_task.runner.outcome import Outcome


def _escape_data(value: str) -> str:
    return value.replace("%", "%AZP25").replace("\r", "%0D").replace("\n", "%0A")


def _escape_property(value: str) -> str:
    return _escape_data(value).replace("]", "%5D").replace(";", "%3B")


def set_variable(name: str, value: str) -> None:
    typer.echo(f"##vso[task.setvariable variable={_escape_property(name)}]{_escape_data(value)}")


def log_warning(message: str) -> None:
    typer.echo(f"##vso[task.logissue type=warning]{_escape_data(message)}")


def set_result(succeeded: bool, message: str) -> None:
    result = "Succeeded" if succeeded else "Failed"
    typer.echo(f"##vso[task.complete result={result};]{_escape_data(message)}")


def report_outcome(outcome: Outcome) -> None:
    """Publish ``conclusion``/``execution_file`` and the task result."""
    if outcome.succeeded:
        if outcome.metrics_path is None:
            log_warning("Failed to process output for execution metrics")
        set_variable("conclusion", outcome.conclusion)
        if outcome.metrics_path is not None:
            set_variable("execution_file", str(outcome.metrics_path))
        set_result(True, "Claude Code executed successfully")
        return

    set_variable("conclusion", outcome.conclusion)
    if outcome.metrics_path is not None:
        set_variable("execution_file", str(outcome.metrics_path))
    set_result(False, f"Claude Code failed with exit code: {outcome.exit_code}")


def report_error(error: BaseException) -> None:
    """Publish a task failure raised before the agent could run."""
    set_result(False, f"Task failed with error: {error}")
    set_variable("conclusion", "failure")


__all__ = [
    "log_warning",
    "report_error",
    "report_outcome",
    "set_result",
    "set_variable",
]
