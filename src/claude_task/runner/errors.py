"""Exception hierarchy for the agent runner.

Only ``ConfigError`` is meant to reach callers of ``run_claude``; every
other condition is logged and folded into the run's ``Outcome``.
"""

from __future__ import annotations


class RunnerError(Exception):
    """Base exception for runner errors."""

    pass


class ConfigError(RunnerError):
    """Raised when a numeric run option is invalid.

    Always raised before the channel is created or any process spawns.
    """

    pass


class SpawnError(RunnerError):
    """Raised when the agent or a relay process cannot be created."""

    def __init__(self, command: str, cause: BaseException):
        self.command = command
        self.cause = cause
        super().__init__(f"Failed to spawn {command}: {cause}")


class StreamError(RunnerError):
    """A relay or the agent's stdout failed while streaming."""

    pass


class PostProcessError(RunnerError):
    """Converting captured output into the metrics artifact failed."""

    pass


__all__ = [
    "RunnerError",
    "ConfigError",
    "SpawnError",
    "StreamError",
    "PostProcessError",
]
