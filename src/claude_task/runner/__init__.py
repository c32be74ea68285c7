"""Runner package for supervised Claude agent execution.

This package runs one external ``claude`` process per invocation:
feeding it a prompt through a named pipe, relaying its ``stream-json``
output, enforcing a deadline, and persisting the events it emitted.

Core Components:
    - Config: option validation and argument vector (config.py)
    - Channel: named-pipe prompt relays (channel.py)
    - Supervisor: agent environment and spawn (supervisor.py)
    - Reformatter: incremental JSON pretty-printing (reformatter.py)
    - Deadline: exactly-once completion race with SIGTERM/SIGKILL (deadline.py)
    - Finalizer: Outcome and metrics artifact (finalizer.py)
    - Executor: the orchestration entry point (executor.py)

Usage:
    from claude_task.runner import ClaudeOptions, run_claude

    outcome = asyncio.run(run_claude(prompt_path, ClaudeOptions(max_turns="5")))
"""

from claude_task.runner.config import (
    ClaudeOptions,
    PreparedConfig,
    RunPaths,
    parse_custom_env_vars,
    prepare_run_config,
)
from claude_task.runner.errors import (
    ConfigError,
    PostProcessError,
    RunnerError,
    SpawnError,
    StreamError,
)
from claude_task.runner.executor import execute, run_claude
from claude_task.runner.outcome import (
    TIMEOUT_EXIT_CODE,
    Failure,
    Outcome,
    Success,
    TimedOut,
)
from claude_task.runner.supervisor import ProviderSettings

__all__ = [
    # Config
    "ClaudeOptions",
    "PreparedConfig",
    "RunPaths",
    "ProviderSettings",
    "parse_custom_env_vars",
    "prepare_run_config",
    # Execution
    "execute",
    "run_claude",
    # Outcomes
    "Outcome",
    "Success",
    "Failure",
    "TimedOut",
    "TIMEOUT_EXIT_CODE",
    # Exceptions
    "RunnerError",
    "ConfigError",
    "SpawnError",
    "StreamError",
    "PostProcessError",
]
