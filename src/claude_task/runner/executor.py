"""Executor for a single Claude agent invocation.

This module wires the runner components together:
    - Option validation (fails before any side effect)
    - Prompt delivery through the named-pipe feeder
    - Agent spawn with stdout captured and stderr inherited
    - Stdout reformatting concurrently with the deadline race
    - Finalization into one ``Outcome``, then cleanup on every path

Apart from ``ConfigError``, nothing raised after validation escapes
``run_claude``; failures become a ``Failure`` or ``TimedOut`` outcome.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Sequence

from claude_task.runner.channel import PromptFeeder
from claude_task.runner.config import ClaudeOptions, PreparedConfig, RunPaths, prepare_run_config
from claude_task.runner.deadline import KILL_GRACE_PERIOD, DeadlineController
from claude_task.runner.errors import SpawnError
from claude_task.runner.finalizer import finalize
from claude_task.runner.outcome import (
    ERROR_EXIT_CODE,
    Failure,
    Outcome,
    Termination,
    TerminationReason,
)
from claude_task.runner.reformatter import StreamReformatter, Writer, pump_stdout, write_stdout
from claude_task.runner.supervisor import (
    CLAUDE_COMMAND,
    ProviderSettings,
    build_agent_env,
    spawn_agent,
)

logger = logging.getLogger(__name__)

_ERRORED = Termination(TerminationReason.ERRORED, ERROR_EXIT_CODE)


def _log_run_start(config: PreparedConfig) -> None:
    try:
        prompt_size = str(config.prompt_path.stat().st_size)
    except OSError:
        prompt_size = "unknown"
    logger.info("Prompt file size: %s bytes", prompt_size)

    if config.env_overlay:
        logger.info("Custom environment variables: %s", ", ".join(config.env_overlay))

    logger.info("Running Claude with prompt from file: %s", config.prompt_path)


async def execute(
    config: PreparedConfig,
    paths: RunPaths,
    provider: ProviderSettings | None = None,
    *,
    command: Sequence[str] = CLAUDE_COMMAND,
    write: Writer = write_stdout,
    grace_period: float = KILL_GRACE_PERIOD,
) -> Outcome:
    """Run the agent for an already validated configuration.

    Args:
        config: Prepared argument vector, prompt path and env overlay.
        paths: Channel, buffer and metrics locations for this run.
        provider: Credential and model selection.
        command: Agent executable (and any leading arguments).
        write: Console relay for reformatted output.
        grace_period: Seconds between SIGTERM and SIGKILL on timeout.

    Returns:
        The run's single Outcome.
    """
    provider = provider or ProviderSettings()
    _log_run_start(config)

    feeder = PromptFeeder(config.prompt_path, paths.pipe_path)
    reformatter = StreamReformatter()
    process: asyncio.subprocess.Process | None = None
    controller: DeadlineController | None = None
    pump: asyncio.Task[None] | None = None

    try:
        try:
            stdin = await feeder.start()
        except OSError as e:
            logger.error("Could not open prompt channel %s: %s", paths.pipe_path, e)
            return finalize(_ERRORED, b"", paths)

        env = build_agent_env(config, provider)
        try:
            process = await spawn_agent(config, env, stdin, command)
        except SpawnError as e:
            logger.error("Error spawning Claude process: %s", e)
            return finalize(_ERRORED, b"", paths)

        assert process.stdout is not None
        pump = asyncio.create_task(pump_stdout(process.stdout, reformatter, write))
        controller = DeadlineController(process, config.timeout_seconds, grace_period)
        termination = await controller.race(drained=pump)
        return finalize(termination, reformatter.raw_bytes, paths)
    finally:
        await _cleanup(feeder, process, controller, pump)


async def _cleanup(
    feeder: PromptFeeder,
    process: asyncio.subprocess.Process | None,
    controller: DeadlineController | None,
    pump: asyncio.Task[None] | None,
) -> None:
    """Release everything the run started. Each step is independent."""
    if controller is not None:
        try:
            await controller.close()
        except Exception as e:
            logger.debug("Ignoring deadline cleanup error: %s", e)

    if process is not None and process.returncode is None and (
        controller is None or not controller.cell.resolved
    ):
        # Only reachable when the run itself was cancelled.
        try:
            process.terminate()
        except ProcessLookupError:
            pass

    if pump is not None and not pump.done():
        pump.cancel()
        try:
            await pump
        except asyncio.CancelledError:
            pass
        except Exception as e:
            logger.debug("Ignoring stdout relay error during cleanup: %s", e)

    try:
        await feeder.close()
    except Exception as e:
        logger.debug("Ignoring prompt feeder cleanup error: %s", e)


async def run_claude(
    prompt_path: Path | str,
    options: ClaudeOptions,
    provider: ProviderSettings | None = None,
    *,
    paths: RunPaths | None = None,
    temp_dir: Path | None = None,
    command: Sequence[str] = CLAUDE_COMMAND,
    write: Writer = write_stdout,
    grace_period: float = KILL_GRACE_PERIOD,
) -> Outcome:
    """Validate ``options`` and run the agent on ``prompt_path``.

    Args:
        prompt_path: Prepared prompt file.
        options: Raw run options.
        provider: Credential and model selection.
        paths: Explicit run paths; by default a fresh directory under
            ``temp_dir`` is allocated.
        temp_dir: Parent for the default run directory.
        command: Agent executable (and any leading arguments).
        write: Console relay for reformatted output.
        grace_period: Seconds between SIGTERM and SIGKILL on timeout.

    Raises:
        ConfigError: If ``max_turns`` or ``timeout_minutes`` is invalid.
    """
    config = prepare_run_config(prompt_path, options)

    if paths is None:
        try:
            paths = RunPaths.create(temp_dir)
        except OSError as e:
            logger.error("Could not allocate run directory: %s", e)
            return Failure()

    return await execute(
        config,
        paths,
        provider,
        command=command,
        write=write,
        grace_period=grace_period,
    )


__all__ = ["execute", "run_claude"]
