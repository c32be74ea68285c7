"""Run configuration for the agent runner.

This module turns the task's optional string inputs into the immutable
configuration the supervisor consumes:
    - ClaudeOptions: raw option strings as received from the pipeline
    - PreparedConfig: argument vector, prompt path, env overlay, deadline
    - RunPaths: channel, buffer and metrics locations for one invocation
    - parse_custom_env_vars(): the ``claude_env`` KEY: VALUE block parser

Everything here is pure apart from ``RunPaths.create`` so that option
validation fails fast without touching the filesystem.
"""

from __future__ import annotations

import logging
import tempfile
from dataclasses import dataclass, field, fields
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping

from claude_task.runner.errors import ConfigError

logger = logging.getLogger(__name__)

BASE_ARGS = ("-p", "--verbose", "--output-format", "stream-json")

DEFAULT_TIMEOUT_MINUTES = 10

PIPE_NAME = "claude_prompt_pipe"
BUFFER_NAME = "claude-output.txt"
METRICS_NAME = "claude-execution-output.json"


@dataclass
class ClaudeOptions:
    """Optional run inputs, all carried as the strings the pipeline supplies.

    Attributes:
        allowed_tools: Value for ``--allowedTools``
        disallowed_tools: Value for ``--disallowedTools``
        max_turns: Positive integer string for ``--max-turns``
        mcp_config: Value for ``--mcp-config``
        system_prompt: Value for ``--system-prompt``
        append_system_prompt: Value for ``--append-system-prompt``
        fallback_model: Value for ``--fallback-model``
        timeout_minutes: Positive integer string; defaults to 10 minutes
        claude_env: Multi-line ``KEY: VALUE`` block added to the agent env
    """

    allowed_tools: str | None = None
    disallowed_tools: str | None = None
    max_turns: str | None = None
    mcp_config: str | None = None
    system_prompt: str | None = None
    append_system_prompt: str | None = None
    fallback_model: str | None = None
    timeout_minutes: str | None = None
    claude_env: str | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "ClaudeOptions":
        """Build options from a mapping, ignoring unknown keys and blanks."""
        if not data:
            return cls()
        known = {f.name for f in fields(cls)}
        values: dict[str, str] = {}
        for key, value in data.items():
            name = str(key).replace("-", "_")
            if name not in known or value is None:
                continue
            text = str(value)
            if text.strip():
                values[name] = text
        return cls(**values)

    def merged_over(self, defaults: "ClaudeOptions") -> "ClaudeOptions":
        """Return options where unset fields fall back to ``defaults``."""
        merged = {
            f.name: getattr(self, f.name) or getattr(defaults, f.name)
            for f in fields(self)
        }
        return ClaudeOptions(**merged)


@dataclass(frozen=True)
class PreparedConfig:
    """Immutable per-invocation configuration owned by the supervisor."""

    argv: tuple[str, ...]
    prompt_path: Path
    env_overlay: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    timeout_seconds: float = DEFAULT_TIMEOUT_MINUTES * 60


@dataclass(frozen=True)
class RunPaths:
    """Filesystem locations used by one invocation.

    Attributes:
        pipe_path: Named pipe relaying the prompt into the agent
        buffer_path: Raw stdout dump written before conversion
        metrics_path: JSON array of the agent's structured events
    """

    pipe_path: Path
    buffer_path: Path
    metrics_path: Path

    @classmethod
    def in_directory(cls, directory: Path) -> "RunPaths":
        return cls(
            pipe_path=directory / PIPE_NAME,
            buffer_path=directory / BUFFER_NAME,
            metrics_path=directory / METRICS_NAME,
        )

    @classmethod
    def create(cls, temp_dir: Path | None = None) -> "RunPaths":
        """Allocate a fresh run directory so concurrent runs never collide."""
        base = Path(temp_dir) if temp_dir else Path(tempfile.gettempdir())
        base.mkdir(parents=True, exist_ok=True)
        run_dir = Path(tempfile.mkdtemp(prefix="claude-run-", dir=base))
        logger.debug("Allocated run directory %s", run_dir)
        return cls.in_directory(run_dir)


def parse_custom_env_vars(claude_env: str | None) -> dict[str, str]:
    """Parse a ``KEY: VALUE`` block into a mapping.

    Entries are separated by newline characters only. Blank lines, ``#``
    comments, lines without a colon and lines with an empty key are dropped.
    Later keys overwrite earlier ones. Never raises.
    """
    if not claude_env or not claude_env.strip():
        return {}

    custom_env: dict[str, str] = {}
    for line in claude_env.split("\n"):
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue

        key, sep, value = stripped.partition(":")
        if not sep:
            continue

        key = key.strip()
        if key:
            custom_env[key] = value.strip()

    return custom_env


def _parse_positive_int(label: str, raw: str) -> int:
    try:
        number = int(raw.strip())
    except ValueError:
        number = 0
    if number <= 0:
        raise ConfigError(f"{label} must be a positive number, got: {raw}")
    return number


def prepare_run_config(prompt_path: Path | str, options: ClaudeOptions) -> PreparedConfig:
    """Validate options and build the agent's argument vector.

    Args:
        prompt_path: Prepared prompt file to feed through the channel.
        options: Raw run options.

    Returns:
        PreparedConfig for a single invocation.

    Raises:
        ConfigError: If ``max_turns`` or ``timeout_minutes`` is not a
            positive integer.
    """
    args = list(BASE_ARGS)

    if options.allowed_tools:
        args.extend(["--allowedTools", options.allowed_tools])
    if options.disallowed_tools:
        args.extend(["--disallowedTools", options.disallowed_tools])
    if options.max_turns:
        max_turns = _parse_positive_int("maxTurns", options.max_turns)
        args.extend(["--max-turns", str(max_turns)])
    if options.mcp_config:
        args.extend(["--mcp-config", options.mcp_config])
    if options.system_prompt:
        args.extend(["--system-prompt", options.system_prompt])
    if options.append_system_prompt:
        args.extend(["--append-system-prompt", options.append_system_prompt])
    if options.fallback_model:
        args.extend(["--fallback-model", options.fallback_model])

    timeout_minutes = DEFAULT_TIMEOUT_MINUTES
    if options.timeout_minutes:
        timeout_minutes = _parse_positive_int("timeoutMinutes", options.timeout_minutes)

    return PreparedConfig(
        argv=tuple(args),
        prompt_path=Path(prompt_path),
        env_overlay=MappingProxyType(parse_custom_env_vars(options.claude_env)),
        timeout_seconds=timeout_minutes * 60,
    )


__all__ = [
    "BASE_ARGS",
    "DEFAULT_TIMEOUT_MINUTES",
    "ClaudeOptions",
    "PreparedConfig",
    "RunPaths",
    "parse_custom_env_vars",
    "prepare_run_config",
]
