"""Optional task defaults stored in ``.claude-task.yaml``.

The file lets a repository pin run options and provider selection instead
of repeating them in every pipeline definition::

    claude:
      allowed_tools: "Bash(git:*),Edit"
      max_turns: 8
      timeout_minutes: 20
      claude_env: |
        NODE_ENV: test
    provider:
      model: claude-sonnet-4-5
      use_bedrock: false

Pipeline inputs always take precedence over these values.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

from ruamel.yaml import YAML

from claude_task.runner.config import ClaudeOptions

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_NAME = ".claude-task.yaml"

_BOOL_TRUE = {"1", "true", "yes", "on"}


class TaskConfigError(RuntimeError):
    """Raised when the task config file cannot be parsed or validated."""


@dataclass
class ProviderDefaults:
    """Non-secret provider selection from the config file."""

    model: str | None = None
    use_bedrock: bool = False
    use_vertex: bool = False
    aws_region: str | None = None
    gcp_project_id: str | None = None
    gcp_region: str | None = None

    @classmethod
    def from_dict(cls, data: Any) -> "ProviderDefaults":
        if not isinstance(data, dict):
            return cls()
        values: dict[str, Any] = {}
        for f in fields(cls):
            raw = data.get(f.name)
            if raw is None:
                continue
            if f.name.startswith("use_"):
                values[f.name] = str(raw).strip().lower() in _BOOL_TRUE
            elif str(raw).strip():
                values[f.name] = str(raw).strip()
        return cls(**values)


@dataclass
class TaskConfig:
    """Defaults loaded from the config file."""

    options: ClaudeOptions = field(default_factory=ClaudeOptions)
    provider: ProviderDefaults = field(default_factory=ProviderDefaults)
    source: Path | None = None


def load_task_config(config_file: Path) -> TaskConfig:
    """Load task defaults from ``config_file``.

    A missing file yields empty defaults.

    Raises:
        TaskConfigError: If the file is not valid YAML or has the wrong shape.
    """
    if not config_file.exists():
        logger.debug("No task config at %s", config_file)
        return TaskConfig()

    yaml = YAML()
    yaml.preserve_quotes = True

    try:
        with open(config_file, "r", encoding="utf-8") as f:
            data = yaml.load(f) or {}
    except Exception as e:
        logger.error("Failed to load task config: %s", e)
        raise TaskConfigError(f"Invalid YAML in {config_file}: {e}") from e

    if not isinstance(data, dict):
        raise TaskConfigError(
            f"Invalid task config in {config_file}: expected a mapping at the top level"
        )

    claude_section = data.get("claude", {}) or {}
    if not isinstance(claude_section, dict):
        raise TaskConfigError(
            f"Invalid 'claude' section in {config_file}: expected a mapping of options"
        )

    logger.info("Loaded task defaults from %s", config_file)
    return TaskConfig(
        options=ClaudeOptions.from_dict(claude_section),
        provider=ProviderDefaults.from_dict(data.get("provider")),
        source=config_file,
    )


__all__ = [
    "DEFAULT_CONFIG_NAME",
    "ProviderDefaults",
    "TaskConfig",
    "TaskConfigError",
    "load_task_config",
]
