"""Pipeline setup helpers that run before the agent starts."""

from .environment import (
    EnvironmentSetupError,
    EnvironmentValidationError,
    TaskEnvironment,
    ensure_claude_installed,
    resolve_task_environment,
    setup_environment,
    validate_task_inputs,
)
from .prompt import PreparedPrompt, PromptError, prepare_prompt
from .settings import claude_config_dir, setup_claude_code_settings
from .task_config import TaskConfig, TaskConfigError, load_task_config

__all__ = [
    "EnvironmentSetupError",
    "EnvironmentValidationError",
    "TaskEnvironment",
    "ensure_claude_installed",
    "resolve_task_environment",
    "setup_environment",
    "validate_task_inputs",
    "PreparedPrompt",
    "PromptError",
    "prepare_prompt",
    "claude_config_dir",
    "setup_claude_code_settings",
    "TaskConfig",
    "TaskConfigError",
    "load_task_config",
]
