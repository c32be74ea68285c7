"""Pipeline environment setup and input validation.

Runs before the agent starts:
    - resolve the agent temp/build directories and export them
    - make sure the ``claude`` CLI is installed
    - check that provider and prompt inputs are consistent
"""

from __future__ import annotations

import logging
import os
import subprocess
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

from claude_task.runner.supervisor import ProviderSettings

logger = logging.getLogger(__name__)

CLAUDE_CODE_PACKAGE = "@anthropic-ai/claude-code"
CLAUDE_CODE_VERSION = "1.0.51"


class EnvironmentValidationError(ValueError):
    """Raised when task inputs are missing or contradictory."""

    def __init__(self, errors: list[str]):
        self.errors = errors
        bullet_list = "\n".join(f"  - {error}" for error in errors)
        super().__init__(f"Task input validation failed:\n{bullet_list}")


class EnvironmentSetupError(RuntimeError):
    """Raised when the Claude CLI is missing and cannot be installed."""


@dataclass(frozen=True)
class TaskEnvironment:
    """Directories the agent works in."""

    temp_dir: Path
    build_dir: Path


def resolve_task_environment(environ: Mapping[str, str] | None = None) -> TaskEnvironment:
    environ = os.environ if environ is None else environ
    temp_dir = (
        environ.get("AGENT_TEMPDIRECTORY")
        or environ.get("RUNNER_TEMP")
        or tempfile.gettempdir()
    )
    build_dir = environ.get("AGENT_BUILDDIRECTORY") or os.getcwd()
    return TaskEnvironment(temp_dir=Path(temp_dir), build_dir=Path(build_dir))


def setup_environment() -> TaskEnvironment:
    """Export the directories Claude Code expects and return them."""
    task_env = resolve_task_environment()
    os.environ["RUNNER_TEMP"] = str(task_env.temp_dir)
    os.environ["CLAUDE_WORKING_DIR"] = str(task_env.build_dir)

    logger.info("Agent temp directory: %s", task_env.temp_dir)
    logger.info("Agent build directory: %s", task_env.build_dir)
    return task_env


def _claude_version(executable: str) -> str | None:
    try:
        completed = subprocess.run(
            [executable, "--version"],
            capture_output=True,
            text=True,
            check=False,
            timeout=60,
        )
    except (FileNotFoundError, subprocess.TimeoutExpired):
        return None
    if completed.returncode != 0:
        return None
    return completed.stdout.strip() or "unknown"


def ensure_claude_installed(
    install: bool = True,
    version: str = CLAUDE_CODE_VERSION,
    executable: str = "claude",
) -> str:
    """Return the installed Claude Code version, installing it if allowed.

    Raises:
        EnvironmentSetupError: If the CLI is missing and cannot be installed.
    """
    installed = _claude_version(executable)
    if installed:
        logger.info("Claude Code is already installed (%s)", installed)
        return installed

    if not install:
        raise EnvironmentSetupError("Claude Code CLI not found on PATH")

    package = f"{CLAUDE_CODE_PACKAGE}@{version}"
    logger.info("Installing Claude Code (%s)...", package)
    try:
        subprocess.run(
            ["npm", "install", "-g", package],
            capture_output=True,
            text=True,
            check=True,
        )
    except FileNotFoundError as e:
        raise EnvironmentSetupError("npm not found; cannot install Claude Code") from e
    except subprocess.CalledProcessError as e:
        stderr = (e.stderr or "").strip()
        raise EnvironmentSetupError(
            f"Failed to install {package} (exit {e.returncode}): {stderr}"
        ) from e

    logger.info("Claude Code installed successfully")
    return _claude_version(executable) or version


def validate_task_inputs(
    provider: ProviderSettings,
    prompt: str | None,
    prompt_file: str | None,
    environ: Mapping[str, str] | None = None,
) -> None:
    """Check provider and prompt inputs, reporting every problem at once.

    Raises:
        EnvironmentValidationError: If any check fails.
    """
    environ = os.environ if environ is None else environ
    errors: list[str] = []

    if provider.use_bedrock and provider.use_vertex:
        errors.append(
            "Cannot use both Bedrock and Vertex AI simultaneously. "
            "Please set only one provider."
        )

    if not provider.use_bedrock and not provider.use_vertex:
        if not provider.anthropic_api_key and not provider.claude_code_oauth_token:
            errors.append(
                "Either 'anthropic_api_key' or 'claude_code_oauth_token' input is "
                "required when using direct Anthropic API."
            )
    elif provider.use_bedrock:
        if not provider.aws_region:
            errors.append("'aws_region' input is required when using AWS Bedrock.")
        if not environ.get("AWS_ACCESS_KEY_ID") or not environ.get("AWS_SECRET_ACCESS_KEY"):
            errors.append(
                "AWS credentials (AWS_ACCESS_KEY_ID and AWS_SECRET_ACCESS_KEY) must be "
                "configured as pipeline variables when using AWS Bedrock."
            )
    else:
        if not provider.gcp_project_id:
            errors.append("'gcp_project_id' input is required when using Google Vertex AI.")
        if not provider.gcp_region:
            errors.append("'gcp_region' input is required when using Google Vertex AI.")
        if not environ.get("GOOGLE_APPLICATION_CREDENTIALS"):
            errors.append(
                "GOOGLE_APPLICATION_CREDENTIALS must be configured as a pipeline "
                "variable when using Google Vertex AI."
            )

    if not prompt and not prompt_file:
        errors.append("Either 'prompt' or 'prompt_file' input is required.")
    if prompt and prompt_file:
        errors.append(
            "Both 'prompt' and 'prompt_file' inputs were provided. "
            "Please specify only one."
        )

    if errors:
        raise EnvironmentValidationError(errors)


__all__ = [
    "CLAUDE_CODE_VERSION",
    "EnvironmentSetupError",
    "EnvironmentValidationError",
    "TaskEnvironment",
    "ensure_claude_installed",
    "resolve_task_environment",
    "setup_environment",
    "validate_task_inputs",
]
