"""``claude-task run``: the full pipeline task.

Steps, in order:
    1. Export the agent temp/build directories and check the Claude CLI
    2. Load ``.claude-task.yaml`` defaults
    3. Validate provider and prompt inputs
    4. Enable project MCP servers in Claude's settings
    5. Prepare the prompt file
    6. Run the agent and publish the outcome

Every option can also be supplied as an Azure task input, which the agent
exposes as an ``INPUT_<NAME>`` environment variable.
"""

from __future__ import annotations

import asyncio
import logging
import shlex
from pathlib import Path

import typer
from rich.console import Console

from claude_task.cli.reporting import report_error, report_outcome
from claude_task.core.environment import (
    EnvironmentSetupError,
    EnvironmentValidationError,
    ensure_claude_installed,
    setup_environment,
    validate_task_inputs,
)
from claude_task.core.prompt import PromptError, prepare_prompt
from claude_task.core.settings import setup_claude_code_settings
from claude_task.core.task_config import DEFAULT_CONFIG_NAME, TaskConfigError, load_task_config
from claude_task.runner import ClaudeOptions, ConfigError, ProviderSettings, run_claude

logger = logging.getLogger(__name__)

console = Console()

TASK_ERRORS = (
    ConfigError,
    EnvironmentSetupError,
    EnvironmentValidationError,
    PromptError,
    TaskConfigError,
    OSError,
)


def run(
    prompt: str | None = typer.Option(
        None, "--prompt", envvar="INPUT_PROMPT", help="Inline prompt text"
    ),
    prompt_file: str | None = typer.Option(
        None, "--prompt-file", envvar="INPUT_PROMPT_FILE", help="Path to a prompt file"
    ),
    allowed_tools: str | None = typer.Option(
        None, "--allowed-tools", envvar="INPUT_ALLOWED_TOOLS", help="Tools Claude may use"
    ),
    disallowed_tools: str | None = typer.Option(
        None, "--disallowed-tools", envvar="INPUT_DISALLOWED_TOOLS", help="Tools Claude may not use"
    ),
    max_turns: str | None = typer.Option(
        None, "--max-turns", envvar="INPUT_MAX_TURNS", help="Maximum conversation turns"
    ),
    mcp_config: str | None = typer.Option(
        None, "--mcp-config", envvar="INPUT_MCP_CONFIG", help="MCP server configuration"
    ),
    system_prompt: str | None = typer.Option(
        None, "--system-prompt", envvar="INPUT_SYSTEM_PROMPT", help="Replacement system prompt"
    ),
    append_system_prompt: str | None = typer.Option(
        None,
        "--append-system-prompt",
        envvar="INPUT_APPEND_SYSTEM_PROMPT",
        help="Text appended to the system prompt",
    ),
    claude_env: str | None = typer.Option(
        None,
        "--claude-env",
        envvar="INPUT_CLAUDE_ENV",
        help="Extra environment for Claude as 'KEY: VALUE' lines",
    ),
    fallback_model: str | None = typer.Option(
        None, "--fallback-model", envvar="INPUT_FALLBACK_MODEL", help="Model used when the primary is overloaded"
    ),
    timeout_minutes: str | None = typer.Option(
        None, "--timeout-minutes", envvar="INPUT_TIMEOUT_MINUTES", help="Deadline in minutes (default 10)"
    ),
    model: str | None = typer.Option(
        None, "--model", envvar="INPUT_MODEL", help="Model for ANTHROPIC_MODEL"
    ),
    anthropic_api_key: str | None = typer.Option(
        None, "--anthropic-api-key", envvar="INPUT_ANTHROPIC_API_KEY", help="Anthropic API key"
    ),
    claude_code_oauth_token: str | None = typer.Option(
        None,
        "--claude-code-oauth-token",
        envvar="INPUT_CLAUDE_CODE_OAUTH_TOKEN",
        help="Claude Code OAuth token",
    ),
    use_bedrock: bool = typer.Option(
        False, "--use-bedrock", envvar="INPUT_USE_BEDROCK", help="Use AWS Bedrock"
    ),
    use_vertex: bool = typer.Option(
        False, "--use-vertex", envvar="INPUT_USE_VERTEX", help="Use Google Vertex AI"
    ),
    aws_region: str | None = typer.Option(
        None, "--aws-region", envvar="INPUT_AWS_REGION", help="AWS region for Bedrock"
    ),
    gcp_project_id: str | None = typer.Option(
        None, "--gcp-project-id", envvar="INPUT_GCP_PROJECT_ID", help="GCP project for Vertex AI"
    ),
    gcp_region: str | None = typer.Option(
        None, "--gcp-region", envvar="INPUT_GCP_REGION", help="GCP region for Vertex AI"
    ),
    config_file: Path = typer.Option(
        Path(DEFAULT_CONFIG_NAME), "--config", help="Task defaults file"
    ),
    install: bool = typer.Option(
        True, "--install/--no-install", help="Install Claude Code with npm if it is missing"
    ),
    claude_command: str = typer.Option(
        "claude", "--claude-command", envvar="CLAUDE_TASK_COMMAND", hidden=True
    ),
) -> None:
    """Run Claude Code on a prompt and publish the result to the pipeline."""
    command = shlex.split(claude_command) or ["claude"]

    try:
        task_env = setup_environment()
        ensure_claude_installed(install=install, executable=command[0])

        defaults = load_task_config(config_file)
        provider = ProviderSettings(
            model=model or defaults.provider.model,
            anthropic_api_key=anthropic_api_key,
            claude_code_oauth_token=claude_code_oauth_token,
            use_bedrock=use_bedrock or defaults.provider.use_bedrock,
            use_vertex=use_vertex or defaults.provider.use_vertex,
            aws_region=aws_region or defaults.provider.aws_region,
            gcp_project_id=gcp_project_id or defaults.provider.gcp_project_id,
            gcp_region=gcp_region or defaults.provider.gcp_region,
        )
        validate_task_inputs(provider, prompt, prompt_file)

        setup_claude_code_settings()
        prepared = prepare_prompt(prompt, prompt_file, task_env.temp_dir)

        options = ClaudeOptions(
            allowed_tools=allowed_tools,
            disallowed_tools=disallowed_tools,
            max_turns=max_turns,
            mcp_config=mcp_config,
            system_prompt=system_prompt,
            append_system_prompt=append_system_prompt,
            fallback_model=fallback_model,
            timeout_minutes=timeout_minutes,
            claude_env=claude_env,
        ).merged_over(defaults.options)

        outcome = asyncio.run(
            run_claude(
                prepared.path,
                options,
                provider,
                temp_dir=task_env.temp_dir,
                command=command,
            )
        )
    except TASK_ERRORS as e:
        logger.debug("Task aborted before completion", exc_info=True)
        console.print(f"[red]Error:[/red] {e}")
        report_error(e)
        raise typer.Exit(1)

    report_outcome(outcome)
    if not outcome.succeeded:
        raise typer.Exit(outcome.exit_code)


__all__ = ["run"]
