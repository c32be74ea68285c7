"""Spawning the Claude agent process."""

from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass
from typing import Mapping, Sequence

from claude_task.runner.config import PreparedConfig
from claude_task.runner.errors import SpawnError

logger = logging.getLogger(__name__)

CLAUDE_COMMAND = ("claude",)


@dataclass(frozen=True)
class ProviderSettings:
    """Model and credential selection, already validated by the pipeline."""

    model: str | None = None
    anthropic_api_key: str | None = None
    claude_code_oauth_token: str | None = None
    use_bedrock: bool = False
    use_vertex: bool = False
    aws_region: str | None = None
    gcp_project_id: str | None = None
    gcp_region: str | None = None

    def controlled_env(self, environ: Mapping[str, str] | None = None) -> dict[str, str]:
        """Variables the runner always sets, overriding any custom overlay."""
        environ = os.environ if environ is None else environ
        return {
            "CLAUDE_CODE_ACTION": "1",
            "ANTHROPIC_MODEL": self.model or "",
            "ANTHROPIC_API_KEY": self.anthropic_api_key or "",
            "CLAUDE_CODE_OAUTH_TOKEN": self.claude_code_oauth_token or "",
            "CLAUDE_CODE_USE_BEDROCK": "1" if self.use_bedrock else "",
            "CLAUDE_CODE_USE_VERTEX": "1" if self.use_vertex else "",
            "AWS_REGION": self.aws_region or environ.get("AWS_REGION", ""),
            "ANTHROPIC_VERTEX_PROJECT_ID": self.gcp_project_id or "",
            "CLOUD_ML_REGION": self.gcp_region or "",
        }


def build_agent_env(
    config: PreparedConfig,
    provider: ProviderSettings,
    environ: Mapping[str, str] | None = None,
) -> dict[str, str]:
    """Inherited env, then the custom overlay, then runner-controlled vars."""
    environ = dict(os.environ if environ is None else environ)
    env = {**environ, **config.env_overlay}
    env.update(provider.controlled_env(environ))
    return env


async def spawn_agent(
    config: PreparedConfig,
    env: Mapping[str, str],
    stdin: int,
    command: Sequence[str] = CLAUDE_COMMAND,
) -> asyncio.subprocess.Process:
    """Start the agent with stdout captured and stderr inherited.

    ``stdin`` is a file descriptor handed over by the prompt feeder; the
    parent's copy is closed once the child has it.

    Raises:
        SpawnError: If the executable cannot be started.
    """
    argv = [*command, *config.argv]
    try:
        process = await asyncio.create_subprocess_exec(
            *argv,
            stdin=stdin,
            stdout=asyncio.subprocess.PIPE,
            env=dict(env),
        )
    except OSError as e:
        raise SpawnError(command[0], e) from e
    finally:
        try:
            os.close(stdin)
        except OSError:
            pass

    logger.info("Spawned Claude process (pid %s)", process.pid)
    return process


__all__ = [
    "CLAUDE_COMMAND",
    "ProviderSettings",
    "build_agent_env",
    "spawn_agent",
]
