"""Claude Code user settings."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Mapping

logger = logging.getLogger(__name__)

SETTINGS_FILE = "settings.json"


def claude_config_dir(environ: Mapping[str, str] | None = None) -> Path:
    """``$XDG_CONFIG_HOME/claude`` when set, else ``~/.claude``."""
    environ = os.environ if environ is None else environ
    xdg_config_home = environ.get("XDG_CONFIG_HOME")
    if xdg_config_home:
        return Path(xdg_config_home) / "claude"
    return Path.home() / ".claude"


def _read_settings(settings_path: Path) -> dict[str, Any]:
    if not settings_path.exists():
        logger.info("No existing settings file found, creating new one")
        return {}

    try:
        content = settings_path.read_text(encoding="utf-8")
    except OSError as e:
        logger.warning("Error reading existing settings: %s", e)
        return {}

    if not content.strip():
        logger.info("Settings file exists but is empty")
        return {}

    try:
        settings = json.loads(content)
    except json.JSONDecodeError as e:
        logger.warning("Error reading existing settings: %s", e)
        return {}

    if not isinstance(settings, dict):
        logger.warning("Ignoring non-object settings in %s", settings_path)
        return {}

    logger.info("Found existing settings: %s", json.dumps(settings, indent=2))
    return settings


def setup_claude_code_settings(config_dir: Path | None = None) -> Path:
    """Enable all project MCP servers in Claude's settings.json.

    Existing keys are preserved; unreadable files are replaced.

    Returns:
        Path to the written settings file.
    """
    config_dir = config_dir or claude_config_dir()
    settings_path = config_dir / SETTINGS_FILE
    logger.info("Setting up Claude settings at: %s", settings_path)

    config_dir.mkdir(parents=True, exist_ok=True)
    settings = _read_settings(settings_path)

    settings["enableAllProjectMcpServers"] = True
    settings_path.write_text(json.dumps(settings, indent=2), encoding="utf-8")
    logger.info("Settings saved successfully")
    return settings_path


__all__ = ["claude_config_dir", "setup_claude_code_settings"]
