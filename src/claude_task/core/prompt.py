"""Prompt preparation for the runner.

The runner always reads its prompt from a file. An inline ``prompt`` input
is written to a file under the temp directory first; a ``prompt_file``
input is checked and used in place.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

PROMPT_DIR = "claude-prompts"
PROMPT_FILE = "claude-prompt.txt"


class PromptError(ValueError):
    """Raised when no usable prompt can be prepared."""


@dataclass(frozen=True)
class PreparedPrompt:
    path: Path
    inline: bool


def prepare_prompt(prompt: str | None, prompt_file: str | None, temp_dir: Path) -> PreparedPrompt:
    """Resolve the task's prompt inputs to a readable prompt file.

    Raises:
        PromptError: If neither or both inputs are given, or the prompt
            file is missing or empty.
    """
    if prompt and prompt_file:
        raise PromptError("Only one of 'prompt' or 'prompt_file' may be provided")

    if prompt_file:
        path = Path(prompt_file)
        if not path.is_file():
            raise PromptError(f"Prompt file not found: {path}")
        if path.stat().st_size == 0:
            raise PromptError(f"Prompt file is empty: {path}")
        logger.info("Using prompt file: %s", path)
        return PreparedPrompt(path=path, inline=False)

    if not prompt or not prompt.strip():
        raise PromptError("Either 'prompt' or 'prompt_file' must be provided")

    prompt_dir = temp_dir / PROMPT_DIR
    prompt_dir.mkdir(parents=True, exist_ok=True)
    path = prompt_dir / PROMPT_FILE
    path.write_text(prompt, encoding="utf-8")
    logger.info("Prompt written to %s", path)
    return PreparedPrompt(path=path, inline=True)


__all__ = ["PreparedPrompt", "PromptError", "prepare_prompt"]
