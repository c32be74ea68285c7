"""Turning a finished run into an ``Outcome`` and a metrics artifact.

The metrics artifact is the agent's ``stream-json`` events collected into
one JSON array, the same shape ``jq -s .`` produces from the raw dump.
Producing it is best effort: it never turns a successful run into a
failure, and on the failure path its errors are dropped entirely.
"""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Any

from claude_task.runner.config import RunPaths
from claude_task.runner.errors import PostProcessError
from claude_task.runner.outcome import (
    Failure,
    Outcome,
    Success,
    Termination,
    TerminationReason,
    TimedOut,
)

logger = logging.getLogger(__name__)

_JSON_WHITESPACE = re.compile(r"[ \t\n\r]*")


def slurp_json_stream(text: str) -> list[Any]:
    """Collect every whitespace-separated JSON value in ``text``.

    Raises:
        PostProcessError: If any value fails to parse.
    """
    decoder = json.JSONDecoder()
    values: list[Any] = []
    end = len(text)
    index = _JSON_WHITESPACE.match(text, 0).end()
    while index < end:
        try:
            value, index = decoder.raw_decode(text, index)
        except json.JSONDecodeError as e:
            raise PostProcessError(
                f"Invalid JSON at line {e.lineno} column {e.colno}: {e.msg}"
            ) from e
        values.append(value)
        index = _JSON_WHITESPACE.match(text, index).end()
    return values


def persist_metrics(raw: bytes, paths: RunPaths) -> Path:
    """Dump ``raw`` to the buffer file and convert it into the metrics file.

    Returns:
        Path of the written metrics artifact.

    Raises:
        PostProcessError: If the buffer cannot be converted or written.
    """
    try:
        paths.buffer_path.parent.mkdir(parents=True, exist_ok=True)
        paths.buffer_path.write_bytes(raw)
        text = paths.buffer_path.read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        raise PostProcessError(f"Could not write output buffer: {e}") from e

    events = slurp_json_stream(text)

    try:
        paths.metrics_path.parent.mkdir(parents=True, exist_ok=True)
        paths.metrics_path.write_text(
            json.dumps(events, indent=2, ensure_ascii=False) + "\n",
            encoding="utf-8",
        )
    except OSError as e:
        raise PostProcessError(f"Could not write execution file: {e}") from e

    return paths.metrics_path


def finalize(termination: Termination, raw: bytes, paths: RunPaths) -> Outcome:
    """Build the run's single ``Outcome``.

    Args:
        termination: Winner of the completion race.
        raw: Everything the agent wrote to stdout.
        paths: Where to put the buffer and metrics files.
    """
    raw_output = raw.decode("utf-8", errors="replace")

    if termination.reason is TerminationReason.EXITED and termination.exit_code == 0:
        metrics_path: Path | None = None
        try:
            metrics_path = persist_metrics(raw, paths)
            logger.info("Log saved to %s", metrics_path)
        except PostProcessError as e:
            logger.warning("Failed to process output for execution metrics: %s", e)
        return Success(raw_output=raw_output, metrics_path=metrics_path)

    metrics_path = None
    if raw:
        try:
            metrics_path = persist_metrics(raw, paths)
        except Exception as e:
            logger.debug("Ignoring metrics error on failed run: %s", e)

    if termination.reason is TerminationReason.TIMED_OUT:
        return TimedOut(
            exit_code=termination.exit_code,
            raw_output=raw_output or None,
            metrics_path=metrics_path,
        )
    return Failure(
        exit_code=termination.exit_code,
        raw_output=raw_output or None,
        metrics_path=metrics_path,
    )


__all__ = ["finalize", "persist_metrics", "slurp_json_stream"]
