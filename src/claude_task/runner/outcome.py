"""Terminal results of a single agent invocation."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path

TIMEOUT_EXIT_CODE = 124
ERROR_EXIT_CODE = 1


class TerminationReason(str, Enum):
    """Which completion source won the race."""

    EXITED = "exited"
    ERRORED = "errored"
    TIMED_OUT = "timed_out"


@dataclass(frozen=True)
class Termination:
    """Value written once into the run's result cell."""

    reason: TerminationReason
    exit_code: int


@dataclass(frozen=True)
class Outcome:
    """Base for the three outcome variants."""

    exit_code: int
    raw_output: str | None = None
    metrics_path: Path | None = None

    @property
    def succeeded(self) -> bool:
        return False

    @property
    def conclusion(self) -> str:
        return "success" if self.succeeded else "failure"


@dataclass(frozen=True)
class Success(Outcome):
    """Agent exited 0. ``metrics_path`` is None only if conversion failed."""

    exit_code: int = 0

    @property
    def succeeded(self) -> bool:
        return True


@dataclass(frozen=True)
class Failure(Outcome):
    """Agent exited non-zero, died on a signal, or never spawned."""

    exit_code: int = ERROR_EXIT_CODE


@dataclass(frozen=True)
class TimedOut(Outcome):
    """Deadline expired before the agent exited."""

    exit_code: int = TIMEOUT_EXIT_CODE


__all__ = [
    "TIMEOUT_EXIT_CODE",
    "ERROR_EXIT_CODE",
    "TerminationReason",
    "Termination",
    "Outcome",
    "Success",
    "Failure",
    "TimedOut",
]
