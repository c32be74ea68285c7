"""Deadline enforcement and exactly-once termination.

Three sources race to end a run: the agent exits (stdout drained, process
reaped), an error occurs, or the deadline fires. All of them write into a
single ``OutcomeCell``; the first write wins and the rest are ignored.

On deadline expiry the agent receives SIGTERM, the run resolves with exit
code 124 straight away, and SIGKILL follows after a grace period if the
agent is still alive.
"""

from __future__ import annotations

import asyncio
import logging
import signal
from typing import Awaitable

from claude_task.runner.outcome import (
    ERROR_EXIT_CODE,
    TIMEOUT_EXIT_CODE,
    Termination,
    TerminationReason,
)

logger = logging.getLogger(__name__)

KILL_GRACE_PERIOD = 5.0


def normalize_exit_code(returncode: int | None) -> int:
    """Map a process return code to a shell-style exit code.

    Signal deaths (negative return codes) become ``128 + signum``.
    """
    if returncode is None:
        return ERROR_EXIT_CODE
    if returncode < 0:
        return 128 - returncode
    return returncode


class OutcomeCell:
    """Single-assignment result cell."""

    def __init__(self) -> None:
        self._future: asyncio.Future[Termination] = (
            asyncio.get_running_loop().create_future()
        )

    @property
    def resolved(self) -> bool:
        return self._future.done()

    def resolve(self, termination: Termination) -> bool:
        """Store ``termination`` unless a value is already present.

        Returns:
            True if this call won.
        """
        if self._future.done():
            logger.debug(
                "Ignoring late %s termination; run already resolved",
                termination.reason.value,
            )
            return False
        self._future.set_result(termination)
        return True

    async def wait(self) -> Termination:
        return await asyncio.shield(self._future)


class DeadlineController:
    """Races the agent's completion against a deadline.

    The controller never owns the process: it only signals it and
    observes its return code.
    """

    def __init__(
        self,
        process: asyncio.subprocess.Process,
        timeout_seconds: float,
        grace_period: float = KILL_GRACE_PERIOD,
        cell: OutcomeCell | None = None,
    ):
        self.process = process
        self.timeout_seconds = timeout_seconds
        self.grace_period = grace_period
        self.cell = cell or OutcomeCell()
        self.signals_sent: list[signal.Signals] = []
        self._loop = asyncio.get_running_loop()
        self._deadline: asyncio.TimerHandle | None = None
        self._kill: asyncio.TimerHandle | None = None
        self._watcher: asyncio.Task[None] | None = None

    @property
    def timed_out(self) -> bool:
        return signal.SIGTERM in self.signals_sent

    def arm(self) -> None:
        self._deadline = self._loop.call_later(self.timeout_seconds, self._expire)

    def fail(self, error: BaseException) -> bool:
        """Resolve the run as errored."""
        logger.error("Claude process error: %s", error)
        return self.cell.resolve(Termination(TerminationReason.ERRORED, ERROR_EXIT_CODE))

    async def race(self, drained: Awaitable[object] | None = None) -> Termination:
        """Arm the deadline and wait for the first completion source.

        Args:
            drained: Completes when the agent's stdout has been consumed;
                normal exit is only reported after it finishes.
        """
        if self._deadline is None:
            self.arm()
        self._watcher = asyncio.create_task(self._watch_exit(drained))
        try:
            return await self.cell.wait()
        finally:
            if self._deadline is not None:
                self._deadline.cancel()

    async def _watch_exit(self, drained: Awaitable[object] | None) -> None:
        try:
            if drained is not None:
                # The stdout reader outlives this watcher.
                await asyncio.shield(drained)
            returncode = await self.process.wait()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.fail(e)
            return
        self.cell.resolve(
            Termination(TerminationReason.EXITED, normalize_exit_code(returncode))
        )

    def _expire(self) -> None:
        if self.cell.resolved:
            return
        logger.error("Claude process timed out after %s seconds", self.timeout_seconds)
        self._send(signal.SIGTERM)
        self._kill = self._loop.call_later(self.grace_period, self._force_kill)
        self.cell.resolve(Termination(TerminationReason.TIMED_OUT, TIMEOUT_EXIT_CODE))

    def _force_kill(self) -> None:
        if self.process.returncode is None:
            logger.warning("Claude process ignored SIGTERM; sending SIGKILL")
            self._send(signal.SIGKILL)

    def _send(self, sig: signal.Signals) -> None:
        try:
            self.process.send_signal(sig)
        except ProcessLookupError:
            return
        self.signals_sent.append(sig)

    async def close(self) -> None:
        """Stop watching; after a timeout, wait for the kill backstop."""
        if self._deadline is not None:
            self._deadline.cancel()
        if self._kill is not None and self.process.returncode is None:
            try:
                await asyncio.wait_for(self.process.wait(), timeout=self.grace_period + 1)
            except asyncio.TimeoutError:
                logger.warning("Claude process %s still alive after SIGKILL", self.process.pid)
        if self._kill is not None:
            self._kill.cancel()
        if self._watcher is not None and not self._watcher.done():
            self._watcher.cancel()


__all__ = [
    "KILL_GRACE_PERIOD",
    "OutcomeCell",
    "DeadlineController",
    "normalize_exit_code",
]
