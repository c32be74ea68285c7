"""Prompt delivery through a named pipe.

The prompt file is never loaded into memory. Two ``cat`` relays move it:

    prompt file --[write relay]--> FIFO --[read relay]--> os.pipe --> agent stdin

Each relay is a small state machine (starting -> streaming -> closed |
errored) so cleanup order and failure reporting are easy to follow. A
relay never raises once started: failures are logged and the relay's
output end is closed, which the next stage sees as end of input.
"""

from __future__ import annotations

import asyncio
import logging
import os
import signal
import subprocess
from enum import Enum
from pathlib import Path

from claude_task.runner.errors import SpawnError, StreamError

logger = logging.getLogger(__name__)

CAT = "cat"
RELAY_STOP_TIMEOUT = 2.0


class RelayState(str, Enum):
    STARTING = "starting"
    STREAMING = "streaming"
    CLOSED = "closed"
    ERRORED = "errored"


def create_channel(pipe_path: Path) -> None:
    """Replace whatever sits at ``pipe_path`` with a fresh FIFO."""
    pipe_path.unlink(missing_ok=True)
    os.mkfifo(pipe_path)


def destroy_channel(pipe_path: Path) -> None:
    """Remove the FIFO; errors are ignored."""
    try:
        pipe_path.unlink()
    except OSError as e:
        logger.debug("Ignoring channel removal error for %s: %s", pipe_path, e)


def _close_fd(fd: int | None) -> None:
    if fd is None or fd < 0:
        return
    try:
        os.close(fd)
    except OSError:
        pass


class Relay:
    """One ``cat`` process copying its stdin (or a file) to its stdout."""

    def __init__(self, name: str, argv: list[str]):
        self.name = name
        self.argv = argv
        self.state = RelayState.STARTING
        self.error: Exception | None = None
        self.process: asyncio.subprocess.Process | None = None
        self._watcher: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self.process is not None and self.process.returncode is None

    async def start(self, stdin: int, stdout: int) -> bool:
        """Spawn the relay wired to the given descriptors.

        The parent's copies of ``stdin``/``stdout`` are closed whether or
        not the spawn succeeds, so a failed relay reads as end of input
        downstream.

        Returns:
            True if the relay is streaming.
        """
        try:
            self.process = await asyncio.create_subprocess_exec(
                *self.argv,
                stdin=stdin,
                stdout=stdout,
            )
        except OSError as e:
            self._fail(SpawnError(self.name, e))
            return False
        finally:
            _close_fd(stdin)
            _close_fd(stdout)

        self.state = RelayState.STREAMING
        logger.debug("%s relay started (pid %s)", self.name, self.process.pid)
        self._watcher = asyncio.create_task(self._watch())
        return True

    async def _watch(self) -> None:
        assert self.process is not None
        returncode = await self.process.wait()
        if self.state is not RelayState.STREAMING:
            return
        if returncode == 0:
            self.state = RelayState.CLOSED
            logger.debug("%s relay finished", self.name)
        elif returncode == -signal.SIGPIPE:
            # Reader went away first.
            self.state = RelayState.CLOSED
            logger.debug("%s relay stopped: reader closed the pipe", self.name)
        else:
            self._fail(StreamError(f"{self.name} relay exited with code {returncode}"))

    def _fail(self, error: Exception) -> None:
        self.state = RelayState.ERRORED
        self.error = error
        logger.error("Prompt relay failed: %s", error)

    async def stop(self) -> None:
        """Terminate the relay if it is still running. Never raises."""
        if self.state is RelayState.STREAMING:
            self.state = RelayState.CLOSED
        process = self.process
        if process is not None and process.returncode is None:
            try:
                process.terminate()
                await asyncio.wait_for(process.wait(), timeout=RELAY_STOP_TIMEOUT)
            except ProcessLookupError:
                pass
            except asyncio.TimeoutError:
                try:
                    process.kill()
                except ProcessLookupError:
                    pass
        if self._watcher is not None and not self._watcher.done():
            self._watcher.cancel()


class PromptFeeder:
    """Streams a prompt file into the agent's stdin through a FIFO.

    Example:
        >>> feeder = PromptFeeder(prompt_path, paths.pipe_path)
        >>> stdin_fd = await feeder.start()
        >>> # hand stdin_fd to the agent, then eventually
        >>> await feeder.close()
    """

    def __init__(self, prompt_path: Path, pipe_path: Path, cat: str = CAT):
        self.prompt_path = Path(prompt_path)
        self.pipe_path = Path(pipe_path)
        self.writer = Relay("prompt-write", [cat, "--", str(self.prompt_path)])
        self.reader = Relay("prompt-read", [cat])

    async def start(self) -> int:
        """Create the channel and start both relays.

        Returns:
            Read end of the pipe carrying the prompt; the caller owns it.

        Raises:
            OSError: If the FIFO or the stdin pipe cannot be created.
        """
        create_channel(self.pipe_path)

        # The read end is opened first (non-blocking, since no writer exists
        # yet) so the write-side open cannot block.
        fifo_read = os.open(self.pipe_path, os.O_RDONLY | os.O_NONBLOCK)
        try:
            os.set_blocking(fifo_read, True)
            fifo_write = os.open(self.pipe_path, os.O_WRONLY)
        except OSError:
            _close_fd(fifo_read)
            raise

        await self.writer.start(stdin=subprocess.DEVNULL, stdout=fifo_write)

        try:
            stdin_read, stdin_write = os.pipe()
        except OSError:
            _close_fd(fifo_read)
            raise
        await self.reader.start(stdin=fifo_read, stdout=stdin_write)
        return stdin_read

    async def close(self) -> None:
        """Stop both relays and remove the channel; each step best effort."""
        for relay in (self.writer, self.reader):
            try:
                await relay.stop()
            except Exception as e:
                logger.debug("Ignoring error stopping %s relay: %s", relay.name, e)
        destroy_channel(self.pipe_path)


__all__ = [
    "RelayState",
    "Relay",
    "PromptFeeder",
    "create_channel",
    "destroy_channel",
]
