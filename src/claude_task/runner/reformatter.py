"""Incremental reformatting of the agent's ``stream-json`` output.

The agent writes one JSON event per line, but stdout arrives in chunks
that need not end on a line boundary. ``StreamReformatter`` holds the
unterminated tail of the previous chunk until its newline arrives, so a
JSON line split across reads is still pretty-printed.

The raw byte stream is kept untouched alongside the display text; the
finalizer persists it, not what was shown on the console.
"""

from __future__ import annotations

import asyncio
import codecs
import json
import logging
import sys
from typing import Callable

from claude_task.runner.errors import StreamError

logger = logging.getLogger(__name__)

READ_CHUNK_SIZE = 8192

Writer = Callable[[str], None]


def write_stdout(text: str) -> None:
    """Default console relay."""
    sys.stdout.write(text)
    sys.stdout.flush()


def render_line(line: str) -> str:
    """Pretty-print ``line`` if it is a JSON value, else return it as is."""
    try:
        parsed = json.loads(line)
    except ValueError:
        return line
    return json.dumps(parsed, indent=2, ensure_ascii=False)


class StreamReformatter:
    """Turns raw stdout chunks into console text.

    Example:
        >>> fmt = StreamReformatter()
        >>> fmt.feed(b'{"a":')
        ''
        >>> fmt.feed(b'1}\\n')
        '{\\n  "a": 1\\n}\\n'
    """

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._pending = ""
        self._raw = bytearray()

    @property
    def raw_bytes(self) -> bytes:
        """Exact concatenation of every chunk fed so far."""
        return bytes(self._raw)

    @property
    def raw_output(self) -> str:
        return self._raw.decode("utf-8", errors="replace")

    @property
    def has_output(self) -> bool:
        return bool(self._raw)

    def feed(self, chunk: bytes) -> str:
        """Consume one chunk and return the text ready for display."""
        self._raw.extend(chunk)
        text = self._pending + self._decoder.decode(chunk)
        *complete, self._pending = text.split("\n")
        return "".join(self._emit(line, terminated=True) for line in complete)

    def flush(self) -> str:
        """Emit whatever is left once the stream has ended."""
        text = self._pending + self._decoder.decode(b"", final=True)
        self._pending = ""
        return self._emit(text, terminated=False)

    @staticmethod
    def _emit(line: str, terminated: bool) -> str:
        if not line.strip():
            return ""
        rendered = render_line(line)
        return rendered + "\n" if terminated else rendered


async def pump_stdout(
    stream: asyncio.StreamReader,
    reformatter: StreamReformatter,
    write: Writer = write_stdout,
) -> None:
    """Relay ``stream`` through ``reformatter`` until end of file.

    A read failure ends the relay but leaves the agent running; whatever
    was captured before the failure stays in the reformatter.
    """
    try:
        while True:
            chunk = await stream.read(READ_CHUNK_SIZE)
            if not chunk:
                break
            text = reformatter.feed(chunk)
            if text:
                write(text)
    except (OSError, ValueError) as e:
        logger.error("%s", StreamError(f"Error reading Claude stdout: {e}"))
    finally:
        tail = reformatter.flush()
        if tail:
            write(tail)


__all__ = [
    "READ_CHUNK_SIZE",
    "StreamReformatter",
    "pump_stdout",
    "render_line",
    "write_stdout",
]
