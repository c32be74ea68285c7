"""Tests for incremental stream-json reformatting."""

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from claude_task.runner.reformatter import StreamReformatter, pump_stdout, render_line


def test_render_line_pretty_prints_json():
    assert render_line('{"type":"result","ok":true}') == json.dumps(
        {"type": "result", "ok": True}, indent=2
    )


def test_render_line_passes_text_through():
    assert render_line("Loading MCP servers...") == "Loading MCP servers..."


def test_render_line_keeps_non_ascii():
    assert render_line('{"text":"h\\u00e9llo"}') == '{\n  "text": "héllo"\n}'


class TestStreamReformatter:
    def test_two_lines_in_two_chunks(self):
        fmt = StreamReformatter()

        shown = fmt.feed(b'{"a":1}\n') + fmt.feed(b'{"b":2}\n') + fmt.flush()

        assert shown == '{\n  "a": 1\n}\n{\n  "b": 2\n}\n'
        assert fmt.raw_bytes == b'{"a":1}\n{"b":2}\n'

    def test_line_split_across_chunks_is_still_json(self):
        fmt = StreamReformatter()

        first = fmt.feed(b'{"a":')
        second = fmt.feed(b"1}\n")

        assert first == ""
        assert second == '{\n  "a": 1\n}\n'

    def test_non_json_lines_verbatim(self):
        fmt = StreamReformatter()

        assert fmt.feed(b"plain text\n") == "plain text\n"

    def test_blank_lines_not_echoed(self):
        fmt = StreamReformatter()

        assert fmt.feed(b"\n   \n") == ""
        assert fmt.raw_bytes == b"\n   \n"

    def test_unterminated_tail_emitted_on_flush_without_newline(self):
        fmt = StreamReformatter()

        assert fmt.feed(b'{"done":true}') == ""
        assert fmt.flush() == '{\n  "done": true\n}'
        assert fmt.flush() == ""

    def test_multibyte_character_split_between_chunks(self):
        fmt = StreamReformatter()
        data = '{"text":"日本"}\n'.encode()

        shown = fmt.feed(data[:11]) + fmt.feed(data[11:])

        assert shown == '{\n  "text": "日本"\n}\n'
        assert fmt.raw_output == '{"text":"日本"}\n'

    def test_raw_bytes_is_exact_concatenation(self):
        fmt = StreamReformatter()
        chunks = [b'{"type":"sys', b'tem"}\nnoise\n{"x"', b":[1,2]}\n\n", b"tail"]

        for chunk in chunks:
            fmt.feed(chunk)
        fmt.flush()

        assert fmt.raw_bytes == b"".join(chunks)
        assert fmt.has_output


@pytest.mark.asyncio
async def test_pump_stdout_relays_until_eof():
    reader = asyncio.StreamReader()
    reader.feed_data(b'{"n":1}\n{"n"')
    reader.feed_data(b":2}\npartial")
    reader.feed_eof()
    fmt = StreamReformatter()
    shown: list[str] = []

    await pump_stdout(reader, fmt, shown.append)

    assert "".join(shown) == '{\n  "n": 1\n}\n{\n  "n": 2\n}\npartial'
    assert fmt.raw_bytes == b'{"n":1}\n{"n":2}\npartial'


@pytest.mark.asyncio
async def test_pump_stdout_read_error_keeps_captured_output():
    reader = MagicMock()
    reader.read = AsyncMock(side_effect=[b'{"n":1}\n{"half"', OSError("stream broke")])
    fmt = StreamReformatter()
    shown: list[str] = []

    await pump_stdout(reader, fmt, shown.append)

    assert fmt.raw_bytes == b'{"n":1}\n{"half"'
    assert shown[-1] == '{"half"'
