from __future__ import annotations

import sys
import textwrap
from pathlib import Path
from typing import Callable

import pytest

from claude_task.runner.config import RunPaths

ECHO_AGENT = """
import json, os, sys
prompt = sys.stdin.read()
print(json.dumps({"type": "system", "argv": sys.argv[1:]}), flush=True)
print(json.dumps({"type": "prompt", "length": len(prompt), "head": prompt[:40]}), flush=True)
print(json.dumps({
    "type": "env",
    "CLAUDE_CODE_ACTION": os.environ.get("CLAUDE_CODE_ACTION"),
    "CUSTOM_FLAG": os.environ.get("CUSTOM_FLAG"),
}), flush=True)
"""


@pytest.fixture()
def prompt_file(tmp_path: Path) -> Path:
    path = tmp_path / "prompt.txt"
    path.write_text("Review the pull request and summarise the changes.\n", encoding="utf-8")
    return path


@pytest.fixture()
def run_paths(tmp_path: Path) -> RunPaths:
    run_dir = tmp_path / "run"
    run_dir.mkdir()
    return RunPaths.in_directory(run_dir)


@pytest.fixture()
def make_agent(tmp_path: Path) -> Callable[[str], list[str]]:
    """Write a fake ``claude`` script and return the command that runs it."""
    counter = {"n": 0}

    def _make(body: str) -> list[str]:
        counter["n"] += 1
        script = tmp_path / f"fake_claude_{counter['n']}.py"
        script.write_text(textwrap.dedent(body), encoding="utf-8")
        return [sys.executable, str(script)]

    return _make


@pytest.fixture()
def echo_agent(make_agent) -> list[str]:
    return make_agent(ECHO_AGENT)
