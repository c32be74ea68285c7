"""Tests for option validation and argument vector construction."""

from pathlib import Path

import pytest

from claude_task.runner.config import (
    BASE_ARGS,
    ClaudeOptions,
    RunPaths,
    parse_custom_env_vars,
    prepare_run_config,
)
from claude_task.runner.errors import ConfigError


class TestPrepareRunConfig:
    def test_no_options_gives_base_arguments_and_default_deadline(self, tmp_path):
        config = prepare_run_config(tmp_path / "p.txt", ClaudeOptions())

        assert config.argv == BASE_ARGS
        assert config.argv == ("-p", "--verbose", "--output-format", "stream-json")
        assert config.timeout_seconds == 600
        assert dict(config.env_overlay) == {}

    def test_flags_follow_fixed_order(self, tmp_path):
        options = ClaudeOptions(
            fallback_model="claude-3-haiku",
            append_system_prompt="Be brief.",
            system_prompt="You are a reviewer.",
            mcp_config="/tmp/mcp.json",
            max_turns="5",
            disallowed_tools="Bash",
            allowed_tools="Read,Grep",
        )

        config = prepare_run_config(tmp_path / "p.txt", options)

        assert config.argv[len(BASE_ARGS):] == (
            "--allowedTools", "Read,Grep",
            "--disallowedTools", "Bash",
            "--max-turns", "5",
            "--mcp-config", "/tmp/mcp.json",
            "--system-prompt", "You are a reviewer.",
            "--append-system-prompt", "Be brief.",
            "--fallback-model", "claude-3-haiku",
        )

    def test_max_turns_is_normalised(self, tmp_path):
        config = prepare_run_config(tmp_path / "p.txt", ClaudeOptions(max_turns=" 07 "))

        assert config.argv[-2:] == ("--max-turns", "7")

    def test_timeout_minutes_converted_to_seconds(self, tmp_path):
        config = prepare_run_config(tmp_path / "p.txt", ClaudeOptions(timeout_minutes="3"))

        assert config.timeout_seconds == 180

    @pytest.mark.parametrize("value", ["abc", "0", "-2", "1.5"])
    def test_invalid_max_turns(self, tmp_path, value):
        with pytest.raises(ConfigError, match=f"maxTurns must be a positive number, got: {value}"):
            prepare_run_config(tmp_path / "p.txt", ClaudeOptions(max_turns=value))

    @pytest.mark.parametrize("value", ["soon", "0", "-10"])
    def test_invalid_timeout_minutes(self, tmp_path, value):
        with pytest.raises(ConfigError, match="timeoutMinutes must be a positive number"):
            prepare_run_config(tmp_path / "p.txt", ClaudeOptions(timeout_minutes=value))

    def test_custom_env_becomes_overlay(self, tmp_path):
        options = ClaudeOptions(claude_env="DEBUG: true\nREGION: eu")

        config = prepare_run_config(tmp_path / "p.txt", options)

        assert dict(config.env_overlay) == {"DEBUG": "true", "REGION": "eu"}

    def test_prepared_config_is_immutable(self, tmp_path):
        config = prepare_run_config(tmp_path / "p.txt", ClaudeOptions())

        with pytest.raises(AttributeError):
            config.timeout_seconds = 1  # type: ignore[misc]
        with pytest.raises(TypeError):
            config.env_overlay["X"] = "1"  # type: ignore[index]

    def test_validation_touches_nothing_on_disk(self, tmp_path):
        with pytest.raises(ConfigError):
            prepare_run_config(tmp_path / "p.txt", ClaudeOptions(max_turns="x"))

        assert list(tmp_path.iterdir()) == []


class TestParseCustomEnvVars:
    def test_empty_input(self):
        assert parse_custom_env_vars(None) == {}
        assert parse_custom_env_vars("") == {}
        assert parse_custom_env_vars("   \n  ") == {}

    def test_comments_blank_and_malformed_lines_dropped(self):
        text = """
        # a comment
        KEY_A: one

        not a pair
        : no key
        KEY_B :  two words
        """

        assert parse_custom_env_vars(text) == {"KEY_A": "one", "KEY_B": "two words"}

    def test_value_keeps_later_colons(self):
        assert parse_custom_env_vars("URL: https://example.com:8080/x") == {
            "URL": "https://example.com:8080/x"
        }

    def test_later_keys_win(self):
        assert parse_custom_env_vars("A: 1\nA: 2") == {"A": "2"}

    def test_windows_line_endings(self):
        assert parse_custom_env_vars("A: 1\r\nB: 2\r\n") == {"A": "1", "B": "2"}

    def test_only_newline_separates_entries(self):
        assert parse_custom_env_vars("A: x\x0cy\nB: 1") == {"A": "x\x0cy", "B": "1"}
        assert parse_custom_env_vars("C: one\u2028two") == {"C": "one\u2028two"}


class TestClaudeOptions:
    def test_from_dict_accepts_dashed_keys_and_ignores_unknown(self):
        options = ClaudeOptions.from_dict(
            {"max-turns": 4, "timeout_minutes": "15", "colour": "blue", "system_prompt": "  "}
        )

        assert options.max_turns == "4"
        assert options.timeout_minutes == "15"
        assert options.system_prompt is None

    def test_from_dict_none(self):
        assert ClaudeOptions.from_dict(None) == ClaudeOptions()

    def test_merged_over_prefers_explicit_values(self):
        defaults = ClaudeOptions(max_turns="10", allowed_tools="Read")
        explicit = ClaudeOptions(max_turns="2")

        merged = explicit.merged_over(defaults)

        assert merged.max_turns == "2"
        assert merged.allowed_tools == "Read"


class TestRunPaths:
    def test_in_directory(self, tmp_path):
        paths = RunPaths.in_directory(tmp_path)

        assert paths.pipe_path == tmp_path / "claude_prompt_pipe"
        assert paths.buffer_path == tmp_path / "claude-output.txt"
        assert paths.metrics_path == tmp_path / "claude-execution-output.json"

    def test_create_allocates_distinct_directories(self, tmp_path):
        first = RunPaths.create(tmp_path / "agent-temp")
        second = RunPaths.create(tmp_path / "agent-temp")

        assert first.pipe_path != second.pipe_path
        assert first.pipe_path.parent.is_dir()
        assert Path(first.pipe_path.parent).parent == tmp_path / "agent-temp"
        assert first.pipe_path.parent.name.startswith("claude-run-")
