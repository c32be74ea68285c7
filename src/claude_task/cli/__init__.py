"""Command-line interface for claude-task."""
