"""Command-line interface for apimeta."""

from apimeta.ui.cli import CLIError, build_parser, run_cli

__all__ = ["CLIError", "build_parser", "run_cli"]
