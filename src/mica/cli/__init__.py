"""Command line utilities for MICA."""

from mica.cli.app import main, run_cli

__all__ = ["main", "run_cli"]
