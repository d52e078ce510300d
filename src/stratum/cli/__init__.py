"""
CLI module for Stratum.

Provides the command-line interface using Click.
"""

from stratum.cli.main import cli, main

__all__ = ["main", "cli"]
