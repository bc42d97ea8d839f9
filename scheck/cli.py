"""Main CLI module for scheck.

This module re-exports the CLI for convenience. The main implementation
is in __main__.py.
"""

from scheck.__main__ import cli, main

__all__ = ["cli", "main"]
