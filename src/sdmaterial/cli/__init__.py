"""
Command-line interface for sdmaterial.

This package contains CLI implementations using Click.
Uses only the public API: from sdmaterial import ...
"""

from sdmaterial.cli.commands import cli, main

__all__ = ["cli", "main"]
