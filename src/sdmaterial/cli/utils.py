"""
Utility functions for the CLI.

This module contains exit code constants and small helpers shared by commands.
"""

from pathlib import Path

# Exit codes
EXIT_SUCCESS = 0
EXIT_API_OR_NETWORK = 1
EXIT_VALIDATION_OR_CONFIG = 2


def default_normal_map_path(source: Path) -> Path:
    """Return <source stem>_normal.png next to the source image."""
    return source.with_name(source.stem + "_normal.png")


__all__ = [
    "EXIT_SUCCESS",
    "EXIT_API_OR_NETWORK",
    "EXIT_VALIDATION_OR_CONFIG",
    "default_normal_map_path",
]
