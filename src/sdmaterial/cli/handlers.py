"""
Error handling for the CLI.

This module maps library exceptions to exit codes and user-facing messages.
"""

import sys
from collections.abc import Callable

import click

from sdmaterial import (
    AuthRequiredError,
    ConfigurationError,
    ImageProcessingError,
    ProtocolError,
    SDMaterialError,
    ValidationError,
)
from sdmaterial.cli import progress
from sdmaterial.cli.utils import EXIT_API_OR_NETWORK, EXIT_VALIDATION_OR_CONFIG


def map_exception_to_exit(exc: BaseException) -> tuple[int, str]:
    """Map library and known exceptions to (exit_code, user_message)."""
    if isinstance(exc, ValidationError):
        msg = exc.args[0] if exc.args else "Validation failed."
        if getattr(exc, "field", None):
            msg = f"{msg} (field: {exc.field})"
        return (EXIT_VALIDATION_OR_CONFIG, msg)
    if isinstance(exc, ConfigurationError):
        return (EXIT_VALIDATION_OR_CONFIG, exc.args[0] if exc.args else "Invalid configuration.")
    if isinstance(exc, ImageProcessingError):
        return (EXIT_VALIDATION_OR_CONFIG, exc.args[0] if exc.args else "Image processing failed.")
    if isinstance(exc, AuthRequiredError):
        return (EXIT_API_OR_NETWORK, f"{exc.args[0]} (HTTP {exc.status_code})")
    if isinstance(exc, ProtocolError) and exc.response:
        return (EXIT_API_OR_NETWORK, f"{exc.args[0]}\n{exc.response}")
    if isinstance(exc, SDMaterialError):
        return (EXIT_API_OR_NETWORK, exc.args[0] if exc.args else "An error occurred.")
    # Unhandled
    return (EXIT_API_OR_NETWORK, str(exc) if exc.args else "An unexpected error occurred.")


def run_with_error_handling(
    fn: Callable[[], None],
    *,
    quiet: bool = False,
) -> None:
    """
    Run fn(); on exception map to exit code and message, print and sys.exit.
    Used so command bodies stay free of try/except for known errors.
    """
    try:
        fn()
    except Exception as e:
        code, msg = map_exception_to_exit(e)
        if quiet:
            click.echo(msg, err=True)
        else:
            progress.print_error(msg)
        sys.exit(code)


__all__ = [
    "map_exception_to_exit",
    "run_with_error_handling",
]
