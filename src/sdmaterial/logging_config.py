"""
Logging configuration for sdmaterial.

Log records go through one stderr handler on the "sdmaterial" logger, which is
only installed once set_verbosity or configure_logging runs; library users who
never call either get no output from us.

Verbosity levels:
- 0 (default): INFO, job lifecycle (state changes, output path, timing)
- 1 (info): same, plus the prompt text sent to txt2img
- 2 (verbose): DEBUG, plus every HTTP call, progress sample and catalog refresh,
  and urllib3's connection-pool messages routed through the same handler

Server credentials never reach the log: the handler masks Basic auth tokens
and user:password pairs embedded in URLs.

Use set_verbosity(level) or configure_logging(verbose_level, quiet).
SDMATERIAL_VERBOSITY env (0/1/2) is read when the CLI runs; CLI flags override env.
"""

import logging
import os
import re

LOG_FORMAT = "%(levelname)s [%(name)s] %(message)s"
ROOT_LOGGER_NAME = "sdmaterial"

# Third-party loggers that carry HTTP connection detail
HTTP_LOGGER_NAMES = ("urllib3",)

_BASIC_TOKEN = re.compile(r"(Basic\s+)[A-Za-z0-9+/=]+")
_URL_USERINFO = re.compile(r"(\w+://)[^/@\s:]+:[^/@\s]+@")

_log_prompts: bool = False
_handler: logging.Handler | None = None


class RedactCredentialsFilter(logging.Filter):
    """Mask Basic auth tokens and URL credentials in formatted messages."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = _URL_USERINFO.sub(r"\1***@", _BASIC_TOKEN.sub(r"\1***", message))
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


def _ensure_handler() -> logging.Handler:
    """Add the stderr handler to the sdmaterial logger once and return it."""
    global _handler
    if _handler is not None:
        return _handler
    root = logging.getLogger(ROOT_LOGGER_NAME)
    if root.handlers:
        _handler = root.handlers[0]
    else:
        _handler = logging.StreamHandler()
        _handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(_handler)
    if not any(isinstance(f, RedactCredentialsFilter) for f in _handler.filters):
        _handler.addFilter(RedactCredentialsFilter())
    return _handler


def _route_http_logging(verbose: bool) -> None:
    """Show urllib3 connection logs through our handler at -vv; keep them quiet otherwise."""
    handler = _ensure_handler()
    for name in HTTP_LOGGER_NAMES:
        http_logger = logging.getLogger(name)
        if verbose:
            http_logger.setLevel(logging.DEBUG)
            if handler not in http_logger.handlers:
                http_logger.addHandler(handler)
        else:
            http_logger.setLevel(logging.WARNING)
            if handler in http_logger.handlers:
                http_logger.removeHandler(handler)


def set_verbosity(level: int) -> None:
    """
    Set logging verbosity (0=default, 1=info, 2=verbose).

    - 0: INFO level; job lifecycle only (no prompt text).
    - 1: INFO level; same + log prompt text.
    - 2: DEBUG level; same + HTTP calls, progress samples, urllib3 connections.
    """
    global _log_prompts
    _ensure_handler()
    root = logging.getLogger(ROOT_LOGGER_NAME)
    if level <= 0:
        root.setLevel(logging.INFO)
        _log_prompts = False
    elif level == 1:
        root.setLevel(logging.INFO)
        _log_prompts = True
    else:
        root.setLevel(logging.DEBUG)
        _log_prompts = True
    _route_http_logging(level >= 2)


def log_prompts() -> bool:
    """Return True if prompt text should be logged at INFO (verbosity 1 or 2)."""
    return _log_prompts


def configure_logging(verbose_level: int = 0, quiet: bool = False) -> None:
    """
    Configure logging from CLI or library.

    When quiet is True only warnings and errors are shown (a failed catalog
    load, a missing seed). Otherwise calls set_verbosity(verbose_level).
    """
    global _log_prompts
    _ensure_handler()
    if quiet:
        logging.getLogger(ROOT_LOGGER_NAME).setLevel(logging.WARNING)
        _log_prompts = False
        _route_http_logging(False)
        return
    set_verbosity(verbose_level)


def get_verbosity_from_env() -> int:
    """
    Read SDMATERIAL_VERBOSITY from environment (0, 1, or 2).

    Invalid or missing values return 0.
    """
    raw = os.environ.get("SDMATERIAL_VERBOSITY", "0").strip()
    if raw in ("1", "2"):
        return int(raw)
    return 0


def get_logger(name: str) -> logging.Logger:
    """Return a child logger under sdmaterial (e.g. sdmaterial.core.orchestrator)."""
    if name.startswith(ROOT_LOGGER_NAME + ".") or name == ROOT_LOGGER_NAME:
        return logging.getLogger(name)
    return logging.getLogger(ROOT_LOGGER_NAME + "." + name)


__all__ = [
    "RedactCredentialsFilter",
    "configure_logging",
    "get_logger",
    "get_verbosity_from_env",
    "log_prompts",
    "set_verbosity",
]
