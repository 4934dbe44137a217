"""
Logging configuration for the transaction_tagger package.

- configure_logging(): attach one StreamHandler to the package logger.
  Called once by the CLI at startup.
- get_logger(name): fetch a logger; until configure_logging() runs the
  package logger only has a NullHandler, so library use stays silent.
"""
import logging
import os
import sys
from typing import IO, Optional, Union

PKG_LOGGER_NAME = "transaction_tagger"
LOG_LEVEL_ENV = "TRANSACTION_TAGGER_LOG_LEVEL"

_configured = False


def _parse_level(level: Optional[Union[int, str]]) -> int:
    if isinstance(level, int):
        return level
    if isinstance(level, str):
        level = level.strip().upper()
        if level.isdigit():
            return int(level)
        numeric = getattr(logging, level, None)
        if isinstance(numeric, int):
            return numeric
    env_val = os.getenv(LOG_LEVEL_ENV)
    if env_val and env_val != level:
        return _parse_level(env_val)
    return logging.WARNING


def configure_logging(
    level: Optional[Union[int, str]] = None,
    fmt: Optional[str] = None,
    stream: IO[str] = sys.stderr,
) -> None:
    """
    Configure the package logger exactly once.

    Args:
        level: int or level name. Defaults to $TRANSACTION_TAGGER_LOG_LEVEL,
            then WARNING.
        fmt: Optional format string
        stream: Output stream for the handler
    """
    global _configured
    if _configured:
        return

    logger = logging.getLogger(PKG_LOGGER_NAME)
    for handler in list(logger.handlers):
        if isinstance(handler, logging.NullHandler):
            logger.removeHandler(handler)

    resolved = _parse_level(level)
    handler = logging.StreamHandler(stream)
    handler.setLevel(resolved)
    handler.setFormatter(logging.Formatter(fmt or "%(asctime)s %(name)s %(levelname)s %(message)s"))

    logger.setLevel(resolved)
    logger.addHandler(handler)
    logger.propagate = False

    _configured = True


def get_logger(name: str) -> logging.Logger:
    """Return a logger, making sure the package logger never warns about missing handlers"""
    pkg_logger = logging.getLogger(PKG_LOGGER_NAME)
    if not _configured and not pkg_logger.handlers:
        pkg_logger.addHandler(logging.NullHandler())
    return logging.getLogger(name)
