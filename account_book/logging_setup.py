"""Centralized structured logging for the ``account_book`` package.

structlog is configured once, at import time, to route through the standard
library so that the package root logger (``"account_book"``) decides where
records go:

- ``configure_logging(...)``: attach a single ``StreamHandler`` to the package
  root logger. Intended to be called once by entrypoints (the CLI) at startup.
- ``get_logger(name)``: acquire a bound structlog logger. When nothing has been
  configured, the package root logger carries a ``NullHandler`` so library use
  stays silent.

Library modules never attach handlers themselves.
"""

from __future__ import annotations

import logging
import sys
from typing import IO, Optional, Union

import structlog

_PKG_LOGGER_NAME = "account_book"
_CONFIGURED = False


structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def _parse_level(level: Union[int, str, None]) -> int:
    if isinstance(level, int):
        return level
    if isinstance(level, str):
        numeric = getattr(logging, level.strip().upper(), None)
        if isinstance(numeric, int):
            return numeric
    return logging.INFO


def configure_logging(
    level: Union[int, str, None] = None,
    *,
    stream: IO[str] = sys.stderr,
) -> None:
    """Attach one ``StreamHandler`` to the package root logger, exactly once."""

    global _CONFIGURED
    if _CONFIGURED:
        return

    logger = logging.getLogger(_PKG_LOGGER_NAME)
    for h in list(logger.handlers):
        if isinstance(h, logging.NullHandler):
            logger.removeHandler(h)

    handler = logging.StreamHandler(stream)
    # structlog already renders the full JSON line
    handler.setFormatter(logging.Formatter("%(message)s"))

    logger.setLevel(_parse_level(level))
    logger.addHandler(handler)
    logger.propagate = False

    _CONFIGURED = True


def get_logger(name: Optional[str] = None) -> structlog.stdlib.BoundLogger:
    """Return a structlog logger, keeping library use silent until configured."""

    pkg_logger = logging.getLogger(_PKG_LOGGER_NAME)
    if not _CONFIGURED and not pkg_logger.handlers:
        pkg_logger.addHandler(logging.NullHandler())
    return structlog.get_logger(name or _PKG_LOGGER_NAME)
