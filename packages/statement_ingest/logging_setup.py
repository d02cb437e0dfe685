"""Centralized logging configuration for the ``statement_ingest`` package.

Public helpers:

- ``configure_logging(...)``: attach one ``StreamHandler`` to the package
  root logger (``"statement_ingest"``). Entry points (the CLI or a host
  application) call it once at startup; later calls are no-ops.
- ``get_logger(name)``: acquire a logger by name. Until logging is
  configured the package root carries a ``NullHandler`` so library use stays
  silent.
- ``source_context(source)``: tag every record emitted inside the block with
  the CSV being processed (``%(source)s`` in the format). Stage modules never
  see file names, so batch runs rely on this to tell files apart.

Library modules must never attach their own handlers.
"""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from typing import IO

_PKG_LOGGER_NAME = "statement_ingest"
_LEVEL_ENV = "STATEMENT_INGEST_LOG_LEVEL"
_DEFAULT_FORMAT = "%(asctime)s %(name)s %(levelname)s [%(source)s] %(message)s"

_CONFIGURED = False
_HANDLER: logging.Handler | None = None

_current_source: ContextVar[str | None] = ContextVar("statement_ingest_source", default=None)


class _SourceFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.source = _current_source.get() or "-"
        return True


@contextmanager
def source_context(source: str | None) -> Iterator[None]:
    token = _current_source.set(source)
    try:
        yield
    finally:
        _current_source.reset(token)


def _level_from_name(name: str) -> int | None:
    s = name.strip().upper()
    if s.isdigit():
        return int(s)
    numeric = logging.getLevelNamesMapping().get(s)
    return numeric if isinstance(numeric, int) else None


def resolve_level(level: int | str | None = None) -> int:
    """Explicit ``level`` → ``STATEMENT_INGEST_LOG_LEVEL`` → ``INFO``.

    Unrecognized names fall through to the next source.
    """

    if isinstance(level, int):
        return level
    for candidate in (level, os.getenv(_LEVEL_ENV)):
        if candidate:
            parsed = _level_from_name(candidate)
            if parsed is not None:
                return parsed
    return logging.INFO


def configure_logging(
    level: int | str | None = None,
    *,
    fmt: str | None = None,
    stream: IO[str] | None = None,
) -> None:
    """Configure the package root logger exactly once.

    ``stream`` defaults to the ``sys.stderr`` current at call time.
    """

    global _CONFIGURED, _HANDLER
    if _CONFIGURED:
        return

    logger = logging.getLogger(_PKG_LOGGER_NAME)
    for h in list(logger.handlers):
        if isinstance(h, logging.NullHandler):
            logger.removeHandler(h)

    resolved = resolve_level(level)
    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.setLevel(resolved)
    handler.addFilter(_SourceFilter())
    handler.setFormatter(logging.Formatter(fmt or _DEFAULT_FORMAT))

    logger.setLevel(resolved)
    logger.addHandler(handler)
    # Avoid double emission via the root logger.
    logger.propagate = False

    _HANDLER = handler
    _CONFIGURED = True


def reset_logging() -> None:
    """Undo :func:`configure_logging` (used between tests)."""

    global _CONFIGURED, _HANDLER
    logger = logging.getLogger(_PKG_LOGGER_NAME)
    if _HANDLER is not None:
        logger.removeHandler(_HANDLER)
        _HANDLER.close()
    _HANDLER = None
    _CONFIGURED = False
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


def get_logger(name: str) -> logging.Logger:
    pkg_logger = logging.getLogger(_PKG_LOGGER_NAME)
    if not _CONFIGURED and not pkg_logger.handlers:
        pkg_logger.addHandler(logging.NullHandler())
    return logging.getLogger(name)


__all__ = [
    "configure_logging",
    "get_logger",
    "reset_logging",
    "resolve_level",
    "source_context",
]
