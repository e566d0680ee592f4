"""Logging for backend-parity.

Everything logs under the ``backend_parity`` logger.  Lifecycle steps
(backend construction, scopes, dispose, environment install and restore) are
DEBUG records; the sequential host reports each case result at INFO.

While a case runs, :func:`case_context` tags every record with the case id,
so the lifecycle lines of a failing case can be picked out of a long run::

    [backend-parity] DEBUG [math_cpu.matmul::identity] backend_parity.runner: Constructed backend cpu

Environment variables
---------------------
``BACKEND_PARITY_LOG_LEVEL``
    DEBUG, INFO, WARNING, ERROR or CRITICAL (case-insensitive).  Default WARNING.
``BACKEND_PARITY_LOG_VERBOSE``
    ``1`` adds timestamps and source locations to every line.
"""

from __future__ import annotations

import functools
import logging
import os
import sys
from contextlib import contextmanager
from typing import Iterator, Optional

ROOT_LOGGER = "backend_parity"

_ENV_LOG_LEVEL = "BACKEND_PARITY_LOG_LEVEL"
_ENV_LOG_VERBOSE = "BACKEND_PARITY_LOG_VERBOSE"

_FORMAT = "[backend-parity] %(levelname)s %(case)s%(name)s: %(message)s"
_FORMAT_VERBOSE = (
    "[backend-parity %(asctime)s] %(levelname)s %(case)s%(name)s "
    "(%(filename)s:%(lineno)d): %(message)s"
)

_current_case: Optional[str] = None


class _CaseFilter(logging.Filter):
    """Adds the running case id (or nothing) as ``record.case``."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.case = f"[{_current_case}] " if _current_case else ""
        return True


def _parse_level(name: Optional[str]) -> int:
    level = logging.getLevelName((name or "").strip().upper())
    return level if isinstance(level, int) else logging.WARNING


@functools.lru_cache(maxsize=None)
def _root() -> logging.Logger:
    root = logging.getLogger(ROOT_LOGGER)
    root.setLevel(_parse_level(os.environ.get(_ENV_LOG_LEVEL)))
    # A handler already attached by the user or a test harness is left alone.
    if not root.handlers:
        verbose = os.environ.get(_ENV_LOG_VERBOSE, "").strip() == "1"
        handler = logging.StreamHandler(sys.stderr)
        handler.addFilter(_CaseFilter())
        handler.setFormatter(logging.Formatter(_FORMAT_VERBOSE if verbose else _FORMAT))
        root.addHandler(handler)
    return root


def get_logger(name: str) -> logging.Logger:
    """Return the logger for module *name* (usually ``__name__``)."""
    _root()
    return logging.getLogger(name)


def set_log_level(level: Optional[str] = None) -> None:
    """Change the harness log level; *None* goes back to ``BACKEND_PARITY_LOG_LEVEL``.

    Example::

        import backend_parity
        backend_parity.set_log_level("DEBUG")  # trace every lifecycle step
    """
    if level is None:
        level = os.environ.get(_ENV_LOG_LEVEL)
    _root().setLevel(_parse_level(level))


@contextmanager
def case_context(case_id: str) -> Iterator[None]:
    """Tag log records emitted inside the block with *case_id*."""
    global _current_case  # noqa: PLW0603
    previous, _current_case = _current_case, case_id
    try:
        yield
    finally:
        _current_case = previous
