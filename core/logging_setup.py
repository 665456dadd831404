"""Logging configuration.

Every record carries the id of the request being served (``-`` outside a
request), so side-effect failures logged after the response is built can
still be traced back to the call that caused them.
"""

from __future__ import annotations

import logging
import os
import sys
from contextvars import ContextVar
from pathlib import Path

_request_id: ContextVar[str] = ContextVar("request_id", default="-")

LOG_FORMAT = "%(asctime)s.%(msecs)03d %(levelname)s [%(request_id)s] %(name)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def get_request_id() -> str:
    return _request_id.get()


def bind_request_id(request_id: str):
    """Set the current request id; returns the token for ``reset_request_id``."""
    return _request_id.set(request_id)


def reset_request_id(token) -> None:
    _request_id.reset(token)


class _RequestIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = _request_id.get()
        return True


class _ThirdPartyNoiseFilter(logging.Filter):
    """Keep our own loggers; let other libraries through only at WARNING+."""

    _OWN_PREFIXES = ("api", "core", "patterns", "verticals", "__main__")

    def filter(self, record: logging.LogRecord) -> bool:
        if record.name.split(".", 1)[0] in self._OWN_PREFIXES:
            return True
        return record.levelno >= logging.WARNING


def setup_logging(
    *,
    level: str | int | None = None,
    log_file: str | Path | None = None,
) -> None:
    """
    Configure root logging with:
    - Console handler on stderr
    - Optional file handler (``LOG_FILE`` or ``log_file``)

    Call this ONCE, at application startup.
    """
    level = level or os.getenv("LOG_LEVEL", "INFO")
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)
    log_file = log_file or os.getenv("LOG_FILE")

    root = logging.getLogger()
    root.setLevel(level)

    # Remove any pre-existing handlers to avoid duplicates.
    for h in list(root.handlers):
        root.removeHandler(h)

    fmt = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    ch = logging.StreamHandler(sys.stderr)
    ch.setFormatter(fmt)
    ch.addFilter(_RequestIdFilter())
    ch.addFilter(_ThirdPartyNoiseFilter())
    root.addHandler(ch)

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(str(path), encoding="utf-8")
        fh.setFormatter(fmt)
        fh.addFilter(_RequestIdFilter())
        root.addHandler(fh)

    logging.captureWarnings(True)
