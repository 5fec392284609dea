"""
harbor_trust.logger
-------------------
Tagged console logging shared by ``harbor-certs`` and ``harbor-trust``.

Lines look like ``[harbor-trust] status: installed``. Warnings and errors go
to stderr with a level marker so callers can tell causes apart by grepping.
"""

from __future__ import annotations

import logging
import sys


class _TaggedFormatter(logging.Formatter):
    def format(self, record):  # type: ignore[override]
        msg = record.getMessage()
        if record.levelno >= logging.ERROR:
            msg = f"ERROR: {msg}"
        elif record.levelno >= logging.WARNING:
            msg = f"WARNING: {msg}"
        if record.exc_info:
            msg = f"{msg}\n{self.formatException(record.exc_info)}"
        return f"[{record.name}] {msg}"


class _BelowWarning(logging.Filter):
    def filter(self, record):  # type: ignore[override]
        return record.levelno < logging.WARNING


def get_logger(name: str = "harbor-trust", level: int = logging.INFO) -> logging.Logger:
    """Return the named tool logger, installing its handlers on first use."""
    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.propagate = False

    if not logger.handlers:
        formatter = _TaggedFormatter()

        out = logging.StreamHandler(sys.stdout)
        out.setFormatter(formatter)
        out.addFilter(_BelowWarning())
        logger.addHandler(out)

        err = logging.StreamHandler(sys.stderr)
        err.setLevel(logging.WARNING)
        err.setFormatter(formatter)
        logger.addHandler(err)

    return logger
