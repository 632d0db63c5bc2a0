"""Logging setup for rampload.

All loggers live under the ``rampload`` namespace. The CLI calls
:func:`setup_logging` once; library code only ever calls :func:`get_logger`.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime

_ROOT_LOGGER = "rampload"

# LogRecord attributes copied into JSON output when passed via ``extra=``.
_CONTEXT_FIELDS = ("user_id", "stage_index", "state")


class _JsonFormatter(logging.Formatter):
    """One-line JSON log formatter.

    Emits objects with keys: timestamp, level, logger, message, plus any
    run context (``user_id``, ``stage_index``, ``state``) attached to the
    record.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, object] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in _CONTEXT_FIELDS:
            if hasattr(record, key):
                log_entry[key] = getattr(record, key)
        if record.exc_info and record.exc_info[1] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry)


def setup_logging(
    level: int = logging.INFO,
    *,
    json_format: bool = False,
) -> logging.Logger:
    """Configure and return the ``rampload`` root logger.

    Logs go to stderr so the run report on stdout stays clean. Repeated
    calls replace the handler instead of adding another.

    Args:
        level: Logging level (e.g., ``logging.DEBUG``). Defaults to INFO.
        json_format: Emit one JSON object per line instead of plain text.

    Returns:
        The configured ``rampload`` logger.
    """
    logger = logging.getLogger(_ROOT_LOGGER)
    logger.setLevel(level)

    for existing in list(logger.handlers):
        logger.removeHandler(existing)

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)

    if json_format:
        formatter: logging.Formatter = _JsonFormatter()
    else:
        formatter = logging.Formatter(
            "%(asctime)s [%(levelname)-8s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    handler.setFormatter(formatter)
    logger.addHandler(handler)
    logger.propagate = False

    return logger


def get_logger(name: str) -> logging.Logger:
    """Return a child logger under the ``rampload`` namespace.

    Args:
        name: Dotted suffix, e.g. ``"engine.pool"`` for
            ``rampload.engine.pool``.

    Returns:
        The child logger.
    """
    return logging.getLogger(f"{_ROOT_LOGGER}.{name}")
