"""JSON logging configuration for devcert."""

import logging
import os

from pythonjsonlogger import jsonlogger

LOG_LEVEL_ENV = "DEVCERT_LOG_LEVEL"

# "command" is attached by process.run_command through `extra`
LOG_FIELDS = frozenset({"timestamp", "level", "message", "exc_info", "funcName", "lineno", "command"})


class DevcertJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter emitting LOG_FIELDS only, with levelname renamed to level."""

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)

        if "levelname" in log_record:
            log_record["level"] = log_record.pop("levelname")

        for key in [key for key in log_record if key not in LOG_FIELDS]:
            log_record.pop(key)


def _resolve_level(value: str | None) -> int:
    """Map a level name from the environment to a logging level (WARNING if unknown)."""
    if not value:
        return logging.WARNING
    level = logging.getLevelName(value.strip().upper())
    return level if isinstance(level, int) else logging.WARNING


def _setup_logger() -> logging.Logger:
    """Create the devcert logger once.

    Quiet by default; set DEVCERT_LOG_LEVEL=DEBUG to trace every openssl and
    trust store invocation.
    """
    logger = logging.getLogger("devcert")
    if logger.handlers:
        return logger

    handler = logging.StreamHandler()
    handler.setFormatter(
        DevcertJsonFormatter(
            fmt="%(timestamp)s %(levelname)s %(funcName)s %(lineno)d %(message)s",
            timestamp=True,
        )
    )
    logger.setLevel(_resolve_level(os.environ.get(LOG_LEVEL_ENV)))
    logger.addHandler(handler)
    logger.propagate = False
    return logger


LOGGER = _setup_logger()
