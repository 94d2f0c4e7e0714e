"""Logging utilities for uibuild commands.

Everything logs under the ``uibuild`` hierarchy. Records about a single build
unit go through :func:`unit_logger`, which tags them with the unit name so the
console prints ``[uibuild:button] ERROR ...`` and the log file carries the unit
as its own column.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable, MutableMapping, Tuple

_LOGGER_NAME = "uibuild"

Sink = Callable[[int, str], None]


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a module-scoped logger under the uibuild hierarchy."""
    full_name = f"{_LOGGER_NAME}.{name}" if name else _LOGGER_NAME
    return logging.getLogger(full_name)


class UnitLogger(logging.LoggerAdapter):
    """Logger adapter that attaches the unit being built to every record."""

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> Tuple[Any, MutableMapping[str, Any]]:
        extra = dict(kwargs.get("extra") or {})
        extra["unit"] = self.extra["unit"]
        kwargs["extra"] = extra
        return msg, kwargs


def unit_logger(name: str, unit_name: str) -> UnitLogger:
    """Return a logger for ``name`` whose records belong to ``unit_name``."""
    return UnitLogger(get_logger(name), {"unit": unit_name})


def logger_sink(name: str) -> Sink:
    """Adapt a uibuild logger to the ``(level, message)`` sink reporters write to."""
    logger = get_logger(name)

    def sink(level: int, message: str) -> None:
        logger.log(level, message)

    return sink


class _UnitScope(logging.Filter):
    """Derive the ``unit_label`` and ``scope`` format fields from ``record.unit``."""

    def filter(self, record: logging.LogRecord) -> bool:
        unit = getattr(record, "unit", None)
        record.unit_label = unit or "-"
        record.scope = f":{unit}" if unit else ""
        return True


def configure_logging(
    *, verbose: bool = False, log_file: Path | None = None
) -> logging.Logger:
    """Configure the uibuild logger with console output and optional file sink."""
    level = logging.DEBUG if verbose else logging.INFO
    logger = logging.getLogger(_LOGGER_NAME)
    logger.setLevel(level)
    logger.propagate = False

    # Repeated CLI invocations in one process must not stack handlers.
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    stream_handler = logging.StreamHandler()
    stream_handler.setLevel(level)
    stream_handler.addFilter(_UnitScope())
    stream_handler.setFormatter(logging.Formatter("[uibuild%(scope)s] %(levelname)s %(message)s"))
    logger.addHandler(stream_handler)

    if log_file is not None:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.addFilter(_UnitScope())
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s [%(unit_label)s]: %(message)s")
        )
        logger.addHandler(file_handler)

    return logger


__all__ = ["Sink", "UnitLogger", "configure_logging", "get_logger", "logger_sink", "unit_logger"]
