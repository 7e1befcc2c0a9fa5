"""Logging utilities for svcgen commands."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Mapping

_LOGGER_NAME = "svcgen"
LOG_LEVEL_ENV = "SVCGEN_LOG_LEVEL"


class ComponentFormatter(logging.Formatter):
    """Tags console records with the svcgen component that emitted them.

    ``svcgen.merge`` renders as ``[svcgen:merge]``; the root logger as ``[svcgen]``.
    """

    def format(self, record: logging.LogRecord) -> str:
        component = record.name.partition(".")[2]
        record.component = f"{_LOGGER_NAME}:{component}" if component else _LOGGER_NAME
        return super().format(record)


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a module-scoped logger under the svcgen hierarchy."""
    full_name = f"{_LOGGER_NAME}.{name}" if name else _LOGGER_NAME
    return logging.getLogger(full_name)


def resolve_level(verbose: bool, environ: Mapping[str, str] | None = None) -> int:
    """``--verbose`` wins; otherwise SVCGEN_LOG_LEVEL, defaulting to INFO."""
    if verbose:
        return logging.DEBUG
    env = os.environ if environ is None else environ
    name = env.get(LOG_LEVEL_ENV, "").strip().upper()
    level = logging.getLevelName(name) if name else logging.INFO
    return level if isinstance(level, int) else logging.INFO


def configure_logging(
    *, verbose: bool = False, log_file: Path | None = None
) -> logging.Logger:
    """Configure console output and an optional DEBUG file sink for the svcgen logger."""
    level = resolve_level(verbose)
    logger = logging.getLogger(_LOGGER_NAME)
    logger.propagate = False

    # Repeated CLI runs in one process must not stack handlers.
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler()
    console.setLevel(level)
    console.setFormatter(ComponentFormatter("[%(component)s] %(levelname)s %(message)s"))
    logger.addHandler(console)

    if log_file is not None:
        sink = logging.FileHandler(log_file, encoding="utf-8")
        sink.setLevel(logging.DEBUG)
        sink.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
        logger.addHandler(sink)
        level = logging.DEBUG

    logger.setLevel(level)
    return logger


__all__ = ["ComponentFormatter", "LOG_LEVEL_ENV", "configure_logging", "get_logger", "resolve_level"]
