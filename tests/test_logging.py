"""Tests for svcgen.logging."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from svcgen.logging import ComponentFormatter, configure_logging, get_logger, resolve_level


@pytest.fixture(autouse=True)
def _restore_handlers():
    logger = logging.getLogger("svcgen")
    handlers, level, propagate = list(logger.handlers), logger.level, logger.propagate
    yield
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    for handler in handlers:
        logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = propagate


def test_component_formatter_tags_child_loggers() -> None:
    formatter = ComponentFormatter("[%(component)s] %(message)s")
    child = logging.LogRecord("svcgen.merge", logging.INFO, __file__, 1, "merged", None, None)
    root = logging.LogRecord("svcgen", logging.INFO, __file__, 1, "started", None, None)

    assert formatter.format(child) == "[svcgen:merge] merged"
    assert formatter.format(root) == "[svcgen] started"


@pytest.mark.parametrize(
    ("verbose", "environ", "expected"),
    [
        (False, {}, logging.INFO),
        (True, {"SVCGEN_LOG_LEVEL": "error"}, logging.DEBUG),
        (False, {"SVCGEN_LOG_LEVEL": "warning"}, logging.WARNING),
        (False, {"SVCGEN_LOG_LEVEL": "chatty"}, logging.INFO),
    ],
)
def test_resolve_level(verbose: bool, environ: dict[str, str], expected: int) -> None:
    assert resolve_level(verbose, environ) == expected


def test_configure_logging_does_not_stack_handlers() -> None:
    configure_logging()
    logger = configure_logging()

    assert len(logger.handlers) == 1
    assert logger.level == logging.INFO


def test_log_file_receives_debug_records(tmp_path: Path) -> None:
    log_file = tmp_path / "svcgen.log"
    logger = configure_logging(log_file=log_file)

    get_logger("merge").debug("first generation")
    for handler in logger.handlers:
        handler.flush()

    assert "DEBUG svcgen.merge: first generation" in log_file.read_text(encoding="utf-8")
    assert logger.handlers[0].level == logging.INFO
