"""Test the centralized logging functionality."""

import logging
from io import StringIO

from flushplan.logging import (
    ROOT_LOGGER_NAME,
    disable_debug_logging,
    enable_debug_logging,
    get_logger,
    reset_logging,
    set_global_log_level,
    setup_root_logger,
)


def test_centralized_logging(clean_logging):
    """Child loggers follow the package root level."""
    logger = get_logger("flushplan.test")

    log_capture = StringIO()
    handler = logging.StreamHandler(log_capture)
    handler.setLevel(logging.DEBUG)
    logger.handlers.clear()
    logger.addHandler(handler)

    logger.info("Test info message")
    assert "Test info message" in log_capture.getvalue()

    log_capture.seek(0)
    log_capture.truncate(0)
    logger.debug("Test debug message")
    assert "Test debug message" not in log_capture.getvalue()

    enable_debug_logging()
    logger.debug("Test debug message after enable")
    assert "Test debug message after enable" in log_capture.getvalue()

    disable_debug_logging()
    logger.debug("Hidden again")
    assert "Hidden again" not in log_capture.getvalue()
    logger.removeHandler(handler)


def test_logger_naming():
    logger = get_logger("flushplan.schedule.test")
    assert logger.name == "flushplan.schedule.test"
    assert logger.level == logging.NOTSET


def test_multiple_loggers(clean_logging):
    logger1 = get_logger("flushplan.module1")
    logger2 = get_logger("flushplan.module2")
    assert logger1 is not logger2

    set_global_log_level(logging.WARNING)
    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    assert root_logger.level == logging.WARNING
    assert logger1.getEffectiveLevel() == logging.WARNING
    assert logger2.getEffectiveLevel() == logging.WARNING


def test_setup_is_idempotent(clean_logging):
    first = logging.StreamHandler(StringIO())
    second = logging.StreamHandler(StringIO())
    setup_root_logger(handler=first)
    setup_root_logger(handler=second)
    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    assert root_logger.handlers == [first]


def test_custom_format(clean_logging):
    capture = StringIO()
    setup_root_logger(
        level=logging.DEBUG,
        format_string="%(levelname)s|%(message)s",
        handler=logging.StreamHandler(capture),
    )
    get_logger("flushplan.fmt").debug("formatted")
    assert "DEBUG|formatted" in capture.getvalue()


def test_reset_clears_handlers():
    setup_root_logger()
    reset_logging()
    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    assert root_logger.handlers == []
    assert root_logger.level == logging.NOTSET
    setup_root_logger()
