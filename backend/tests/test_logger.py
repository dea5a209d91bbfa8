"""Tests for app.core.logger console logging setup."""

from __future__ import annotations

import logging

from app.core import logger


def _app_handlers() -> list[logging.Handler]:
    return list(logging.getLogger(logger.APP_LOGGER_NAME).handlers)


def test_configure_logging_is_idempotent() -> None:
    """Test that repeated calls attach a single handler."""
    logger.configure_logging("INFO")
    logger.configure_logging("DEBUG")
    assert len(_app_handlers()) == 1
    assert logging.getLogger("app").level == logging.DEBUG


def test_configure_logging_unknown_level() -> None:
    """Test that an unknown level name falls back to INFO."""
    configured = logger.configure_logging("chatty")
    assert configured.level == logging.INFO


def test_module_loggers_propagate_to_app() -> None:
    """Test that module loggers reach the configured handler."""
    logger.configure_logging(logging.WARNING)
    child = logging.getLogger("app.services.cache")
    assert child.getEffectiveLevel() == logging.WARNING
