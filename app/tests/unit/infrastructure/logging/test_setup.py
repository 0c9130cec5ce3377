"""Unit tests for structlog setup."""

import logging
from unittest.mock import MagicMock, patch

import pytest
import structlog

from infrastructure.logging import setup
from infrastructure.logging.setup import (
    NOISY_LOGGERS,
    configure_logging,
    get_module_logger,
)


@pytest.fixture
def restore_test_logging():
    yield
    configure_logging()


@pytest.mark.unit
class TestConfigureLogging:
    """Tests for configure_logging."""

    def test_is_test_environment_detects_pytest(self):
        assert setup._is_test_environment() is True

    def test_test_environment_suppresses_root_logger(self):
        configure_logging()
        assert logging.root.level == logging.CRITICAL + 1

    def test_production_renders_json(self):
        processors = setup._processors(prod_mode=True)
        assert isinstance(processors[-1], structlog.processors.JSONRenderer)

    def test_development_renders_console(self):
        processors = setup._processors(prod_mode=False)
        assert isinstance(processors[-1], structlog.dev.ConsoleRenderer)

    def test_noisy_loggers_clamped_to_warning(self, restore_test_logging):
        settings = MagicMock(LOG_LEVEL="INFO", is_production=True)
        with patch.object(setup, "_is_test_environment", return_value=False), patch.object(
            setup, "get_settings", return_value=settings
        ):
            logger = configure_logging(log_level="DEBUG")

        assert hasattr(logger, "bind")
        for name in NOISY_LOGGERS:
            assert logging.getLogger(name).level == logging.WARNING


@pytest.mark.unit
class TestGetModuleLogger:
    """Tests for get_module_logger."""

    def test_binds_calling_module(self):
        logger = get_module_logger()
        context = logger._context

        assert context["module_path"] == __name__
        assert context["component"] == __name__.rsplit(".", 1)[-1]

    def test_handles_missing_frame(self):
        with patch("inspect.currentframe", return_value=None):
            logger = get_module_logger()

        assert logger._context == {"component": "unknown"}

    def test_logger_accepts_exception_info(self):
        logger = get_module_logger()
        try:
            raise ValueError("boom")
        except ValueError:
            logger.exception("test_error")
