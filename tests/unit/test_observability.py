"""
Unit tests for logging setup.
"""

import logging

import json_log_formatter
import pytest

from ancestree.config import ObservabilityConfig
from ancestree.observability import setup_logging


class TestSetupLogging:
    """Tests for setup_logging."""

    @pytest.fixture(autouse=True)
    def restore_root_logger(self):
        root = logging.getLogger()
        handlers, level = root.handlers[:], root.level
        yield
        root.handlers = handlers
        root.setLevel(level)

    def test_json_format(self):
        setup_logging(ObservabilityConfig(log_level="DEBUG", log_format="json"))

        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert isinstance(root.handlers[0].formatter, json_log_formatter.JSONFormatter)

    def test_text_format(self):
        setup_logging(ObservabilityConfig(log_level="warning", log_format="text"))

        root = logging.getLogger()
        assert root.level == logging.WARNING
        assert not isinstance(root.handlers[0].formatter, json_log_formatter.JSONFormatter)

    def test_unknown_level_falls_back_to_info(self):
        setup_logging(ObservabilityConfig(log_level="chatty"))

        assert logging.getLogger().level == logging.INFO
