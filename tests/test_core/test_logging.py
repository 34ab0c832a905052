"""
Tests for gateway_pipeline.core.logging
=========================================
"""

import logging

import structlog

from gateway_pipeline.core.logging import configure_logging


class TestConfigureLogging:

    def setup_method(self) -> None:
        self._root_level = logging.getLogger().level

    def teardown_method(self) -> None:
        structlog.reset_defaults()
        logging.getLogger().setLevel(self._root_level)

    def test_sets_root_level(self) -> None:
        configure_logging("warning")
        assert logging.getLogger().level == logging.WARNING

    def test_unknown_level_falls_back_to_info(self) -> None:
        configure_logging("chatty")
        assert logging.getLogger().level == logging.INFO

    def test_renderer_choice(self) -> None:
        configure_logging("INFO", json_output=True)
        assert isinstance(structlog.get_config()["processors"][-1], structlog.processors.JSONRenderer)

        configure_logging("INFO")
        assert isinstance(structlog.get_config()["processors"][-1], structlog.dev.ConsoleRenderer)
