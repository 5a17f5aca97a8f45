"""Tests for structured logging setup."""

from __future__ import annotations

import logging

import structlog

from records_recon.core.config import ObservabilityConfig
from records_recon.hooks.logging_config import setup_logging


class TestSetupLogging:
    def test_installs_single_structlog_handler(self) -> None:
        root = logging.getLogger()
        saved_handlers, saved_level = list(root.handlers), root.level
        try:
            setup_logging(ObservabilityConfig(log_level="debug"), force_json=True)
            assert len(root.handlers) == 1
            assert isinstance(root.handlers[0].formatter, structlog.stdlib.ProcessorFormatter)
            assert logging.getLogger("records_recon").level == logging.DEBUG
            assert logging.getLogger("LiteLLM").level == logging.WARNING
        finally:
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)
            structlog.reset_defaults()
