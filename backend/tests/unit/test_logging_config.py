"""Unit tests for the structlog logging configuration."""

import logging

import structlog

from assistant_sync.logging_config import setup_logging


class TestSetupLogging:
    def test_setup_logging_runs_without_error_debug(self):
        setup_logging(debug=True)
        logger = structlog.get_logger("test")
        # Should not raise
        logger.info("test_event", key="value")

    def test_setup_logging_runs_without_error_production(self):
        setup_logging(debug=False)
        logger = structlog.get_logger("test")
        # Should not raise
        logger.info("test_event", key="value")

    def test_quiets_sdk_loggers(self):
        setup_logging(debug=True)
        assert logging.getLogger("pinecone").level == logging.WARNING
        assert logging.getLogger("urllib3").level == logging.WARNING


class TestStructlogContextBinding:
    def test_context_binding_works(self):
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id="test-123", block_id="block-7")

        bound = structlog.contextvars.get_contextvars()
        assert bound["request_id"] == "test-123"
        assert bound["block_id"] == "block-7"

        structlog.contextvars.clear_contextvars()
        assert structlog.contextvars.get_contextvars() == {}
