"""Tests for Hookline structured logging."""

import pytest
import structlog

from hookline.config import Settings
from hookline.logging import (
    REDACTED,
    bind_context,
    clear_context,
    configure_from_settings,
    configure_logging,
    delivery_context,
    get_logger,
    redact_secrets,
    unbind_context,
)


class TestConfigureLogging:
    """Tests for logging configuration."""

    def test_configure_with_defaults(self):
        """Should configure with INFO level and JSON format by default."""
        configure_logging()
        logger = get_logger("test")
        logger.info("test message")

    def test_configure_with_text_format(self):
        """Should accept text format for development."""
        configure_logging(level="DEBUG", format="text")
        logger = get_logger("test")
        logger.debug("text format message")

    def test_configure_multiple_times(self):
        configure_logging(level="INFO")
        configure_logging(level="WARNING")
        logger = get_logger("test")
        logger.warning("after reconfigure")

    def test_unknown_level_falls_back(self):
        configure_logging(level="LOUD")
        get_logger("test").info("still works")


class TestGetLogger:
    """Tests for logger creation."""

    def test_get_logger_with_name(self):
        assert get_logger("hookline.webhooks") is not None

    def test_loggers_are_callable(self):
        logger = get_logger("test")
        assert callable(getattr(logger, "info", None))
        assert callable(getattr(logger, "exception", None))


class TestContextBinding:
    """Tests for context variable binding."""

    def setup_method(self):
        clear_context()

    def teardown_method(self):
        clear_context()

    def test_bind_context(self):
        bind_context(delivery_id="dlv_123", worker_id="worker-0")
        bound = structlog.contextvars.get_contextvars()
        assert bound == {"delivery_id": "dlv_123", "worker_id": "worker-0"}

    def test_clear_context(self):
        bind_context(delivery_id="dlv_123")
        clear_context()
        assert structlog.contextvars.get_contextvars() == {}

    def test_unbind_specific_context(self):
        bind_context(delivery_id="dlv_123", worker_id="worker-0")
        unbind_context("worker_id")
        assert structlog.contextvars.get_contextvars() == {"delivery_id": "dlv_123"}


class TestModuleLevelLogger:
    """Tests for the pre-configured module-level logger."""

    def test_import_logger(self):
        from hookline.logging import logger

        assert logger is not None
        logger.info("using module logger")


class TestDeliveryContext:
    """Tests for the delivery_context() block."""

    def setup_method(self):
        clear_context()

    def teardown_method(self):
        clear_context()

    def test_binds_and_restores(self):
        bind_context(request_id="req_1")

        with delivery_context("dlv_123", worker_id="worker-2"):
            assert structlog.contextvars.get_contextvars() == {
                "request_id": "req_1",
                "delivery_id": "dlv_123",
                "worker_id": "worker-2",
            }

        assert structlog.contextvars.get_contextvars() == {"request_id": "req_1"}

    def test_unbinds_on_error(self):
        with pytest.raises(RuntimeError), delivery_context("dlv_123"):
            raise RuntimeError("boom")

        assert structlog.contextvars.get_contextvars() == {}


class TestRedactSecrets:
    """Tests for the secret-masking processor."""

    def test_masks_sensitive_keys(self):
        event = {"event": "rotated", "secret": "abc", "new_secret": "def", "subscription_id": "sub_1"}

        result = redact_secrets(None, "info", event)

        assert result["secret"] == REDACTED
        assert result["new_secret"] == REDACTED
        assert result["subscription_id"] == "sub_1"

    def test_leaves_empty_values(self):
        event = {"event": "rotated", "previous_secret": None}

        assert redact_secrets(None, "info", event)["previous_secret"] is None

    def test_configure_from_settings(self):
        configure_from_settings(Settings(env="test", log_level="DEBUG", log_format="text"))
        get_logger("test").debug("configured from settings", secret="hidden")
