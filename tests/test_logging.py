"""Tests for Courier structured logging."""

import structlog

from courier.logging import (
    REDACTED,
    bind_context,
    clear_context,
    configure_logging,
    delivery_log_context,
    get_logger,
    redact_sensitive,
    unbind_context,
)


class TestConfigureLogging:
    """Tests for logging configuration."""

    def test_configure_with_defaults(self):
        """Should configure JSON rendering by default."""
        configure_logging()

        processors = structlog.get_config()["processors"]
        assert isinstance(processors[-1], structlog.processors.JSONRenderer)
        get_logger("test").info("test message")

    def test_configure_with_text_format(self):
        """Should render to the console in text format."""
        configure_logging(level="INFO", format="text")

        processors = structlog.get_config()["processors"]
        assert isinstance(processors[-1], structlog.dev.ConsoleRenderer)
        get_logger("test").info("text format message")

    def test_unknown_level_falls_back(self):
        configure_logging(level="CHATTY")
        get_logger("test").info("still logs")

    def test_configure_multiple_times(self):
        """Should handle multiple configuration calls."""
        configure_logging(level="INFO")
        configure_logging(level="DEBUG")
        get_logger("test").debug("after reconfigure")


class TestGetLogger:
    """Tests for logger creation."""

    def test_loggers_are_callable(self):
        logger = get_logger("courier.webhooks")
        # structlog returns a lazy proxy that becomes a BoundLogger when used
        for method in ("debug", "info", "warning", "error", "exception"):
            assert callable(getattr(logger, method, None))

    def test_get_logger_without_name(self):
        assert get_logger() is not None


class TestContextBinding:
    """Tests for context variable binding."""

    def setup_method(self):
        clear_context()

    def teardown_method(self):
        clear_context()

    def test_bind_context(self):
        bind_context(delivery_id="dlv_123", webhook_id="whk_abc")

        assert structlog.contextvars.get_contextvars() == {
            "delivery_id": "dlv_123",
            "webhook_id": "whk_abc",
        }

    def test_unbind_specific_context(self):
        bind_context(delivery_id="dlv_123", attempt=2)
        unbind_context("attempt")

        assert structlog.contextvars.get_contextvars() == {"delivery_id": "dlv_123"}

    def test_clear_context(self):
        bind_context(delivery_id="dlv_123")
        clear_context()

        assert structlog.contextvars.get_contextvars() == {}


class TestLoggerUsage:
    """Tests for logger usage patterns."""

    def test_log_with_kwargs(self):
        configure_logging()
        get_logger("test").info(
            "Delivery attempt finished",
            delivery_id="dlv_123",
            http_status=200,
            duration_ms=41,
        )

    def test_log_with_exception(self):
        configure_logging()
        logger = get_logger("test")

        try:
            raise ValueError("test error")
        except ValueError:
            logger.exception("caught an error")

    def test_import_module_logger(self):
        from courier.logging import logger

        assert logger is not None
        logger.info("using module logger")


class TestRedaction:
    """Tests for the redaction processor."""

    def test_secret_keys_are_masked(self):
        event = redact_sensitive(
            None, "info", {"event": "rotated", "secret_key": "whsec_abc", "webhook_id": "whk_1"}
        )

        assert event == {"event": "rotated", "secret_key": REDACTED, "webhook_id": "whk_1"}

    def test_key_match_is_case_insensitive(self):
        event = redact_sensitive(None, "info", {"event": "x", "Authorization": "Bearer t"})

        assert event["Authorization"] == REDACTED

    def test_headers_mapping_is_masked(self):
        event = redact_sensitive(
            None,
            "info",
            {"event": "x", "headers": {"Authorization": "Bearer t", "X-Team": "billing"}},
        )

        assert event["headers"] == {"Authorization": REDACTED, "X-Team": "billing"}

    def test_redaction_is_installed(self):
        configure_logging(format="json")

        assert redact_sensitive in structlog.get_config()["processors"]


class TestDeliveryLogContext:
    """Tests for delivery_log_context."""

    def setup_method(self):
        clear_context()

    def teardown_method(self):
        clear_context()

    def test_binds_for_the_block(self):
        with delivery_log_context("dlv_1", "whk_1", "invoice.paid"):
            assert structlog.contextvars.get_contextvars() == {
                "delivery_id": "dlv_1",
                "webhook_id": "whk_1",
                "event_type": "invoice.paid",
            }

        assert structlog.contextvars.get_contextvars() == {}

    def test_keeps_outer_context(self):
        bind_context(storage_backend="memory")

        with delivery_log_context("dlv_1", "whk_1"):
            assert structlog.contextvars.get_contextvars() == {
                "storage_backend": "memory",
                "delivery_id": "dlv_1",
                "webhook_id": "whk_1",
            }

        assert structlog.contextvars.get_contextvars() == {"storage_backend": "memory"}
