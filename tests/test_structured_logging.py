"""
Tests for the structured logging infrastructure.

Verifies that:
- JSON and console formats are correct
- All log functions emit their events
- Timer and context managers work

Run with: pytest tests/test_structured_logging.py -v
"""

import json
import logging

import pytest

from core.structured_logging import (
    get_logger,
    JSONFormatter,
    ConsoleFormatter,
    LogContext,
    Timer,
    log_cache,
    log_conversation_turn,
    log_error,
    log_filters,
    log_llm_call,
    log_search,
    timed,
)


def _record(msg: str = "Test message", name: str = "test", level: int = logging.INFO) -> logging.LogRecord:
    return logging.LogRecord(
        name=name,
        level=level,
        pathname="",
        lineno=0,
        msg=msg,
        args=(),
        exc_info=None,
    )


class TestJSONFormatter:
    """Tests for JSON log formatting."""

    def test_basic_format(self):
        """Test that basic log record is formatted as JSON."""
        data = json.loads(JSONFormatter().format(_record()))

        assert data["level"] == "INFO"
        assert data["logger"] == "test"
        assert data["message"] == "Test message"
        assert data["timestamp"].endswith("Z")

    def test_extra_fields(self):
        """Whitelisted extras are included, others are not."""
        record = _record()
        record.session_id = "test-session"
        record.user_query = "red bag under $100"
        record.candidate_source = "catalog"
        record.secret_token = "should-not-appear"

        data = json.loads(JSONFormatter().format(record))

        assert data["session_id"] == "test-session"
        assert data["user_query"] == "red bag under $100"
        assert data["candidate_source"] == "catalog"
        assert "secret_token" not in data

    def test_non_ascii_kept(self):
        record = _record(msg="Çantë e kuqe")
        assert "Çantë e kuqe" in JSONFormatter().format(record)


class TestConsoleFormatter:
    """Tests for console log formatting."""

    def test_basic_format(self):
        """Test that console output is human-readable."""
        record = _record(name="albi.core.search")
        record.session_id = "abc123"
        result = ConsoleFormatter().format(record)

        assert "INFO" in result
        assert "albi.core.search" in result
        assert "Test message" in result
        assert "session_id=abc123" in result


class TestLogContext:
    """Tests for logging context manager."""

    def test_context_manager(self):
        """Test that LogContext tracks timing."""
        with LogContext(session_id="test-123") as ctx:
            assert ctx.session_id == "test-123"
            _ = sum(range(1000))

        assert ctx.elapsed_ms() > 0

    def test_auto_generated_session_id(self):
        with LogContext() as ctx:
            assert len(ctx.session_id) == 8

    def test_exceptions_propagate(self):
        with pytest.raises(ValueError):
            with LogContext(session_id="s1"):
                raise ValueError("boom")


class TestTimer:
    """Tests for Timer context manager."""

    def test_timer_measures_time(self):
        with Timer() as t:
            _ = sum(range(1000))

        assert t.elapsed_ms > 0
        assert t.end_time > t.start_time


class TestLoggingFunctions:
    """Tests for convenience logging functions."""

    def test_log_filters(self, caplog):
        with caplog.at_level(logging.INFO, logger="albi"):
            log_filters(
                session_id="test",
                query="red bag under $100",
                filters={"color": "red", "max_price": 100.0},
                extraction_time_ms=0.5,
            )
        record = caplog.records[-1]
        assert record.event == "filter_extraction"
        assert record.filters == {"color": "red", "max_price": 100.0}

    def test_log_search(self, caplog):
        with caplog.at_level(logging.INFO, logger="albi"):
            log_search(
                session_id="test",
                source="session",
                products_found=1,
                search_time_ms=2.0,
                excluded=2,
            )
        record = caplog.records[-1]
        assert record.candidate_source == "session"
        assert record.excluded == 2

    def test_log_llm_call_failure_is_warning(self, caplog):
        with caplog.at_level(logging.INFO, logger="albi"):
            log_llm_call(
                session_id="test",
                model="llama-3.1-70b-versatile",
                latency_ms=10000.0,
                success=False,
                error="timeout",
            )
        record = caplog.records[-1]
        assert record.levelno == logging.WARNING
        assert record.success is False

    def test_log_cache_is_debug(self, caplog):
        with caplog.at_level(logging.DEBUG, logger="albi"):
            log_cache("search", "search:red bag:10", hit=True)
        record = caplog.records[-1]
        assert record.levelno == logging.DEBUG
        assert record.cache_hit is True

    def test_log_error(self, caplog):
        with caplog.at_level(logging.ERROR, logger="albi"):
            try:
                raise ValueError("Test error")
            except ValueError as e:
                log_error(session_id="test", error=e, context="Testing error logging")
        record = caplog.records[-1]
        assert record.error_type == "ValueError"
        assert record.context == "Testing error logging"

    def test_log_conversation_turn(self, caplog):
        with caplog.at_level(logging.INFO, logger="albi"):
            log_conversation_turn(
                session_id="s1",
                user_query="under $100",
                intent_result="followup",
                intent_confidence=0.85,
                products_found=1,
                products_shown=1,
                product_ids=["tote-80", "tote-90"],
                candidate_source="session",
                audit_notes="Context-based filtering: 1 of 3 previous results matched",
                response_time_ms=12.345,
            )
        record = caplog.records[-1]
        assert record.event == "conversation_turn"
        assert record.product_ids == "tote-80|tote-90"
        assert record.response_time_ms == 12.35


class TestTimedDecorator:
    """Tests for @timed decorator."""

    def test_timed_decorator(self):
        @timed("test_operation")
        def slow_function():
            return sum(range(1000))

        assert slow_function() == sum(range(1000))

    def test_timed_decorator_with_exception(self):
        @timed("failing_operation")
        def failing_function():
            raise ValueError("Intentional failure")

        with pytest.raises(ValueError):
            failing_function()


class TestGetLogger:
    """Tests for logger retrieval."""

    def test_get_logger_namespace(self):
        assert get_logger("my_module").name == "albi.my_module"
        assert get_logger("albi.core.search").name == "albi.core.search"

    def test_get_logger_caches_loggers(self):
        assert get_logger("cached_module") is get_logger("cached_module")
