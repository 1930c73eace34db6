"""
Tests for the API retry infrastructure.

Verifies:
- Error classification (builtin, httpx, status codes, provider errors)
- Conversion to ProviderError subclasses
- Exponential backoff calculation
- Retry decision logic and deadline handling
- Retry handler execution

Run with: pytest tests/test_api_retry.py -v
"""

import httpx
import pytest
from unittest.mock import Mock

from core.api_retry import (
    RetryableErrorType,
    classify_error,
    is_retryable,
    to_provider_error,
    RetryConfig,
    RetryHandler,
    DEFAULT_LLM_RETRY,
    DEFAULT_SEARCH_RETRY,
)
from core.errors import (
    MalformedProviderResponse,
    ProviderRateLimited,
    ProviderTimeout,
    ProviderUnavailable,
)


def _status_error(status: int) -> httpx.HTTPStatusError:
    request = httpx.Request("POST", "https://api.trieve.ai/api/chunk/search")
    response = httpx.Response(status, request=request)
    return httpx.HTTPStatusError(f"HTTP {status}", request=request, response=response)


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.now += seconds


class TestErrorClassification:
    """Tests for error classification."""

    def test_rate_limit_error(self):
        """Rate limit errors should be classified correctly."""
        error = Exception("RateLimitError: 429 Too Many Requests")
        assert classify_error(error) == RetryableErrorType.RATE_LIMIT

    def test_timeout_error(self):
        """Timeout errors should be classified correctly."""
        error = TimeoutError("Connection timed out")
        assert classify_error(error) == RetryableErrorType.TIMEOUT

    def test_httpx_timeout(self):
        assert classify_error(httpx.ReadTimeout("read timed out")) == RetryableErrorType.TIMEOUT

    def test_httpx_connect_error(self):
        assert classify_error(httpx.ConnectError("refused")) == RetryableErrorType.CONNECTION_ERROR

    def test_connection_error(self):
        """Connection errors should be classified correctly."""
        error = ConnectionError("Failed to connect")
        assert classify_error(error) == RetryableErrorType.CONNECTION_ERROR

    def test_status_codes(self):
        assert classify_error(_status_error(429)) == RetryableErrorType.RATE_LIMIT
        assert classify_error(_status_error(503)) == RetryableErrorType.SERVER_ERROR
        assert classify_error(_status_error(401)) == RetryableErrorType.AUTH_ERROR
        assert classify_error(_status_error(404)) == RetryableErrorType.NOT_FOUND
        assert classify_error(_status_error(422)) == RetryableErrorType.BAD_REQUEST

    def test_provider_errors(self):
        assert classify_error(ProviderTimeout("slow", provider="llm")) == RetryableErrorType.TIMEOUT
        assert classify_error(ProviderRateLimited("busy", provider="llm")) == RetryableErrorType.RATE_LIMIT
        assert classify_error(MalformedProviderResponse("junk", provider="llm")) == RetryableErrorType.MALFORMED

    def test_auth_error(self):
        """Auth errors should be classified correctly."""
        error = Exception("401 Unauthorized")
        assert classify_error(error) == RetryableErrorType.AUTH_ERROR

    def test_unknown_error(self):
        """Unknown errors should be classified as unknown."""
        error = Exception("Something weird happened")
        assert classify_error(error) == RetryableErrorType.UNKNOWN

    def test_is_retryable_rate_limit(self):
        """Rate limit errors should be retryable."""
        assert is_retryable(Exception("rate limit exceeded")) is True

    def test_is_retryable_timeout(self):
        """Timeout errors should be retryable."""
        assert is_retryable(TimeoutError("timeout")) is True

    def test_is_retryable_auth_error(self):
        """Auth errors should not be retryable."""
        assert is_retryable(Exception("authentication failed")) is False

    def test_malformed_not_retryable(self):
        """A provider that answered with junk will answer with junk again."""
        assert is_retryable(MalformedProviderResponse("junk", provider="search")) is False


class TestToProviderError:
    """Tests for converting failures into ProviderError subclasses."""

    def test_timeout(self):
        error = to_provider_error(httpx.ReadTimeout("read timed out"), "search")
        assert isinstance(error, ProviderTimeout)
        assert error.provider == "search"
        assert error.audit_note.startswith("search timeout")

    def test_rate_limit_keeps_status(self):
        error = to_provider_error(_status_error(429), "llm")
        assert isinstance(error, ProviderRateLimited)
        assert error.status_code == 429

    def test_other_errors_are_unavailable(self):
        error = to_provider_error(_status_error(500), "llm")
        assert isinstance(error, ProviderUnavailable)

    def test_provider_error_passes_through(self):
        original = ProviderTimeout("slow", provider="llm")
        assert to_provider_error(original, "search") is original


class TestRetryConfig:
    """Tests for retry configuration."""

    def test_default_config(self):
        """Default config should have reasonable values."""
        config = RetryConfig()
        assert config.max_attempts == 3
        assert config.base_delay == 1.0
        assert config.max_delay == 60.0
        assert config.jitter is True

    def test_provider_defaults_single_attempt(self):
        """A chat turn makes one call per provider unless configured otherwise."""
        assert DEFAULT_LLM_RETRY.max_attempts == 1
        assert DEFAULT_SEARCH_RETRY.max_attempts == 1


class TestRetryHandler:
    """Tests for RetryHandler."""

    def test_calculate_delay_exponential(self):
        """Delay should increase exponentially."""
        config = RetryConfig(base_delay=1.0, exponential_base=2.0, jitter=False)
        handler = RetryHandler(config=config)

        assert handler.calculate_delay(0) == 1.0   # 1 * 2^0 = 1
        assert handler.calculate_delay(1) == 2.0   # 1 * 2^1 = 2
        assert handler.calculate_delay(2) == 4.0   # 1 * 2^2 = 4

    def test_calculate_delay_capped(self):
        """Delay should be capped at max_delay."""
        config = RetryConfig(base_delay=1.0, max_delay=5.0, exponential_base=2.0, jitter=False)
        handler = RetryHandler(config=config)

        assert handler.calculate_delay(10) == 5.0

    def test_calculate_delay_with_jitter(self):
        """Delay with jitter stays near the base delay."""
        config = RetryConfig(base_delay=1.0, jitter=True, jitter_range=0.5)
        handler = RetryHandler(config=config)

        for delay in [handler.calculate_delay(0) for _ in range(10)]:
            assert 0.05 <= delay <= 1.5

    def test_should_retry_within_attempts(self):
        """Should retry if within attempt limit and error is retryable."""
        handler = RetryHandler(config=RetryConfig(max_attempts=3))

        error = TimeoutError("timeout")
        assert handler.should_retry(error, attempt=0) is True
        assert handler.should_retry(error, attempt=1) is True
        assert handler.should_retry(error, attempt=2) is False  # At limit

    def test_should_not_retry_non_retryable(self):
        handler = RetryHandler(config=RetryConfig(max_attempts=3))
        assert handler.should_retry(Exception("authentication failed"), attempt=0) is False

    def test_should_retry_specific_exceptions(self):
        """Should retry only specified exception types."""
        handler = RetryHandler(config=RetryConfig(max_attempts=3, retry_on=[ValueError]))

        assert handler.should_retry(ValueError("test"), attempt=0) is True
        assert handler.should_retry(TypeError("test"), attempt=0) is False

    def test_execute_success_first_try(self):
        handler = RetryHandler()
        mock_func = Mock(return_value="success")

        assert handler.execute(mock_func) == "success"
        assert mock_func.call_count == 1

    def test_execute_success_after_retry(self):
        """Successful execution after retries."""
        sleep = Mock()
        handler = RetryHandler(config=RetryConfig(base_delay=0.01, jitter=False), sleep=sleep)
        mock_func = Mock(side_effect=[TimeoutError("timeout"), TimeoutError("timeout"), "success"])

        assert handler.execute(mock_func) == "success"
        assert mock_func.call_count == 3
        assert sleep.call_count == 2

    def test_execute_raises_last_error(self):
        """All attempts fail: the last error propagates."""
        handler = RetryHandler(config=RetryConfig(max_attempts=2, jitter=False), sleep=Mock())
        mock_func = Mock(side_effect=[TimeoutError("first"), TimeoutError("second")])

        with pytest.raises(TimeoutError, match="second"):
            handler.execute(mock_func)
        assert mock_func.call_count == 2

    def test_execute_stops_on_non_retryable(self):
        """Stop retrying on non-retryable errors."""
        handler = RetryHandler(config=RetryConfig(max_attempts=3, jitter=False), sleep=Mock())

        mock_func = Mock(side_effect=Exception("401 Unauthorized"))

        with pytest.raises(Exception, match="401"):
            handler.execute(mock_func)
        assert mock_func.call_count == 1

    def test_deadline_prevents_late_retry(self):
        """No retry is started when its backoff would end after the deadline."""
        clock = FakeClock()
        handler = RetryHandler(
            config=RetryConfig(max_attempts=5, base_delay=1.0, jitter=False),
            sleep=clock.sleep,
            clock=clock,
        )
        mock_func = Mock(side_effect=TimeoutError("timeout"))

        with pytest.raises(TimeoutError):
            handler.execute(mock_func, deadline=2.5)

        # attempt 1 at t=0, wait 1s, attempt 2 at t=1, next wait 2s would end at t=3
        assert mock_func.call_count == 2
        assert clock() == 1.0

    def test_single_attempt_never_sleeps(self):
        sleep = Mock()
        handler = RetryHandler(config=DEFAULT_LLM_RETRY, sleep=sleep)

        with pytest.raises(TimeoutError):
            handler.execute(Mock(side_effect=TimeoutError("timeout")))
        sleep.assert_not_called()
