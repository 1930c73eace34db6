"""
API retry infrastructure for the Albi Mall assistant.

Runs outbound provider calls (search, text generation) with exponential
backoff, jitter and an overall deadline, and classifies failures so the
callers can turn them into the right ProviderError.

Features:
- Exponential backoff with configurable base and max delays
- Random jitter to prevent thundering herd
- Retryable vs non-retryable error classification (httpx, openai, status codes)
- Deadline: no retry is started that would end after the deadline
- Logging of every retry attempt

Usage:
    handler = RetryHandler(config=DEFAULT_LLM_RETRY, operation_name="llm_complete")
    result = handler.execute(lambda: client.chat.completions.create(...), deadline=10.0)
"""

import random
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Type, TypeVar

from core.errors import (
    MalformedProviderResponse,
    ProviderRateLimited,
    ProviderTimeout,
    ProviderUnavailable,
)
from core.structured_logging import get_logger

# Type variable for generic return types
T = TypeVar('T')

# Module logger
_logger = get_logger("core.api_retry")


# =============================================================================
# Error Classification
# =============================================================================

class RetryableErrorType(Enum):
    """Categories of errors for retry decisions."""
    RATE_LIMIT = "rate_limit"             # 429
    TIMEOUT = "timeout"                   # Request timeout
    SERVER_ERROR = "server_error"         # 5xx
    CONNECTION_ERROR = "connection_error" # Network issues
    TRANSIENT = "transient"               # Other transient errors

    # Non-retryable
    AUTH_ERROR = "auth_error"             # 401/403
    BAD_REQUEST = "bad_request"           # 400/422
    NOT_FOUND = "not_found"               # 404
    QUOTA_EXCEEDED = "quota_exceeded"     # Billing issue
    MALFORMED = "malformed"               # Provider answered with junk
    UNKNOWN = "unknown"


# Errors that should trigger retry
RETRYABLE_ERROR_TYPES = {
    RetryableErrorType.RATE_LIMIT,
    RetryableErrorType.TIMEOUT,
    RetryableErrorType.SERVER_ERROR,
    RetryableErrorType.CONNECTION_ERROR,
    RetryableErrorType.TRANSIENT,
}


def _status_code(error: Exception) -> Optional[int]:
    """Status code from httpx.HTTPStatusError, openai.APIStatusError or ProviderError."""
    status = getattr(error, "status_code", None)
    if status is None:
        response = getattr(error, "response", None)
        status = getattr(response, "status_code", None)
    return status if isinstance(status, int) else None


def classify_status(status: int) -> RetryableErrorType:
    if status == 429:
        return RetryableErrorType.RATE_LIMIT
    if status in (401, 403):
        return RetryableErrorType.AUTH_ERROR
    if status == 404:
        return RetryableErrorType.NOT_FOUND
    if status == 408:
        return RetryableErrorType.TIMEOUT
    if status >= 500:
        return RetryableErrorType.SERVER_ERROR
    if 400 <= status < 500:
        return RetryableErrorType.BAD_REQUEST
    return RetryableErrorType.UNKNOWN


def classify_error(error: Exception) -> RetryableErrorType:
    """
    Classify an error to determine if it should be retried.

    Args:
        error: The exception to classify

    Returns:
        RetryableErrorType indicating the error category
    """
    if isinstance(error, ProviderRateLimited):
        return RetryableErrorType.RATE_LIMIT
    if isinstance(error, ProviderTimeout):
        return RetryableErrorType.TIMEOUT
    if isinstance(error, MalformedProviderResponse):
        return RetryableErrorType.MALFORMED

    status = _status_code(error)
    if status is not None:
        return classify_status(status)

    if isinstance(error, ProviderUnavailable):
        return RetryableErrorType.CONNECTION_ERROR

    error_type = type(error).__name__.lower()
    error_msg = str(error).lower()

    # httpx.TimeoutException / openai.APITimeoutError / builtin TimeoutError
    if 'timeout' in error_type or 'timedout' in error_type:
        return RetryableErrorType.TIMEOUT

    # httpx.ConnectError / openai.APIConnectionError / builtin ConnectionError
    if any(x in error_type for x in ['connect', 'network', 'socket', 'transport']):
        return RetryableErrorType.CONNECTION_ERROR

    if 'ratelimit' in error_type or 'rate limit' in error_msg or 'too many requests' in error_msg:
        return RetryableErrorType.RATE_LIMIT

    if 'timed out' in error_msg or 'timeout' in error_msg:
        return RetryableErrorType.TIMEOUT

    if 'connection' in error_msg or 'network' in error_msg:
        return RetryableErrorType.CONNECTION_ERROR

    if 'unauthorized' in error_msg or 'authentication' in error_msg or 'invalid api key' in error_msg:
        return RetryableErrorType.AUTH_ERROR

    if 'quota' in error_msg or 'billing' in error_msg:
        return RetryableErrorType.QUOTA_EXCEEDED

    return RetryableErrorType.UNKNOWN


def is_retryable(error: Exception) -> bool:
    """True if the error is worth another attempt."""
    return classify_error(error) in RETRYABLE_ERROR_TYPES


def to_provider_error(error: Exception, provider: str):
    """
    Convert any outbound-call failure into the matching ProviderError subclass.

    Example:
        to_provider_error(httpx.ReadTimeout("..."), "search") -> ProviderTimeout
    """
    if isinstance(error, (ProviderTimeout, ProviderRateLimited, ProviderUnavailable,
                          MalformedProviderResponse)):
        return error
    kind = classify_error(error)
    status = _status_code(error)
    message = f"{type(error).__name__}: {str(error)[:200]}"
    if kind == RetryableErrorType.TIMEOUT:
        return ProviderTimeout(message, provider=provider, status_code=status)
    if kind == RetryableErrorType.RATE_LIMIT:
        return ProviderRateLimited(message, provider=provider, status_code=status)
    if kind == RetryableErrorType.MALFORMED:
        return MalformedProviderResponse(message, provider=provider, status_code=status)
    return ProviderUnavailable(message, provider=provider, status_code=status)


# =============================================================================
# Retry Configuration
# =============================================================================

@dataclass
class RetryConfig:
    """
    Configuration for retry behavior.

    Attributes:
        max_attempts: Maximum number of attempts (including the first)
        base_delay: Base delay in seconds before first retry
        max_delay: Maximum delay between retries
        exponential_base: Base for exponential backoff (default: 2)
        jitter: Whether to add random jitter (default: True)
        jitter_range: Range of jitter as fraction of delay (0.0-1.0)
        retry_on: Exception types to retry on (None = use classifier)
        log_retries: Whether to log retry attempts
    """
    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 60.0
    exponential_base: float = 2.0
    jitter: bool = True
    jitter_range: float = 0.25
    retry_on: Optional[List[Type[Exception]]] = None
    log_retries: bool = True


# A chat turn makes at most one call per provider by default; operators can
# raise max_attempts through settings when latency allows it.
DEFAULT_LLM_RETRY = RetryConfig(
    max_attempts=1,
    base_delay=0.5,
    max_delay=4.0,
)

DEFAULT_SEARCH_RETRY = RetryConfig(
    max_attempts=1,
    base_delay=0.25,
    max_delay=2.0,
)


# =============================================================================
# Retry Handler
# =============================================================================

class RetryHandler:
    """
    Handles retry logic for provider calls.

    Example:
        handler = RetryHandler(config=DEFAULT_SEARCH_RETRY, operation_name="trieve_search")
        products = handler.execute(lambda: provider.search("red bag", 10), deadline=10.0)
    """

    def __init__(
        self,
        config: Optional[RetryConfig] = None,
        session_id: Optional[str] = None,
        operation_name: str = "api_call",
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Args:
            config: Retry configuration (uses default if None)
            session_id: Session ID for logging
            operation_name: Name of the operation for logging
            sleep / clock: Injectable for tests
        """
        self.config = config or RetryConfig()
        self.session_id = session_id or "unknown"
        self.operation_name = operation_name
        self._sleep = sleep
        self._clock = clock

    def calculate_delay(self, attempt: int) -> float:
        """
        Delay before the next retry: base_delay * exponential_base ^ attempt,
        capped at max_delay, with optional jitter.

        Args:
            attempt: Current attempt number (0-indexed)
        """
        delay = self.config.base_delay * (self.config.exponential_base ** attempt)
        delay = min(delay, self.config.max_delay)

        if self.config.jitter:
            jitter_amount = delay * self.config.jitter_range
            delay += random.uniform(-jitter_amount, jitter_amount)
            delay = max(0.05, delay)

        return delay

    def should_retry(self, error: Exception, attempt: int) -> bool:
        """
        Args:
            error: The exception that occurred
            attempt: Current attempt number (0-indexed)
        """
        if attempt >= self.config.max_attempts - 1:
            return False

        if self.config.retry_on:
            return any(isinstance(error, exc_type) for exc_type in self.config.retry_on)

        return is_retryable(error)

    def log_retry(self, attempt: int, error: Exception, delay: float, will_retry: bool) -> None:
        if not self.config.log_retries:
            return

        error_type = classify_error(error)

        if will_retry:
            _logger.warning(
                f"Retry {attempt + 1}/{self.config.max_attempts} for {self.operation_name}: "
                f"{type(error).__name__} ({error_type.value}). Waiting {delay:.2f}s...",
                extra={
                    "event": "api_retry",
                    "session_id": self.session_id,
                    "operation": self.operation_name,
                    "attempt": attempt + 1,
                    "error_type": error_type.value,
                    "error_message": str(error)[:200],
                    "delay_seconds": round(delay, 2),
                },
            )
        else:
            _logger.warning(
                f"Failed {self.operation_name} after {attempt + 1} attempt(s): "
                f"{type(error).__name__} ({error_type.value})",
                extra={
                    "event": "api_retry_exhausted",
                    "session_id": self.session_id,
                    "operation": self.operation_name,
                    "attempts": attempt + 1,
                    "error_type": error_type.value,
                    "error_message": str(error)[:200],
                },
            )

    def execute(
        self,
        func: Callable[[], T],
        deadline: Optional[float] = None,
    ) -> T:
        """
        Execute a function with retry logic.

        Args:
            func: The function to execute
            deadline: Seconds from now after which no new attempt is started

        Returns:
            The function's return value

        Raises:
            The last error once attempts or the deadline are exhausted
        """
        last_error: Optional[Exception] = None
        total_delay = 0.0
        started = self._clock()

        for attempt in range(max(1, self.config.max_attempts)):
            try:
                result = func()

                if attempt > 0 and self.config.log_retries:
                    _logger.info(
                        f"{self.operation_name} succeeded after {attempt + 1} attempts",
                        extra={
                            "event": "api_retry_success",
                            "session_id": self.session_id,
                            "operation": self.operation_name,
                            "attempts": attempt + 1,
                            "total_delay": round(total_delay, 2),
                        },
                    )

                return result

            except Exception as e:
                last_error = e
                will_retry = self.should_retry(e, attempt)
                delay = self.calculate_delay(attempt) if will_retry else 0.0

                if will_retry and deadline is not None:
                    elapsed = self._clock() - started
                    if elapsed + delay >= deadline:
                        will_retry = False

                self.log_retry(attempt, e, delay, will_retry=will_retry)
                if not will_retry:
                    break
                self._sleep(delay)
                total_delay += delay

        raise last_error

