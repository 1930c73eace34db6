"""
Structured logging infrastructure for the Albi Mall assistant.

Provides JSON logging with:
- Multiple log levels (DEBUG, INFO, WARNING, ERROR, CRITICAL)
- Rotating file handlers (daily rotation, 30-day retention)
- Separate error log file
- Performance tracking (latency metrics)
- Context tracking (session_id, query, intent, candidate source)

Usage:
    from core.structured_logging import get_logger, log_search, log_error

    logger = get_logger("core.search")
    logger.info("Searching", extra={"event": "search_start", "user_query": "red tote"})

    # Or use convenience functions:
    log_search(session_id="abc", source="catalog", products_found=3, search_time_ms=4.2)
"""

import json
import logging
import sys
import time
import traceback
import uuid
from datetime import datetime, timezone
from functools import wraps
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import Any, Callable, Dict, Optional

ROOT_LOGGER_NAME = "albi"


# =============================================================================
# JSON Formatter
# =============================================================================

class JSONFormatter(logging.Formatter):
    """
    Formats log records as JSON for structured logging.

    Output format:
    {
        "timestamp": "2026-01-08T10:30:00.123456Z",
        "level": "INFO",
        "logger": "albi.core.search",
        "message": "Search complete",
        "event": "search_complete",
        "session_id": "abc123",
        ...
    }
    """

    # Only these extras are emitted
    EXTRA_FIELDS = [
        # Conversation
        "event", "session_id", "user_query", "intent_result", "intent_confidence",
        "reasoning",
        # Filters and retrieval
        "filters", "candidate_source", "products_found", "products_shown",
        "product_ids", "excluded", "brand_unavailable", "audit_notes",
        # Cache
        "cache", "cache_hit", "removed",
        # Errors
        "error_type", "error_message", "stack_trace", "context",
        # Provider calls
        "llm_model", "llm_tokens", "llm_latency_ms", "success", "provider",
        "operation", "attempt", "attempts", "delay_seconds", "status_code",
        "fallback_rule",
        # Performance
        "response_time_ms", "search_latency_ms", "filter_extraction_ms",
        "elapsed_ms", "function",
        # HTTP
        "method", "path", "request_id",
    ]

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        # Passed via logger.info("msg", extra={...})
        for field in self.EXTRA_FIELDS:
            if hasattr(record, field):
                value = getattr(record, field)
                if value is not None:
                    log_data[field] = value

        if record.exc_info:
            log_data["error_type"] = record.exc_info[0].__name__ if record.exc_info[0] else None
            log_data["stack_trace"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str, ensure_ascii=False)


class ConsoleFormatter(logging.Formatter):
    """
    Human-readable formatter for console output.

    Output format:
    2026-01-08 10:30:00 | INFO     | albi.core.search | Search complete | session_id=abc123
    """

    COLORS = {
        "DEBUG": "\033[36m",    # Cyan
        "INFO": "\033[32m",     # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",    # Red
        "CRITICAL": "\033[35m", # Magenta
        "RESET": "\033[0m",
    }

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        level = record.levelname

        color = self.COLORS.get(level, "")
        reset = self.COLORS["RESET"]

        msg = f"{timestamp} | {color}{level:8}{reset} | {record.name} | {record.getMessage()}"

        context_parts = []
        for field in ["session_id", "event", "candidate_source", "response_time_ms"]:
            if hasattr(record, field) and getattr(record, field) is not None:
                context_parts.append(f"{field}={getattr(record, field)}")

        if context_parts:
            msg += f" | {', '.join(context_parts)}"

        if record.exc_info:
            msg += f"\n{self.formatException(record.exc_info)}"

        return msg


# =============================================================================
# Logger Setup
# =============================================================================

_loggers: Dict[str, logging.Logger] = {}
_initialized = False


def setup_logging(
    log_dir: str = "logs",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
    enable_console: bool = True,
    enable_file: bool = True,
    enable_error_log: bool = True,
) -> None:
    """
    Initialize the logging system. Calling it again is a no-op.

    Creates:
    - logs/albi.log (all logs, JSON, rotating daily, 30-day retention)
    - logs/errors.log (ERROR and above, rotating daily, 30-day retention)
    - Console output (if enabled)

    Args:
        log_dir: Directory for log files
        console_level: Minimum level for console output
        file_level: Minimum level for file output
        enable_console: Whether to output to console
        enable_file: Whether to write albi.log
        enable_error_log: Whether to write errors.log
    """
    global _initialized
    if _initialized:
        return

    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    root_logger.setLevel(logging.DEBUG)  # Capture all, handlers filter
    root_logger.handlers = []

    if enable_console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(console_level)
        console_handler.setFormatter(ConsoleFormatter())
        root_logger.addHandler(console_handler)

    if enable_file or enable_error_log:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)

    if enable_file:
        file_handler = TimedRotatingFileHandler(
            filename=str(Path(log_dir) / "albi.log"),
            when="midnight",
            interval=1,
            backupCount=30,
            encoding="utf-8",
        )
        file_handler.setLevel(file_level)
        file_handler.setFormatter(JSONFormatter())
        file_handler.suffix = "%Y-%m-%d"
        root_logger.addHandler(file_handler)

    if enable_error_log:
        error_handler = TimedRotatingFileHandler(
            filename=str(Path(log_dir) / "errors.log"),
            when="midnight",
            interval=1,
            backupCount=30,
            encoding="utf-8",
        )
        error_handler.setLevel(logging.ERROR)
        error_handler.setFormatter(JSONFormatter())
        error_handler.suffix = "%Y-%m-%d"
        root_logger.addHandler(error_handler)

    _initialized = True


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger under the albi namespace.

    Example:
        logger = get_logger("core.search")   # -> "albi.core.search"
    """
    # Not auto-initialized: the app entry points call setup_logging
    if name.startswith(f"{ROOT_LOGGER_NAME}."):
        logger_name = name
    else:
        logger_name = f"{ROOT_LOGGER_NAME}.{name}"

    if logger_name not in _loggers:
        _loggers[logger_name] = logging.getLogger(logger_name)

    return _loggers[logger_name]


# =============================================================================
# Context Manager for Turn Tracking
# =============================================================================

class LogContext:
    """
    Tracks one chat turn: elapsed time plus error logging on the way out.

    Usage:
        with LogContext(session_id="abc123") as ctx:
            ...
            log_conversation_turn(..., response_time_ms=ctx.elapsed_ms())
    """

    def __init__(self, session_id: Optional[str] = None):
        self.session_id = session_id or str(uuid.uuid4())[:8]
        self.start_time = None
        self.logger = get_logger("context")

    def __enter__(self) -> "LogContext":
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        if exc_type is not None:
            self.log_error(exc_val, exc_tb)
        return False  # Don't suppress exceptions

    def elapsed_ms(self) -> float:
        if self.start_time is None:
            return 0.0
        return (time.perf_counter() - self.start_time) * 1000

    def log_error(self, error: Exception, tb=None) -> None:
        self.logger.error(
            f"Error: {error}",
            extra={
                "event": "error",
                "session_id": self.session_id,
                "error_type": type(error).__name__,
                "stack_trace": "".join(traceback.format_tb(tb)) if tb else None,
            },
            exc_info=(type(error), error, tb) if tb else None
        )


# =============================================================================
# Convenience Functions
# =============================================================================

def log_filters(
    session_id: str,
    query: str,
    filters: Dict[str, Any],
    extraction_time_ms: float,
    **extra
) -> None:
    """
    Log filter extraction result.

    Args:
        session_id: Session identifier
        query: Original query
        filters: Extracted filters (FilterSet.to_dict())
        extraction_time_ms: Time taken to extract
    """
    logger = get_logger("filters")
    logger.info(
        "Filters extracted",
        extra={
            "event": "filter_extraction",
            "session_id": session_id,
            "user_query": query,
            "filters": filters,
            "filter_extraction_ms": round(extraction_time_ms, 2),
            **extra
        }
    )


def log_search(
    session_id: str,
    source: str,
    products_found: int,
    search_time_ms: float,
    excluded: int = 0,
    filters: Optional[Dict[str, Any]] = None,
    **extra
) -> None:
    """
    Log a retrieval result.

    Args:
        session_id: Session identifier
        source: Candidate source (session, search, catalog)
        products_found: Candidates that survived the constraints
        search_time_ms: Time taken to retrieve
        excluded: Candidates dropped by hard constraints
        filters: Constraints applied
    """
    logger = get_logger("search")
    logger.info(
        f"Search complete: {products_found} products found (source: {source})",
        extra={
            "event": "search_complete",
            "session_id": session_id,
            "candidate_source": source,
            "products_found": products_found,
            "excluded": excluded,
            "filters": filters,
            "search_latency_ms": round(search_time_ms, 2),
            **extra
        }
    )


def log_llm_call(
    session_id: str,
    model: str,
    latency_ms: float,
    tokens_used: Optional[int] = None,
    success: bool = True,
    error: Optional[str] = None,
    **extra
) -> None:
    """
    Log a text-generation call.

    Args:
        session_id: Session identifier
        model: Model used (e.g., "llama-3.1-70b-versatile")
        latency_ms: Time taken for the call
        tokens_used: Tokens consumed (if reported)
        success: Whether the call succeeded
        error: Error message if failed
    """
    logger = get_logger("llm")
    # Failures degrade to the fallback path, so they are warnings
    level = logging.INFO if success else logging.WARNING

    message = f"LLM call: {model}" if success else f"LLM call failed: {model}"

    logger.log(
        level,
        message,
        extra={
            "event": "llm_api_call",
            "session_id": session_id,
            "llm_model": model,
            "llm_latency_ms": round(latency_ms, 2),
            "llm_tokens": tokens_used,
            "success": success,
            "error_message": error,
            **extra
        }
    )


def log_cache(cache_name: str, key: str, hit: bool, **extra) -> None:
    """Log a cache lookup (DEBUG)."""
    logger = get_logger("cache")
    logger.debug(
        f"Cache {'hit' if hit else 'miss'}: {cache_name}",
        extra={
            "event": "cache_lookup",
            "cache": cache_name,
            "cache_hit": hit,
            "user_query": key,
            **extra
        }
    )


def log_error(
    session_id: str,
    error: Exception,
    context: Optional[str] = None,
    **extra
) -> None:
    """
    Log an error with full context.

    Args:
        session_id: Session identifier
        error: The exception
        context: What was happening
    """
    logger = get_logger("error")
    logger.error(
        f"Error: {type(error).__name__}: {error}",
        extra={
            "event": "error",
            "session_id": session_id,
            "error_type": type(error).__name__,
            "stack_trace": traceback.format_exc(),
            "context": context,
            **extra
        },
        exc_info=True
    )


def log_conversation_turn(
    session_id: str,
    user_query: str,
    intent_result: str,
    intent_confidence: float,
    products_found: int = 0,
    products_shown: int = 0,
    product_ids: Optional[list] = None,
    filters: Optional[Dict[str, Any]] = None,
    candidate_source: Optional[str] = None,
    audit_notes: Optional[str] = None,
    response_time_ms: Optional[float] = None,
    **extra
) -> None:
    """
    Log a complete conversation turn.

    This is the primary log event for conversation analytics: one record
    per user message with everything needed to reconstruct the turn.

    Args:
        session_id: Session identifier (persists across the conversation)
        user_query: The user's message
        intent_result: Classified intent (new_search, followup, greeting, farewell)
        intent_confidence: 0.0 to 1.0
        products_found: Candidates that satisfied the constraints
        products_shown: Products recommended in the reply
        product_ids: Ids of the recommended products
        filters: Effective FilterSet as a dict
        candidate_source: session, search or catalog
        audit_notes: Joined audit notes of the reply
        response_time_ms: Total handling time

    Example:
        log_conversation_turn(
            session_id="session_20260101_134318_1a2b3c4d",
            user_query="red bag under $100",
            intent_result="new_search",
            intent_confidence=0.9,
            products_found=1,
            products_shown=1,
            product_ids=["MK-TOTE-RED-01"],
            filters={"color": "red", "max_price": 100.0, "category": "bags"},
            response_time_ms=38.5,
        )
    """
    logger = get_logger("conversation")

    logger.info(
        f"Conversation turn: {intent_result}",
        extra={
            "event": "conversation_turn",
            "session_id": session_id,
            "user_query": user_query,
            "intent_result": intent_result,
            "intent_confidence": round(intent_confidence, 2) if intent_confidence else None,
            "products_found": products_found,
            "products_shown": products_shown,
            "product_ids": '|'.join(product_ids) if product_ids else '',
            "filters": filters or {},
            "candidate_source": candidate_source,
            "audit_notes": audit_notes,
            "response_time_ms": round(response_time_ms, 2) if response_time_ms else None,
            **extra
        }
    )


# =============================================================================
# Performance Timing Decorator
# =============================================================================

def timed(event_name: str, logger_name: str = "performance"):
    """
    Decorator to time function execution and log it.

    Usage:
        @timed("filter_extraction")
        def extract(self, query: str) -> FilterSet:
            ...

    Args:
        event_name: Name of the event for logging
        logger_name: Logger to use
    """
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args, **kwargs):
            start = time.perf_counter()
            try:
                result = func(*args, **kwargs)
                elapsed_ms = (time.perf_counter() - start) * 1000

                logger = get_logger(logger_name)
                logger.debug(
                    f"{event_name} completed",
                    extra={
                        "event": f"{event_name}_timing",
                        "elapsed_ms": round(elapsed_ms, 2),
                        "function": func.__name__,
                    }
                )
                return result
            except Exception as e:
                elapsed_ms = (time.perf_counter() - start) * 1000
                logger = get_logger(logger_name)
                logger.error(
                    f"{event_name} failed after {elapsed_ms:.2f}ms",
                    extra={
                        "event": f"{event_name}_error",
                        "elapsed_ms": round(elapsed_ms, 2),
                        "function": func.__name__,
                        "error_type": type(e).__name__,
                    },
                    exc_info=True
                )
                raise
        return wrapper
    return decorator


class Timer:
    """
    Context manager for timing code blocks.

    Usage:
        with Timer() as t:
            products = provider.search(query, 10)
        log_search(..., search_time_ms=t.elapsed_ms)
    """

    def __init__(self):
        self.start_time = None
        self.end_time = None
        self.elapsed_ms = 0.0

    def __enter__(self) -> "Timer":
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, *args) -> None:
        self.end_time = time.perf_counter()
        self.elapsed_ms = (self.end_time - self.start_time) * 1000
