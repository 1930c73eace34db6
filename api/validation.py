"""
Input validation and sanitization for the chat endpoint.

Rejections raise InputValidationError with a machine-readable code; the
server turns them into ``400 {success: false, error, code}``.
"""

import re
from typing import Any, Optional, Tuple

from config.patterns import SANITIZE_PATTERNS, SUSPICIOUS_PATTERNS, has_pattern
from core.errors import InputValidationError
from core.structured_logging import get_logger

# Module-level logger
_logger = get_logger("api.validation")

MAX_CONTEXT_PRODUCTS = 10
MAX_SESSION_ID_LENGTH = 100
SESSION_ID_PATTERN = re.compile(r"^[A-Za-z0-9_\-:.]+$")


def sanitize_input(text: str, max_length: int = 500) -> str:
    """
    Strip markup and script markers, trim, and cap the length.

    Example:
        sanitize_input("  <b>red bag</b> ")  ->  "bred bag/b"
    """
    cleaned = text.strip()
    for pattern in SANITIZE_PATTERNS:
        cleaned = re.sub(pattern, "", cleaned, flags=re.IGNORECASE)
    return cleaned.strip()[:max_length]


def validate_session_id(session_id: Any) -> Optional[str]:
    if session_id is None or session_id == "":
        return None
    if not isinstance(session_id, str):
        raise InputValidationError("INVALID_SESSION_ID", "Session ID must be a string")
    session_id = session_id.strip()
    if len(session_id) > MAX_SESSION_ID_LENGTH or not SESSION_ID_PATTERN.match(session_id):
        raise InputValidationError("INVALID_SESSION_ID", "Session ID has an invalid format")
    return session_id


def validate_chat_request(
    message: Any,
    session_id: Any = None,
    products: Optional[list] = None,
    max_length: int = 500,
    min_length: int = 1,
) -> Tuple[str, Optional[str]]:
    """
    Validate and sanitize a chat request.

    Args:
        message: Raw message value from the request body
        session_id: Raw session id value (optional)
        products: Optional context product list
        max_length: Longest accepted message
        min_length: Shortest accepted message after sanitization

    Returns:
        (sanitized message, session id or None)

    Raises:
        InputValidationError
    """
    if message is None:
        raise InputValidationError("MISSING_MESSAGE", "Message is required")
    if not isinstance(message, str):
        raise InputValidationError("INVALID_MESSAGE_TYPE", "Message must be a string")

    if has_pattern(message, SUSPICIOUS_PATTERNS):
        _logger.warning(
            "Rejected suspicious input",
            extra={"event": "suspicious_input", "error_type": "SUSPICIOUS_INPUT"},
        )
        raise InputValidationError("SUSPICIOUS_INPUT", "Message contains invalid characters")

    if len(message.strip()) > max_length:
        raise InputValidationError(
            "MESSAGE_TOO_LONG", f"Message must be at most {max_length} characters"
        )

    if products is not None and len(products) > MAX_CONTEXT_PRODUCTS:
        raise InputValidationError(
            "TOO_MANY_PRODUCTS", f"Too many products. Maximum {MAX_CONTEXT_PRODUCTS} allowed."
        )

    cleaned = sanitize_input(message, max_length)
    if len(cleaned) < max(min_length, 1):
        raise InputValidationError("EMPTY_MESSAGE", "Message cannot be empty")

    return cleaned, validate_session_id(session_id)
