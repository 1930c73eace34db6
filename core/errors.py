"""
Exception types for the Albi Mall assistant.

Provider errors never reach the end user: the retriever and the composer
catch them and degrade (empty candidates, templated reply). Only
InputValidationError produces an explicit error response, from the HTTP
layer.
"""

from typing import Optional


class AssistantError(Exception):
    """Base class for all assistant errors."""


class ProviderError(AssistantError):
    """
    An outbound provider call failed.

    Attributes:
        provider: "search" or "llm"
        status_code: HTTP status when the provider answered
    """

    reason = "provider_error"

    def __init__(self, message: str, provider: str = "provider", status_code: Optional[int] = None):
        super().__init__(message)
        self.provider = provider
        self.status_code = status_code

    @property
    def audit_note(self) -> str:
        return f"{self.provider} {self.reason}: {self}"


class ProviderTimeout(ProviderError):
    reason = "timeout"


class ProviderRateLimited(ProviderError):
    reason = "rate_limited"


class ProviderUnavailable(ProviderError):
    reason = "unavailable"


class MalformedProviderResponse(ProviderError):
    reason = "malformed_response"


class InputValidationError(AssistantError):
    """Client input rejected before processing. `code` is machine-readable."""

    def __init__(self, code: str, message: str, status_code: int = 400):
        super().__init__(message)
        self.code = code
        self.message = message
        self.status_code = status_code
