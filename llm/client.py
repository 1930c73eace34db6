"""
Text-generation providers.

The composer only needs ``complete(system_prompt, user_message) -> str``.
OpenAICompatibleProvider talks to any OpenAI-compatible chat endpoint
(Groq by default) through the openai SDK, with SDK retries disabled so
the RetryHandler owns attempts and the deadline.
"""

from abc import ABC, abstractmethod
from typing import Optional

from openai import OpenAI

from core.api_retry import DEFAULT_LLM_RETRY, RetryConfig, RetryHandler, to_provider_error
from core.errors import MalformedProviderResponse, ProviderError
from core.structured_logging import Timer, get_logger, log_llm_call

# Module-level logger
_logger = get_logger("llm.client")


class TextGenerationProvider(ABC):
    """Generates a reply for a system prompt and one user message."""

    model = "unknown"

    @abstractmethod
    def complete(self, system_prompt: str, user_message: str, session_id: Optional[str] = None) -> str:
        """
        Returns:
            Raw reply text (expected to be JSON, but untrusted)

        Raises:
            ProviderError: on timeout, rate limit, non-2xx or empty reply
        """
        pass


class OpenAICompatibleProvider(TextGenerationProvider):
    """
    Chat completions against an OpenAI-compatible endpoint.

    Example:
        provider = OpenAICompatibleProvider(api_key="gsk_...", model="llama-3.1-70b-versatile")
        text = provider.complete(system_prompt, "red bag under $100")
    """

    def __init__(
        self,
        api_key: str,
        model: str = "llama-3.1-70b-versatile",
        base_url: Optional[str] = "https://api.groq.com/openai/v1",
        temperature: float = 0.7,
        max_tokens: int = 500,
        timeout_seconds: float = 10.0,
        retry_config: Optional[RetryConfig] = None,
        client: Optional[OpenAI] = None,
    ):
        if not api_key and client is None:
            raise ValueError("LLM API key is required")
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout_seconds = timeout_seconds
        self.retry_config = retry_config or DEFAULT_LLM_RETRY
        self._client = client or OpenAI(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout_seconds,
            max_retries=0,
        )

    def complete(self, system_prompt: str, user_message: str, session_id: Optional[str] = None) -> str:
        def _call():
            return self._client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_message},
                ],
                temperature=self.temperature,
                max_tokens=self.max_tokens,
                response_format={"type": "json_object"},
                timeout=self.timeout_seconds,
            )

        handler = RetryHandler(
            config=self.retry_config,
            session_id=session_id,
            operation_name="llm_complete",
        )
        with Timer() as timer:
            try:
                response = handler.execute(_call, deadline=self.timeout_seconds)
            except ProviderError as e:
                error = e
            except Exception as e:
                error = to_provider_error(e, "llm")
            else:
                error = None

        if error is not None:
            log_llm_call(
                session_id=session_id or "unknown",
                model=self.model,
                latency_ms=timer.elapsed_ms,
                success=False,
                error=str(error),
                error_type=type(error).__name__,
            )
            raise error

        usage = getattr(response, "usage", None)
        log_llm_call(
            session_id=session_id or "unknown",
            model=self.model,
            latency_ms=timer.elapsed_ms,
            tokens_used=getattr(usage, "total_tokens", None),
        )

        choices = getattr(response, "choices", None) or []
        content = choices[0].message.content if choices else None
        if not content or not content.strip():
            raise MalformedProviderResponse("empty completion", provider="llm")
        return content
