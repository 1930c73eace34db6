"""
Tests for the OpenAI-compatible text-generation provider.

The openai client is replaced by a Mock, so no network access is needed.

Run with: pytest tests/test_llm_client.py -v
"""

from types import SimpleNamespace
from unittest.mock import Mock

import httpx
import openai
import pytest

from core.api_retry import RetryConfig
from core.errors import MalformedProviderResponse, ProviderRateLimited, ProviderTimeout
from llm.client import OpenAICompatibleProvider


def _completion(content, total_tokens=42):
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))],
        usage=SimpleNamespace(total_tokens=total_tokens),
    )


def _provider(create, **kwargs):
    client = Mock()
    client.chat.completions.create = create
    return OpenAICompatibleProvider(api_key="test-key", client=client, **kwargs)


_REQUEST = httpx.Request("POST", "https://api.groq.com/openai/v1/chat/completions")


class TestComplete:
    """Successful completions."""

    def test_returns_content(self):
        create = Mock(return_value=_completion('{"assistant_text": "Hi"}'))
        assert _provider(create).complete("system", "hello") == '{"assistant_text": "Hi"}'

    def test_request_shape(self):
        create = Mock(return_value=_completion("{}"))
        _provider(create, model="test-model", temperature=0.2, max_tokens=300).complete("system", "red bag")

        kwargs = create.call_args.kwargs
        assert kwargs["model"] == "test-model"
        assert kwargs["messages"] == [
            {"role": "system", "content": "system"},
            {"role": "user", "content": "red bag"},
        ]
        assert kwargs["temperature"] == 0.2
        assert kwargs["max_tokens"] == 300
        assert kwargs["response_format"] == {"type": "json_object"}

    def test_api_key_required(self):
        with pytest.raises(ValueError):
            OpenAICompatibleProvider(api_key="")


class TestFailures:
    """Failures become ProviderError subclasses."""

    def test_timeout(self):
        create = Mock(side_effect=openai.APITimeoutError(request=_REQUEST))
        with pytest.raises(ProviderTimeout) as exc_info:
            _provider(create).complete("system", "red bag")
        assert exc_info.value.provider == "llm"
        assert create.call_count == 1

    def test_rate_limited(self):
        response = httpx.Response(429, request=_REQUEST)
        create = Mock(side_effect=openai.RateLimitError("slow down", response=response, body=None))
        with pytest.raises(ProviderRateLimited) as exc_info:
            _provider(create).complete("system", "red bag")
        assert exc_info.value.status_code == 429

    def test_empty_completion(self):
        create = Mock(return_value=_completion("   "))
        with pytest.raises(MalformedProviderResponse):
            _provider(create).complete("system", "red bag")

    def test_no_choices(self):
        create = Mock(return_value=SimpleNamespace(choices=[], usage=None))
        with pytest.raises(MalformedProviderResponse):
            _provider(create).complete("system", "red bag")

    def test_configured_retries(self):
        create = Mock(side_effect=[openai.APITimeoutError(request=_REQUEST), _completion("{}")])
        provider = _provider(
            create,
            retry_config=RetryConfig(max_attempts=2, base_delay=0.01, jitter=False),
        )
        assert provider.complete("system", "red bag") == "{}"
        assert create.call_count == 2
