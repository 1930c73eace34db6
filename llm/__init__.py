"""LLM-backed response composition for the Albi Mall assistant."""

from llm.prompts import SystemPrompts, ResponseTemplates
from llm.client import TextGenerationProvider, OpenAICompatibleProvider
from llm.response_builder import ResponseComposer, ComposerConfig

__all__ = [
    "SystemPrompts",
    "ResponseTemplates",
    "TextGenerationProvider",
    "OpenAICompatibleProvider",
    "ResponseComposer",
    "ComposerConfig",
]
