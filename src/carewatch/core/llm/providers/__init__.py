"""LLM provider implementations."""

from carewatch.core.llm.providers.anthropic import AnthropicProvider
from carewatch.core.llm.providers.mock import MockProvider
from carewatch.core.llm.providers.openai import OpenAIProvider

__all__ = ["AnthropicProvider", "MockProvider", "OpenAIProvider"]
