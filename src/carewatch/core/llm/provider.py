"""LLM provider protocol — the text-generation backend behind caregiver guidance."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable

DEFAULT_MODELS = {
    "anthropic": "claude-sonnet-4-20250514",
    "openai": "gpt-4o",
    "mock": "mock",
}


@dataclass(frozen=True)
class GuidancePrompt:
    """One guidance request: a system prompt plus the JSON alert context."""

    system: str
    context_json: str
    max_tokens: int = 700
    temperature: float = 0.2


@dataclass
class ProviderResponse:
    """Raw completion returned by a provider."""

    content: str
    model: str
    input_tokens: int = 0
    output_tokens: int = 0
    latency_ms: float = 0.0
    truncated: bool = False


@runtime_checkable
class LLMProvider(Protocol):
    """Completes a :class:`GuidancePrompt`. May raise any SDK error."""

    async def complete(self, prompt: GuidancePrompt) -> ProviderResponse: ...


def create_provider(
    provider_name: str,
    api_key: str = "",
    model: str = "",
    timeout_seconds: float = 15.0,
) -> LLMProvider:
    """Build the guidance backend named in settings.

    Args:
        provider_name: "anthropic", "openai", or "mock"
        api_key: API key for the provider.
        model: Model identifier override.
        timeout_seconds: Per-request timeout handed to the SDK client.
    """
    if provider_name not in DEFAULT_MODELS:
        raise ValueError(f"Unknown LLM provider: {provider_name}")
    model = model or DEFAULT_MODELS[provider_name]

    if provider_name == "anthropic":
        from carewatch.core.llm.providers.anthropic import AnthropicProvider

        return AnthropicProvider(api_key, model, timeout_seconds=timeout_seconds)
    if provider_name == "openai":
        from carewatch.core.llm.providers.openai import OpenAIProvider

        return OpenAIProvider(api_key, model, timeout_seconds=timeout_seconds)

    from carewatch.core.llm.providers.mock import MockProvider

    return MockProvider()
