"""Guidance backend on the Anthropic Messages API."""

from __future__ import annotations

import time

from carewatch.core.llm.provider import GuidancePrompt, ProviderResponse


class AnthropicProvider:
    """Sends the alert context as the only user turn; the JSON shape comes from the system prompt."""

    def __init__(self, api_key: str, model: str, *, timeout_seconds: float = 15.0, client=None) -> None:
        if client is None:
            import anthropic

            client = anthropic.AsyncAnthropic(api_key=api_key, timeout=timeout_seconds, max_retries=1)
        self.client = client
        self.model = model

    async def complete(self, prompt: GuidancePrompt) -> ProviderResponse:
        started = time.monotonic()
        message = await self.client.messages.create(
            model=self.model,
            system=prompt.system,
            max_tokens=prompt.max_tokens,
            temperature=prompt.temperature,
            messages=[{"role": "user", "content": prompt.context_json}],
        )
        text = "".join(
            block.text for block in message.content if getattr(block, "type", "") == "text"
        )
        return ProviderResponse(
            content=text,
            model=getattr(message, "model", None) or self.model,
            input_tokens=message.usage.input_tokens,
            output_tokens=message.usage.output_tokens,
            latency_ms=(time.monotonic() - started) * 1000,
            truncated=message.stop_reason == "max_tokens",
        )
