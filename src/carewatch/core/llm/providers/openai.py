"""Guidance backend on OpenAI chat completions (JSON mode)."""

from __future__ import annotations

import time

from carewatch.core.llm.provider import GuidancePrompt, ProviderResponse


class OpenAIProvider:
    """Requests a ``json_object`` response so the body key is always present."""

    def __init__(self, api_key: str, model: str, *, timeout_seconds: float = 15.0, client=None) -> None:
        if client is None:
            import openai

            client = openai.AsyncOpenAI(api_key=api_key, timeout=timeout_seconds, max_retries=1)
        self.client = client
        self.model = model

    async def complete(self, prompt: GuidancePrompt) -> ProviderResponse:
        started = time.monotonic()
        completion = await self.client.chat.completions.create(
            model=self.model,
            max_tokens=prompt.max_tokens,
            temperature=prompt.temperature,
            response_format={"type": "json_object"},
            messages=[
                {"role": "system", "content": prompt.system},
                {"role": "user", "content": prompt.context_json},
            ],
        )
        if not completion.choices:
            return ProviderResponse(content="", model=self.model)

        choice = completion.choices[0]
        usage = completion.usage
        return ProviderResponse(
            content=choice.message.content or "",
            model=completion.model or self.model,
            input_tokens=usage.prompt_tokens if usage else 0,
            output_tokens=usage.completion_tokens if usage else 0,
            latency_ms=(time.monotonic() - started) * 1000,
            truncated=choice.finish_reason == "length",
        )
