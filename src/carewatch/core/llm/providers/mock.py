"""Offline guidance backend, used when no API key is configured and in tests."""

from __future__ import annotations

import json

from carewatch.core.llm.provider import GuidancePrompt, ProviderResponse

_DEFAULT_BODY = (
    "Please check on the patient now. Confirm they are responsive and comfortable, "
    "re-measure the reading if a device is at hand, and contact their doctor or "
    "emergency services if symptoms such as chest pain, confusion, or shortness of "
    "breath are present."
)


class MockProvider:
    """Answers every prompt with the same ``{"body": ...}`` JSON and keeps the prompts."""

    def __init__(self, response_content: str | None = None) -> None:
        if response_content is None:
            response_content = json.dumps({"body": _DEFAULT_BODY})
        self.response_content = response_content
        self.prompts: list[GuidancePrompt] = []

    @property
    def last_prompt(self) -> GuidancePrompt | None:
        return self.prompts[-1] if self.prompts else None

    async def complete(self, prompt: GuidancePrompt) -> ProviderResponse:
        self.prompts.append(prompt)
        return ProviderResponse(
            content=self.response_content,
            model="mock",
            input_tokens=len(prompt.context_json.split()),
            output_tokens=len(self.response_content.split()),
        )
