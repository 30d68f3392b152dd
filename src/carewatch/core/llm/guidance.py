"""Guidance generator — turns a structured alert context into caregiver prose.

The dispatcher treats this as a black box that may fail; it catches
:class:`GuidanceError` (and anything else) and substitutes fixed text.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from carewatch.core.llm.provider import GuidancePrompt, LLMProvider, ProviderResponse
from carewatch.core.llm.response import check_guardrails, extract_body, sanitize_content
from carewatch.core.llm.system_prompt import build_system_prompt

logger = logging.getLogger(__name__)


class GuidanceError(Exception):
    """Raised when guidance text could not be produced."""


@dataclass
class GuidanceResult:
    """Narrative guidance for a caregiver-facing message."""

    body: str
    model: str = ""
    guardrail_flags: list[str] = field(default_factory=list)


@runtime_checkable
class GuidanceGenerator(Protocol):
    """Maps a structured medical context to guidance text."""

    async def generate(self, context: dict[str, Any]) -> GuidanceResult: ...


class LLMGuidanceGenerator:
    """Guidance generator backed by an :class:`LLMProvider`."""

    def __init__(self, provider: LLMProvider, timeout_seconds: float = 15.0) -> None:
        self.provider = provider
        self.timeout_seconds = timeout_seconds

    async def generate(self, context: dict[str, Any]) -> GuidanceResult:
        """Call the provider once and return sanitized guidance.

        Raises:
            GuidanceError: On timeout, provider failure, or an empty answer.
        """
        prompt = GuidancePrompt(
            system=build_system_prompt(context.get("kind", "alert")),
            context_json=json.dumps(context, indent=2, default=str),
        )

        try:
            response: ProviderResponse = await asyncio.wait_for(
                self.provider.complete(prompt),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError as exc:
            raise GuidanceError(
                f"Guidance provider timed out after {self.timeout_seconds:.0f}s"
            ) from exc
        except Exception as exc:
            raise GuidanceError(f"Guidance provider failed: {exc}") from exc

        if response.truncated:
            logger.warning("Guidance from %s hit the token limit; using it as is", response.model)
        body = extract_body(response.content)
        if not body:
            raise GuidanceError("Guidance provider returned an empty body")

        check = check_guardrails(body)
        body = sanitize_content(body, check)

        logger.info(
            "Guidance generated: kind=%s, model=%s, tokens=%d+%d, latency=%.0fms",
            context.get("kind", "alert"),
            response.model,
            response.input_tokens,
            response.output_tokens,
            response.latency_ms,
        )
        return GuidanceResult(body=body, model=response.model, guardrail_flags=check.flags)
