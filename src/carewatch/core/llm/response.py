"""Response parsing and guardrail enforcement for guidance text."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

# Phrases guidance must never contain; sentences holding them are redacted.
PROHIBITED_PATTERNS: dict[str, tuple[str, ...]] = {
    "making medical diagnoses": (
        "you have been diagnosed",
        "is suffering from",
        "this confirms",
    ),
    "changing medication": (
        "stop taking",
        "double the dose",
        "skip the next dose",
        "increase the dose",
    ),
}

_REDACTION = "[Removed: contains guidance outside a caregiver alert's scope]"


@dataclass
class GuardrailCheck:
    """Result of checking guidance text against the prohibited patterns."""

    passed: bool
    flags: list[str] = field(default_factory=list)


def extract_body(content: str) -> str:
    """Pull the guidance body out of a provider response.

    Providers are asked for ``{"body": "..."}``; models sometimes wrap the JSON
    in a markdown fence or answer in plain text, so both are accepted.
    """
    text = content.strip()
    fenced = re.match(r"^```(?:json)?\s*(.*?)\s*```$", text, re.DOTALL)
    if fenced:
        text = fenced.group(1).strip()

    try:
        parsed = json.loads(text)
    except (json.JSONDecodeError, TypeError):
        return text

    if isinstance(parsed, dict):
        body = parsed.get("body")
        if isinstance(body, str):
            return body.strip()
    return text


def check_guardrails(content: str) -> GuardrailCheck:
    """Flag prohibited phrases in guidance text."""
    flags: list[str] = []
    content_lower = content.lower()
    for action, patterns in PROHIBITED_PATTERNS.items():
        for pattern in patterns:
            if pattern in content_lower:
                flags.append(f"prohibited_pattern_detected: {action} ('{pattern}')")

    if flags:
        logger.warning("Guidance guardrail flags: %s", flags)
    return GuardrailCheck(passed=not flags, flags=flags)


def sanitize_content(content: str, guardrail_check: GuardrailCheck) -> str:
    """Redact sentences that contain a flagged phrase."""
    if guardrail_check.passed:
        return content

    sanitized = content
    for flag in guardrail_check.flags:
        match = re.search(r"\('([^']+)'\)", flag)
        if not match:
            continue
        pattern = re.compile(
            r"[^.!?\n]*" + re.escape(match.group(1)) + r"[^.!?\n]*[.!?]?",
            re.IGNORECASE,
        )
        sanitized = pattern.sub(_REDACTION, sanitized)
    return sanitized
