"""Async Claude API client for single-shot completions."""

from __future__ import annotations

import logging
from typing import Any

import anthropic

from notebot.config import settings

logger = logging.getLogger(__name__)

_client: anthropic.AsyncAnthropic | None = None


def _get_client() -> anthropic.AsyncAnthropic:
    """Lazily initialize the Anthropic client."""
    global _client  # noqa: PLW0603
    if _client is None:
        _client = anthropic.AsyncAnthropic(api_key=settings.anthropic_api_key)
    return _client


async def complete_text(
    messages: list[dict[str, Any]],
    *,
    system: str | None = None,
    model: str | None = None,
    max_tokens: int = 2048,
) -> str:
    """Single Claude call, no tools or streaming. Returns the text of the reply."""
    client = _get_client()
    kwargs: dict[str, Any] = {
        "model": model or settings.claude_model,
        "max_tokens": max_tokens,
        "messages": messages,
    }
    if system is not None:
        kwargs["system"] = system
    response = await client.messages.create(**kwargs)
    text = "".join(block.text for block in response.content if block.type == "text")
    logger.debug("Claude reply: %d chars (model=%s)", len(text), kwargs["model"])
    return text


async def complete_prompt(prompt: str) -> str:
    """Send *prompt* as a single user message."""
    return await complete_text([{"role": "user", "content": prompt}])
