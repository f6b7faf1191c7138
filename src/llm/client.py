"""Async Claude API client for single-shot completions."""

from __future__ import annotations

import logging
from typing import Any

import anthropic

from src.bot.errors import UpstreamUnavailable
from src.config import settings

logger = logging.getLogger(__name__)

_client: anthropic.AsyncAnthropic | None = None


def _get_client() -> anthropic.AsyncAnthropic:
    """Lazily initialize the Anthropic client.

    Retries are disabled: each inbound message gets exactly one completion.
    """
    global _client  # noqa: PLW0603
    if _client is None:
        _client = anthropic.AsyncAnthropic(
            api_key=settings.anthropic_api_key,
            timeout=settings.llm_timeout_seconds,
            max_retries=0,
        )
    return _client


async def complete_text(
    messages: list[dict[str, Any]],
    *,
    system: str | None = None,
    model: str | None = None,
    max_tokens: int | None = None,
) -> str:
    """Single-shot Claude call: no tools, no streaming.

    Raises ``UpstreamUnavailable`` when the API call fails for any reason.
    """
    client = _get_client()
    kwargs: dict[str, Any] = {
        "model": model or settings.claude_model,
        "max_tokens": max_tokens or settings.llm_max_tokens,
        "messages": messages,
    }
    if system is not None:
        kwargs["system"] = system
    try:
        response = await client.messages.create(**kwargs)
    except anthropic.APIError as exc:
        raise UpstreamUnavailable(f"Completion call failed: {exc}") from exc

    text = "".join(
        block.text for block in response.content if getattr(block, "type", "text") == "text"
    )
    logger.debug("Completion (%d chars): %s", len(text), text[:200])
    return text
