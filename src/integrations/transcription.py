"""Speech-to-text via OpenAI Whisper."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from src.bot.errors import UpstreamUnavailable
from src.config import settings

if TYPE_CHECKING:
    from openai import AsyncOpenAI

logger = logging.getLogger(__name__)

_client: AsyncOpenAI | None = None


def _get_client() -> AsyncOpenAI:
    """Return a lazily-initialised AsyncOpenAI singleton."""
    global _client  # noqa: PLW0603
    if _client is None:
        from openai import AsyncOpenAI

        _client = AsyncOpenAI(
            api_key=settings.openai_api_key,
            timeout=settings.llm_timeout_seconds,
            max_retries=0,
        )
    return _client


async def transcribe(audio: bytes, filename: str = "voice.ogg") -> str:
    """Transcribe an audio blob to text. Raises ``UpstreamUnavailable`` on failure."""
    import openai

    client = _get_client()
    try:
        result = await client.audio.transcriptions.create(
            model=settings.transcription_model,
            file=(filename, audio),
        )
    except openai.OpenAIError as exc:
        raise UpstreamUnavailable(f"Transcription failed: {exc}") from exc

    text = (result.text or "").strip()
    logger.info("Transcribed %d bytes of audio into %d chars", len(audio), len(text))
    return text
