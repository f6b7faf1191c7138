"""Telegram application factory."""

from __future__ import annotations

import logging

from telegram.ext import Application, CommandHandler, MessageHandler, filters

from src.bot.inbox import InboxPoller
from src.bot.pipeline import Pipeline, build_pipeline
from src.bot.telegram.handlers import (
    PIPELINE_KEY,
    handle_clear,
    handle_message,
    handle_start,
    handle_status,
    handle_voice,
    send_reply,
)
from src.config import settings

logger = logging.getLogger(__name__)

# Module-level reference so post_shutdown can access the poller.
_inbox_poller: InboxPoller | None = None


def _init_inbox_poller(app: Application, pipeline: Pipeline) -> InboxPoller:
    """Create the email triage poller, replying through the bot."""

    async def _send(session_id: str, reply) -> None:
        await send_reply(app.bot, int(session_id), reply)

    return InboxPoller(
        router=pipeline.router,
        gmail=pipeline.gmail,
        credentials=pipeline.credentials,
        send_reply=_send,
    )


async def _post_init(app: Application) -> None:
    """Called after the Application is fully initialized (event loop running)."""
    global _inbox_poller  # noqa: PLW0603
    pipeline: Pipeline = app.bot_data[PIPELINE_KEY]
    if pipeline.router.escalation_enabled:
        _inbox_poller = _init_inbox_poller(app, pipeline)
        await _inbox_poller.start()


async def _post_shutdown(app: Application) -> None:
    """Called during graceful shutdown."""
    global _inbox_poller  # noqa: PLW0603
    if _inbox_poller is not None:
        await _inbox_poller.stop()
        _inbox_poller = None
    pipeline: Pipeline | None = app.bot_data.get(PIPELINE_KEY)
    if pipeline is not None:
        await pipeline.aclose()


def create_app(pipeline: Pipeline | None = None) -> Application:
    """Build and configure the Telegram application."""
    app = Application.builder().token(settings.telegram_bot_token).concurrent_updates(True).build()
    app.bot_data[PIPELINE_KEY] = pipeline or build_pipeline()

    app.add_handler(CommandHandler("start", handle_start))
    app.add_handler(CommandHandler("clear", handle_clear))
    app.add_handler(CommandHandler("status", handle_status))
    # Escalation commands go through the router like any other text.
    app.add_handler(CommandHandler(["ai_reply", "reply"], handle_message))
    app.add_handler(MessageHandler(filters.TEXT & ~filters.COMMAND, handle_message))
    app.add_handler(MessageHandler(filters.VOICE, handle_voice))

    app.post_init = _post_init
    app.post_shutdown = _post_shutdown

    return app
