"""Telegram message handlers — the chat transport for the dispatch pipeline."""

from __future__ import annotations

import contextlib
import logging
from typing import TYPE_CHECKING

from telegram import InlineKeyboardButton, InlineKeyboardMarkup, Update
from telegram.ext import ContextTypes

from src.bot.credentials import authorization_url
from src.bot.messages import Message
from src.bot.telegram.security import is_allowed

if TYPE_CHECKING:
    from telegram import Bot

    from src.bot.credentials import OutboundReply
    from src.bot.pipeline import Pipeline

logger = logging.getLogger(__name__)

PIPELINE_KEY = "pipeline"

MAX_VOICE_SIZE = 20 * 1024 * 1024  # 20 MB, Telegram bot download limit


def _pipeline(context: ContextTypes.DEFAULT_TYPE) -> Pipeline:
    return context.application.bot_data[PIPELINE_KEY]


async def send_reply(bot: Bot, chat_id: int | str, reply: OutboundReply) -> None:
    """Send an outbound reply, attaching the authorization link as a button."""
    text = reply.text or "I got an empty response. Try again?"
    markup = None
    if reply.link_url:
        markup = InlineKeyboardMarkup(
            [[InlineKeyboardButton(reply.link_label or "Open link", url=reply.link_url)]]
        )
    await bot.send_message(chat_id=chat_id, text=text, reply_markup=markup)


async def _deliver(
    update: Update, context: ContextTypes.DEFAULT_TYPE, reply: OutboundReply | None
) -> None:
    if reply is None:
        return
    try:
        await send_reply(context.bot, update.effective_chat.id, reply)
    except Exception:
        logger.exception("Failed to deliver reply to %s", update.effective_chat.id)


async def handle_start(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /start — greet the user and offer links for missing authorizations."""
    if not is_allowed(update):
        return

    session_id = str(update.effective_chat.id)
    missing = _pipeline(context).credentials.missing(session_id)

    text = "Hi! I can answer questions, schedule meetings and help with your email."
    markup = None
    if missing:
        text += "\nTo use Google or Outlook features, please authorize your account:"
        markup = InlineKeyboardMarkup([
            [InlineKeyboardButton(f"Authorize {p.label}", url=authorization_url(session_id, p))]
            for p in missing
        ])
    await update.message.reply_text(text, reply_markup=markup)


async def handle_clear(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /clear — reset conversation history."""
    if not is_allowed(update):
        return

    count = _pipeline(context).memory.clear(str(update.effective_chat.id))
    await update.message.reply_text(f"Cleared {count} messages. Starting fresh.")


async def handle_status(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /status — show session info."""
    if not is_allowed(update):
        return

    pipeline = _pipeline(context)
    session_id = str(update.effective_chat.id)
    session = pipeline.memory.session(session_id)
    missing = [p.label for p in pipeline.credentials.missing(session_id)]
    pending = pipeline.mailbox.get(session_id) if pipeline.mailbox else None

    lines = [
        "Status",
        f"Messages in context: {len(session.entries)}/{session.window_size}",
        f"Not yet authorized: {', '.join(missing) or 'none'}",
        f"Pending email: {pending.subject if pending else 'none'}",
        f"State: {pipeline.router.state(session_id)}",
    ]
    await update.message.reply_text("\n".join(lines))


async def handle_message(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle incoming text messages, including the escalation commands."""
    if not is_allowed(update):
        return

    text = update.message.text or ""
    chat_id = update.effective_chat.id
    logger.info("Message from %s: %s", chat_id, text[:80])

    reply = await _pipeline(context).router.handle(Message.chat(chat_id, text))
    await _deliver(update, context, reply)


async def handle_voice(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle voice notes: download, transcribe, then process like text."""
    if not is_allowed(update):
        return

    voice = update.message.voice
    if voice is None:
        return
    if voice.file_size and voice.file_size > MAX_VOICE_SIZE:
        await update.message.reply_text("That voice message is too large.")
        return

    chat_id = update.effective_chat.id
    router = _pipeline(context).router
    if not router.voice_enabled:
        reply = await router.handle_voice(str(chat_id), b"")
        await _deliver(update, context, reply)
        return

    try:
        tg_file = await voice.get_file()
        data = await tg_file.download_as_bytearray()
    except Exception:
        logger.exception("Failed to download voice message")
        with contextlib.suppress(Exception):
            await update.message.reply_text("Something went wrong downloading that voice message.")
        return

    reply = await router.handle_voice(str(chat_id), bytes(data), "voice.ogg")
    await _deliver(update, context, reply)
