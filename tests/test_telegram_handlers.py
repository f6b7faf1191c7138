"""Tests for the Telegram transport handlers."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from telegram import InlineKeyboardMarkup

from src.bot.credentials import OutboundReply, Provider
from src.bot.escalation import EscalatedItem
from src.bot.pipeline import Pipeline
from src.bot.telegram.handlers import (
    MAX_VOICE_SIZE,
    PIPELINE_KEY,
    handle_clear,
    handle_message,
    handle_start,
    handle_status,
    handle_voice,
    send_reply,
)


@pytest.fixture(autouse=True)
def _allow_all():
    with patch("src.bot.telegram.handlers.is_allowed", return_value=True):
        yield


@pytest.fixture
def pipeline(router, memory, credentials, mailbox):
    return Pipeline(
        router=router,
        memory=memory,
        credentials=credentials,
        mailbox=mailbox,
        gmail=MagicMock(),
    )


@pytest.fixture
def context(pipeline):
    ctx = MagicMock()
    ctx.application.bot_data = {PIPELINE_KEY: pipeline}
    ctx.bot.send_message = AsyncMock()
    return ctx


def _update(text: str = "hello", chat_id: int = 42) -> MagicMock:
    update = MagicMock()
    update.effective_chat.id = chat_id
    update.message.text = text
    update.message.reply_text = AsyncMock()
    return update


class TestSendReply:
    async def test_plain_text(self):
        bot = MagicMock()
        bot.send_message = AsyncMock()

        await send_reply(bot, 42, OutboundReply("hi"))

        bot.send_message.assert_awaited_once_with(chat_id=42, text="hi", reply_markup=None)

    async def test_link_becomes_button(self):
        bot = MagicMock()
        bot.send_message = AsyncMock()

        await send_reply(
            bot, 42, OutboundReply("authorize", link_url="https://auth", link_label="Authorize Google")
        )

        markup = bot.send_message.call_args.kwargs["reply_markup"]
        assert isinstance(markup, InlineKeyboardMarkup)
        button = markup.inline_keyboard[0][0]
        assert button.text == "Authorize Google"
        assert button.url == "https://auth"

    async def test_empty_text_gets_placeholder(self):
        bot = MagicMock()
        bot.send_message = AsyncMock()

        await send_reply(bot, 42, OutboundReply(""))

        assert bot.send_message.call_args.kwargs["text"] == "I got an empty response. Try again?"


async def test_handle_message_routes_and_replies(context, memory):
    await handle_message(_update("Capital of France?"), context)

    context.bot.send_message.assert_awaited_once()
    assert context.bot.send_message.call_args.kwargs["text"] == "ok"
    assert memory.history("42")[0].text == "Capital of France?"


async def test_handle_message_no_reply_sends_nothing(context, mailbox):
    mailbox.put("42", EscalatedItem("a@x.com", "s", "b", "r"))

    await handle_message(_update("anything"), context)

    context.bot.send_message.assert_not_awaited()


async def test_handle_start_offers_missing_authorizations(context, credentials):
    credentials.set("42", Provider.GOOGLE, "rt")
    update = _update("/start")

    await handle_start(update, context)

    markup = update.message.reply_text.call_args.kwargs["reply_markup"]
    labels = [row[0].text for row in markup.inline_keyboard]
    assert labels == ["Authorize Outlook"]
    assert "state=42" in markup.inline_keyboard[0][0].url


async def test_handle_start_fully_authorized(context, credentials):
    credentials.set("42", Provider.GOOGLE, "rt")
    credentials.set("42", Provider.OUTLOOK, "rt")
    update = _update("/start")

    await handle_start(update, context)

    assert update.message.reply_text.call_args.kwargs["reply_markup"] is None


async def test_handle_clear(context, memory):
    memory.append("42", "User", "hello")
    update = _update("/clear")

    await handle_clear(update, context)

    update.message.reply_text.assert_awaited_once_with("Cleared 1 messages. Starting fresh.")
    assert memory.history("42") == []


async def test_handle_status(context, mailbox):
    mailbox.put("42", EscalatedItem("a@x.com", "Contract", "b", "r"))
    update = _update("/status")

    await handle_status(update, context)

    text = update.message.reply_text.call_args.args[0]
    assert "Pending email: Contract" in text
    assert "Not yet authorized: Google, Outlook" in text
    assert "State: idle" in text


async def test_rejected_user_gets_nothing(context):
    update = _update("hi")
    with patch("src.bot.telegram.handlers.is_allowed", return_value=False):
        await handle_message(update, context)
    context.bot.send_message.assert_not_awaited()


class TestHandleVoice:
    async def test_voice_disabled_replies_unsupported(self, context):
        update = _update()
        update.message.voice.file_size = 100

        await handle_voice(update, context)

        text = context.bot.send_message.call_args.kwargs["text"]
        assert "voice messages aren't supported" in text

    async def test_too_large(self, context):
        update = _update()
        update.message.voice.file_size = MAX_VOICE_SIZE + 1

        await handle_voice(update, context)

        update.message.reply_text.assert_awaited_once_with("That voice message is too large.")

    async def test_downloads_and_transcribes(self, context, pipeline):
        router = MagicMock()
        router.voice_enabled = True
        router.handle_voice = AsyncMock(return_value=OutboundReply("done"))
        pipeline.router = router

        tg_file = MagicMock()
        tg_file.download_as_bytearray = AsyncMock(return_value=bytearray(b"OggS"))
        update = _update()
        update.message.voice.file_size = 4
        update.message.voice.get_file = AsyncMock(return_value=tg_file)

        await handle_voice(update, context)

        router.handle_voice.assert_awaited_once_with("42", b"OggS", "voice.ogg")
        assert context.bot.send_message.call_args.kwargs["text"] == "done"
