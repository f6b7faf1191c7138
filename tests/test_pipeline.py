"""Tests for pipeline wiring and inbound message normalisation."""

from src.bot.credentials import CredentialStore
from src.bot.messages import Message, Origin
from src.bot.pipeline import build_pipeline


def test_chat_message() -> None:
    msg = Message.chat(42, "hello")
    assert msg.session_id == "42"
    assert msg.origin is Origin.CHAT
    assert msg.transcript_text() == "hello"
    assert msg.timestamp.tzinfo is not None


def test_email_message_transcript() -> None:
    msg = Message.email("abc", sender_email="amy@x.com", subject="Lunch", body="Friday?")
    assert msg.origin is Origin.EMAIL
    assert msg.text == "Friday?"
    assert msg.transcript_text() == "[Email from amy@x.com: Lunch] Friday?"


def test_build_pipeline_all_stages() -> None:
    store = CredentialStore()
    pipeline = build_pipeline(voice=True, escalation=True, credentials=store)

    assert pipeline.router.voice_enabled
    assert pipeline.router.escalation_enabled
    assert pipeline.mailbox is not None
    assert pipeline.credentials is store


def test_build_pipeline_minimal() -> None:
    pipeline = build_pipeline(voice=False, escalation=False, credentials=CredentialStore())

    assert not pipeline.router.voice_enabled
    assert not pipeline.router.escalation_enabled
    assert pipeline.mailbox is None


def test_build_pipeline_defaults_from_settings() -> None:
    pipeline = build_pipeline(credentials=CredentialStore())
    assert pipeline.router.voice_enabled
    assert pipeline.router.escalation_enabled


async def test_pipeline_closes_outlook_adapter() -> None:
    pipeline = build_pipeline(voice=False, escalation=False, credentials=CredentialStore())
    assert pipeline.outlook is not None
    pipeline.outlook._get_client()

    await pipeline.aclose()

    assert pipeline.outlook._client is None
