"""Shared test fixtures."""

from datetime import UTC, datetime
from unittest.mock import AsyncMock

import pytest

from src.bot.credentials import CredentialStore
from src.bot.escalation import EscalationMailbox
from src.bot.router import ActionRouter
from src.bot.session import ConversationMemory
from src.llm.classifier import IntentClassifier

FIXED_NOW = datetime(2025, 6, 1, 9, 0, tzinfo=UTC)


@pytest.fixture
def memory():
    return ConversationMemory(window_size=10)


@pytest.fixture
def credentials(tmp_path):
    """A credential store backed by a file in a temp directory."""
    return CredentialStore(tmp_path / "credentials.json")


@pytest.fixture
def mailbox():
    return EscalationMailbox()


@pytest.fixture
def complete():
    """Stand-in for ``complete_text``; set ``return_value`` per test."""
    return AsyncMock(return_value='{"isScheduling": false, "message": "ok"}')


@pytest.fixture
def classifier(complete):
    return IntentClassifier(complete, clock=lambda: FIXED_NOW)


@pytest.fixture
def dispatcher():
    d = AsyncMock()
    d.dispatch.return_value = "Meeting scheduled successfully! Here is your event: https://cal/e1"
    return d


@pytest.fixture
def email():
    sender = AsyncMock()
    sender.send_email.return_value = "sent-1"
    return sender


@pytest.fixture
def router(classifier, dispatcher, memory, credentials, mailbox, email):
    return ActionRouter(
        classifier=classifier,
        dispatcher=dispatcher,
        memory=memory,
        credentials=credentials,
        mailbox=mailbox,
        email=email,
    )
