"""Wiring for the dispatch pipeline with its optional stages."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from src.bot.credentials import CredentialStore, Provider
from src.bot.escalation import EscalationMailbox
from src.bot.router import ActionRouter
from src.bot.scheduling import SchedulingDispatcher
from src.bot.session import ConversationMemory
from src.config import settings
from src.integrations.calendar import GoogleCalendar
from src.integrations.gmail import GmailClient
from src.integrations.outlook import OutlookCalendar
from src.llm.classifier import IntentClassifier
from src.llm.client import complete_text

logger = logging.getLogger(__name__)


@dataclass
class Pipeline:
    """The router plus the shared stores the transports also need."""

    router: ActionRouter
    memory: ConversationMemory
    credentials: CredentialStore
    mailbox: EscalationMailbox | None
    gmail: GmailClient
    outlook: OutlookCalendar | None = None

    async def aclose(self) -> None:
        """Release HTTP clients held by the adapters."""
        if self.outlook is not None:
            await self.outlook.aclose()


def build_pipeline(
    *,
    voice: bool | None = None,
    escalation: bool | None = None,
    credentials: CredentialStore | None = None,
) -> Pipeline:
    """Build the production pipeline.

    ``voice`` and ``escalation`` default to the corresponding settings.
    """
    voice = settings.voice_enabled if voice is None else voice
    escalation = settings.escalation_enabled if escalation is None else escalation

    transcriber = None
    if voice:
        from src.integrations.transcription import transcribe

        transcriber = transcribe

    memory = ConversationMemory()
    credentials = credentials or CredentialStore(settings.credentials_path)
    mailbox = EscalationMailbox() if escalation else None
    gmail = GmailClient()
    outlook = OutlookCalendar()

    router = ActionRouter(
        classifier=IntentClassifier(complete_text),
        dispatcher=SchedulingDispatcher({
            Provider.GOOGLE: GoogleCalendar(),
            Provider.OUTLOOK: outlook,
        }),
        memory=memory,
        credentials=credentials,
        mailbox=mailbox,
        email=gmail,
        transcriber=transcriber,
    )
    logger.info("Pipeline built: voice=%s, escalation=%s", voice, escalation)
    return Pipeline(
        router=router,
        memory=memory,
        credentials=credentials,
        mailbox=mailbox,
        gmail=gmail,
        outlook=outlook,
    )
