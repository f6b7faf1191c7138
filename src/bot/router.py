"""Action router — the per-message state machine of the dispatcher.

One inbound message moves a session through::

    Idle -> Classifying -> {Replying, Scheduling, Escalating, Ignoring} -> Idle

The whole turn runs under the session's lock, so chat updates and email
triage for the same session serialize while other sessions proceed
independently. Every failure at a dispatch boundary becomes a chat reply
(or, for email triage, a log line); nothing escapes ``handle()`` except
cancellation.

Optional stages are chosen at construction: pass ``transcriber`` to accept
voice input and ``mailbox`` to enable the escalation workflow.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from enum import StrEnum
from typing import TYPE_CHECKING, Protocol

from src.bot.credentials import OutboundReply, Provider, authorization_reply
from src.bot.errors import MissingCredential
from src.bot.escalation import EscalatedItem, format_notification, parse_command
from src.bot.messages import Message, Origin
from src.bot.registry import SessionRegistry
from src.bot.session import Speaker
from src.llm.decisions import (
    AskForDetails,
    Decision,
    EmailReply,
    Escalate,
    Ignore,
    Malformed,
    Reply,
    ScheduleMeeting,
)

if TYPE_CHECKING:
    from src.bot.credentials import CredentialStore
    from src.bot.escalation import EscalationMailbox
    from src.bot.scheduling import SchedulingDispatcher
    from src.bot.session import ConversationMemory
    from src.llm.classifier import IntentClassifier

logger = logging.getLogger(__name__)

APOLOGY = "Sorry, I couldn't get a response right now."
NO_PENDING = "There is no pending email to reply to."
VOICE_UNSUPPORTED = "Sorry, voice messages aren't supported here. Please type your message."
TRANSCRIPTION_FAILED = "Sorry, I couldn't understand that voice message."
SEND_FAILED = "Sorry, I couldn't send the email reply. It is still waiting for your decision."

Transcriber = Callable[[bytes, str], Awaitable[str]]


class EmailSender(Protocol):
    async def send_email(self, credential: str, to: str, subject: str, body: str) -> str: ...


class RouterState(StrEnum):
    IDLE = "idle"
    CLASSIFYING = "classifying"
    REPLYING = "replying"
    SCHEDULING = "scheduling"
    ESCALATING = "escalating"
    IGNORING = "ignoring"


class ActionRouter:
    """Routes each inbound message to a reply, a schedule, an escalation or nothing.

    Args:
        classifier: Intent classifier (one completion call per message).
        dispatcher: Scheduling dispatcher for validated meetings.
        memory: Conversation memory shared with the transports.
        credentials: Per-session OAuth token store.
        mailbox: Escalation mailbox; ``None`` disables the escalation stage.
        email: Email collaborator used for escalation replies and auto-replies.
        transcriber: Speech-to-text coroutine; ``None`` disables voice input.
    """

    def __init__(
        self,
        *,
        classifier: IntentClassifier,
        dispatcher: SchedulingDispatcher,
        memory: ConversationMemory,
        credentials: CredentialStore,
        mailbox: EscalationMailbox | None = None,
        email: EmailSender | None = None,
        transcriber: Transcriber | None = None,
    ) -> None:
        self._classifier = classifier
        self._dispatcher = dispatcher
        self._memory = memory
        self._credentials = credentials
        self._mailbox = mailbox
        self._email = email
        self._transcriber = transcriber
        self._states: SessionRegistry[RouterState] = SessionRegistry(lambda: RouterState.IDLE)

    @property
    def escalation_enabled(self) -> bool:
        return self._mailbox is not None

    @property
    def voice_enabled(self) -> bool:
        return self._transcriber is not None

    def state(self, session_id: str) -> RouterState:
        return self._states.get(session_id) or RouterState.IDLE

    def _set_state(self, session_id: str, state: RouterState) -> None:
        self._states.set(session_id, state)
        logger.debug("Session %s -> %s", session_id, state)

    # -- Entry points ----------------------------------------------------------

    async def handle(self, message: Message) -> OutboundReply | None:
        """Process one inbound message and return the outbound reply, if any."""
        sid = message.session_id
        async with self._states.lock(sid):
            self._memory.append(sid, Speaker.USER, message.transcript_text())
            try:
                reply = await self._route(message)
            finally:
                self._set_state(sid, RouterState.IDLE)
            if reply is not None:
                self._memory.append(sid, Speaker.AI, reply.text)
            return reply

    async def handle_voice(
        self, session_id: str, audio: bytes, filename: str = "voice.ogg"
    ) -> OutboundReply | None:
        """Transcribe a voice note and process it as a chat message."""
        if self._transcriber is None:
            return OutboundReply(VOICE_UNSUPPORTED)
        try:
            text = await self._transcriber(audio, filename)
        except Exception:
            logger.exception("Transcription failed for session %s", session_id)
            return OutboundReply(TRANSCRIPTION_FAILED)
        if not text:
            return OutboundReply(TRANSCRIPTION_FAILED)
        logger.info("Voice from %s: %s", session_id, text[:80])
        return await self.handle(Message.chat(session_id, text))

    # -- Routing ---------------------------------------------------------------

    async def _route(self, message: Message) -> OutboundReply | None:
        sid = message.session_id

        if message.origin is Origin.EMAIL:
            return await self._triage(message)

        if self._mailbox is not None:
            command = parse_command(message.text)
            pending = self._mailbox.get(sid)
            if pending is not None:
                if command is None:
                    logger.info(
                        "Session %s has a pending escalation; not classifying %r",
                        sid,
                        message.text[:80],
                    )
                    return None
                return await self._resolve(sid, pending, command)
            if command is not None:
                return OutboundReply(NO_PENDING)

        self._set_state(sid, RouterState.CLASSIFYING)
        try:
            result = await self._classifier.classify(self._memory.render(sid))
        except Exception:
            logger.exception("Classification failed for session %s", sid)
            self._set_state(sid, RouterState.REPLYING)
            return OutboundReply(APOLOGY)

        if isinstance(result, Malformed):
            logger.warning("Classifier output was not JSON; replying verbatim")
            return await self._dispatch(sid, Reply(result.raw_text))
        return await self._dispatch(sid, result.decision)

    async def _dispatch(self, sid: str, decision: Decision) -> OutboundReply | None:
        if isinstance(decision, (Reply, AskForDetails)):
            self._set_state(sid, RouterState.REPLYING)
            return OutboundReply(decision.text)

        if isinstance(decision, ScheduleMeeting):
            self._set_state(sid, RouterState.SCHEDULING)
            return await self._schedule(sid, decision)

        if isinstance(decision, Escalate):
            if self._mailbox is None:
                logger.info("Escalation disabled; dropping email from %s", decision.sender_email)
                self._set_state(sid, RouterState.IGNORING)
                return None
            self._set_state(sid, RouterState.ESCALATING)
            item = EscalatedItem(
                sender_email=decision.sender_email,
                subject=decision.subject,
                body=decision.body,
                suggested_reply=decision.suggested_reply,
            )
            self._mailbox.put(sid, item)
            return OutboundReply(format_notification(item))

        if isinstance(decision, EmailReply):
            self._set_state(sid, RouterState.REPLYING)
            await self._auto_reply(sid, decision)
            return None

        self._set_state(sid, RouterState.IGNORING)
        return None

    async def _schedule(self, sid: str, decision: ScheduleMeeting) -> OutboundReply:
        try:
            credential = self._credentials.require(sid, decision.provider)
        except MissingCredential:
            logger.info("Session %s has no %s credential; sending auth link", sid, decision.provider)
            return authorization_reply(
                sid, decision.provider, f"schedule a meeting in {decision.provider.label}"
            )
        return OutboundReply(await self._dispatcher.dispatch(decision, credential))

    async def _triage(self, message: Message) -> OutboundReply | None:
        sid = message.session_id
        self._set_state(sid, RouterState.CLASSIFYING)
        try:
            decision = await self._classifier.triage(
                sender_email=message.sender_email,
                subject=message.subject,
                body=message.text,
            )
        except Exception:
            logger.exception("Email triage failed for session %s", sid)
            self._set_state(sid, RouterState.IGNORING)
            return None
        return await self._dispatch(sid, decision)

    # -- Email sends -----------------------------------------------------------

    async def _resolve(
        self, sid: str, pending: EscalatedItem, command: tuple[str, str]
    ) -> OutboundReply:
        kind, custom_body = command
        self._set_state(sid, RouterState.REPLYING)

        try:
            credential = self._credentials.require(sid, Provider.GOOGLE)
        except MissingCredential:
            return authorization_reply(sid, Provider.GOOGLE, "send email replies")
        if self._email is None:
            logger.error("No email collaborator configured; cannot resolve escalation")
            return OutboundReply(SEND_FAILED)

        chosen = pending.suggested_reply if kind == "ai" else custom_body
        resolution = self._mailbox.resolve(sid, chosen) if self._mailbox else None
        if resolution is None:
            return OutboundReply(NO_PENDING)

        item = resolution.item
        try:
            await self._email.send_email(credential, item.sender_email, item.subject, resolution.body)
        except Exception:
            logger.exception("Escalation reply to %s failed", item.sender_email)
            self._mailbox.restore(sid, item)
            return OutboundReply(SEND_FAILED)

        label = "AI answer sent" if kind == "ai" else "Your reply sent"
        return OutboundReply(f"{label}: {resolution.body}")

    async def _auto_reply(self, sid: str, decision: EmailReply) -> None:
        credential = self._credentials.get(sid, Provider.GOOGLE)
        if credential is None or self._email is None:
            logger.warning("Cannot auto-reply to %s: email sending unavailable", decision.recipient)
            return
        try:
            await self._email.send_email(
                credential, decision.recipient, decision.subject, decision.body
            )
        except Exception:
            logger.exception("Auto-reply to %s failed", decision.recipient)
