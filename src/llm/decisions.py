"""Typed decisions produced by classifying one inbound message."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from src.bot.credentials import Provider


@dataclass(frozen=True)
class Reply:
    text: str


@dataclass(frozen=True)
class AskForDetails:
    text: str


@dataclass(frozen=True)
class ScheduleMeeting:
    """A validated meeting request: ``now <= start < end``."""

    summary: str
    description: str
    start: datetime
    end: datetime
    timezone: str
    attendees: tuple[str, ...] = field(default_factory=tuple)
    provider: Provider = Provider.GOOGLE
    user_message: str = ""


@dataclass(frozen=True)
class Ignore:
    pass


@dataclass(frozen=True)
class Escalate:
    subject: str
    body: str
    suggested_reply: str
    sender_email: str


@dataclass(frozen=True)
class EmailReply:
    """Email triage chose to answer the sender directly."""

    recipient: str
    subject: str
    body: str


Decision = Reply | AskForDetails | ScheduleMeeting | Ignore | Escalate | EmailReply


@dataclass(frozen=True)
class Parsed:
    decision: Decision


@dataclass(frozen=True)
class Malformed:
    """The completion was not a JSON object; ``raw_text`` is kept verbatim."""

    raw_text: str


ParseResult = Parsed | Malformed
