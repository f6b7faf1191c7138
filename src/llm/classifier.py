"""Intent classification and email triage on top of an unreliable completion.

The model is asked for a JSON decision document but nothing guarantees it
produces one. Parsing never raises: every branch degrades to a safe
decision, and text that is not a JSON object at all comes back as
``Malformed`` so the caller can fall back to the raw completion.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from src.bot.credentials import Provider
from src.bot.errors import InvalidSchedule
from src.llm.decisions import (
    AskForDetails,
    EmailReply,
    Escalate,
    Ignore,
    Malformed,
    Parsed,
    ParseResult,
    Reply,
    ScheduleMeeting,
)
from src.llm.prompt import (
    CLASSIFIER_SYSTEM_PROMPT,
    TRIAGE_PROMPT,
    build_classifier_prompt,
    build_triage_prompt,
)

logger = logging.getLogger(__name__)

DEFAULT_DETAILS_PROMPT = "Please provide a valid meeting time and duration (not in the past)."

Completer = Callable[..., Awaitable[str]]


def _str_field(doc: dict[str, Any], key: str) -> str | None:
    value = doc.get(key)
    return value if isinstance(value, str) else None


def _load_object(raw: str) -> dict[str, Any] | None:
    """Decode *raw* as a JSON object, or return None."""
    try:
        doc = json.loads(raw)
    except (ValueError, TypeError, RecursionError):
        return None
    return doc if isinstance(doc, dict) else None


def _zone(name: str | None) -> ZoneInfo | None:
    if not name:
        return None
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return None


def parse_datetime(value: Any, timezone: str | None = None) -> datetime | None:
    """Parse an ISO-8601 string into an aware datetime.

    Naive values are placed in *timezone* when it is a known IANA zone,
    otherwise UTC. Returns None for anything unparseable.
    """
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        dt = datetime.fromisoformat(value.strip())
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=_zone(timezone) or UTC)
    return dt


def resolve_provider(value: Any) -> Provider:
    """Outlook only for a JSON ``true``; everything else is Google."""
    return Provider.OUTLOOK if value is True else Provider.GOOGLE


def _reply(doc: dict[str, Any], raw: str) -> Reply:
    message = _str_field(doc, "message")
    return Reply(message if message is not None else raw)


def _ask(doc: dict[str, Any]) -> AskForDetails:
    return AskForDetails(_str_field(doc, "message") or DEFAULT_DETAILS_PROMPT)


def validate_window(
    start: datetime | None, end: datetime | None, now: datetime
) -> tuple[datetime, datetime]:
    """Check ``now <= start < end``. Raises ``InvalidSchedule`` otherwise."""
    if start is None or end is None:
        raise InvalidSchedule("missing or unparseable start/end")
    if start < now:
        raise InvalidSchedule(f"start {start.isoformat()} is in the past")
    if end <= start:
        raise InvalidSchedule("end is not after start")
    return start, end


def _schedule(doc: dict[str, Any], now: datetime) -> ScheduleMeeting | AskForDetails:
    timezone = _str_field(doc, "timeZone") or "UTC"
    try:
        start, end = validate_window(
            parse_datetime(doc.get("start"), timezone),
            parse_datetime(doc.get("end"), timezone),
            now,
        )
    except InvalidSchedule as exc:
        logger.info("Invalid schedule request: %s", exc)
        return _ask(doc)

    attendees = doc.get("attendees")
    if not isinstance(attendees, list):
        attendees = []

    return ScheduleMeeting(
        summary=_str_field(doc, "summary") or "",
        description=_str_field(doc, "description") or "",
        start=start,
        end=end,
        timezone=timezone,
        attendees=tuple(a for a in attendees if isinstance(a, str) and a.strip()),
        provider=resolve_provider(doc.get("isOutlook")),
        user_message=_str_field(doc, "userMessage") or "",
    )


def parse_completion(raw: str, now: datetime | None = None) -> ParseResult:
    """Turn a classifier completion into a ``ParseResult``. Never raises."""
    doc = _load_object(raw)
    if doc is None:
        return Malformed(raw)

    now = now or datetime.now(UTC)

    if doc.get("isScheduling") is not True:
        return Parsed(_reply(doc, raw))

    action = doc.get("action")
    if action == "schedule_meeting":
        return Parsed(_schedule(doc, now))
    if action == "ask_for_details":
        return Parsed(_ask(doc))
    return Parsed(_reply(doc, raw))


def parse_triage(
    raw: str, *, sender_email: str, subject: str, body: str
) -> Ignore | EmailReply | Escalate:
    """Turn an email triage completion into a decision. Never raises."""
    doc = _load_object(raw)
    if doc is None:
        logger.warning("Triage output was not a JSON object; ignoring email")
        return Ignore()

    action = doc.get("action")
    reply_subject = _str_field(doc, "subject") or f"Re: {subject}".strip()
    reply_body = _str_field(doc, "body") or ""

    if action == "ignore":
        return Ignore()
    if action == "escalate":
        return Escalate(
            subject=reply_subject,
            body=body,
            suggested_reply=_str_field(doc, "suggestedReply") or reply_body,
            sender_email=sender_email,
        )
    if action == "auto_reply" or (action is None and reply_body):
        if not reply_body or not sender_email:
            return Ignore()
        return EmailReply(recipient=sender_email, subject=reply_subject, body=reply_body)

    logger.warning("Unknown triage action %r; ignoring email", action)
    return Ignore()


class IntentClassifier:
    """Builds prompts, makes exactly one completion call, parses the result.

    Args:
        complete: ``complete_text``-compatible coroutine function.
        clock: Returns the current aware UTC datetime (overridable in tests).
    """

    def __init__(
        self,
        complete: Completer,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._complete = complete
        self._clock = clock or (lambda: datetime.now(UTC))

    def now(self) -> datetime:
        return self._clock()

    async def classify(self, transcript: str) -> ParseResult:
        """Classify a chat transcript. Completion failures propagate."""
        now = self.now()
        raw = await self._complete(
            [{"role": "user", "content": build_classifier_prompt(transcript, now)}],
            system=CLASSIFIER_SYSTEM_PROMPT,
        )
        logger.info("Classifier output: %s", raw[:200])
        return parse_completion(raw, now)

    async def triage(
        self, *, sender_email: str, subject: str, body: str
    ) -> Ignore | EmailReply | Escalate:
        """Decide what to do with an inbound email."""
        if not body or not body.strip():
            logger.warning("Empty email body from %s; ignoring", sender_email)
            return Ignore()
        raw = await self._complete(
            [{"role": "user", "content": build_triage_prompt(sender_email, subject, body)}],
            system=TRIAGE_PROMPT,
        )
        logger.info("Triage output: %s", raw[:200])
        return parse_triage(raw, sender_email=sender_email, subject=subject, body=body)
