"""Escalation mailbox — one pending human decision per session.

When email triage decides an inbound email needs a human, the item is
parked here and the chat session enters a restricted mode where only the
two resolution commands are accepted:

* ``/ai_reply`` sends the AI's suggested reply.
* ``/reply <text>`` sends the user's own text.

The mailbox is a single slot, not a queue: a second escalation for the
same session replaces the first.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from src.bot.registry import SessionRegistry

logger = logging.getLogger(__name__)

AI_REPLY_COMMAND = "/ai_reply"
CUSTOM_REPLY_COMMAND = "/reply"

_MAX_PREVIEW = 1000


@dataclass(frozen=True)
class EscalatedItem:
    """An inbound email awaiting the user's choice of reply."""

    sender_email: str
    subject: str
    body: str
    suggested_reply: str


@dataclass(frozen=True)
class Resolution:
    """A consumed item plus the body chosen for the outbound email."""

    item: EscalatedItem
    body: str


class EscalationMailbox:
    def __init__(self) -> None:
        self._items: SessionRegistry[EscalatedItem] = SessionRegistry()

    def put(self, session_id: str, item: EscalatedItem) -> None:
        """Park *item* for *session_id*, discarding any pending one."""
        previous = self._items.get(session_id)
        if previous is not None:
            logger.warning(
                "Session %s: replacing pending escalation %r with %r",
                session_id,
                previous.subject,
                item.subject,
            )
        self._items.set(session_id, item)

    def get(self, session_id: str) -> EscalatedItem | None:
        return self._items.get(session_id)

    def has_pending(self, session_id: str) -> bool:
        return self._items.get(session_id) is not None

    def resolve(self, session_id: str, chosen_body: str) -> Resolution | None:
        """Remove and return the pending item. ``None`` if nothing is pending."""
        item = self._items.pop(session_id)
        if item is None:
            logger.info("Session %s: resolve with no pending escalation", session_id)
            return None
        logger.info("Session %s: resolved escalation %r", session_id, item.subject)
        return Resolution(item=item, body=chosen_body)

    def restore(self, session_id: str, item: EscalatedItem) -> None:
        """Put *item* back unless a newer one arrived meanwhile."""
        if self._items.get(session_id) is None:
            self._items.set(session_id, item)


def parse_command(text: str) -> tuple[str, str] | None:
    """Recognize a resolution command.

    Returns ``("ai", "")`` for ``/ai_reply`` and ``("custom", body)`` for
    ``/reply <body>``; anything else is ``None``. A ``@BotName`` suffix on
    the command, as Telegram sends in group chats, is ignored.
    """
    parts = text.strip().split(maxsplit=1)
    if not parts:
        return None
    command = parts[0].split("@", 1)[0]
    rest = parts[1].strip() if len(parts) > 1 else ""
    if command == AI_REPLY_COMMAND:
        return ("ai", "")
    if command == CUSTOM_REPLY_COMMAND and rest:
        return ("custom", rest)
    return None


def _trunc(text: str, limit: int = _MAX_PREVIEW) -> str:
    if len(text) <= limit:
        return text
    return text[:limit] + "…"


def format_notification(item: EscalatedItem) -> str:
    """Chat text announcing a pending item and the two available commands."""
    lines = [
        "📧 New email needs your decision",
        f"From: {item.sender_email}",
        f"Subject: {item.subject}",
        "",
        _trunc(item.body),
    ]
    if item.suggested_reply:
        lines += ["", f"Suggested reply: {_trunc(item.suggested_reply)}"]
    lines += [
        "",
        f"{AI_REPLY_COMMAND} - send the suggested reply",
        f"{CUSTOM_REPLY_COMMAND} <your message> - send your own reply",
    ]
    return "\n".join(lines)
