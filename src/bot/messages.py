"""Message — an inbound chat or email event normalised for the dispatcher."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum


class Origin(StrEnum):
    CHAT = "chat"
    EMAIL = "email"


@dataclass(frozen=True)
class Message:
    """An inbound event for one session.

    Attributes:
        session_id: Stable chat identifier (string for cross-channel compat).
        origin: Where the event came from.
        text: Message text, or the email body for email-origin messages.
        timestamp: When the event was received (aware, UTC).
        sender_email: Sender address, email origin only.
        subject: Email subject, email origin only.
    """

    session_id: str
    origin: Origin
    text: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
    sender_email: str = ""
    subject: str = ""

    @classmethod
    def chat(cls, session_id: str | int, text: str) -> "Message":
        return cls(session_id=str(session_id), origin=Origin.CHAT, text=text)

    @classmethod
    def email(
        cls, session_id: str | int, *, sender_email: str, subject: str, body: str
    ) -> "Message":
        return cls(
            session_id=str(session_id),
            origin=Origin.EMAIL,
            text=body,
            sender_email=sender_email,
            subject=subject,
        )

    def transcript_text(self) -> str:
        """Text recorded in conversation memory for this message."""
        if self.origin is Origin.EMAIL:
            return f"[Email from {self.sender_email}: {self.subject}] {self.text}"
        return self.text
