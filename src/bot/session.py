"""In-memory conversation memory with a bounded sliding window per session."""

import logging
from dataclasses import dataclass, field
from enum import StrEnum

from src.bot.registry import SessionRegistry
from src.config import settings

logger = logging.getLogger(__name__)


class Speaker(StrEnum):
    USER = "User"
    AI = "AI"


@dataclass(frozen=True)
class Entry:
    """A single conversation turn."""

    speaker: Speaker
    text: str

    def render(self) -> str:
        return f"{self.speaker}: {self.text}"


@dataclass
class Session:
    """Conversation history for a single chat."""

    entries: list[Entry] = field(default_factory=list)
    window_size: int = field(default_factory=lambda: settings.conversation_window_size)

    def add(self, speaker: Speaker, text: str) -> None:
        """Append an entry and trim to the sliding window (oldest evicted first)."""
        self.entries.append(Entry(speaker=Speaker(speaker), text=text))
        if len(self.entries) > self.window_size:
            self.entries = self.entries[-self.window_size :]

    def clear(self) -> int:
        """Clear all entries. Returns the count of cleared entries."""
        count = len(self.entries)
        self.entries.clear()
        return count

    def render(self) -> str:
        """Format the transcript as ``speaker: text`` lines for prompts."""
        return "\n".join(e.render() for e in self.entries)


class ConversationMemory:
    """Bounded per-session transcripts keyed by session id."""

    def __init__(self, window_size: int | None = None) -> None:
        size = window_size or settings.conversation_window_size
        self._sessions: SessionRegistry[Session] = SessionRegistry(
            lambda: Session(window_size=size)
        )

    def session(self, session_id: str) -> Session:
        """Get or create the session for *session_id*."""
        return self._sessions.get_or_create(session_id)

    def append(self, session_id: str, speaker: Speaker, text: str) -> None:
        self.session(session_id).add(speaker, text)

    def render(self, session_id: str) -> str:
        return self.session(session_id).render()

    def history(self, session_id: str) -> list[Entry]:
        """Return a copy of the entries for *session_id*."""
        return list(self.session(session_id).entries)

    def clear(self, session_id: str) -> int:
        return self.session(session_id).clear()
