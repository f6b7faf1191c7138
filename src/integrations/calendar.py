"""Calendar collaborators: the provider-neutral payload and the Google adapter."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol, runtime_checkable

from google.auth.exceptions import GoogleAuthError
from googleapiclient.errors import HttpError

from src.bot.errors import UpstreamUnavailable
from src.config import settings
from src.integrations.google_auth import calendar_service

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CalendarEvent:
    """Provider-neutral event payload."""

    summary: str
    description: str
    start: datetime
    end: datetime
    timezone: str = "UTC"
    attendees: list[str] = field(default_factory=list)


@dataclass
class CalendarResult:
    """Outcome of an event insert. ``error`` carries the provider's reason."""

    event_id: str | None = None
    web_link: str | None = None
    error: str | None = None

    @property
    def success(self) -> bool:
        return self.error is None


@runtime_checkable
class CalendarAdapter(Protocol):
    """Creates one event with a session's credential. Single shot, no retry."""

    name: str

    async def create_event(self, credential: str, event: CalendarEvent) -> CalendarResult: ...


class GoogleCalendar:
    """Google Calendar via ``googleapiclient``."""

    name = "google"

    def __init__(self, calendar_id: str | None = None) -> None:
        self._calendar_id = calendar_id or settings.google_calendar_id

    @staticmethod
    def _body(event: CalendarEvent) -> dict:
        body: dict = {
            "summary": event.summary,
            "start": {"dateTime": event.start.isoformat(), "timeZone": event.timezone},
            "end": {"dateTime": event.end.isoformat(), "timeZone": event.timezone},
        }
        if event.description:
            body["description"] = event.description
        if event.attendees:
            body["attendees"] = [{"email": email} for email in event.attendees]
        return body

    def _insert(self, credential: str, body: dict) -> dict:
        service = calendar_service(credential)
        return service.events().insert(calendarId=self._calendar_id, body=body).execute()

    async def create_event(self, credential: str, event: CalendarEvent) -> CalendarResult:
        try:
            created = await asyncio.to_thread(self._insert, credential, self._body(event))
        except HttpError as exc:
            reason = exc.reason or str(exc)
            logger.warning("Google Calendar insert failed: %s", reason)
            return CalendarResult(error=reason)
        except GoogleAuthError as exc:
            raise UpstreamUnavailable(f"Google authorization failed: {exc}") from exc

        logger.info("Created Google event: %s", created.get("id"))
        return CalendarResult(event_id=created.get("id"), web_link=created.get("htmlLink"))
