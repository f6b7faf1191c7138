"""Scheduling dispatcher — turns a validated meeting decision into one calendar call."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from src.bot.credentials import Provider
from src.integrations.calendar import CalendarEvent, CalendarResult

if TYPE_CHECKING:
    from src.integrations.calendar import CalendarAdapter
    from src.llm.decisions import ScheduleMeeting

logger = logging.getLogger(__name__)

SCHEDULED_WITH_LINK = "Meeting scheduled successfully! Here is your event: {link}"
SCHEDULED_NO_LINK = "Meeting scheduled, but no event link was returned."
SCHEDULE_FAILED = "Failed to schedule meeting: {reason}"
SCHEDULE_ERROR = "Sorry, I couldn't schedule the meeting due to an error."


def build_event(decision: ScheduleMeeting) -> CalendarEvent:
    """Provider-neutral payload for *decision*."""
    return CalendarEvent(
        summary=decision.summary,
        description=decision.description,
        start=decision.start,
        end=decision.end,
        timezone=decision.timezone,
        attendees=list(decision.attendees),
    )


def compose_reply(decision: ScheduleMeeting, result: CalendarResult) -> str:
    """User-facing text for a calendar outcome."""
    if not result.success:
        return SCHEDULE_FAILED.format(reason=result.error)
    link = result.web_link or ""
    if decision.user_message and link:
        return f"{decision.user_message}\n{link}"
    if link:
        return SCHEDULED_WITH_LINK.format(link=link)
    return SCHEDULED_NO_LINK


class SchedulingDispatcher:
    """Forwards one event to the calendar adapter chosen by the decision.

    Args:
        calendars: Adapter per provider.
    """

    def __init__(self, calendars: dict[Provider, CalendarAdapter]) -> None:
        self._calendars = {Provider(k): v for k, v in calendars.items()}

    def supports(self, provider: Provider) -> bool:
        return Provider(provider) in self._calendars

    async def dispatch(self, decision: ScheduleMeeting, credential: str) -> str:
        """Create the event and return the reply text. Never raises."""
        adapter = self._calendars.get(decision.provider)
        if adapter is None:
            logger.error("No calendar adapter configured for %s", decision.provider)
            return SCHEDULE_ERROR

        event = build_event(decision)
        try:
            result = await adapter.create_event(credential, event)
        except Exception:
            logger.exception("Calendar call to %s failed", decision.provider)
            return SCHEDULE_ERROR

        if result.success:
            logger.info("Scheduled %r on %s (%s)", event.summary, decision.provider, result.event_id)
        return compose_reply(decision, result)
