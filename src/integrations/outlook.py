"""Outlook calendar via the Microsoft identity platform and Microsoft Graph."""

from __future__ import annotations

import logging
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import httpx

from src.bot.errors import UpstreamUnavailable
from src.config import settings
from src.integrations.calendar import CalendarEvent, CalendarResult

logger = logging.getLogger(__name__)

TOKEN_ENDPOINT = "https://login.microsoftonline.com/common/oauth2/v2.0/token"
EVENTS_ENDPOINT = "https://graph.microsoft.com/v1.0/me/events"

# Graph expects wall-clock time without an offset alongside an explicit zone.
_GRAPH_DATETIME = "%Y-%m-%dT%H:%M:%S"


def _graph_error(resp: httpx.Response) -> str:
    """Best human-readable reason from a failed Graph or token response."""
    try:
        data = resp.json()
    except ValueError:
        return resp.reason_phrase or f"HTTP {resp.status_code}"
    error = data.get("error")
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    if data.get("error_description"):
        return str(data["error_description"])
    return resp.reason_phrase or f"HTTP {resp.status_code}"


class OutlookCalendar:
    """Creates events with ``httpx``. One token exchange, one insert, no retry."""

    name = "outlook"

    def __init__(self, client: httpx.AsyncClient | None = None) -> None:
        self._client = client

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=settings.http_timeout_seconds)
        return self._client

    async def _access_token(self, refresh_token: str) -> str | CalendarResult:
        resp = await self._get_client().post(
            TOKEN_ENDPOINT,
            data={
                "client_id": settings.outlook_client_id,
                "client_secret": settings.outlook_client_secret,
                "scope": settings.outlook_scope,
                "refresh_token": refresh_token,
                "redirect_uri": settings.outlook_redirect_uri,
                "grant_type": "refresh_token",
            },
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )
        if resp.status_code != 200:
            reason = _graph_error(resp)
            logger.warning("Outlook token refresh failed (%d): %s", resp.status_code, reason)
            return CalendarResult(error=reason)
        return resp.json()["access_token"]

    @staticmethod
    def _body(event: CalendarEvent) -> dict:
        tz = event.timezone or "UTC"
        try:
            zone = ZoneInfo(tz)
        except (ZoneInfoNotFoundError, ValueError):
            tz, zone = "UTC", ZoneInfo("UTC")
        start = event.start.astimezone(zone).strftime(_GRAPH_DATETIME)
        end = event.end.astimezone(zone).strftime(_GRAPH_DATETIME)
        body: dict = {
            "subject": event.summary,
            "body": {"contentType": "text", "content": event.description},
            "start": {"dateTime": start, "timeZone": tz},
            "end": {"dateTime": end, "timeZone": tz},
        }
        if event.attendees:
            body["attendees"] = [
                {"emailAddress": {"address": email}, "type": "required"}
                for email in event.attendees
            ]
        return body

    async def create_event(self, credential: str, event: CalendarEvent) -> CalendarResult:
        try:
            token = await self._access_token(credential)
            if isinstance(token, CalendarResult):
                return token
            resp = await self._get_client().post(
                EVENTS_ENDPOINT,
                json=self._body(event),
                headers={"Authorization": f"Bearer {token}"},
            )
        except httpx.HTTPError as exc:
            raise UpstreamUnavailable(f"Outlook request failed: {exc}") from exc

        if resp.status_code not in (200, 201):
            reason = _graph_error(resp)
            logger.warning("Outlook event insert failed (%d): %s", resp.status_code, reason)
            return CalendarResult(error=reason)

        created = resp.json()
        logger.info("Created Outlook event: %s", created.get("id"))
        return CalendarResult(event_id=created.get("id"), web_link=created.get("webLink"))

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
