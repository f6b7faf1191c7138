"""Tests for the Outlook (Microsoft Graph) calendar adapter."""

import json
from datetime import UTC, datetime
from urllib.parse import parse_qs

import httpx
import pytest

from src.bot.errors import UpstreamUnavailable
from src.integrations.calendar import CalendarAdapter, CalendarEvent
from src.integrations.outlook import EVENTS_ENDPOINT, TOKEN_ENDPOINT, OutlookCalendar


def _event(**overrides) -> CalendarEvent:
    fields = {
        "summary": "Sync",
        "description": "Weekly",
        "start": datetime(2025, 6, 2, 8, tzinfo=UTC),
        "end": datetime(2025, 6, 2, 9, tzinfo=UTC),
        "timezone": "Europe/Berlin",
        "attendees": ["bob@x.com"],
    }
    fields.update(overrides)
    return CalendarEvent(**fields)


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def _graph(token_response: httpx.Response, event_response: httpx.Response | None = None):
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        if str(request.url) == TOKEN_ENDPOINT:
            return token_response
        if str(request.url) == EVENTS_ENDPOINT and event_response is not None:
            return event_response
        return httpx.Response(404)

    return handler, requests


def test_satisfies_adapter_protocol() -> None:
    assert isinstance(OutlookCalendar(), CalendarAdapter)


def test_body_uses_wall_clock_in_event_zone() -> None:
    body = OutlookCalendar._body(_event())
    assert body["subject"] == "Sync"
    assert body["start"] == {"dateTime": "2025-06-02T10:00:00", "timeZone": "Europe/Berlin"}
    assert body["end"] == {"dateTime": "2025-06-02T11:00:00", "timeZone": "Europe/Berlin"}
    assert body["attendees"] == [
        {"emailAddress": {"address": "bob@x.com"}, "type": "required"}
    ]


def test_body_unknown_zone_falls_back_to_utc() -> None:
    body = OutlookCalendar._body(_event(timezone="Mars/Olympus"))
    assert body["start"] == {"dateTime": "2025-06-02T08:00:00", "timeZone": "UTC"}


async def test_create_event_success() -> None:
    handler, requests = _graph(
        httpx.Response(200, json={"access_token": "at-1"}),
        httpx.Response(201, json={"id": "o1", "webLink": "https://outlook.live.com/o1"}),
    )
    calendar = OutlookCalendar(_client(handler))

    result = await calendar.create_event("outlook-rt", _event())

    assert result.success
    assert result.event_id == "o1"
    assert result.web_link == "https://outlook.live.com/o1"

    token_form = parse_qs(requests[0].content.decode())
    assert token_form["grant_type"] == ["refresh_token"]
    assert token_form["refresh_token"] == ["outlook-rt"]
    assert requests[1].headers["Authorization"] == "Bearer at-1"
    assert json.loads(requests[1].content)["subject"] == "Sync"
    await calendar.aclose()


async def test_token_refresh_failure_is_reported() -> None:
    handler, requests = _graph(
        httpx.Response(400, json={"error": "invalid_grant", "error_description": "Token expired"}),
    )
    calendar = OutlookCalendar(_client(handler))

    result = await calendar.create_event("stale-rt", _event())

    assert result.error == "Token expired"
    assert len(requests) == 1


async def test_graph_error_message_is_reported() -> None:
    handler, _ = _graph(
        httpx.Response(200, json={"access_token": "at-1"}),
        httpx.Response(403, json={"error": {"code": "ErrorAccessDenied", "message": "Access is denied."}}),
    )

    result = await OutlookCalendar(_client(handler)).create_event("outlook-rt", _event())

    assert not result.success
    assert result.error == "Access is denied."


async def test_non_json_error_uses_reason_phrase() -> None:
    handler, _ = _graph(
        httpx.Response(200, json={"access_token": "at-1"}),
        httpx.Response(503, text="<html>down</html>"),
    )

    result = await OutlookCalendar(_client(handler)).create_event("outlook-rt", _event())

    assert result.error == "Service Unavailable"


async def test_transport_error_raises() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("no route", request=request)

    with pytest.raises(UpstreamUnavailable):
        await OutlookCalendar(_client(handler)).create_event("outlook-rt", _event())
