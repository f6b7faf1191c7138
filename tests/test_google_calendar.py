"""Tests for the Google Calendar adapter."""

from datetime import UTC, datetime
from unittest.mock import MagicMock, patch

import pytest
from google.auth.exceptions import RefreshError
from googleapiclient.errors import HttpError

from src.bot.errors import UpstreamUnavailable
from src.integrations.calendar import CalendarAdapter, CalendarEvent, GoogleCalendar


def _event(**overrides) -> CalendarEvent:
    fields = {
        "summary": "Sync",
        "description": "Weekly",
        "start": datetime(2025, 6, 2, 10, tzinfo=UTC),
        "end": datetime(2025, 6, 2, 11, tzinfo=UTC),
        "timezone": "UTC",
        "attendees": ["bob@x.com"],
    }
    fields.update(overrides)
    return CalendarEvent(**fields)


@pytest.fixture
def cal_mock():
    service = MagicMock()
    with patch("src.integrations.calendar.calendar_service", return_value=service) as factory:
        service.factory = factory
        yield service


def test_satisfies_adapter_protocol() -> None:
    assert isinstance(GoogleCalendar(), CalendarAdapter)


def test_body_shape() -> None:
    body = GoogleCalendar._body(_event())
    assert body == {
        "summary": "Sync",
        "description": "Weekly",
        "start": {"dateTime": "2025-06-02T10:00:00+00:00", "timeZone": "UTC"},
        "end": {"dateTime": "2025-06-02T11:00:00+00:00", "timeZone": "UTC"},
        "attendees": [{"email": "bob@x.com"}],
    }


def test_body_omits_empty_optional_fields() -> None:
    body = GoogleCalendar._body(_event(description="", attendees=[]))
    assert "description" not in body
    assert "attendees" not in body


async def test_create_event_success(cal_mock):
    cal_mock.events().insert().execute.return_value = {
        "id": "ev1",
        "htmlLink": "https://calendar.google.com/event?eid=ev1",
    }

    result = await GoogleCalendar(calendar_id="team").create_event("google-rt", _event())

    assert result.success
    assert result.event_id == "ev1"
    assert result.web_link == "https://calendar.google.com/event?eid=ev1"
    cal_mock.factory.assert_called_once_with("google-rt")
    kwargs = cal_mock.events().insert.call_args.kwargs
    assert kwargs["calendarId"] == "team"
    assert kwargs["body"]["summary"] == "Sync"


async def test_create_event_default_calendar(cal_mock):
    cal_mock.events().insert().execute.return_value = {"id": "ev1"}

    result = await GoogleCalendar().create_event("google-rt", _event())

    assert result.web_link is None
    assert cal_mock.events().insert.call_args.kwargs["calendarId"] == "primary"


async def test_create_event_http_error_is_reported(cal_mock):
    resp = MagicMock(status=403, reason="Forbidden")
    error = HttpError(resp, b'{"error": {"message": "Rate Limit Exceeded"}}')
    cal_mock.events().insert().execute.side_effect = error

    result = await GoogleCalendar().create_event("google-rt", _event())

    assert not result.success
    assert result.error == error.reason


async def test_create_event_auth_failure_raises():
    with (
        patch(
            "src.integrations.calendar.calendar_service",
            side_effect=RefreshError("invalid_grant"),
        ),
        pytest.raises(UpstreamUnavailable),
    ):
        await GoogleCalendar().create_event("revoked-rt", _event())
