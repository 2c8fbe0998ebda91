from datetime import datetime, timezone
from unittest.mock import MagicMock

from integration.calendar_integration import CalendarIntegration, event_body
from task_planner.models import ScheduledEvent


def _event(title, hour):
    return ScheduledEvent(
        title=title,
        description=f"{title} notes",
        start_time=datetime(2025, 3, 10, hour, 0, tzinfo=timezone.utc),
        end_time=datetime(2025, 3, 10, hour, 30, tzinfo=timezone.utc),
    )


def test_event_body_shape():
    body = event_body(_event("Draft", 9), timezone="Europe/Berlin")
    assert body["summary"] == "Draft"
    assert body["description"] == "Draft notes"
    assert body["start"] == {"dateTime": "2025-03-10T09:00:00+00:00", "timeZone": "Europe/Berlin"}
    assert body["end"]["dateTime"] == "2025-03-10T09:30:00+00:00"
    assert body["reminders"] == {"useDefault": False, "overrides": [{"method": "popup", "minutes": 10}]}


def test_add_event_returns_remote_id():
    service = MagicMock()
    service.events().insert().execute.return_value = {"id": "g-1"}

    cal = CalendarIntegration(service=service, calendar_id="work")
    assert cal.add_event(_event("A", 9)) == "g-1"

    _, kwargs = service.events().insert.call_args
    assert kwargs["calendarId"] == "work"
    assert kwargs["body"]["summary"] == "A"


def test_partial_failure_keeps_going():
    service = MagicMock()
    service.events().insert().execute.side_effect = [
        {"id": "g-1"},
        RuntimeError("quota exceeded"),
        {"id": "g-3"},
    ]

    cal = CalendarIntegration(service=service)
    result = cal.sync([_event("A", 9), _event("B", 10), _event("C", 11)])

    assert result.success_count == 2
    assert [r.success for r in result.results] == [True, False, True]
    assert result.results[0].event_id == "g-1"
    assert result.results[1].error == "quota exceeded"
    assert result.results[2].event_id == "g-3"


def test_empty_batch():
    result = CalendarIntegration(service=MagicMock()).sync([])
    assert result.success_count == 0
    assert result.results == []
