import logging
import os
from typing import Iterable, List

from googleapiclient.discovery import build

from task_planner.models import CalendarEventResult, CalendarSyncResult, ScheduledEvent

logger = logging.getLogger(__name__)

CALENDAR_TIMEZONE = os.getenv("CALENDAR_TIMEZONE", "America/New_York")
CALENDAR_ID = os.getenv("CALENDAR_ID", "primary")
REMINDER_MINUTES = 10


def event_body(event: ScheduledEvent, timezone: str = CALENDAR_TIMEZONE) -> dict:
    """Google Calendar API representation of a scheduled event."""
    return {
        "summary": event.title,
        "description": event.description or "",
        "start": {"dateTime": event.start_time.isoformat(), "timeZone": timezone},
        "end": {"dateTime": event.end_time.isoformat(), "timeZone": timezone},
        "reminders": {
            "useDefault": False,
            "overrides": [{"method": "popup", "minutes": REMINDER_MINUTES}],
        },
    }


class CalendarIntegration:

    def __init__(
        self,
        credentials=None,
        timezone: str = CALENDAR_TIMEZONE,
        calendar_id: str = CALENDAR_ID,
        service=None,
    ):
        self.credentials = credentials
        self.timezone = timezone
        self.calendar_id = calendar_id
        self._service = service

    @property
    def service(self):
        if self._service is None:
            self._service = build(
                "calendar",
                "v3",
                credentials=self.credentials,
                cache_discovery=False,
            )
        return self._service

    def add_event(self, event: ScheduledEvent) -> str:
        """Insert one event and return its Google id."""
        created = (
            self.service.events()
            .insert(calendarId=self.calendar_id, body=event_body(event, self.timezone))
            .execute()
        )
        return created["id"]

    def add_events(self, events: Iterable[ScheduledEvent]) -> List[CalendarEventResult]:
        """
        Insert events one at a time.

        A failed insert is recorded in its own result and does not stop the
        remaining inserts.
        """
        results: List[CalendarEventResult] = []
        for event in events:
            try:
                event_id = self.add_event(event)
                results.append(CalendarEventResult(success=True, event_id=event_id))
            except Exception as e:
                logger.error(f"Error adding event '{event.title}': {e}")
                results.append(CalendarEventResult(success=False, error=str(e)))
        return results

    def sync(self, events: Iterable[ScheduledEvent]) -> CalendarSyncResult:
        return CalendarSyncResult.from_results(self.add_events(events))
