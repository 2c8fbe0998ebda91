import logging
import time
from datetime import datetime
from typing import List, Optional
from zoneinfo import ZoneInfo

from fastapi import APIRouter, Depends
from pydantic import Field, field_validator

from api.backend import PlannerBackend
from api.dependencies import get_backend, get_calendar_integration
from api.metrics import CALENDAR_EVENTS_TOTAL, record_request
from integration.calendar_integration import CALENDAR_TIMEZONE, CalendarIntegration
from scheduling.scheduler import parse_slot, place_events
from task_planner.models import CalendarSyncResult, CamelModel, ScheduledEvent

router = APIRouter()
logger = logging.getLogger(__name__)


class AddEventsIn(CamelModel):
    task_id: int
    events: List[ScheduledEvent]


class AgendaItemIn(CamelModel):
    title: Optional[str] = None
    description: Optional[str] = None
    start_time: str = Field(..., pattern=r"^\d{1,2}(:\d{2})?$")  # timeline slot, "HH:MM"
    duration: int = 30
    buffer_minutes: int = 10

    @field_validator("start_time")
    @classmethod
    def slot_in_range(cls, v: str) -> str:
        try:
            parse_slot(v)
        except ValueError:
            raise ValueError("startTime must be a time of day between 00:00 and 23:59")
        return v


class AgendaIn(CamelModel):
    task_title: Optional[str] = None
    events: List[AgendaItemIn]


def _sync_response(result: CalendarSyncResult) -> dict:
    for r in result.results:
        CALENDAR_EVENTS_TOTAL.labels(outcome="success" if r.success else "failure").inc()
    return {
        "success": True,
        "message": f"Successfully added {result.success_count} events to Google Calendar",
        **result.to_json(),
    }


@router.post("/api/calendar/add-events")
async def add_events(
    payload: AddEventsIn,
    backend: PlannerBackend = Depends(get_backend),
    calendar: CalendarIntegration = Depends(get_calendar_integration),
) -> dict:
    """Push a task's schedule to Google Calendar, one insert per event."""
    started = time.time()
    logger.info(f"Adding {len(payload.events)} events to Google Calendar for task {payload.task_id}")
    result = await backend.push_to_calendar(calendar, payload.events, task_id=payload.task_id)
    record_request("/api/calendar/add-events", "ok", started, time.time())
    return _sync_response(result)


@router.post("/agenda")
async def push_agenda(
    payload: AgendaIn,
    backend: PlannerBackend = Depends(get_backend),
    calendar: CalendarIntegration = Depends(get_calendar_integration),
) -> dict:
    """
    Push events placed on today's timeline.

    Start times come straight from the slot the user dropped each subtask
    on; they are not rounded to the scheduling grid.
    """
    started = time.time()
    tz = ZoneInfo(CALENDAR_TIMEZONE)
    events = place_events(
        [item.model_dump(by_alias=True) for item in payload.events],
        day=datetime.now(tz).date(),
        tz=tz,
    )
    logger.info(f"Pushing agenda '{payload.task_title}' with {len(events)} events")
    result = await backend.push_to_calendar(calendar, events)
    record_request("/agenda", "ok", started, time.time())
    return _sync_response(result)
