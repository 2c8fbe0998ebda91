from __future__ import annotations

import os
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Callable, Iterable, List, Optional

from task_planner.models import ScheduledEvent, SubtaskIn

BUFFER_MINUTES = int(os.getenv("BUFFER_MINUTES", "10"))
SCHEDULE_GRID_MINUTES = int(os.getenv("SCHEDULE_GRID_MINUTES", "15"))


def round_up_to_grid(now: datetime, grid_minutes: int = SCHEDULE_GRID_MINUTES) -> datetime:
    """Ceiling ``now`` to the next multiple of ``grid_minutes`` within the hour.

    The result never has seconds and is never earlier than ``now``: 09:15:00
    stays put, while 09:15:40 moves on to 09:30.
    """
    base = now.replace(second=0, microsecond=0)
    remainder = base.minute % grid_minutes
    if remainder == 0 and base == now:
        return base
    return base + timedelta(minutes=grid_minutes - remainder)


def build_schedule(
    subtasks: Iterable[SubtaskIn],
    buffer_minutes: int,
    now: datetime,
    grid_minutes: int = SCHEDULE_GRID_MINUTES,
) -> List[ScheduledEvent]:
    current = round_up_to_grid(now, grid_minutes)
    schedule: List[ScheduledEvent] = []

    for subtask in subtasks:
        start = current
        end = start + timedelta(minutes=subtask.duration)
        schedule.append(
            ScheduledEvent(
                title=subtask.title,
                description=subtask.description,
                start_time=start,
                end_time=end,
                buffer_minutes=buffer_minutes,
            )
        )
        current = end + timedelta(minutes=buffer_minutes)

    return schedule


def parse_slot(value: str) -> time:
    """Parse a timeline slot "HH:MM" (or "HH"); raises ValueError when out of range."""
    h, _, m = value.partition(":")
    return time(int(h), int(m or 0))


def place_events(
    items: Iterable[dict],
    day: date,
    tz: tzinfo,
    buffer_minutes: int = BUFFER_MINUTES,
) -> List[ScheduledEvent]:
    """Build events whose start times come from explicit timeline slots.

    Each item carries ``title``, optional ``description``, ``startTime`` as
    ``"HH:MM"`` and ``duration`` in minutes. No grid rounding is applied.
    """
    events = []
    for item in items:
        start = datetime.combine(day, parse_slot(item["startTime"]), tzinfo=tz)
        end = start + timedelta(minutes=int(item["duration"]))
        events.append(
            ScheduledEvent(
                title=item.get("title") or item.get("description") or "Untitled",
                description=item.get("description"),
                start_time=start,
                end_time=end,
                buffer_minutes=int(item.get("bufferMinutes", buffer_minutes)),
            )
        )
    return events


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Scheduler:

    def __init__(
        self,
        buffer_minutes: int = BUFFER_MINUTES,
        grid_minutes: int = SCHEDULE_GRID_MINUTES,
        now_fn: Optional[Callable[[], datetime]] = None,
    ):
        self.buffer_minutes = buffer_minutes
        self.grid_minutes = grid_minutes
        self.now_fn = now_fn or _utcnow

    def schedule(self, subtasks: Iterable[SubtaskIn], now: Optional[datetime] = None) -> List[ScheduledEvent]:
        return build_schedule(
            subtasks,
            self.buffer_minutes,
            now if now is not None else self.now_fn(),
            grid_minutes=self.grid_minutes,
        )
