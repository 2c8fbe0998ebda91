import asyncio
import logging
from typing import List, Optional, Sequence

from extraction.task_breakdown import TaskBreakdown
from integration.calendar_integration import CalendarIntegration
from scheduling.scheduler import Scheduler
from storage.task_store import TaskStore
from task_planner.errors import TaskNotFound
from task_planner.models import CalendarSyncResult, ScheduledEvent, Subtask, SubtaskIn, Task

logger = logging.getLogger(__name__)


class PlannerBackend:
    """Central orchestration: breakdown -> schedule -> persist -> calendar."""

    def __init__(
        self,
        store: TaskStore,
        breakdown: Optional[TaskBreakdown] = None,
        scheduler: Optional[Scheduler] = None,
    ):
        self.store = store
        self.breakdown_service = breakdown or TaskBreakdown()
        self.scheduler = scheduler or Scheduler()

    async def breakdown(self, title: str, description: Optional[str] = None) -> List[Subtask]:
        # The provider call is blocking httpx; keep it off the event loop
        subtasks = await asyncio.to_thread(self.breakdown_service.generate, title, description)
        logger.info(f"AI breakdown generated {len(subtasks)} subtasks for '{title}'")
        return subtasks

    async def plan(
        self,
        title: str,
        description: Optional[str],
        subtasks: Sequence[SubtaskIn],
        manual: bool = False,
    ) -> Task:
        """Schedule the subtasks from now and persist everything as one task."""
        schedule = self.scheduler.schedule(subtasks)
        task = await self.store.create_task(title, description, manual, subtasks, schedule)
        logger.info(f"Schedule created with {len(task.schedule)} events for task {task.id}")
        return task

    async def ingest_text(self, title: str, description: Optional[str] = None) -> Task:
        subtasks = await self.breakdown(title, description)
        return await self.plan(title, description, subtasks, manual=False)

    async def push_to_calendar(
        self,
        calendar: CalendarIntegration,
        events: Sequence[ScheduledEvent],
        task_id: Optional[int] = None,
    ) -> CalendarSyncResult:
        """
        Insert events into Google Calendar and record the remote ids.

        Remote ids are only written back for events that belong to
        ``task_id``; without a task nothing is written back. Per-event
        failures are reported in the result, never raised.
        """
        owned = set()
        if task_id is not None:
            task = await self.store.get_task(task_id)
            if task is None:
                raise TaskNotFound(f"Task {task_id} not found")
            owned = {e.id for e in task.schedule if e.id is not None}

        result = await asyncio.to_thread(calendar.sync, events)

        for event, outcome in zip(events, result.results):
            if outcome.success and event.id in owned:
                await self.store.set_google_event_id(event.id, outcome.event_id)
            elif outcome.success and event.id is not None:
                logger.warning(f"Event {event.id} is not part of task {task_id}; remote id not stored")

        logger.info(f"Successfully added {result.success_count}/{len(events)} events to calendar")
        return result
