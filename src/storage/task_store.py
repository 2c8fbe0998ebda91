"""
Task persistence for the planner.

A Task is written together with its subtasks and its schedule. Event
timestamps are stored exactly as the scheduler produced them.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from itertools import count
from typing import Dict, List, Optional, Sequence

from storage import db
from task_planner.models import ScheduledEvent, Subtask, SubtaskIn, Task

logger = logging.getLogger(__name__)


class TaskStore(ABC):

    @abstractmethod
    async def create_task(
        self,
        title: str,
        description: Optional[str],
        manual: bool,
        subtasks: Sequence[SubtaskIn],
        schedule: Sequence[ScheduledEvent],
    ) -> Task:
        """Persist a task, its subtasks (order = index) and its schedule."""

    @abstractmethod
    async def list_tasks(self) -> List[Task]:
        """All tasks, newest first, subtasks ordered by ``order``."""

    @abstractmethod
    async def get_task(self, task_id: int) -> Optional[Task]:
        ...

    @abstractmethod
    async def set_google_event_id(self, event_id: int, google_event_id: str) -> None:
        ...

    @abstractmethod
    async def delete_task(self, task_id: int) -> bool:
        """Delete a task; its subtasks and events go with it."""


class InMemoryTaskStore(TaskStore):
    """Process-local store used when no database is configured."""

    def __init__(self):
        self._tasks: Dict[int, Task] = {}
        self._task_ids = count(1)
        self._subtask_ids = count(1)
        self._event_ids = count(1)

    async def create_task(self, title, description, manual, subtasks, schedule) -> Task:
        stored_subtasks = [
            Subtask(
                id=next(self._subtask_ids),
                title=s.title,
                description=s.description,
                duration=s.duration,
                order=index,
            )
            for index, s in enumerate(subtasks)
        ]
        stored_events = [
            e.model_copy(update={"id": next(self._event_ids)}) for e in schedule
        ]
        task = Task(
            id=next(self._task_ids),
            title=title,
            description=description,
            manual=manual,
            created_at=datetime.now(timezone.utc),
            subtasks=stored_subtasks,
            schedule=stored_events,
        )
        self._tasks[task.id] = task
        return task

    async def list_tasks(self) -> List[Task]:
        return sorted(self._tasks.values(), key=lambda t: t.id, reverse=True)

    async def get_task(self, task_id: int) -> Optional[Task]:
        return self._tasks.get(task_id)

    async def set_google_event_id(self, event_id: int, google_event_id: str) -> None:
        for task in self._tasks.values():
            for i, event in enumerate(task.schedule):
                if event.id == event_id:
                    task.schedule[i] = event.model_copy(update={"google_event_id": google_event_id})
                    return
        logger.warning(f"Event {event_id} not found, google id {google_event_id} not stored")

    async def delete_task(self, task_id: int) -> bool:
        return self._tasks.pop(task_id, None) is not None


class PostgresTaskStore(TaskStore):
    """asyncpg-backed store; requires ``db.init_db_pool()`` to have run."""

    async def create_task(self, title, description, manual, subtasks, schedule) -> Task:
        async with db.transaction() as conn:
            row = await conn.fetchrow(
                """
                INSERT INTO tasks (title, description, manual)
                VALUES ($1, $2, $3)
                RETURNING id, created_at
                """,
                title,
                description,
                manual,
            )
            task_id = row["id"]

            stored_subtasks = []
            for index, s in enumerate(subtasks):
                subtask_id = await conn.fetchval(
                    """
                    INSERT INTO subtasks (task_id, title, description, duration, "order")
                    VALUES ($1, $2, $3, $4, $5)
                    RETURNING id
                    """,
                    task_id,
                    s.title,
                    s.description,
                    s.duration,
                    index,
                )
                stored_subtasks.append(
                    Subtask(id=subtask_id, title=s.title, description=s.description,
                            duration=s.duration, order=index)
                )

            stored_events = []
            for index, event in enumerate(schedule):
                subtask_id = stored_subtasks[index].id if index < len(stored_subtasks) else None
                event_id = await conn.fetchval(
                    """
                    INSERT INTO events (task_id, subtask_id, title, description,
                                        start_time, end_time, buffer_minutes)
                    VALUES ($1, $2, $3, $4, $5, $6, $7)
                    RETURNING id
                    """,
                    task_id,
                    subtask_id,
                    event.title,
                    event.description,
                    event.start_time,
                    event.end_time,
                    event.buffer_minutes,
                )
                stored_events.append(event.model_copy(update={"id": event_id}))

        logger.info(f"Stored task {task_id} with {len(stored_events)} events")
        return Task(
            id=task_id,
            title=title,
            description=description,
            manual=manual,
            created_at=row["created_at"],
            subtasks=stored_subtasks,
            schedule=stored_events,
        )

    async def _load_children(self, conn, task: Task) -> Task:
        subtask_rows = await conn.fetch(
            'SELECT id, title, description, duration, "order" FROM subtasks '
            'WHERE task_id = $1 ORDER BY "order"',
            task.id,
        )
        event_rows = await conn.fetch(
            "SELECT id, title, description, start_time, end_time, buffer_minutes, google_event_id "
            "FROM events WHERE task_id = $1 ORDER BY start_time, id",
            task.id,
        )
        task.subtasks = [Subtask(**dict(r)) for r in subtask_rows]
        task.schedule = [ScheduledEvent(**dict(r)) for r in event_rows]
        return task

    async def list_tasks(self) -> List[Task]:
        async with db.get_pool().acquire() as conn:
            rows = await conn.fetch(
                "SELECT id, title, description, manual, created_at FROM tasks "
                "ORDER BY created_at DESC, id DESC"
            )
            return [await self._load_children(conn, Task(**dict(r))) for r in rows]

    async def get_task(self, task_id: int) -> Optional[Task]:
        async with db.get_pool().acquire() as conn:
            row = await conn.fetchrow(
                "SELECT id, title, description, manual, created_at FROM tasks WHERE id = $1",
                task_id,
            )
            if row is None:
                return None
            return await self._load_children(conn, Task(**dict(row)))

    async def set_google_event_id(self, event_id: int, google_event_id: str) -> None:
        await db.get_pool().execute(
            "UPDATE events SET google_event_id = $2 WHERE id = $1",
            event_id,
            google_event_id,
        )

    async def delete_task(self, task_id: int) -> bool:
        status = await db.get_pool().execute("DELETE FROM tasks WHERE id = $1", task_id)
        return status.endswith(" 1")
