from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base for models exchanged with the browser (camelCase on the wire)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class SubtaskIn(CamelModel):
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    # Manual entries are not clamped; the AI path clamps to [25, 60].
    duration: int

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v: str) -> str:
        v2 = v.strip()
        if not v2:
            raise ValueError("title must not be blank")
        return v2


class Subtask(SubtaskIn):
    id: Optional[int] = None
    order: int = 0


class ScheduledEvent(CamelModel):
    id: Optional[int] = None
    title: str
    description: Optional[str] = None
    start_time: datetime
    end_time: datetime
    buffer_minutes: int = 10
    google_event_id: Optional[str] = None


class Task(CamelModel):
    id: Optional[int] = None
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    manual: bool = False
    created_at: Optional[datetime] = None

    subtasks: List[Subtask] = Field(default_factory=list)
    schedule: List[ScheduledEvent] = Field(default_factory=list)

    def summary(self) -> dict:
        return {"id": self.id, "title": self.title, "description": self.description}


class CalendarEventResult(CamelModel):
    success: bool
    event_id: Optional[str] = None
    error: Optional[str] = None


class CalendarSyncResult(CamelModel):
    success_count: int = 0
    results: List[CalendarEventResult] = Field(default_factory=list)

    @classmethod
    def from_results(cls, results: List[CalendarEventResult]) -> "CalendarSyncResult":
        return cls(
            success_count=sum(1 for r in results if r.success),
            results=results,
        )
