import asyncio
import logging
import os
import time
from typing import List, Optional

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from pydantic import BaseModel, Field, field_validator

from api.backend import PlannerBackend
from api.dependencies import get_backend, get_task_store, get_text_extractor
from api.metrics import EVENTS_SCHEDULED_TOTAL, SUBTASKS_GENERATED_TOTAL, record_request
from ocr.text_extractor import TextExtractor
from storage.task_store import TaskStore
from task_planner.errors import BreakdownError, OCRError
from task_planner.models import SubtaskIn, Task

router = APIRouter()
logger = logging.getLogger(__name__)

MAX_UPLOAD_BYTES = int(os.getenv("MAX_UPLOAD_BYTES", str(5 * 1024 * 1024)))


class TaskIn(BaseModel):
    title: str = Field(..., min_length=1)
    description: Optional[str] = None

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v: str) -> str:
        v2 = v.strip()
        if not v2:
            raise ValueError("Task title is required")
        return v2


class ScheduleIn(TaskIn):
    subtasks: List[SubtaskIn]
    manual: bool = False


def _task_response(task: Task) -> dict:
    return {
        "success": True,
        "task": task.summary(),
        "schedule": [e.to_json() for e in task.schedule],
    }


@router.post("/api/ocr")
@router.post("/ingest/image")
async def extract_text(
    image: Optional[UploadFile] = File(None),
    extractor: TextExtractor = Depends(get_text_extractor),
) -> dict:
    """Extract text from an uploaded image (multipart field ``image``)."""
    started = time.time()
    if image is None:
        raise HTTPException(status_code=400, detail="No image file provided")
    if not (image.content_type or "").startswith("image/"):
        raise HTTPException(status_code=400, detail="Only image files are allowed")

    data = await image.read(MAX_UPLOAD_BYTES + 1)
    if len(data) > MAX_UPLOAD_BYTES:
        raise HTTPException(status_code=400, detail="Image exceeds the 5MB upload limit")

    logger.info(f"Processing OCR for uploaded image ({len(data)} bytes)")
    try:
        text = await asyncio.to_thread(extractor.extract, data)
    except OCRError as e:
        logger.error(f"OCR Error: {e}")
        record_request("/api/ocr", "failed", started, time.time())
        raise HTTPException(status_code=500, detail=str(e))

    record_request("/api/ocr", "ok", started, time.time())
    return {"success": True, "text": text}


@router.post("/api/ai-breakdown")
async def ai_breakdown(
    payload: TaskIn,
    backend: PlannerBackend = Depends(get_backend),
) -> dict:
    started = time.time()
    logger.info(f"Generating AI breakdown for task: {payload.title}")
    try:
        subtasks = await backend.breakdown(payload.title, payload.description)
    except BreakdownError as e:
        logger.error(f"AI Breakdown Error: {e}")
        record_request("/api/ai-breakdown", "failed", started, time.time())
        raise HTTPException(status_code=502, detail=str(e))

    SUBTASKS_GENERATED_TOTAL.inc(len(subtasks))
    record_request("/api/ai-breakdown", "ok", started, time.time())
    return {"success": True, "subtasks": [s.to_json() for s in subtasks]}


@router.post("/api/schedule")
async def create_schedule(
    payload: ScheduleIn,
    backend: PlannerBackend = Depends(get_backend),
) -> dict:
    """Persist a task with the given subtasks and a buffered schedule starting now."""
    started = time.time()
    logger.info(f"Creating schedule for task: {payload.title}")

    task = await backend.plan(
        payload.title, payload.description, payload.subtasks, manual=payload.manual
    )

    EVENTS_SCHEDULED_TOTAL.inc(len(task.schedule))
    record_request("/api/schedule", "ok", started, time.time())
    return _task_response(task)


@router.post("/ingest/text")
async def ingest_text(
    payload: TaskIn,
    backend: PlannerBackend = Depends(get_backend),
) -> dict:
    """AI breakdown and scheduling in one round trip."""
    started = time.time()
    try:
        task = await backend.ingest_text(payload.title, payload.description)
    except BreakdownError as e:
        logger.error(f"AI Breakdown Error: {e}")
        record_request("/ingest/text", "failed", started, time.time())
        raise HTTPException(status_code=502, detail=str(e))

    SUBTASKS_GENERATED_TOTAL.inc(len(task.subtasks))
    EVENTS_SCHEDULED_TOTAL.inc(len(task.schedule))
    record_request("/ingest/text", "ok", started, time.time())
    return {
        **_task_response(task),
        "subtasks": [s.to_json() for s in task.subtasks],
    }


@router.get("/api/tasks")
async def list_tasks(store: TaskStore = Depends(get_task_store)) -> dict:
    started = time.time()
    tasks = await store.list_tasks()
    record_request("/api/tasks", "ok", started, time.time())
    return {"success": True, "tasks": [t.to_json() for t in tasks]}


@router.delete("/api/tasks/{task_id}")
async def delete_task(task_id: int, store: TaskStore = Depends(get_task_store)) -> dict:
    if not await store.delete_task(task_id):
        raise HTTPException(status_code=404, detail="Task not found")
    return {"success": True}
