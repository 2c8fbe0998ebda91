from dataclasses import dataclass
from typing import Optional

from api.backend import PlannerBackend
from ocr.text_extractor import TextExtractor
from storage.google_auth import GoogleAuthStore
from storage.task_store import TaskStore


@dataclass(frozen=True)
class AppState:
    """Everything request handlers share, built once at startup.

    Stored on ``app.state.planner`` and handed out through dependencies
    instead of module-level globals.
    """

    store: TaskStore
    backend: PlannerBackend
    ocr: TextExtractor
    google_auth_store: Optional[GoogleAuthStore] = None
    storage_kind: str = "in-memory"
