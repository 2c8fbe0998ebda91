import logging
from typing import Optional

from fastapi import Depends, Request

from api.backend import PlannerBackend
from api.state import AppState
from integration.calendar_integration import CalendarIntegration
from ocr.text_extractor import TextExtractor
from storage.google_auth import GoogleAuthStore
from storage.task_store import TaskStore
from task_planner.errors import CalendarNotConnected

logger = logging.getLogger(__name__)

DEFAULT_USER_ID = "default"


def get_app_state(request: Request) -> AppState:
    return request.app.state.planner


def get_task_store(state: AppState = Depends(get_app_state)) -> TaskStore:
    return state.store


def get_backend(state: AppState = Depends(get_app_state)) -> PlannerBackend:
    return state.backend


def get_text_extractor(state: AppState = Depends(get_app_state)) -> TextExtractor:
    return state.ocr


def get_google_auth_store(state: AppState = Depends(get_app_state)) -> Optional[GoogleAuthStore]:
    return state.google_auth_store


async def get_calendar_integration(
    google_auth_store: Optional[GoogleAuthStore] = Depends(get_google_auth_store),
) -> CalendarIntegration:
    """A fresh calendar client per request; tokens may have been refreshed."""
    creds = None
    if google_auth_store is not None:
        creds = await google_auth_store.get_credentials(DEFAULT_USER_ID)
    if creds is None:
        raise CalendarNotConnected("Google Calendar not connected")
    return CalendarIntegration(credentials=creds)
