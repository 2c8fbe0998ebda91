import logging

from fastapi import APIRouter, Depends, Response
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST

from api.dependencies import get_app_state
from api.state import AppState
from storage import db

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/api/health")
async def health_check(state: AppState = Depends(get_app_state)) -> dict:
    health = {
        "status": "ok",
        "message": "AI Planner API is running",
        "storage": state.storage_kind,
    }

    if state.storage_kind == "postgres":
        db_health = await db.health_check()
        health["database"] = db_health
        if db_health["status"] != "healthy":
            health["status"] = "degraded"

    return health


@router.get("/metrics")
async def metrics() -> Response:
    """Prometheus scrape endpoint."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
