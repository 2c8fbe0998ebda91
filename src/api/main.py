import logging
import os
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.backend import PlannerBackend
from api.routers import auth, calendar, ops, planner
from api.state import AppState
from ocr.text_extractor import TextExtractor
from storage import db
from storage.google_auth import GoogleAuthStore
from storage.task_store import InMemoryTaskStore, PostgresTaskStore
from task_planner.errors import CalendarNotConnected, TaskNotFound

# Logging configuration
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s"
)
logger = logging.getLogger(__name__)

USE_DATABASE = os.getenv(
    "USE_DATABASE", "true" if os.getenv("DATABASE_URL") else "false"
).lower() in {"1", "true", "yes"}


async def build_state() -> AppState:
    if USE_DATABASE:
        await db.init_db_pool()
        await db.init_schema()
        store = PostgresTaskStore()
        storage_kind = "postgres"
    else:
        logger.info("USE_DATABASE is off; tasks are kept in memory")
        store = InMemoryTaskStore()
        storage_kind = "in-memory"

    return AppState(
        store=store,
        backend=PlannerBackend(store),
        ocr=TextExtractor(),
        google_auth_store=GoogleAuthStore(persistent=USE_DATABASE),
        storage_kind=storage_kind,
    )


async def _http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


async def _validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    logger.info(f"Rejected invalid request to {request.url.path}: {errors}")
    message = "Invalid request data"
    if any(tuple(e.get("loc", ())) == ("body", "title") for e in errors):
        message = "Task title is required"
    return JSONResponse(status_code=400, content={"success": False, "error": message})


async def _calendar_not_connected(request: Request, exc: CalendarNotConnected) -> JSONResponse:
    return JSONResponse(status_code=503, content={"success": False, "error": str(exc)})


async def _task_not_found(request: Request, exc: TaskNotFound) -> JSONResponse:
    return JSONResponse(status_code=404, content={"success": False, "error": str(exc)})


async def _unhandled_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(status_code=500, content={"success": False, "error": str(exc)})


def create_app(state: Optional[AppState] = None) -> FastAPI:
    """Build the app; pass ``state`` to skip the startup wiring (tests)."""
    app = FastAPI(title="AI Task Planner", version="1.0.0")

    app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])
    app.add_exception_handler(StarletteHTTPException, _http_error)
    app.add_exception_handler(RequestValidationError, _validation_error)
    app.add_exception_handler(CalendarNotConnected, _calendar_not_connected)
    app.add_exception_handler(TaskNotFound, _task_not_found)
    app.add_exception_handler(Exception, _unhandled_error)

    app.include_router(ops.router, tags=["ops"])
    app.include_router(planner.router, tags=["planner"])
    app.include_router(calendar.router, tags=["calendar"])
    app.include_router(auth.router, tags=["auth"])

    if state is not None:
        app.state.planner = state
        return app

    @app.on_event("startup")
    async def startup() -> None:
        app.state.planner = await build_state()
        logger.info(f"AI Planner ready (storage: {app.state.planner.storage_kind})")

    @app.on_event("shutdown")
    async def shutdown() -> None:
        logger.info("Shutting down, closing database pool")
        await db.close_db_pool()

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("api.main:app", host="0.0.0.0", port=int(os.getenv("PORT", "5000")))
