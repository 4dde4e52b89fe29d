from contextlib import asynccontextmanager

from fastapi import FastAPI, Depends
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from sqlalchemy import text

from mindwell.db.base import get_db
from mindwell.core.config import settings
from mindwell.core.logging_config import configure_logging
from mindwell.jobs.scheduler import start_scheduler, stop_scheduler
from mindwell.routers import activities as activities_router
from mindwell.routers import checkins as checkins_router
from mindwell.routers import goals as goals_router
from mindwell.routers import notifications as notifications_router
from mindwell.routers import progress as progress_router
from mindwell.services.events import event_bus
from mindwell.services.listeners import register_listeners
from mindwell.core.errors import (
    MindWellException,
    mindwell_exception_handler,
    validation_exception_handler,
    unhandled_exception_handler,
)

configure_logging()
register_listeners(event_bus)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Only the instance started with ENABLE_SCHEDULER=true runs the goal sweeps.
    scheduler = start_scheduler() if settings.ENABLE_SCHEDULER else None
    try:
        yield
    finally:
        stop_scheduler(scheduler)


app = FastAPI(
    title="MindWell API",
    description=(
        "**Mental-wellness tracking backend**\n\n"
        "Check-ins with risk and sentiment analysis, wellness goals with live "
        "progress, streaks, badges and goal notifications.\n\n"
        "Every request identifies its user with the `X-User-Id` header.\n\n"
        "All error responses follow the `{code, message, details}` envelope."
    ),
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# --- CORS ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# --- Exception handlers (most specific first) ---
app.add_exception_handler(MindWellException, mindwell_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

# --- Routers ---
app.include_router(goals_router.router)
app.include_router(checkins_router.router)
app.include_router(activities_router.router)
app.include_router(progress_router.router)
app.include_router(notifications_router.router)


@app.get("/health", tags=["health"], summary="Health check")
def health(db: Session = Depends(get_db)):
    """
    Returns `{"status": "ok", "db": "ok"}` when both the API and the database
    are reachable, plus whether this instance runs the goal scheduler.
    Returns HTTP 503 if the DB is down.
    """
    try:
        db.execute(text("SELECT 1"))
        db_status = "ok"
    except Exception:
        db_status = "unreachable"

    if db_status != "ok":
        return JSONResponse(
            status_code=503,
            content={"status": "error", "db": db_status},
        )
    return {
        "status": "ok",
        "db": "ok",
        "env": settings.APP_ENV,
        "scheduler": settings.ENABLE_SCHEDULER,
        "classifier": "llm" if settings.llm_enabled else "rules",
    }
