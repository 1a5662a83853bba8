from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError, OperationalError
from sqlalchemy.orm.exc import StaleDataError
from starlette import status
from remindme.database import Base, engine, open_session
from remindme.config import settings
from remindme.middleware.request_logging import request_logging_middleware
from remindme import models  # noqa: F401
from remindme.limits import limiter, RateLimitExceeded, SlowAPIMiddleware
from remindme.jobs.notification_job import NotificationJob
from remindme.jobs.scheduler import SchedulerService
from remindme.pubsub.hub import Hub
from remindme.push.background import BackgroundTaskPool
from remindme.push.clients import build_dispatcher
from remindme.services.propagation import ChangePropagator
from slowapi import _rate_limit_exceeded_handler
import logging

logger = logging.getLogger(__name__)


from remindme.routers import (
    cron,
    devices,
    lists,
    reminders,
    sync,
    users,
    websocket,
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    scheduler = None
    if settings.SCHEDULER_ENABLED:
        job = NotificationJob(open_session, app.state.dispatcher) if app.state.dispatcher else None
        scheduler = SchedulerService(job, session_factory=open_session)
        scheduler.start()
    yield
    if scheduler is not None:
        scheduler.stop()
    app.state.background.shutdown(wait=False)
    if app.state.dispatcher is not None:
        app.state.dispatcher.close()


app = FastAPI(lifespan=lifespan)
app.middleware("http")(request_logging_middleware)

# CORS (permissive for development; tighten in production)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Rate limiting middleware and handler
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)

# Push and live-feed plumbing shared by all requests
app.state.hub = Hub(queue_size=settings.HUB_QUEUE_SIZE)
app.state.background = BackgroundTaskPool(max_workers=settings.BACKGROUND_WORKERS)
app.state.dispatcher = build_dispatcher(settings, open_session)
app.state.propagator = ChangePropagator(
    app.state.hub, app.state.dispatcher, app.state.background
)


@app.exception_handler(StaleDataError)
async def stale_data_error_handler(request: Request, exc: StaleDataError):
    """Concurrent writers raced on the same row version"""
    logger.info(f"Version conflict on {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={"detail": "Resource was modified concurrently", "error": "version_conflict"},
    )


# Database error handler
@app.exception_handler(OperationalError)
async def database_operational_error_handler(request: Request, exc: OperationalError):
    """Handle database connection/operation errors"""
    logger.error(f"Database operational error: {exc}", exc_info=True)
    error_msg = str(exc).lower()

    if "could not connect" in error_msg or "connection" in error_msg:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "detail": "Database connection error. Please try again.",
                "error": "database_connection_error",
            },
        )
    elif "timeout" in error_msg:
        return JSONResponse(
            status_code=status.HTTP_504_GATEWAY_TIMEOUT,
            content={
                "detail": "Database query timeout. Please try again.",
                "error": "database_timeout",
            },
        )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Database error occurred", "error": "database_error"},
    )


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    """Handle general SQLAlchemy errors"""
    logger.error(f"Database error: {exc}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Database error occurred", "error": "database_error"},
    )


# Only create tables for SQLite (local dev); other databases use Alembic
if settings.DATABASE_URL.startswith("sqlite"):
    Base.metadata.create_all(bind=engine)


@app.get("/healthy", status_code=status.HTTP_200_OK)
def health_check():
    return {"status": "Healthy"}


app.include_router(reminders.router)
app.include_router(lists.router)
app.include_router(devices.router)
app.include_router(sync.router)
app.include_router(users.router)
app.include_router(cron.router)
app.include_router(websocket.router)
