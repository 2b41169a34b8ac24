"""FastAPI application entrypoint for the SMS parking booking assistant."""

import logging
import time
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from apps.api.deps import get_booking_context, get_clock, get_db
from apps.api.routers import payments_webhook, sms_webhook
from core.logging import setup_logging
from core.settings import settings
from db.session import init_db
from services.context import BookingContext
from services.conversation_store import Clock, ConversationStore
from services.scheduler import ScheduledNotificationRunner


logger = logging.getLogger(__name__)

STARTED_AT = time.monotonic()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.
    Handles startup and shutdown events.
    """
    setup_logging()
    logger.info(f"Starting {settings.app_name}...")

    # Production schemas are managed by alembic
    if not settings.is_production:
        try:
            init_db()
            logger.info("Database initialized successfully")
        except SQLAlchemyError as e:
            logger.error(f"Failed to initialize database: {e}")
            raise

    if settings.sms_dry_run:
        logger.warning("Twilio credentials missing: outbound SMS will only be logged")

    logger.info("Application startup complete")

    yield

    logger.info(f"Shutting down {settings.app_name}...")


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    description="SMS booking assistant for overnight truck parking",
    version="1.0.0",
    lifespan=lifespan
)

# Include routers
app.include_router(sms_webhook.router)
app.include_router(payments_webhook.router)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "app": settings.app_name,
        "status": "running",
        "version": "1.0.0"
    }


@app.get("/health")
async def health_check(context: BookingContext = Depends(get_booking_context)):
    """
    Health check endpoint; also the poll trigger for deferred work.

    Each hit expires idle conversations and dispatches due scheduled messages.
    """
    runner = ScheduledNotificationRunner(context)
    try:
        expired = runner.expire_idle_conversations()
        dispatched = runner.run_due()
    except Exception:
        logger.exception("Health check failed")
        context.store.session.rollback()
        return JSONResponse(status_code=500, content={"status": "unhealthy"})

    return {"status": "healthy", "expired": expired, "dispatched": dispatched}


@app.get("/status")
async def status(db: Session = Depends(get_db), clock: Clock = Depends(get_clock)):
    """Observability counters; a failing count is reported as null."""
    store = ConversationStore(db, clock)
    now = clock()

    def safe_count(fn, *args):
        try:
            return fn(*args)
        except SQLAlchemyError:
            logger.exception("Status query failed")
            db.rollback()
            return None

    return {
        "server_time": now.isoformat(),
        "uptime_seconds": int(time.monotonic() - STARTED_AT),
        "active_conversations": safe_count(store.count_active_conversations),
        "due_scheduled_messages": safe_count(store.count_due_scheduled_messages, now),
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "apps.api.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_reload
    )
