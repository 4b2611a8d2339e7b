"""FastAPI application entry point."""

import json
import logging
import os
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from config import settings
from database import init_db, close_db
from errors import DataValidationError, PermissionDeniedError, StorageError


class JSONFormatter(logging.Formatter):
    """JSON log formatter for structured log collectors."""

    def format(self, record):
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry)


# Configure logging - use JSON in production, plain text locally
log_level = getattr(logging, settings.log_level.upper(), logging.INFO)
handler = logging.StreamHandler()

if os.environ.get("RAILWAY_ENVIRONMENT") or os.environ.get("JSON_LOGS"):
    handler.setFormatter(JSONFormatter())
else:
    handler.setFormatter(logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    ))

logging.basicConfig(level=log_level, handlers=[handler])
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown events."""
    # Startup
    logger.info("Starting Task History service...")

    try:
        await init_db()
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        raise

    # Use ENABLE_SCHEDULER=false to disable in multi-process deployments
    if settings.enable_scheduler:
        try:
            from jobs.scheduler import start_scheduler
            await start_scheduler()
            logger.info("Scheduler started")
        except Exception as e:
            logger.warning(f"Scheduler not started: {e}")
    else:
        logger.info("Scheduler disabled via ENABLE_SCHEDULER=false")

    logger.info("Startup complete")
    yield

    # Shutdown
    logger.info("Shutting down...")
    if settings.enable_scheduler:
        try:
            from jobs.scheduler import stop_scheduler
            await stop_scheduler()
        except Exception as e:
            logger.warning(f"Scheduler shutdown failed: {e}")
    await close_db()
    logger.info("Shutdown complete")


# Create FastAPI app
app = FastAPI(
    title="Task History",
    description="Durable audit trail of background task executions",
    version="1.0.0",
    lifespan=lifespan,
)


@app.exception_handler(PermissionDeniedError)
async def permission_denied_handler(request: Request, exc: PermissionDeniedError):
    return JSONResponse(status_code=403, content={"detail": exc.message})


@app.exception_handler(DataValidationError)
async def validation_error_handler(request: Request, exc: DataValidationError):
    return JSONResponse(status_code=400, content={"detail": exc.message, "field": exc.field})


@app.exception_handler(StorageError)
async def storage_error_handler(request: Request, exc: StorageError):
    logger.error(f"Storage error on {request.url.path}: {exc}")
    return JSONResponse(status_code=503, content={"detail": "Task history store unavailable"})


# Health check endpoint
@app.get("/api/health")
async def health_check():
    """Health check with store reachability."""
    from services.store import get_task_history_store

    result = {"status": "healthy", "service": "task-history"}

    try:
        result["task_history_rows"] = await get_task_history_store().count()
    except Exception:
        # If DB query fails, still return basic health (server is running)
        result["status"] = "degraded"
        result["note"] = "Could not reach task history store"

    return result


# Include API routers
from api import task

app.include_router(task.router, prefix="/api/task", tags=["Task History"])


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
