"""APScheduler setup for task history housekeeping."""

import logging
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from config import settings

logger = logging.getLogger(__name__)

# Global scheduler instance
scheduler: Optional[AsyncIOScheduler] = None

CLEANUP_TASK_NAME = "task-history-cleanup"


async def cleanup_task_history_job():
    """Job: Trim task history to the configured number of rows.

    Runs under the recorder itself, so every cleanup leaves a
    "task-history-cleanup" row behind.
    """
    from services.recorder import with_task_history
    from services.retention import cleanup_task_history

    keep = settings.task_history_keep_rows

    async def cleanup():
        return await cleanup_task_history(keep)

    try:
        deleted = await with_task_history(
            {"task": CLEANUP_TASK_NAME, "task_details": {"keep": keep}},
            cleanup,
        )
    except Exception as e:
        logger.error(f"Task history cleanup failed: {e}")
        raise

    logger.info(f"Task history cleanup complete (deleted={deleted}, keep={keep})")
    return deleted


async def start_scheduler():
    """Initialize and start the scheduler."""
    global scheduler

    scheduler = AsyncIOScheduler()

    interval = settings.task_history_cleanup_interval_hours

    scheduler.add_job(
        cleanup_task_history_job,
        IntervalTrigger(hours=interval),
        id="task_history_cleanup",
        name="Trim task history",
        replace_existing=True,
    )

    scheduler.start()
    logger.info(f"Scheduler started with {interval} hour cleanup interval")


async def stop_scheduler():
    """Stop the scheduler."""
    global scheduler
    if scheduler:
        scheduler.shutdown(wait=False)
        scheduler = None
        logger.info("Scheduler stopped")
