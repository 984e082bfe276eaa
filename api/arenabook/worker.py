"""Celery worker: periodic recurrence generation and booking settlement.

Run the worker and beat with:
    celery -A arenabook.worker worker --beat --loglevel=info
"""

import asyncio
import logging

from celery import Celery
from celery.schedules import crontab

from arenabook.core.config import settings
from arenabook.core.database import async_session_factory, engine
from arenabook.core.exceptions import StorageError
from arenabook.services.lifecycle import settle_completed_bookings
from arenabook.services.recurrence import generate_for_active_schedules
from arenabook.services.time_window import local_now

logger = logging.getLogger(__name__)

celery_app = Celery(
    "arenabook",
    broker=settings.redis_url,
    backend=settings.redis_url,
)

celery_app.conf.update(
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone=settings.timezone,
    enable_utc=True,
    beat_schedule={
        "generate-recurring-bookings": {
            "task": "arenabook.worker.generate_recurring_bookings_task",
            "schedule": crontab(minute=0, hour=2),
        },
        "settle-completed-bookings": {
            "task": "arenabook.worker.settle_completed_bookings_task",
            "schedule": crontab(minute=15),
        },
    },
)


async def _generate(weeks: int | None) -> dict[int, int]:
    # Each task runs in a fresh event loop; pooled connections belong to the old one
    await engine.dispose()
    async with async_session_factory() as db:
        created = await generate_for_active_schedules(db, week_count=weeks)
    return created


async def _settle() -> int:
    await engine.dispose()
    async with async_session_factory() as db:
        settled = await settle_completed_bookings(db, local_now())
        await db.commit()
    return settled


@celery_app.task(bind=True, max_retries=3)
def generate_recurring_bookings_task(self, weeks: int | None = None):
    """Top up every active schedule's bookings to the generation horizon."""
    try:
        created = asyncio.run(_generate(weeks))
    except StorageError as exc:
        logger.error("Recurring generation failed: %s", exc)
        raise self.retry(exc=exc, countdown=60 * (self.request.retries + 1)) from exc

    total = sum(created.values())
    logger.info("Recurring generation: %d bookings across %d schedules", total, len(created))
    return {"status": "success", "created": total, "schedules": len(created)}


@celery_app.task(bind=True, max_retries=3)
def settle_completed_bookings_task(self):
    """Persist Completed for open bookings that have ended."""
    try:
        settled = asyncio.run(_settle())
    except StorageError as exc:
        logger.error("Settling completed bookings failed: %s", exc)
        raise self.retry(exc=exc, countdown=60 * (self.request.retries + 1)) from exc

    return {"status": "success", "settled": settled}
