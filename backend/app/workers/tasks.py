import asyncio
import logging

from app.workers.celery_app import celery_app
from app.core.database import AsyncSessionLocal, engine
from app.services.notification_service import notification_service

logger = logging.getLogger(__name__)


def run_async(coro):
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@celery_app.task(bind=True, max_retries=3)
def send_deadline_reminders_task(self):
    async def _sweep():
        try:
            async with AsyncSessionLocal() as db:
                return await notification_service.send_deadline_reminders(db)
        finally:
            # Pooled connections are bound to this run's loop, which closes afterwards
            await engine.dispose()

    try:
        sent = run_async(_sweep())
    except Exception as e:
        logger.error(f"Deadline sweep failed: {e}")
        raise self.retry(exc=e, countdown=300)

    return {"reminders": sent}
