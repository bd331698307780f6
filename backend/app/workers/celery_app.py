from celery import Celery
from celery.schedules import crontab
from app.core.config import settings

celery_app = Celery(
    "classroom_workers",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=3600,
    worker_prefetch_multiplier=1,
    beat_schedule={
        "send-deadline-reminders": {
            "task": "app.workers.tasks.send_deadline_reminders_task",
            "schedule": crontab(hour=settings.DEADLINE_REMINDER_HOUR, minute=0),
        },
    },
)

celery_app.autodiscover_tasks(["app.workers"])
