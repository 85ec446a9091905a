from celery import Celery
from celery.schedules import crontab

from listingsync.core.config import settings

celery = Celery(
    "listing-sync-worker",
    broker=settings.rabbitmq_url,
    backend=settings.redis_url,
    include=["worker.tasks"],
)

celery.conf.update(
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    task_default_queue="default",
    task_routes={
        "worker.tasks.run_listing_sync": {"queue": "sync"},
    },
    timezone=settings.sync_schedule_timezone,
    enable_utc=True,
    beat_schedule={
        "daily-listing-sync": {
            "task": "worker.tasks.run_listing_sync",
            "schedule": crontab(hour=settings.sync_schedule_hour, minute=settings.sync_schedule_minute),
        },
    },
)
