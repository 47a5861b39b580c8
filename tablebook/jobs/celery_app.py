"""Celery application configuration"""

from celery import Celery
from celery.schedules import crontab

from tablebook.config import settings

# Create Celery app
celery_app = Celery(
    "tablebook",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=[
        "tablebook.jobs.tasks",
    ],
)

# Configure Celery
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=300,  # 5 minutes
    worker_prefetch_multiplier=1,
    task_acks_late=True,
    task_reject_on_worker_lost=True,

    # Beat schedule for periodic tasks
    beat_schedule={
        "daily-reminders": {
            "task": "daily_reminders",
            "schedule": crontab(hour=10, minute=0),
        },
        "mark-no-shows": {
            "task": "mark_no_shows",
            "schedule": crontab(minute=0),  # Every hour
        },
        "auto-release-tables": {
            "task": "auto_release_tables",
            "schedule": crontab(minute="*/15"),
        },
        "cleanup-expired": {
            "task": "cleanup_expired",
            "schedule": crontab(hour=2, minute=0),
        },
        "weekly-stats": {
            "task": "weekly_stats",
            "schedule": crontab(hour=9, minute=0, day_of_week=1),  # Mondays
        },
    },
)
