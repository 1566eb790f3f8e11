from celery import Celery
from celery.schedules import crontab

from core.config import settings

# Use Redis for production/development
broker_url = settings.REDIS_URL
backend_url = settings.REDIS_URL

# Create Celery app
celery_app = Celery(
    "local_marketplace",
    broker=broker_url,
    backend=backend_url,
    include=["tasks.email_tasks", "tasks.trial_tasks"]
)

# Configure Celery
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=30 * 60,  # 30 minutes
    task_soft_time_limit=25 * 60,  # 25 minutes
    worker_prefetch_multiplier=1,
    worker_max_tasks_per_child=1000,
    task_always_eager=False,
    task_eager_propagates=False,
)

# Trial sweeps and impression retention
celery_app.conf.beat_schedule = {
    "trial-notifications": {
        "task": "tasks.trial_tasks.process_trial_notifications_task",
        "schedule": crontab(minute=0, hour="*/6"),
    },
    "expired-trials": {
        "task": "tasks.trial_tasks.process_expired_trials_task",
        "schedule": crontab(minute=30, hour=0),
    },
    "impression-cleanup": {
        "task": "tasks.trial_tasks.cleanup_old_impressions_task",
        "schedule": crontab(minute=0, hour=2, day_of_week=0),
    },
}
