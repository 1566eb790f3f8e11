import logging

from core.celery import celery_app
from core.db import db_session
from services import impressions as impression_service
from services import trial as trial_service

logger = logging.getLogger(__name__)


@celery_app.task
def process_trial_notifications_task():
    """Send due trial reminders. Scheduled every six hours."""
    with db_session() as db:
        sent = trial_service.process_trial_notifications(db)
    return {"status": "ok", "sent": sent}


@celery_app.task
def process_expired_trials_task():
    """Downgrade stores whose trial has ended. Scheduled daily."""
    with db_session() as db:
        downgraded = trial_service.process_expired_trials(db)
    if downgraded:
        logger.info("Expired trial sweep downgraded %s stores", downgraded)
    return {"status": "ok", "downgraded": downgraded}


@celery_app.task
def cleanup_old_impressions_task():
    with db_session() as db:
        removed = impression_service.cleanup_old_impressions(db)
    return {"status": "ok", "removed": removed}
