import logging
import smtplib
from email.message import EmailMessage

from core.celery import celery_app
from core.config import settings

logger = logging.getLogger(__name__)


def smtp_configured() -> bool:
    return bool(settings.SMTP_PASSWORD)


def deliver_email(to_email: str, subject: str, body: str) -> None:
    """Plain-text delivery over SMTP with STARTTLS. Raises on SMTP or socket errors."""
    msg = EmailMessage()
    msg["Subject"] = subject
    msg["From"] = settings.SMTP_FROM or settings.SMTP_USERNAME
    msg["To"] = to_email
    msg.set_content(body)

    with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT) as server:
        server.starttls()
        if settings.SMTP_USERNAME and settings.SMTP_PASSWORD:
            server.login(settings.SMTP_USERNAME, settings.SMTP_PASSWORD)
        server.send_message(msg)


@celery_app.task(bind=True, max_retries=3)
def send_email_task(self, to_email: str, subject: str, body: str):
    """
    Send email asynchronously with Celery.
    Retries up to 3 times with exponential backoff (capped at 60s).
    """
    if settings.TESTING or not smtp_configured():
        logger.info("Email to %s skipped (subject: %s)", to_email, subject)
        return {"status": "skipped", "to": to_email}

    try:
        deliver_email(to_email, subject, body)
    except (smtplib.SMTPException, OSError) as exc:
        logger.warning("Failed to send email to %s (attempt %s): %s", to_email, self.request.retries + 1, exc)
        raise self.retry(exc=exc, countdown=min(2 ** self.request.retries, 60))

    return {"status": "sent", "to": to_email, "subject": subject}
