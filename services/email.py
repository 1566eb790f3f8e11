import logging
import os
import smtplib
from typing import Dict, Any

from jinja2 import Environment, FileSystemLoader, select_autoescape

from core.config import settings
from tasks.email_tasks import deliver_email, send_email_task, smtp_configured

logger = logging.getLogger(__name__)

TRIAL_STAGES = ("day7", "day12", "day14", "day15")

TRIAL_SUBJECTS = {
    "day7": "{first_name}, 7 days left in your Premium trial!",
    "day12": "{first_name}, last 3 days of your Premium trial!",
    "day14": "{first_name}, your Premium trial expires tomorrow!",
    "day15": "{first_name}, your Premium trial expires today!",
}

# Jinja2 environment for email templates
_templates_env = Environment(
    loader=FileSystemLoader(searchpath=os.path.join(os.path.dirname(os.path.dirname(__file__)), "templates")),
    autoescape=select_autoescape(["html", "xml"]),
)


def send_email(to_email: str, subject: str, body: str) -> None:
    """
    Send email using Celery when enabled, otherwise send directly.
    Queuing returns immediately and doesn't block the request.
    """
    if settings.EMAIL_USE_CELERY:
        try:
            send_email_task.delay(to_email, subject, body)
            logger.debug("Email task queued for %s", to_email)
            return
        except Exception as exc:
            logger.warning("Celery not available, sending email directly: %s", exc)

    # Fallback: send email directly (synchronously)
    _send_email_direct(to_email, subject, body)


def render_template(template_path: str, context: Dict[str, Any]) -> str:
    """Render a text template from templates/ directory with provided context."""
    template = _templates_env.get_template(template_path)
    return template.render(**context)


def send_templated_email(to_email: str, subject: str, template_path: str, context: Dict[str, Any]) -> None:
    """Render a template and send email via existing send_email path."""
    body = render_template(template_path, context)
    send_email(to_email, subject, body)


def send_trial_notification(to_email: str, first_name: str, store_name: str, stage: str, store_id: int) -> None:
    """Trial reminder for one stage (day7, day12, day14, day15)."""
    if stage not in TRIAL_STAGES:
        raise ValueError(f"Unknown trial notification stage: {stage}")
    context = {
        "first_name": first_name,
        "store_name": store_name,
        "upgrade_url": f"{settings.FRONTEND_URL}/seller/subscription?store={store_id}&trial=true&utm_source=trial_reminder",
    }
    send_templated_email(
        to_email,
        TRIAL_SUBJECTS[stage].format(first_name=first_name),
        f"emails/trial_{stage}.txt",
        context,
    )


def _send_email_direct(to_email: str, subject: str, body: str) -> None:
    """Direct SMTP delivery; only logs when SMTP credentials are not configured."""
    if not smtp_configured():
        logger.info("SMTP not configured, email to %s not sent (subject: %s)", to_email, subject)
        logger.debug("Email body: %s", body)
        return

    try:
        deliver_email(to_email, subject, body)
    except (smtplib.SMTPException, OSError):
        logger.exception("Email sending to %s failed", to_email)
        raise

    logger.info("Email sent to %s", to_email)
