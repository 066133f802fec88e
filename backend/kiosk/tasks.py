"""Side effects that run when a message or waiver record is created.

Each trigger is independent: it reads the new record, talks to one outside
service, and logs (never retries) when that service fails.
"""

import logging
import os

from celery import Celery

from .config import Settings
from .database import SessionLocal
from . import models, notify, sheets

logger = logging.getLogger(__name__)

CELERY_BROKER_URL = os.getenv("CELERY_BROKER_URL", "memory://")
celery_app = Celery("kiosk", broker=CELERY_BROKER_URL)
celery_app.conf.task_always_eager = (
    CELERY_BROKER_URL == "memory://" or os.getenv("TESTING") == "1"
)

_settings: Settings | None = None


def configure(settings: Settings) -> None:
    global _settings
    _settings = settings


def get_task_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings


def message_recipients(db, location_name: str, settings: Settings) -> list[str]:
    location = db.query(models.Location).filter(models.Location.name == location_name).first()
    if location is None:
        logger.warning("No location found matching: %s. Sending to fallback.", location_name)
        return [settings.fallback_email]
    if not location.assigned_tech_emails:
        logger.warning("Location %s has no assigned technicians. Sending to fallback.", location_name)
        return [settings.fallback_email]
    return list(location.assigned_tech_emails)


@celery_app.task
def on_message_created(message_id: str):
    settings = get_task_settings()
    db = SessionLocal()
    try:
        message = db.get(models.Message, message_id)
        if message is None or not message.user_location:
            logger.info("New message %s is missing data or location. Aborting.", message_id)
            return
        to_emails = message_recipients(db, message.user_location, settings)
        html = notify.message_email_html(
            message.user_name,
            message.school_id,
            message.user_location,
            message.summary,
            message.video_link,
        )
        try:
            notify.send_email(
                settings,
                to_emails,
                f"New Message from {message.user_name} at {message.user_location}",
                html,
                bcc=[settings.bcc_email],
            )
        except Exception:
            logger.exception("Error in message-created trigger for %s", message_id)
            return
        logger.info(
            "Message email sent successfully to: %s with BCC to %s",
            ", ".join(to_emails), settings.bcc_email,
        )
    finally:
        db.close()


@celery_app.task
def on_waiver_created(waiver_id: str):
    settings = get_task_settings()
    db = SessionLocal()
    try:
        waiver = db.get(models.Waiver, waiver_id)
        if waiver is None:
            logger.info("New waiver %s is empty. Aborting.", waiver_id)
            return
        row = sheets.waiver_row(waiver)
        try:
            sheets.sheets_writer(settings).append_row(row)
        except Exception:
            logger.exception("Error writing waiver %s to Google Sheet", waiver_id)
            return
        logger.info("Successfully wrote waiver for %s to Google Sheet.", waiver.user_name)
    finally:
        db.close()


def enqueue_message_created(message_id: str):
    if celery_app.conf.task_always_eager:
        on_message_created(message_id)
    else:
        on_message_created.delay(message_id)


def enqueue_waiver_created(waiver_id: str):
    if celery_app.conf.task_always_eager:
        on_waiver_created(waiver_id)
    else:
        on_waiver_created.delay(waiver_id)
