from celery import Celery
from celery.signals import setup_logging

from academy_ledger.config import settings
from academy_ledger.infrastructure.logging import configure_logging

REMINDER_QUEUE = "reminders"

celery_app = Celery(
    "academy_ledger",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["academy_ledger.infrastructure.tasks.reminder_tasks"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_routes={"invoices.send_payment_reminders": {"queue": REMINDER_QUEUE}},
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    result_expires=24 * 60 * 60,
)


@setup_logging.connect
def configure_worker_logging(**_):
    # Worker logs go through the same structlog pipeline as the API.
    configure_logging()
