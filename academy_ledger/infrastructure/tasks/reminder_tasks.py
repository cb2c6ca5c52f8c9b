from datetime import date, datetime, timezone

from academy_ledger.application.errors import BatchFailedError
from academy_ledger.application.services.invoice_notification_service import bulk_send_reminders
from academy_ledger.infrastructure.db.session import SessionLocal
from academy_ledger.infrastructure.logging import get_logger
from academy_ledger.infrastructure.notifications.webhook_client import get_notifier
from academy_ledger.infrastructure.tasks.celery_app import celery_app

logger = get_logger(__name__)


@celery_app.task(name="invoices.send_payment_reminders")
def send_payment_reminders_task(invoice_ids: list[int], today: str) -> dict:
    db = SessionLocal()
    logger.info("reminder_task_started", invoice_count=len(invoice_ids), today=today)
    try:
        summary = bulk_send_reminders(
            db,
            invoice_ids=invoice_ids,
            notifier=get_notifier(),
            today=date.fromisoformat(today),
            now=datetime.now(timezone.utc),
        )
    except BatchFailedError as exc:
        logger.error("reminder_task_failed", error=str(exc), errors=exc.errors)
        return {"succeeded": 0, "failed": len(exc.errors), "total": len(invoice_ids), "errors": exc.errors}
    finally:
        db.close()
    logger.info("reminder_task_completed", succeeded=summary["succeeded"], failed=summary["failed"])
    return summary


def enqueue_payment_reminders_task(*, invoice_ids: list[int], today: date) -> str:
    task = send_payment_reminders_task.delay(invoice_ids=invoice_ids, today=today.isoformat())
    return str(task.id)
