import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date, datetime

from sqlalchemy.orm import Session

from academy_ledger.application.errors import BatchFailedError, ValidationError
from academy_ledger.application.services.invoice_service import get_invoice, invoice_display_number
from academy_ledger.config import settings
from academy_ledger.domain.dates import days_between
from academy_ledger.domain.invoice_status import InvoiceEmailType, InvoiceStatus
from academy_ledger.infrastructure.db.models import Invoice, InvoiceEmail
from academy_ledger.infrastructure.logging import get_logger
from academy_ledger.infrastructure.notifications.webhook_client import Notifier

logger = get_logger(__name__)


@dataclass(frozen=True)
class ReminderType:
    code: str
    label: str
    email_type: InvoiceEmailType
    days_overdue: int


@dataclass
class NotificationResult:
    invoice: Invoice
    delivered: bool
    warnings: list[str] = field(default_factory=list)


def reminder_type_for(days_overdue: int) -> ReminderType:
    if days_overdue >= 30:
        return ReminderType("reminder_30", "Urgent Reminder", InvoiceEmailType.reminder_overdue, days_overdue)
    if days_overdue >= 14:
        return ReminderType("reminder_14", "Past Due Reminder", InvoiceEmailType.reminder_14_day, days_overdue)
    return ReminderType("reminder_7", "Friendly Reminder", InvoiceEmailType.reminder_7_day, days_overdue)


def _iso(value: date | None) -> str | None:
    return value.isoformat() if value is not None else None


def build_invoice_payload(invoice: Invoice, *, payload_type: str) -> dict:
    family = invoice.family
    return {
        "type": payload_type,
        "invoice_id": invoice.id,
        "invoice_number": invoice_display_number(invoice),
        "public_id": invoice.public_id,
        "invoice_url": f"{settings.public_invoice_base_url.rstrip('/')}/{invoice.public_id}",
        "family": {
            "id": family.id,
            "name": family.display_name,
            "email": family.primary_email,
            "contact_name": family.primary_contact_name or family.display_name,
        },
        "amounts": {
            "subtotal": str(invoice.subtotal),
            "total": str(invoice.total_amount),
            "amount_paid": str(invoice.amount_paid),
            "balance_due": str(invoice.balance_due),
        },
        "dates": {
            "invoice_date": _iso(invoice.invoice_date),
            "due_date": _iso(invoice.due_date),
            "period_start": _iso(invoice.period_start),
            "period_end": _iso(invoice.period_end),
        },
    }


def _recipient(invoice: Invoice) -> str:
    if invoice.family is None or not invoice.family.primary_email:
        raise ValidationError("Family has no email address")
    return invoice.family.primary_email


def _log_email(db: Session, *, invoice: Invoice, email_type: InvoiceEmailType, sent_to: str, subject: str, now: datetime):
    db.add(
        InvoiceEmail(
            invoice_id=invoice.id,
            email_type=email_type.value,
            sent_to=sent_to,
            subject=subject,
            sent_at=now,
        )
    )


def send_invoice(db: Session, *, invoice_id: int, notifier: Notifier, now: datetime) -> NotificationResult:
    """Deliver an invoice to the family and mark it sent.

    When the webhook does not accept the payload nothing is written and the
    failure comes back as a warning.
    """
    invoice = get_invoice(db, invoice_id=invoice_id)
    if invoice.status == InvoiceStatus.void:
        raise ValidationError("Void invoices cannot be sent")
    sent_to = _recipient(invoice)

    payload = build_invoice_payload(invoice, payload_type="send")
    payload["line_items"] = [
        {"description": item.description, "amount": str(item.amount)} for item in invoice.line_items
    ]
    if not notifier.send(payload):
        logger.warning("invoice_send_failed", invoice_id=invoice.id)
        return NotificationResult(
            invoice=invoice,
            delivered=False,
            warnings=[f"Failed to deliver invoice {invoice_display_number(invoice)}"],
        )

    if invoice.status == InvoiceStatus.draft:
        invoice.status = InvoiceStatus.sent
    invoice.sent_at = now
    invoice.sent_to = sent_to
    _log_email(
        db,
        invoice=invoice,
        email_type=InvoiceEmailType.invoice,
        sent_to=sent_to,
        subject=f"Invoice {invoice.invoice_number or invoice.public_id} from {settings.organization_name}",
        now=now,
    )
    db.commit()
    db.refresh(invoice)
    logger.info("invoice_sent", invoice_id=invoice.id, sent_to=sent_to, status=invoice.status.value)
    return NotificationResult(invoice=invoice, delivered=True)


def bulk_send_invoices(db: Session, *, invoice_ids: list[int], notifier: Notifier, now: datetime) -> dict:
    """Send each invoice on its own; an undelivered invoice counts as a failure."""
    succeeded = 0
    errors: list[dict] = []
    for invoice_id in invoice_ids:
        try:
            result = send_invoice(db, invoice_id=invoice_id, notifier=notifier, now=now)
        except Exception as exc:
            db.rollback()
            errors.append({"invoice_id": invoice_id, "error": str(exc)})
            continue
        if result.delivered:
            succeeded += 1
        else:
            errors.append({"invoice_id": invoice_id, "error": result.warnings[0]})
    logger.info("invoice_bulk_send_completed", total=len(invoice_ids), succeeded=succeeded, failed=len(errors))
    return {"succeeded": succeeded, "failed": len(errors), "total": len(invoice_ids), "errors": errors}


def send_reminder(db: Session, *, invoice_id: int, notifier: Notifier, today: date, now: datetime) -> NotificationResult:
    invoice = get_invoice(db, invoice_id=invoice_id)
    if invoice.status in (InvoiceStatus.void, InvoiceStatus.paid, InvoiceStatus.draft):
        raise ValidationError(f"Cannot send a reminder for a {invoice.status.value} invoice")
    sent_to = _recipient(invoice)

    days_overdue = days_between(invoice.due_date, today) if invoice.due_date is not None else 0
    reminder = reminder_type_for(days_overdue)
    payload = build_invoice_payload(invoice, payload_type=reminder.code)
    payload["days_overdue"] = reminder.days_overdue
    if not notifier.send(payload):
        logger.warning("invoice_reminder_failed", invoice_id=invoice.id, reminder_type=reminder.code)
        return NotificationResult(
            invoice=invoice,
            delivered=False,
            warnings=[f"Failed to deliver reminder for invoice {invoice_display_number(invoice)}"],
        )

    _log_email(
        db,
        invoice=invoice,
        email_type=reminder.email_type,
        sent_to=sent_to,
        subject=f"Payment Reminder: Invoice {invoice.invoice_number or invoice.public_id}",
        now=now,
    )
    db.commit()
    logger.info(
        "invoice_reminder_sent",
        invoice_id=invoice.id,
        reminder_type=reminder.code,
        days_overdue=reminder.days_overdue,
    )
    return NotificationResult(invoice=invoice, delivered=True)


def bulk_send_reminders(
    db: Session,
    *,
    invoice_ids: list[int],
    notifier: Notifier,
    today: date,
    now: datetime,
    batch_size: int = settings.reminder_batch_size,
    batch_delay_seconds: float = settings.reminder_batch_delay_seconds,
    sleep: Callable[[float], None] = time.sleep,
) -> dict:
    """Send reminders in fixed-size batches with a pause between batches.

    Each invoice succeeds or fails on its own. Only a run where every
    reminder fails raises.
    """
    if batch_size < 1:
        raise ValidationError("Batch size must be at least 1")
    succeeded = 0
    errors: list[dict] = []
    logger.info("invoice_bulk_reminders_started", total=len(invoice_ids), batch_size=batch_size)

    for start in range(0, len(invoice_ids), batch_size):
        for invoice_id in invoice_ids[start : start + batch_size]:
            try:
                result = send_reminder(db, invoice_id=invoice_id, notifier=notifier, today=today, now=now)
            except Exception as exc:
                db.rollback()
                errors.append({"invoice_id": invoice_id, "error": str(exc)})
                continue
            if result.delivered:
                succeeded += 1
            else:
                errors.append({"invoice_id": invoice_id, "error": result.warnings[0]})
        if start + batch_size < len(invoice_ids):
            sleep(batch_delay_seconds)

    summary = {"succeeded": succeeded, "failed": len(errors), "total": len(invoice_ids), "errors": errors}
    logger.info("invoice_bulk_reminders_completed", succeeded=succeeded, failed=len(errors), total=len(invoice_ids))
    if invoice_ids and succeeded == 0:
        raise BatchFailedError("Failed to send any reminders", errors)
    return summary
