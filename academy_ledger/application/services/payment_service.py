from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from academy_ledger.application.errors import ValidationError
from academy_ledger.application.services.invoice_service import get_invoice, sync_event_orders_paid
from academy_ledger.domain.invoice_status import InvoiceStatus
from academy_ledger.domain.money import ZERO, add_money, min_money, subtract_money, sum_money, to_money
from academy_ledger.infrastructure.db.models import Invoice, Payment
from academy_ledger.infrastructure.logging import get_logger

logger = get_logger(__name__)

DEFAULT_PAYMENT_METHOD = "manual"
DEFAULT_PAYMENT_NOTE = "Payment recorded manually"


@dataclass
class PaymentResult:
    payment: Payment
    invoice: Invoice
    warnings: list[str] = field(default_factory=list)


def serialize_payment(payment: Payment) -> dict:
    return {
        "id": payment.id,
        "invoice_id": payment.invoice_id,
        "amount": payment.amount,
        "payment_date": payment.payment_date,
        "payment_method": payment.payment_method,
        "reference": payment.reference,
        "notes": payment.notes,
        "created_at": payment.created_at,
    }


def list_invoice_payments(db: Session, *, invoice_id: int) -> list[Payment]:
    get_invoice(db, invoice_id=invoice_id)
    return list(
        db.execute(select(Payment).where(Payment.invoice_id == invoice_id).order_by(Payment.payment_date, Payment.id))
        .scalars()
        .all()
    )


def record_payment(
    db: Session,
    *,
    invoice_id: int,
    amount: Decimal,
    payment_date: date,
    now: datetime,
    payment_method: str = DEFAULT_PAYMENT_METHOD,
    reference: str | None = None,
    notes: str | None = DEFAULT_PAYMENT_NOTE,
) -> PaymentResult:
    """Record a payment, capped at the invoice's outstanding balance.

    Any excess over the balance is dropped rather than stored, so
    ``amount_paid`` never exceeds ``total_amount``.
    """
    if to_money(amount) <= ZERO:
        raise ValidationError("Payment amount must be greater than zero")
    invoice = get_invoice(db, invoice_id=invoice_id)
    logger.info("payment_recording_started", invoice_id=invoice_id, amount=str(amount))
    if invoice.status == InvoiceStatus.void:
        raise ValidationError("Cannot record a payment on a void invoice")
    if invoice.status == InvoiceStatus.paid:
        raise ValidationError("Invoice is already fully paid")

    balance_due = max(subtract_money(invoice.total_amount, invoice.amount_paid), ZERO)
    applied_amount = min_money(amount, balance_due)
    if applied_amount <= ZERO:
        logger.warning("payment_recording_rejected_no_balance", invoice_id=invoice_id, amount=str(amount))
        raise ValidationError("Invoice has no balance due")
    if applied_amount < to_money(amount):
        logger.info(
            "payment_amount_capped",
            invoice_id=invoice_id,
            requested=str(to_money(amount)),
            applied=str(applied_amount),
        )

    payment = Payment(
        invoice_id=invoice.id,
        amount=applied_amount,
        payment_date=payment_date,
        payment_method=payment_method,
        reference=reference,
        notes=notes,
    )
    db.add(payment)
    invoice.amount_paid = add_money(invoice.amount_paid, applied_amount)
    new_balance = subtract_money(invoice.total_amount, invoice.amount_paid)
    invoice.status = InvoiceStatus.paid if new_balance <= ZERO else InvoiceStatus.partial
    db.commit()
    db.refresh(payment)
    db.refresh(invoice)

    warnings: list[str] = []
    if invoice.status == InvoiceStatus.paid:
        warnings.extend(
            sync_event_orders_paid(db, invoice_id=invoice.id, paid_at=now, action="Payment recorded")
        )

    logger.info(
        "payment_recording_completed",
        invoice_id=invoice.id,
        payment_id=payment.id,
        amount=str(applied_amount),
        invoice_status=invoice.status.value,
    )
    return PaymentResult(payment=payment, invoice=invoice, warnings=warnings)


def recalculate_invoice_balance(db: Session, *, invoice_id: int) -> Invoice:
    """Rebuild ``amount_paid`` and status from the invoice's payment rows.

    Repairs drift between the cached aggregate and the payment records.
    """
    invoice = get_invoice(db, invoice_id=invoice_id)
    payments_total = sum_money(
        db.execute(select(Payment.amount).where(Payment.invoice_id == invoice_id)).scalars().all()
    )
    total_amount = to_money(invoice.total_amount)
    balance_due = max(subtract_money(total_amount, payments_total), ZERO)
    previous_paid = invoice.amount_paid
    previous_status = invoice.status

    if balance_due <= ZERO and payments_total > ZERO:
        invoice.status = InvoiceStatus.paid
    elif payments_total > ZERO and balance_due > ZERO:
        invoice.status = InvoiceStatus.partial
    invoice.amount_paid = min_money(payments_total, total_amount)
    db.commit()
    db.refresh(invoice)
    logger.info(
        "invoice_balance_recalculated",
        invoice_id=invoice_id,
        previous_amount_paid=str(previous_paid),
        amount_paid=str(invoice.amount_paid),
        previous_status=getattr(previous_status, "value", previous_status),
        status=invoice.status.value,
    )
    return invoice
