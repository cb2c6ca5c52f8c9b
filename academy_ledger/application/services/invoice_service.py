import secrets
import string
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import select, update
from sqlalchemy.orm import Session, selectinload

from academy_ledger.application.errors import NotFoundError, ValidationError
from academy_ledger.domain.billing import EventPaymentStatus
from academy_ledger.domain.invoice_status import InvoiceEmailType, InvoiceStatus
from academy_ledger.domain.money import multiply_money, sum_money, to_money
from academy_ledger.infrastructure.db.models import EventOrder, Family, Invoice, InvoiceEmail, InvoiceLineItem, Payment
from academy_ledger.infrastructure.logging import get_logger

logger = get_logger(__name__)

PUBLIC_ID_ALPHABET = string.ascii_lowercase + string.digits
PUBLIC_ID_LENGTH = 10


def generate_public_id() -> str:
    return "".join(secrets.choice(PUBLIC_ID_ALPHABET) for _ in range(PUBLIC_ID_LENGTH))


def invoice_display_number(invoice: Invoice) -> str:
    return invoice.invoice_number or f"INV-{invoice.public_id}"


def serialize_invoice_line_item(item: InvoiceLineItem) -> dict:
    return {
        "id": item.id,
        "invoice_id": item.invoice_id,
        "enrollment_id": item.enrollment_id,
        "description": item.description,
        "quantity": item.quantity,
        "unit_price": item.unit_price,
        "amount": item.amount,
        "sort_order": item.sort_order,
    }


def serialize_invoice_summary(invoice: Invoice) -> dict:
    return {
        "id": invoice.id,
        "family_id": invoice.family_id,
        "family_name": invoice.family.display_name if invoice.family is not None else None,
        "invoice_number": invoice.invoice_number,
        "public_id": invoice.public_id,
        "invoice_date": invoice.invoice_date,
        "due_date": invoice.due_date,
        "period_start": invoice.period_start,
        "period_end": invoice.period_end,
        "subtotal": invoice.subtotal,
        "total_amount": invoice.total_amount,
        "amount_paid": invoice.amount_paid,
        "balance_due": invoice.balance_due,
        "status": invoice.status,
        "sent_at": invoice.sent_at,
        "sent_to": invoice.sent_to,
        "notes": invoice.notes,
    }


def serialize_invoice_detail(invoice: Invoice) -> dict:
    payload = serialize_invoice_summary(invoice)
    payload["line_items"] = [serialize_invoice_line_item(item) for item in invoice.line_items]
    return payload


def get_invoice(db: Session, *, invoice_id: int) -> Invoice:
    invoice = db.execute(
        select(Invoice)
        .where(Invoice.id == invoice_id)
        .options(
            selectinload(Invoice.family),
            selectinload(Invoice.line_items),
            selectinload(Invoice.payments),
        )
    ).scalar_one_or_none()
    if invoice is None:
        raise NotFoundError("Invoice not found")
    return invoice


def list_family_invoices(db: Session, *, family_id: int) -> list[Invoice]:
    return list(
        db.execute(
            select(Invoice)
            .where(Invoice.family_id == family_id)
            .options(selectinload(Invoice.family))
            .order_by(Invoice.invoice_date.desc(), Invoice.id.desc())
        )
        .scalars()
        .all()
    )


def get_family(db: Session, *, family_id: int) -> Family:
    family = db.get(Family, family_id)
    if family is None:
        raise NotFoundError("Family not found")
    return family


def new_draft_invoice(
    *,
    family_id: int,
    invoice_date: date,
    due_date: date | None,
    period_start: date | None = None,
    period_end: date | None = None,
    notes: str | None = None,
) -> Invoice:
    return Invoice(
        family_id=family_id,
        public_id=generate_public_id(),
        invoice_date=invoice_date,
        due_date=due_date,
        period_start=period_start,
        period_end=period_end,
        subtotal=Decimal("0.00"),
        total_amount=Decimal("0.00"),
        amount_paid=Decimal("0.00"),
        status=InvoiceStatus.draft,
        notes=notes,
    )


def refresh_invoice_totals(db: Session, *, invoice: Invoice) -> Invoice:
    """Recompute subtotal and total from the invoice's line items."""
    amounts = db.execute(select(InvoiceLineItem.amount).where(InvoiceLineItem.invoice_id == invoice.id)).scalars().all()
    subtotal = sum_money(amounts)
    invoice.subtotal = subtotal
    invoice.total_amount = subtotal
    return invoice


def _assert_not_void(invoice: Invoice) -> None:
    if invoice.status == InvoiceStatus.void:
        raise ValidationError("Void invoices cannot be changed")


def add_invoice_line_item(
    db: Session,
    *,
    invoice_id: int,
    description: str,
    quantity: Decimal,
    unit_price: Decimal,
    amount: Decimal | None = None,
    enrollment_id: int | None = None,
) -> InvoiceLineItem:
    """Append a line item. ``amount`` defaults to quantity x unit price but may be set directly."""
    invoice = get_invoice(db, invoice_id=invoice_id)
    _assert_not_void(invoice)
    if not description.strip():
        raise ValidationError("Description is required")
    sort_order = max((item.sort_order for item in invoice.line_items), default=-1) + 1
    item = InvoiceLineItem(
        invoice_id=invoice.id,
        enrollment_id=enrollment_id,
        description=description.strip(),
        quantity=quantity,
        unit_price=to_money(unit_price),
        amount=to_money(amount) if amount is not None else multiply_money(quantity, unit_price),
        sort_order=sort_order,
    )
    db.add(item)
    db.flush()
    refresh_invoice_totals(db, invoice=invoice)
    db.commit()
    db.refresh(item)
    logger.info("invoice_line_item_created", invoice_id=invoice.id, line_item_id=item.id, amount=str(item.amount))
    return item


def update_invoice_line_item(
    db: Session,
    *,
    line_item_id: int,
    description: str | None = None,
    quantity: Decimal | None = None,
    unit_price: Decimal | None = None,
    amount: Decimal | None = None,
) -> InvoiceLineItem:
    """Edit one line item.

    When quantity or unit price change without an explicit amount the amount
    is recomputed; an explicit amount always wins.
    """
    item = db.get(InvoiceLineItem, line_item_id)
    if item is None:
        raise NotFoundError("Invoice line item not found")
    invoice = item.invoice
    _assert_not_void(invoice)

    if description is not None:
        item.description = description
    if quantity is not None:
        item.quantity = quantity
    if unit_price is not None:
        item.unit_price = to_money(unit_price)
    if amount is not None:
        item.amount = to_money(amount)
    elif quantity is not None or unit_price is not None:
        item.amount = multiply_money(item.quantity, item.unit_price)
    db.flush()
    refresh_invoice_totals(db, invoice=invoice)
    db.commit()
    db.refresh(item)
    logger.info("invoice_line_item_updated", invoice_id=invoice.id, line_item_id=item.id, amount=str(item.amount))
    return item


def delete_invoice_line_item(db: Session, *, line_item_id: int) -> None:
    item = db.get(InvoiceLineItem, line_item_id)
    if item is None:
        raise NotFoundError("Invoice line item not found")
    invoice = item.invoice
    _assert_not_void(invoice)
    db.delete(item)
    db.flush()
    refresh_invoice_totals(db, invoice=invoice)
    db.commit()
    logger.info("invoice_line_item_deleted", invoice_id=invoice.id, line_item_id=line_item_id)


def void_invoice(db: Session, *, invoice_id: int) -> Invoice:
    invoice = get_invoice(db, invoice_id=invoice_id)
    invoice.status = InvoiceStatus.void
    db.commit()
    db.refresh(invoice)
    logger.info("invoice_voided", invoice_id=invoice_id)
    return invoice


def bulk_void_invoices(db: Session, *, invoice_ids: list[int]) -> dict:
    succeeded = 0
    errors: list[dict] = []
    for invoice_id in invoice_ids:
        try:
            void_invoice(db, invoice_id=invoice_id)
            succeeded += 1
        except Exception as exc:
            db.rollback()
            errors.append({"invoice_id": invoice_id, "error": str(exc)})
    logger.info("invoice_bulk_void_completed", total=len(invoice_ids), succeeded=succeeded, failed=len(errors))
    return {"succeeded": succeeded, "failed": len(errors), "total": len(invoice_ids), "errors": errors}


def delete_invoice(db: Session, *, invoice_id: int) -> None:
    """Delete an invoice, returning its event orders to the pending pool first."""
    invoice = get_invoice(db, invoice_id=invoice_id)
    family_id = invoice.family_id
    db.execute(
        update(EventOrder)
        .where(EventOrder.invoice_id == invoice_id)
        .values(invoice_id=None, payment_status=EventPaymentStatus.stepup_pending.value)
    )
    db.delete(invoice)
    db.commit()
    logger.info("invoice_deleted", invoice_id=invoice_id, family_id=family_id)


def bulk_delete_invoices(db: Session, *, invoice_ids: list[int]) -> dict:
    """Delete each invoice on its own, releasing its event orders first."""
    succeeded = 0
    errors: list[dict] = []
    for invoice_id in invoice_ids:
        try:
            delete_invoice(db, invoice_id=invoice_id)
            succeeded += 1
        except Exception as exc:
            db.rollback()
            errors.append({"invoice_id": invoice_id, "error": str(exc)})
    logger.info("invoice_bulk_delete_completed", total=len(invoice_ids), succeeded=succeeded, failed=len(errors))
    return {"succeeded": succeeded, "failed": len(errors), "total": len(invoice_ids), "errors": errors}


def sync_event_orders_paid(db: Session, *, invoice_id: int, paid_at: datetime, action: str) -> list[str]:
    """Mark every event order billed on ``invoice_id`` as paid. Failures become warnings."""
    try:
        db.execute(
            update(EventOrder)
            .where(EventOrder.invoice_id == invoice_id)
            .values(payment_status=EventPaymentStatus.paid.value, paid_at=paid_at)
        )
        db.commit()
    except Exception as exc:
        db.rollback()
        logger.warning("event_orders_payment_sync_failed", invoice_id=invoice_id, error=str(exc))
        return [f"{action} but failed to sync event orders: {exc}"]
    return []


INVOICE_HEADER_FIELDS = frozenset({"invoice_date", "due_date", "period_start", "period_end", "status", "notes"})
REQUIRED_HEADER_FIELDS = frozenset({"invoice_date", "status"})


@dataclass
class InvoiceUpdateResult:
    invoice: Invoice
    warnings: list[str] = field(default_factory=list)


def update_invoice(db: Session, *, invoice_id: int, changes: dict, now: datetime) -> InvoiceUpdateResult:
    """Edit invoice header fields.

    Setting the status to paid also marks the invoice's event orders paid;
    a failure there is reported as a warning after the invoice is saved.
    """
    unknown = set(changes) - INVOICE_HEADER_FIELDS
    if unknown:
        raise ValidationError(f"Unsupported invoice fields: {', '.join(sorted(unknown))}")
    cleared = sorted(name for name in REQUIRED_HEADER_FIELDS if name in changes and changes[name] is None)
    if cleared:
        raise ValidationError(f"Invoice fields cannot be cleared: {', '.join(cleared)}")

    invoice = get_invoice(db, invoice_id=invoice_id)
    _assert_not_void(invoice)
    for name, value in changes.items():
        setattr(invoice, name, value)
    db.commit()
    db.refresh(invoice)
    logger.info("invoice_updated", invoice_id=invoice_id, fields=sorted(changes))

    warnings: list[str] = []
    if changes.get("status") == InvoiceStatus.paid:
        warnings.extend(sync_event_orders_paid(db, invoice_id=invoice_id, paid_at=now, action="Invoice updated"))
    return InvoiceUpdateResult(invoice=get_invoice(db, invoice_id=invoice_id), warnings=warnings)


@dataclass
class HistoricalLineItem:
    description: str
    quantity: Decimal
    unit_price: Decimal
    amount: Decimal


@dataclass
class HistoricalPayment:
    amount: Decimal
    payment_date: date
    payment_method: str | None = None
    reference: str | None = None


@dataclass
class HistoricalInvoiceInput:
    family_id: int
    invoice_number: str | None
    invoice_date: date
    status: InvoiceStatus
    line_items: list[HistoricalLineItem] = field(default_factory=list)
    due_date: date | None = None
    period_start: date | None = None
    period_end: date | None = None
    amount_paid: Decimal = Decimal("0.00")
    sent_at: datetime | None = None
    sent_to: str | None = None
    payment: HistoricalPayment | None = None
    notes: str | None = None


def create_historical_invoice(db: Session, *, data: HistoricalInvoiceInput) -> Invoice:
    """Import an invoice issued by a previous billing system, as-is."""
    get_family(db, family_id=data.family_id)
    subtotal = sum_money(item.amount for item in data.line_items)
    amount_paid = to_money(data.amount_paid)
    if amount_paid > subtotal:
        raise ValidationError("Amount paid cannot exceed the invoice total")

    invoice = Invoice(
        family_id=data.family_id,
        invoice_number=data.invoice_number,
        public_id=generate_public_id(),
        invoice_date=data.invoice_date,
        due_date=data.due_date,
        period_start=data.period_start,
        period_end=data.period_end,
        subtotal=subtotal,
        total_amount=subtotal,
        amount_paid=amount_paid,
        status=data.status,
        sent_at=data.sent_at,
        sent_to=data.sent_to,
        notes=data.notes,
    )
    invoice.line_items = [
        InvoiceLineItem(
            enrollment_id=None,
            description=item.description,
            quantity=item.quantity,
            unit_price=to_money(item.unit_price),
            amount=to_money(item.amount),
            sort_order=index,
        )
        for index, item in enumerate(data.line_items)
    ]
    if data.payment is not None and to_money(data.payment.amount) > 0:
        invoice.payments = [
            Payment(
                amount=to_money(data.payment.amount),
                payment_date=data.payment.payment_date,
                payment_method=data.payment.payment_method,
                reference=data.payment.reference,
                notes="Imported from historical system",
            )
        ]
    db.add(invoice)
    db.flush()
    if data.sent_at is not None and data.sent_to:
        db.add(
            InvoiceEmail(
                invoice_id=invoice.id,
                email_type=InvoiceEmailType.invoice.value,
                sent_to=data.sent_to,
                sent_at=data.sent_at,
                subject=f"Invoice {data.invoice_number or invoice.public_id} (Imported)",
            )
        )
    db.commit()
    db.refresh(invoice)
    logger.info(
        "historical_invoice_created",
        invoice_id=invoice.id,
        family_id=data.family_id,
        invoice_number=data.invoice_number,
        total_amount=str(subtotal),
    )
    return invoice
