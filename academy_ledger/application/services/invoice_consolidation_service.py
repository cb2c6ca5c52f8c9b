from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from sqlalchemy import select, update
from sqlalchemy.orm import Session, selectinload

from academy_ledger.application.errors import ValidationError
from academy_ledger.application.services.compensation import CompensationStack, delete_entity
from academy_ledger.application.services.invoice_service import new_draft_invoice
from academy_ledger.domain.dates import format_period_label
from academy_ledger.domain.invoice_status import OUTSTANDING_INVOICE_STATUSES, InvoiceStatus
from academy_ledger.domain.money import ZERO, format_currency, min_money, sum_money
from academy_ledger.infrastructure.db.models import Invoice, InvoiceLineItem, Payment
from academy_ledger.infrastructure.logging import get_logger

logger = get_logger(__name__)


@dataclass
class ConsolidationResult:
    invoice: Invoice
    warnings: list[str] = field(default_factory=list)


def source_label(invoice: Invoice) -> str:
    if invoice.period_start is not None and invoice.period_end is not None:
        return f"{format_period_label(invoice.period_start, invoice.period_end)}: "
    if invoice.invoice_number:
        return f"{invoice.invoice_number}: "
    return ""


def consolidation_note(invoices: list[Invoice]) -> str:
    numbers = sorted(invoice.invoice_number or f"ID:{invoice.public_id}" for invoice in invoices)
    return f"Consolidated from: {', '.join(numbers)}"


def consolidated_status(paid: Decimal, subtotal: Decimal) -> InvoiceStatus:
    if paid > ZERO and paid >= subtotal:
        return InvoiceStatus.paid
    if paid > ZERO:
        return InvoiceStatus.partial
    return InvoiceStatus.draft


def _load_sources(db: Session, invoice_ids: list[int]) -> list[Invoice]:
    return list(
        db.execute(
            select(Invoice)
            .where(Invoice.id.in_(invoice_ids))
            .options(selectinload(Invoice.line_items), selectinload(Invoice.payments))
        )
        .scalars()
        .all()
    )


def validate_sources(invoices: list[Invoice]) -> None:
    if len({invoice.family_id for invoice in invoices}) > 1:
        raise ValidationError("All selected invoices must belong to the same family")
    blocked = [invoice for invoice in invoices if invoice.status not in OUTSTANDING_INVOICE_STATUSES]
    if blocked:
        statuses = ", ".join(InvoiceStatus(invoice.status).value for invoice in blocked)
        raise ValidationError(f"Cannot consolidate invoices with status: {statuses}")


def _copy_line_items(db: Session, *, target_id: int, sources: list[Invoice]) -> list[InvoiceLineItem]:
    copies: list[InvoiceLineItem] = []
    for source in sorted(sources, key=lambda invoice: (invoice.period_start or date.min, invoice.id)):
        prefix = source_label(source)
        for item in source.line_items:
            copies.append(
                InvoiceLineItem(
                    invoice_id=target_id,
                    enrollment_id=item.enrollment_id,
                    description=f"{prefix}{item.description}",
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                    amount=item.amount,
                    sort_order=len(copies),
                )
            )
    return copies


def _insert_line_items(db: Session, line_items: list[InvoiceLineItem]) -> None:
    db.add_all(line_items)
    db.commit()


def _transfer_payments(db: Session, *, target_id: int, payment_ids: list[int]) -> None:
    db.execute(update(Payment).where(Payment.id.in_(payment_ids)).values(invoice_id=target_id))
    db.commit()


def _restore_payments(db: Session, origins: dict[int, int]):
    def _undo() -> None:
        for payment_id, invoice_id in origins.items():
            db.execute(update(Payment).where(Payment.id == payment_id).values(invoice_id=invoice_id))

    return _undo


def _void_sources(db: Session, *, invoice_ids: list[int]) -> None:
    db.execute(
        update(Invoice).where(Invoice.id.in_(invoice_ids)).values(status=InvoiceStatus.void, amount_paid=ZERO)
    )
    db.commit()


def consolidate_invoices(db: Session, *, invoice_ids: list[int], invoice_date: date) -> ConsolidationResult:
    """Merge outstanding invoices of one family into a single new invoice.

    Line items are copied with a period prefix, payments are moved (never
    copied) and the sources are voided only after the new invoice is complete.
    """
    unique_ids = list(dict.fromkeys(invoice_ids))
    if len(unique_ids) < 2:
        raise ValidationError("Must select at least 2 invoices to consolidate")
    sources = _load_sources(db, unique_ids)
    if len(sources) < 2:
        raise ValidationError("Could not fetch selected invoices")
    validate_sources(sources)

    family_id = sources[0].family_id
    starts = [invoice.period_start for invoice in sources if invoice.period_start is not None]
    ends = [invoice.period_end for invoice in sources if invoice.period_end is not None]
    due_dates = [invoice.due_date for invoice in sources if invoice.due_date is not None]
    payments = [payment for invoice in sources for payment in invoice.payments]
    payment_origins = {payment.id: payment.invoice_id for payment in payments}
    payments_total = sum_money(payment.amount for payment in payments)
    logger.info(
        "invoice_consolidation_started",
        family_id=family_id,
        invoice_ids=unique_ids,
        payment_count=len(payments),
    )

    warnings: list[str] = []
    compensation = CompensationStack(db=db, operation="consolidate_invoices")
    consolidated = new_draft_invoice(
        family_id=family_id,
        invoice_date=invoice_date,
        due_date=min(due_dates) if due_dates else None,
        period_start=min(starts) if starts else None,
        period_end=max(ends) if ends else None,
        notes=consolidation_note(sources),
    )
    db.add(consolidated)
    db.commit()
    db.refresh(consolidated)
    compensation.push("delete_consolidated_invoice", delete_entity(db, Invoice, consolidated.id))

    line_items = _copy_line_items(db, target_id=consolidated.id, sources=sources)
    if not line_items:
        compensation.unwind()
        raise ValidationError("No line items found on selected invoices")
    subtotal = sum_money(item.amount for item in line_items)
    try:
        _insert_line_items(db, line_items)
    except Exception as exc:
        compensation.unwind()
        logger.error("invoice_consolidation_line_items_failed", family_id=family_id, error=str(exc))
        raise

    paid = ZERO
    if payments:
        try:
            _transfer_payments(db, target_id=consolidated.id, payment_ids=list(payment_origins))
            compensation.push("restore_payments", _restore_payments(db, payment_origins))
            paid = payments_total
        except Exception as exc:
            db.rollback()
            logger.warning("invoice_consolidation_payment_transfer_failed", family_id=family_id, error=str(exc))
            warnings.append(
                "Failed to transfer some payments to the consolidated invoice. Please verify payment records."
            )

    if paid > subtotal:
        warnings.append(
            f"Consolidated invoice shows overpayment: {format_currency(paid)} paid on {format_currency(subtotal)} total"
        )

    try:
        consolidated.subtotal = subtotal
        consolidated.total_amount = subtotal
        consolidated.amount_paid = min_money(paid, subtotal)
        consolidated.status = consolidated_status(paid, subtotal)
        db.commit()
    except Exception as exc:
        compensation.unwind()
        logger.error("invoice_consolidation_totals_failed", family_id=family_id, error=str(exc))
        raise
    compensation.clear()

    try:
        _void_sources(db, invoice_ids=unique_ids)
    except Exception as exc:
        db.rollback()
        logger.warning("invoice_consolidation_void_failed", family_id=family_id, error=str(exc))
        warnings.append("Consolidated invoice created but failed to void originals. Please void them manually.")

    db.refresh(consolidated)
    logger.info(
        "invoice_consolidation_completed",
        family_id=family_id,
        invoice_id=consolidated.id,
        subtotal=str(subtotal),
        amount_paid=str(consolidated.amount_paid),
        status=consolidated.status.value,
        warning_count=len(warnings),
    )
    return ConsolidationResult(invoice=consolidated, warnings=warnings)
