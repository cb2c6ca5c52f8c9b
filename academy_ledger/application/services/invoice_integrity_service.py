from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from academy_ledger.domain.invoice_status import InvoiceStatus
from academy_ledger.domain.money import to_money
from academy_ledger.infrastructure.db.models import Invoice, InvoiceLineItem, Payment
from academy_ledger.infrastructure.logging import get_logger

logger = get_logger(__name__)


def _check_amount_paid_vs_payments(db: Session) -> list[dict]:
    rows = db.execute(
        select(
            Invoice.id.label("invoice_id"),
            Invoice.amount_paid.label("amount_paid"),
            func.coalesce(func.sum(Payment.amount), Decimal("0.00")).label("payments_total"),
        )
        .outerjoin(Payment, Payment.invoice_id == Invoice.id)
        .where(Invoice.status != InvoiceStatus.void)
        .group_by(Invoice.id, Invoice.amount_paid)
        .order_by(Invoice.id)
    ).all()
    return [
        {
            "check_code": "amount_paid_mismatch",
            "severity": "high",
            "entity_type": "invoice",
            "entity_id": row.invoice_id,
            "message": "Invoice amount paid does not match sum of payments",
            "details_json": {
                "amount_paid": str(to_money(row.amount_paid)),
                "payments_total": str(to_money(row.payments_total)),
            },
        }
        for row in rows
        if to_money(row.amount_paid) != to_money(row.payments_total)
    ]


def _check_subtotal_vs_line_items(db: Session) -> list[dict]:
    rows = db.execute(
        select(
            Invoice.id.label("invoice_id"),
            Invoice.subtotal.label("subtotal"),
            func.coalesce(func.sum(InvoiceLineItem.amount), Decimal("0.00")).label("items_total"),
        )
        .outerjoin(InvoiceLineItem, InvoiceLineItem.invoice_id == Invoice.id)
        .group_by(Invoice.id, Invoice.subtotal)
        .order_by(Invoice.id)
    ).all()
    return [
        {
            "check_code": "subtotal_mismatch",
            "severity": "medium",
            "entity_type": "invoice",
            "entity_id": row.invoice_id,
            "message": "Invoice subtotal does not match sum of line items",
            "details_json": {
                "subtotal": str(to_money(row.subtotal)),
                "items_total": str(to_money(row.items_total)),
            },
        }
        for row in rows
        if to_money(row.subtotal) != to_money(row.items_total)
    ]


def find_invoice_integrity_issues(db: Session) -> list[dict]:
    """Report invoices whose cached aggregates drifted from their rows.

    Read-only. ``recalculate_invoice_balance`` repairs the paid side.
    """
    findings = [*_check_amount_paid_vs_payments(db), *_check_subtotal_vs_line_items(db)]
    logger.info("invoice_integrity_check_completed", finding_count=len(findings))
    return findings
