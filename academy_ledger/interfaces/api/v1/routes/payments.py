from datetime import datetime

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from academy_ledger.application.services.invoice_service import serialize_invoice_summary
from academy_ledger.application.services.payment_service import (
    list_invoice_payments,
    recalculate_invoice_balance,
    record_payment,
    serialize_payment,
)
from academy_ledger.infrastructure.db.session import get_db
from academy_ledger.interfaces.api.v1.dependencies.context import get_now
from academy_ledger.interfaces.api.v1.schemas.invoice import InvoiceSummaryResponse
from academy_ledger.interfaces.api.v1.schemas.payment import PaymentCreate, PaymentRecordResponse, PaymentResponse

router = APIRouter(tags=["payments"])


@router.post(
    "/invoices/{invoice_id}/payments",
    response_model=PaymentRecordResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Record payment",
    description=(
        "Record a payment against an invoice. The amount is capped at the balance due; "
        "paying in full also marks billed event orders as paid."
    ),
    responses={400: {"description": "Invoice void, already paid or no balance"}, 404: {"description": "Not found"}},
)
def record_payment_endpoint(
    invoice_id: int,
    payload: PaymentCreate,
    now: datetime = Depends(get_now),
    db: Session = Depends(get_db),
):
    result = record_payment(
        db,
        invoice_id=invoice_id,
        amount=payload.amount,
        payment_date=payload.payment_date,
        now=now,
        payment_method=payload.payment_method,
        reference=payload.reference,
        notes=payload.notes,
    )
    return {
        "payment": serialize_payment(result.payment),
        "invoice": serialize_invoice_summary(result.invoice),
        "warnings": result.warnings,
    }


@router.get(
    "/invoices/{invoice_id}/payments",
    response_model=list[PaymentResponse],
    summary="List invoice payments",
    responses={404: {"description": "Invoice not found"}},
)
def list_invoice_payments_endpoint(invoice_id: int, db: Session = Depends(get_db)):
    return [serialize_payment(payment) for payment in list_invoice_payments(db, invoice_id=invoice_id)]


@router.post(
    "/invoices/{invoice_id}/recalculate-balance",
    response_model=InvoiceSummaryResponse,
    summary="Recalculate invoice balance",
    description="Rebuild amount paid and status from the invoice's payment records.",
    responses={404: {"description": "Invoice not found"}},
)
def recalculate_invoice_balance_endpoint(invoice_id: int, db: Session = Depends(get_db)):
    return serialize_invoice_summary(recalculate_invoice_balance(db, invoice_id=invoice_id))
