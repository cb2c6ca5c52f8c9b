from datetime import date, datetime

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from academy_ledger.application.services.generation_lock_service import invoice_generation_lock
from academy_ledger.application.services.invoice_consolidation_service import consolidate_invoices
from academy_ledger.application.services.invoice_draft_service import (
    CustomLineAmount,
    HubSession,
    generate_draft_invoices,
    generate_event_invoice,
    generate_hub_invoice,
)
from academy_ledger.application.services.invoice_notification_service import (
    bulk_send_invoices,
    send_invoice,
    send_reminder,
)
from academy_ledger.application.services.invoice_service import (
    HistoricalInvoiceInput,
    HistoricalLineItem,
    HistoricalPayment,
    add_invoice_line_item,
    bulk_delete_invoices,
    bulk_void_invoices,
    create_historical_invoice,
    delete_invoice,
    delete_invoice_line_item,
    get_family,
    get_invoice,
    list_family_invoices,
    serialize_invoice_detail,
    serialize_invoice_line_item,
    serialize_invoice_summary,
    update_invoice,
    update_invoice_line_item,
    void_invoice,
)
from academy_ledger.config import settings
from academy_ledger.infrastructure.db.session import get_db
from academy_ledger.infrastructure.logging import get_logger
from academy_ledger.infrastructure.notifications.webhook_client import Notifier, get_notifier
from academy_ledger.infrastructure.tasks.reminder_tasks import enqueue_payment_reminders_task
from academy_ledger.interfaces.api.v1.dependencies.context import get_now, get_today
from academy_ledger.interfaces.api.v1.schemas.invoice import (
    BatchResultResponse,
    DraftInvoiceGenerationRequest,
    DraftInvoiceGenerationResponse,
    EventInvoiceCreate,
    HistoricalInvoiceCreate,
    HubInvoiceCreate,
    InvoiceConsolidationRequest,
    InvoiceDetailResponse,
    InvoiceIdsRequest,
    InvoiceLineItemCreate,
    InvoiceLineItemResponse,
    InvoiceLineItemUpdate,
    InvoiceSendResponse,
    InvoiceSummaryResponse,
    InvoiceUpdate,
    InvoiceWithWarningsResponse,
    ReminderEnqueueResponse,
)

router = APIRouter(tags=["invoices"])
logger = get_logger(__name__)


@router.post(
    "/invoices/drafts",
    response_model=DraftInvoiceGenerationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Generate draft invoices",
    description=(
        "Create one draft invoice per family from the selected enrollments. Families fail independently: "
        "the response lists created invoices and per-family failures. When every family fails the call returns 400 "
        "with the failure list. Generation per period and type is serialized with a Redis lock."
    ),
    responses={400: {"description": "Validation error or every family failed"}, 409: {"description": "Already running"}},
)
def generate_draft_invoices_endpoint(payload: DraftInvoiceGenerationRequest, db: Session = Depends(get_db)):
    custom_amounts = {
        entry.enrollment_id: CustomLineAmount(quantity=entry.quantity, unit_price=entry.unit_price, amount=entry.amount)
        for entry in payload.custom_amounts
    }
    with invoice_generation_lock(
        period_start=payload.period_start,
        period_end=payload.period_end,
        invoice_type=payload.invoice_type,
    ):
        result = generate_draft_invoices(
            db,
            enrollment_ids=payload.enrollment_ids,
            period_start=payload.period_start,
            period_end=payload.period_end,
            invoice_date=payload.invoice_date,
            due_date=payload.due_date,
            invoice_type=payload.invoice_type,
            custom_amounts=custom_amounts,
            default_daily_rate=settings.default_hub_daily_rate,
        )
    return {
        "invoices": [serialize_invoice_detail(invoice) for invoice in result.invoices],
        "failures": result.failures,
        "warnings": result.warnings,
        "is_partial": result.is_partial,
    }


@router.post(
    "/invoices/events",
    response_model=InvoiceDetailResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Invoice event orders",
    description="Bill a family's selected, not yet invoiced event orders on one draft invoice.",
    responses={400: {"description": "Orders invalid or already invoiced"}, 404: {"description": "Not found"}},
)
def create_event_invoice_endpoint(payload: EventInvoiceCreate, db: Session = Depends(get_db)):
    invoice = generate_event_invoice(
        db,
        family_id=payload.family_id,
        order_ids=payload.order_ids,
        invoice_date=payload.invoice_date,
        due_date=payload.due_date,
    )
    return serialize_invoice_detail(invoice)


@router.post(
    "/invoices/hub",
    response_model=InvoiceDetailResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Invoice Hub sessions",
    description=(
        "Bill drop-in Hub days on one draft invoice with one line per session. "
        "Sessions without a daily rate bill the configured default."
    ),
    responses={400: {"description": "No sessions"}, 404: {"description": "Family not found"}},
)
def create_hub_invoice_endpoint(payload: HubInvoiceCreate, db: Session = Depends(get_db)):
    invoice = generate_hub_invoice(
        db,
        family_id=payload.family_id,
        sessions=[
            HubSession(
                student_name=session.student_name,
                session_date=session.session_date,
                daily_rate=session.daily_rate,
            )
            for session in payload.sessions
        ],
        invoice_date=payload.invoice_date,
        due_date=payload.due_date,
        default_daily_rate=settings.default_hub_daily_rate,
    )
    return serialize_invoice_detail(invoice)


@router.post(
    "/invoices/consolidate",
    response_model=InvoiceWithWarningsResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Consolidate invoices",
    description=(
        "Merge two or more outstanding invoices of one family into a new invoice. "
        "Payments move to the new invoice and the originals are voided."
    ),
    responses={400: {"description": "Invoices cannot be consolidated"}},
)
def consolidate_invoices_endpoint(payload: InvoiceConsolidationRequest, db: Session = Depends(get_db)):
    result = consolidate_invoices(db, invoice_ids=payload.invoice_ids, invoice_date=payload.invoice_date)
    return {"invoice": serialize_invoice_detail(result.invoice), "warnings": result.warnings}


@router.post(
    "/invoices/historical",
    response_model=InvoiceDetailResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Import historical invoice",
    description="Record an invoice issued by a previous billing system with its line items and paid amount.",
    responses={400: {"description": "Invalid amounts"}, 404: {"description": "Family not found"}},
)
def create_historical_invoice_endpoint(payload: HistoricalInvoiceCreate, db: Session = Depends(get_db)):
    data = HistoricalInvoiceInput(
        family_id=payload.family_id,
        invoice_number=payload.invoice_number,
        invoice_date=payload.invoice_date,
        due_date=payload.due_date,
        period_start=payload.period_start,
        period_end=payload.period_end,
        status=payload.status,
        line_items=[
            HistoricalLineItem(
                description=item.description,
                quantity=item.quantity,
                unit_price=item.unit_price,
                amount=item.amount,
            )
            for item in payload.line_items
        ],
        amount_paid=payload.amount_paid,
        sent_at=payload.sent_at,
        sent_to=payload.sent_to,
        payment=HistoricalPayment(**payload.payment.model_dump()) if payload.payment is not None else None,
        notes=payload.notes,
    )
    return serialize_invoice_detail(create_historical_invoice(db, data=data))


@router.post(
    "/invoices/bulk-void",
    response_model=BatchResultResponse,
    summary="Void invoices",
    description="Void each selected invoice independently and report per-invoice failures.",
)
def bulk_void_invoices_endpoint(payload: InvoiceIdsRequest, db: Session = Depends(get_db)):
    return bulk_void_invoices(db, invoice_ids=payload.invoice_ids)


@router.post(
    "/invoices/bulk-send",
    response_model=BatchResultResponse,
    summary="Send invoices",
    description="Deliver each selected invoice independently. Undelivered invoices are reported as failures.",
)
def bulk_send_invoices_endpoint(
    payload: InvoiceIdsRequest,
    notifier: Notifier = Depends(get_notifier),
    now: datetime = Depends(get_now),
    db: Session = Depends(get_db),
):
    return bulk_send_invoices(db, invoice_ids=payload.invoice_ids, notifier=notifier, now=now)


@router.post(
    "/invoices/bulk-delete",
    response_model=BatchResultResponse,
    summary="Delete invoices",
    description="Delete each selected invoice independently. Event orders billed on them return to the pending pool.",
)
def bulk_delete_invoices_endpoint(payload: InvoiceIdsRequest, db: Session = Depends(get_db)):
    return bulk_delete_invoices(db, invoice_ids=payload.invoice_ids)


@router.post(
    "/invoices/reminders",
    response_model=ReminderEnqueueResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Send payment reminders",
    description="Queue throttled reminder delivery for the selected invoices. Returns the task id immediately.",
    responses={503: {"description": "Task enqueue failed"}},
)
def enqueue_reminders_endpoint(payload: InvoiceIdsRequest, today: date = Depends(get_today)):
    logger.info("invoice_reminders_enqueue_requested", invoice_count=len(payload.invoice_ids))
    try:
        task_id = enqueue_payment_reminders_task(invoice_ids=payload.invoice_ids, today=today)
    except Exception as exc:
        logger.error("invoice_reminders_enqueue_failed", error=str(exc))
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Failed to enqueue reminder task") from exc
    logger.info("invoice_reminders_enqueued", task_id=task_id)
    return {"task_id": task_id, "status": "queued", "message": "Payment reminders queued"}


@router.get(
    "/families/{family_id}/invoices",
    response_model=list[InvoiceSummaryResponse],
    summary="List family invoices",
    description="All invoices of one family, newest first.",
    responses={404: {"description": "Family not found"}},
)
def list_family_invoices_endpoint(family_id: int, db: Session = Depends(get_db)):
    get_family(db, family_id=family_id)
    return [serialize_invoice_summary(invoice) for invoice in list_family_invoices(db, family_id=family_id)]


@router.get(
    "/invoices/{invoice_id}",
    response_model=InvoiceDetailResponse,
    summary="Get invoice",
    description="Return one invoice with its line items.",
    responses={404: {"description": "Invoice not found"}},
)
def get_invoice_endpoint(invoice_id: int, db: Session = Depends(get_db)):
    return serialize_invoice_detail(get_invoice(db, invoice_id=invoice_id))


@router.patch(
    "/invoices/{invoice_id}",
    response_model=InvoiceWithWarningsResponse,
    summary="Edit invoice",
    description=(
        "Change invoice header fields. Marking an invoice paid also marks its event orders paid; "
        "a failure there comes back as a warning."
    ),
    responses={400: {"description": "Invalid change or invoice is void"}, 404: {"description": "Invoice not found"}},
)
def update_invoice_endpoint(
    invoice_id: int,
    payload: InvoiceUpdate,
    now: datetime = Depends(get_now),
    db: Session = Depends(get_db),
):
    result = update_invoice(db, invoice_id=invoice_id, changes=payload.model_dump(exclude_unset=True), now=now)
    return {"invoice": serialize_invoice_detail(result.invoice), "warnings": result.warnings}


@router.post(
    "/invoices/{invoice_id}/void",
    response_model=InvoiceSummaryResponse,
    summary="Void invoice",
    responses={404: {"description": "Invoice not found"}},
)
def void_invoice_endpoint(invoice_id: int, db: Session = Depends(get_db)):
    return serialize_invoice_summary(void_invoice(db, invoice_id=invoice_id))


@router.delete(
    "/invoices/{invoice_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete invoice",
    description="Delete an invoice. Event orders billed on it return to the pending pool.",
    responses={404: {"description": "Invoice not found"}},
)
def delete_invoice_endpoint(invoice_id: int, db: Session = Depends(get_db)):
    delete_invoice(db, invoice_id=invoice_id)


@router.post(
    "/invoices/{invoice_id}/line-items",
    response_model=InvoiceLineItemResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add invoice line item",
    description="Append a line item. `amount` defaults to quantity times unit price.",
    responses={400: {"description": "Invoice is void"}, 404: {"description": "Invoice not found"}},
)
def add_invoice_line_item_endpoint(invoice_id: int, payload: InvoiceLineItemCreate, db: Session = Depends(get_db)):
    item = add_invoice_line_item(
        db,
        invoice_id=invoice_id,
        description=payload.description,
        quantity=payload.quantity,
        unit_price=payload.unit_price,
        amount=payload.amount,
        enrollment_id=payload.enrollment_id,
    )
    return serialize_invoice_line_item(item)


@router.patch(
    "/invoice-line-items/{line_item_id}",
    response_model=InvoiceLineItemResponse,
    summary="Edit invoice line item",
    responses={400: {"description": "Invoice is void"}, 404: {"description": "Line item not found"}},
)
def update_invoice_line_item_endpoint(
    line_item_id: int,
    payload: InvoiceLineItemUpdate,
    db: Session = Depends(get_db),
):
    item = update_invoice_line_item(
        db,
        line_item_id=line_item_id,
        description=payload.description,
        quantity=payload.quantity,
        unit_price=payload.unit_price,
        amount=payload.amount,
    )
    return serialize_invoice_line_item(item)


@router.delete(
    "/invoice-line-items/{line_item_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete invoice line item",
    responses={400: {"description": "Invoice is void"}, 404: {"description": "Line item not found"}},
)
def delete_invoice_line_item_endpoint(line_item_id: int, db: Session = Depends(get_db)):
    delete_invoice_line_item(db, line_item_id=line_item_id)


@router.post(
    "/invoices/{invoice_id}/send",
    response_model=InvoiceSendResponse,
    summary="Send invoice",
    description="Deliver the invoice through the notification webhook and mark drafts as sent.",
    responses={400: {"description": "No family email or invoice is void"}, 404: {"description": "Invoice not found"}},
)
def send_invoice_endpoint(
    invoice_id: int,
    notifier: Notifier = Depends(get_notifier),
    now: datetime = Depends(get_now),
    db: Session = Depends(get_db),
):
    result = send_invoice(db, invoice_id=invoice_id, notifier=notifier, now=now)
    return {
        "invoice": serialize_invoice_summary(result.invoice),
        "delivered": result.delivered,
        "warnings": result.warnings,
    }


@router.post(
    "/invoices/{invoice_id}/reminder",
    response_model=InvoiceSendResponse,
    summary="Send payment reminder",
    description="Send one reminder; its tone follows how many days the invoice is past due.",
    responses={400: {"description": "Invoice not outstanding or no email"}, 404: {"description": "Invoice not found"}},
)
def send_reminder_endpoint(
    invoice_id: int,
    notifier: Notifier = Depends(get_notifier),
    today: date = Depends(get_today),
    now: datetime = Depends(get_now),
    db: Session = Depends(get_db),
):
    result = send_reminder(db, invoice_id=invoice_id, notifier=notifier, today=today, now=now)
    return {
        "invoice": serialize_invoice_summary(result.invoice),
        "delivered": result.delivered,
        "warnings": result.warnings,
    }
