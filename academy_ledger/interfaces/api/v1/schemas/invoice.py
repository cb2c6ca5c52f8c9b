from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from academy_ledger.domain.invoice_status import InvoiceStatus, InvoiceType


class InvoiceLineItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    invoice_id: int
    enrollment_id: int | None = None
    description: str
    quantity: Decimal
    unit_price: Decimal
    amount: Decimal
    sort_order: int


class InvoiceSummaryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    family_id: int
    family_name: str | None = None
    invoice_number: str | None = None
    public_id: str
    invoice_date: date
    due_date: date | None = None
    period_start: date | None = None
    period_end: date | None = None
    subtotal: Decimal
    total_amount: Decimal
    amount_paid: Decimal
    balance_due: Decimal
    status: InvoiceStatus
    sent_at: datetime | None = None
    sent_to: str | None = None
    notes: str | None = None


class InvoiceDetailResponse(InvoiceSummaryResponse):
    line_items: list[InvoiceLineItemResponse]


class CustomLineAmountPayload(BaseModel):
    enrollment_id: int
    quantity: Decimal
    unit_price: Decimal
    amount: Decimal


class DraftInvoiceGenerationRequest(BaseModel):
    enrollment_ids: list[int] = Field(min_length=1)
    period_start: date
    period_end: date
    invoice_date: date
    due_date: date
    invoice_type: InvoiceType
    custom_amounts: list[CustomLineAmountPayload] = Field(default_factory=list)


class DraftFamilyFailure(BaseModel):
    family_id: int
    family_name: str
    error: str


class DraftInvoiceGenerationResponse(BaseModel):
    invoices: list[InvoiceDetailResponse]
    failures: list[DraftFamilyFailure]
    warnings: list[str]
    is_partial: bool


class EventInvoiceCreate(BaseModel):
    family_id: int
    order_ids: list[int] = Field(min_length=1)
    invoice_date: date
    due_date: date | None = None


class HubSessionPayload(BaseModel):
    student_name: str = Field(min_length=1, max_length=255)
    session_date: date
    daily_rate: Decimal | None = None


class HubInvoiceCreate(BaseModel):
    family_id: int
    sessions: list[HubSessionPayload] = Field(min_length=1)
    invoice_date: date
    due_date: date | None = None


class InvoiceUpdate(BaseModel):
    invoice_date: date | None = None
    due_date: date | None = None
    period_start: date | None = None
    period_end: date | None = None
    status: InvoiceStatus | None = None
    notes: str | None = None


class InvoiceConsolidationRequest(BaseModel):
    invoice_ids: list[int]
    invoice_date: date


class InvoiceWithWarningsResponse(BaseModel):
    invoice: InvoiceDetailResponse
    warnings: list[str]


class InvoiceIdsRequest(BaseModel):
    invoice_ids: list[int] = Field(min_length=1)


class BatchItemError(BaseModel):
    invoice_id: int
    error: str


class BatchResultResponse(BaseModel):
    succeeded: int
    failed: int
    total: int
    errors: list[BatchItemError]


class InvoiceLineItemCreate(BaseModel):
    description: str = Field(min_length=1, max_length=500)
    quantity: Decimal = Decimal("1")
    unit_price: Decimal
    amount: Decimal | None = None
    enrollment_id: int | None = None


class InvoiceLineItemUpdate(BaseModel):
    description: str | None = Field(default=None, min_length=1, max_length=500)
    quantity: Decimal | None = None
    unit_price: Decimal | None = None
    amount: Decimal | None = None


class HistoricalLineItemPayload(BaseModel):
    description: str = Field(min_length=1, max_length=500)
    quantity: Decimal = Decimal("1")
    unit_price: Decimal
    amount: Decimal


class HistoricalPaymentPayload(BaseModel):
    amount: Decimal
    payment_date: date
    payment_method: str | None = None
    reference: str | None = None


class HistoricalInvoiceCreate(BaseModel):
    family_id: int
    invoice_number: str | None = None
    invoice_date: date
    due_date: date | None = None
    period_start: date | None = None
    period_end: date | None = None
    status: InvoiceStatus
    line_items: list[HistoricalLineItemPayload] = Field(min_length=1)
    amount_paid: Decimal = Decimal("0.00")
    sent_at: datetime | None = None
    sent_to: str | None = None
    payment: HistoricalPaymentPayload | None = None
    notes: str | None = None


class InvoiceSendResponse(BaseModel):
    invoice: InvoiceSummaryResponse
    delivered: bool
    warnings: list[str]


class ReminderEnqueueResponse(BaseModel):
    task_id: str
    status: str
    message: str


class IntegrityFindingResponse(BaseModel):
    check_code: str
    severity: str
    entity_type: str
    entity_id: int
    message: str
    details_json: dict
