from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from academy_ledger.interfaces.api.v1.schemas.invoice import InvoiceSummaryResponse


class PaymentCreate(BaseModel):
    amount: Decimal = Field(gt=0)
    payment_date: date
    payment_method: str = Field(default="manual", max_length=50)
    reference: str | None = Field(default=None, max_length=255)
    notes: str | None = None


class PaymentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    invoice_id: int
    amount: Decimal
    payment_date: date
    payment_method: str | None = None
    reference: str | None = None
    notes: str | None = None
    created_at: datetime


class PaymentRecordResponse(BaseModel):
    payment: PaymentResponse
    invoice: InvoiceSummaryResponse
    warnings: list[str]
