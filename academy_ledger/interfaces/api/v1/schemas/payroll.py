from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from academy_ledger.domain.payroll_status import PayrollRunStatus, RateSource


class PayrollRunCreate(BaseModel):
    period_start: date
    period_end: date
    notes: str | None = None


class PayrollRunStatusUpdate(BaseModel):
    status: PayrollRunStatus


class PayrollLineItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    payroll_run_id: int
    teacher_id: int
    teacher_name: str | None = None
    teacher_assignment_id: int | None = None
    service_id: int | None = None
    enrollment_id: int | None = None
    description: str
    calculated_hours: Decimal
    actual_hours: Decimal | None = None
    hourly_rate: Decimal
    rate_source: RateSource
    calculated_amount: Decimal
    adjustment_amount: Decimal
    adjustment_note: str | None = None
    final_amount: Decimal


class PayrollRunResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    period_start: date
    period_end: date
    status: PayrollRunStatus
    total_calculated: Decimal
    total_adjusted: Decimal
    total_hours: Decimal
    teacher_count: int
    approved_by: int | None = None
    approved_at: datetime | None = None
    paid_at: datetime | None = None
    notes: str | None = None
    created_at: datetime


class PayrollRunDetailResponse(PayrollRunResponse):
    line_items: list[PayrollLineItemResponse]


class PayrollRunCreateResponse(BaseModel):
    run: PayrollRunDetailResponse
    warnings: list[str]


class PayrollLineItemUpdate(BaseModel):
    actual_hours: Decimal | None = Field(default=None, ge=0)
    adjustment_amount: Decimal | None = None
    adjustment_note: str | None = None


class PayrollBulkHoursUpdate(BaseModel):
    teacher_ids: list[int]
    hours: Decimal = Field(ge=0)


class PayrollBulkHoursResponse(BaseModel):
    updated: int


class PayrollManualLineItemCreate(BaseModel):
    teacher_id: int
    description: str = Field(min_length=1, max_length=500)
    hours: Decimal = Field(ge=0)
    hourly_rate: Decimal = Field(ge=0)


class PayrollAdjustmentCreate(BaseModel):
    teacher_id: int
    amount: Decimal
    reason: str = Field(min_length=1)
    source_payroll_run_id: int | None = None


class PayrollAdjustmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    teacher_id: int
    teacher_name: str | None = None
    source_payroll_run_id: int | None = None
    target_payroll_run_id: int | None = None
    amount: Decimal
    reason: str
    created_by: int | None = None
    created_at: datetime
