from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from academy_ledger.application.services.payroll_adjustment_service import (
    create_adjustment,
    list_pending_adjustments,
    serialize_payroll_adjustment,
)
from academy_ledger.infrastructure.db.session import get_db
from academy_ledger.interfaces.api.v1.dependencies.context import get_current_user_id
from academy_ledger.interfaces.api.v1.schemas.payroll import PayrollAdjustmentCreate, PayrollAdjustmentResponse

router = APIRouter(prefix="/payroll-adjustments", tags=["payroll"])


@router.post(
    "",
    response_model=PayrollAdjustmentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create payroll adjustment",
    description="Record a carry-forward correction for a teacher. The next payroll run created absorbs it.",
    responses={400: {"description": "Zero amount or missing reason"}, 404: {"description": "Teacher not found"}},
)
def create_adjustment_endpoint(
    payload: PayrollAdjustmentCreate,
    user_id: int | None = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    adjustment = create_adjustment(
        db,
        teacher_id=payload.teacher_id,
        amount=payload.amount,
        reason=payload.reason,
        source_run_id=payload.source_payroll_run_id,
        user_id=user_id,
    )
    return serialize_payroll_adjustment(adjustment)


@router.get(
    "/pending",
    response_model=list[PayrollAdjustmentResponse],
    summary="List pending adjustments",
    description="Adjustments not yet absorbed by a payroll run.",
)
def list_pending_adjustments_endpoint(db: Session = Depends(get_db)):
    return [serialize_payroll_adjustment(adjustment) for adjustment in list_pending_adjustments(db)]
