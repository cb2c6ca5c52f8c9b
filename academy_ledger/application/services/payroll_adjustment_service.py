from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from academy_ledger.application.errors import NotFoundError, ValidationError
from academy_ledger.domain.money import ZERO, to_money
from academy_ledger.infrastructure.db.models import PayrollAdjustment, PayrollRun, Teacher
from academy_ledger.infrastructure.logging import get_logger

logger = get_logger(__name__)


def serialize_payroll_adjustment(adjustment: PayrollAdjustment) -> dict:
    return {
        "id": adjustment.id,
        "teacher_id": adjustment.teacher_id,
        "teacher_name": adjustment.teacher.display_name if adjustment.teacher is not None else None,
        "source_payroll_run_id": adjustment.source_payroll_run_id,
        "target_payroll_run_id": adjustment.target_payroll_run_id,
        "amount": adjustment.amount,
        "reason": adjustment.reason,
        "created_by": adjustment.created_by,
        "created_at": adjustment.created_at,
    }


def create_adjustment(
    db: Session,
    *,
    teacher_id: int,
    amount: Decimal,
    reason: str,
    source_run_id: int | None = None,
    user_id: int | None = None,
) -> PayrollAdjustment:
    """Record a carry-forward correction that the next payroll run will absorb."""
    if db.get(Teacher, teacher_id) is None:
        raise NotFoundError("Teacher not found")
    if source_run_id is not None and db.get(PayrollRun, source_run_id) is None:
        raise NotFoundError("Payroll run not found")
    normalized_amount = to_money(amount)
    if normalized_amount == ZERO:
        raise ValidationError("Adjustment amount cannot be zero")
    if not reason or not reason.strip():
        raise ValidationError("Adjustment reason is required")

    adjustment = PayrollAdjustment(
        teacher_id=teacher_id,
        source_payroll_run_id=source_run_id,
        target_payroll_run_id=None,
        amount=normalized_amount,
        reason=reason.strip(),
        created_by=user_id,
    )
    db.add(adjustment)
    db.commit()
    db.refresh(adjustment)
    logger.info(
        "payroll_adjustment_created",
        adjustment_id=adjustment.id,
        teacher_id=teacher_id,
        source_payroll_run_id=source_run_id,
        amount=str(normalized_amount),
    )
    return adjustment


def list_pending_adjustments(db: Session) -> list[PayrollAdjustment]:
    return list(
        db.execute(
            select(PayrollAdjustment)
            .where(PayrollAdjustment.target_payroll_run_id.is_(None))
            .options(selectinload(PayrollAdjustment.teacher))
            .order_by(PayrollAdjustment.id)
        )
        .scalars()
        .all()
    )
