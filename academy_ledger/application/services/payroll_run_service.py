from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import select, update
from sqlalchemy.orm import Session, selectinload

from academy_ledger.application.errors import NotFoundError, ValidationError
from academy_ledger.application.services.compensation import CompensationStack, delete_entity
from academy_ledger.domain.money import ZERO, add_money, multiply_money, sum_money
from academy_ledger.domain.payroll_status import (
    EDITABLE_PAYROLL_RUN_STATUSES,
    PayrollRunStatus,
    RateSource,
    can_transition,
)
from academy_ledger.domain.proration import calculate_period_hours
from academy_ledger.domain.rate_resolution import resolve_assignment_rate
from academy_ledger.infrastructure.db.models import (
    Enrollment,
    PayrollAdjustment,
    PayrollLineItem,
    PayrollRun,
    TeacherAssignment,
)
from academy_ledger.infrastructure.logging import get_logger

logger = get_logger(__name__)

ADJUSTMENT_HOST_DESCRIPTION = "Carry-forward adjustment"


@dataclass
class PayrollRunCreationResult:
    run: PayrollRun
    warnings: list[str] = field(default_factory=list)


def serialize_payroll_line_item(item: PayrollLineItem) -> dict:
    return {
        "id": item.id,
        "payroll_run_id": item.payroll_run_id,
        "teacher_id": item.teacher_id,
        "teacher_name": item.teacher.display_name if item.teacher is not None else None,
        "teacher_assignment_id": item.teacher_assignment_id,
        "service_id": item.service_id,
        "enrollment_id": item.enrollment_id,
        "description": item.description,
        "calculated_hours": item.calculated_hours,
        "actual_hours": item.actual_hours,
        "hourly_rate": item.hourly_rate,
        "rate_source": item.rate_source,
        "calculated_amount": item.calculated_amount,
        "adjustment_amount": item.adjustment_amount,
        "adjustment_note": item.adjustment_note,
        "final_amount": item.final_amount,
    }


def serialize_payroll_run(run: PayrollRun, *, include_line_items: bool = False) -> dict:
    payload = {
        "id": run.id,
        "period_start": run.period_start,
        "period_end": run.period_end,
        "status": run.status,
        "total_calculated": run.total_calculated,
        "total_adjusted": run.total_adjusted,
        "total_hours": run.total_hours,
        "teacher_count": run.teacher_count,
        "approved_by": run.approved_by,
        "approved_at": run.approved_at,
        "paid_at": run.paid_at,
        "notes": run.notes,
        "created_at": run.created_at,
    }
    if include_line_items:
        payload["line_items"] = [serialize_payroll_line_item(item) for item in run.line_items]
    return payload


def get_payroll_run(db: Session, *, run_id: int) -> PayrollRun:
    run = db.execute(
        select(PayrollRun)
        .where(PayrollRun.id == run_id)
        .options(selectinload(PayrollRun.line_items).selectinload(PayrollLineItem.teacher))
    ).scalar_one_or_none()
    if run is None:
        raise NotFoundError("Payroll run not found")
    return run


def list_payroll_runs(db: Session, *, status: PayrollRunStatus | None = None) -> list[PayrollRun]:
    query = select(PayrollRun).order_by(PayrollRun.period_start.desc(), PayrollRun.id.desc())
    if status is not None:
        query = query.where(PayrollRun.status == status)
    return list(db.execute(query).scalars().all())


def list_active_assignments(db: Session) -> list[TeacherAssignment]:
    return list(
        db.execute(
            select(TeacherAssignment)
            .where(TeacherAssignment.is_active.is_(True))
            .options(
                selectinload(TeacherAssignment.teacher),
                selectinload(TeacherAssignment.service),
                selectinload(TeacherAssignment.enrollment).selectinload(Enrollment.student),
                selectinload(TeacherAssignment.enrollment).selectinload(Enrollment.service),
            )
            .order_by(TeacherAssignment.id)
        )
        .scalars()
        .all()
    )


def describe_assignment(assignment: TeacherAssignment) -> str:
    enrollment = assignment.enrollment
    if enrollment is not None and enrollment.student is not None:
        if enrollment.service is not None:
            return f"{enrollment.student.full_name} - {enrollment.service.name}"
        return enrollment.student.full_name
    if assignment.service is not None:
        return assignment.service.name
    if assignment.teacher is not None:
        return assignment.teacher.display_name
    return "Unknown"


def build_line_items_for_period(
    assignments: list[TeacherAssignment],
    *,
    run_id: int,
    period_start: date,
    period_end: date,
) -> list[PayrollLineItem]:
    """Snapshot assignments into unsaved line items for one pay period.

    Assignments with zero prorated hours are skipped unless their hours are
    variable, in which case a zero-hour row is kept for someone to fill in.
    """
    line_items: list[PayrollLineItem] = []
    for assignment in assignments:
        period_hours = calculate_period_hours(
            assignment.hours_per_week,
            period_start,
            period_end,
            assignment.start_date,
            assignment.end_date,
        )
        if period_hours.hours == ZERO and not period_hours.is_variable:
            continue

        resolved = resolve_assignment_rate(assignment)
        calculated_amount = multiply_money(period_hours.hours, resolved.rate)
        service_id = assignment.enrollment.service_id if assignment.enrollment is not None else assignment.service_id
        line_items.append(
            PayrollLineItem(
                payroll_run_id=run_id,
                teacher_id=assignment.teacher_id,
                teacher_assignment_id=assignment.id,
                enrollment_id=assignment.enrollment_id,
                service_id=service_id,
                description=describe_assignment(assignment),
                calculated_hours=period_hours.hours,
                actual_hours=period_hours.hours,
                hourly_rate=resolved.rate,
                rate_source=resolved.source,
                calculated_amount=calculated_amount,
                adjustment_amount=ZERO,
                final_amount=calculated_amount,
            )
        )
    return line_items


def _insert_line_items(db: Session, line_items: list[PayrollLineItem]) -> None:
    db.add_all(line_items)
    db.commit()


def _append_note(existing: str | None, note: str) -> str:
    if not existing:
        return note
    return f"{existing}; {note}"


def _pending_adjustment_ids(db: Session) -> list[int]:
    return list(
        db.execute(
            select(PayrollAdjustment.id)
            .where(PayrollAdjustment.target_payroll_run_id.is_(None))
            .order_by(PayrollAdjustment.id)
        )
        .scalars()
        .all()
    )


def _claim_adjustments(db: Session, *, run_id: int, adjustment_ids: list[int]) -> list[PayrollAdjustment]:
    """Link still-pending adjustments to ``run_id`` and return only the rows this call won.

    The conditional update is the claim: a row another run linked first no
    longer matches ``target_payroll_run_id IS NULL`` and is left alone.
    """
    claimed_ids = (
        db.execute(
            update(PayrollAdjustment)
            .where(
                PayrollAdjustment.id.in_(adjustment_ids),
                PayrollAdjustment.target_payroll_run_id.is_(None),
            )
            .values(target_payroll_run_id=run_id)
            .returning(PayrollAdjustment.id)
            .execution_options(synchronize_session=False)
        )
        .scalars()
        .all()
    )
    if not claimed_ids:
        return []
    return list(
        db.execute(
            select(PayrollAdjustment)
            .where(PayrollAdjustment.id.in_(claimed_ids))
            .order_by(PayrollAdjustment.id)
            .execution_options(populate_existing=True)
        )
        .scalars()
        .all()
    )


def apply_pending_adjustments(db: Session, *, run: PayrollRun) -> list[str]:
    """Claim every pending adjustment for ``run`` and fold it into a line item.

    The amount lands on the teacher's first line item in the run. A teacher
    with no line item gets a zero-hour host item so the amount is not lost.
    Claiming and folding share one transaction; a rollback releases the claims.
    """
    pending_ids = _pending_adjustment_ids(db)
    if not pending_ids:
        return []

    first_items: dict[int, PayrollLineItem] = {}
    for item in sorted(run.line_items, key=lambda line: line.id):
        first_items.setdefault(item.teacher_id, item)

    try:
        claimed = _claim_adjustments(db, run_id=run.id, adjustment_ids=pending_ids)
        if len(claimed) < len(pending_ids):
            logger.info(
                "payroll_adjustments_already_claimed",
                payroll_run_id=run.id,
                skipped=len(pending_ids) - len(claimed),
            )
        for adjustment in claimed:
            item = first_items.get(adjustment.teacher_id)
            if item is None:
                item = PayrollLineItem(
                    payroll_run_id=run.id,
                    teacher_id=adjustment.teacher_id,
                    teacher_assignment_id=None,
                    description=ADJUSTMENT_HOST_DESCRIPTION,
                    calculated_hours=ZERO,
                    actual_hours=ZERO,
                    hourly_rate=ZERO,
                    rate_source=RateSource.teacher,
                    calculated_amount=ZERO,
                    adjustment_amount=ZERO,
                    final_amount=ZERO,
                )
                db.add(item)
                first_items[adjustment.teacher_id] = item
                logger.info(
                    "payroll_adjustment_host_line_item_created",
                    payroll_run_id=run.id,
                    teacher_id=adjustment.teacher_id,
                    adjustment_id=adjustment.id,
                )
            item.adjustment_amount = add_money(item.adjustment_amount, adjustment.amount)
            item.adjustment_note = _append_note(item.adjustment_note, adjustment.reason)
            item.final_amount = add_money(item.calculated_amount, item.adjustment_amount)
        db.commit()
    except Exception as exc:
        db.rollback()
        logger.warning("payroll_adjustments_apply_failed", payroll_run_id=run.id, error=str(exc))
        return [f"Failed to apply pending adjustments: {exc}"]

    logger.info("payroll_adjustments_applied", payroll_run_id=run.id, adjustment_count=len(claimed))
    return []


def recalculate_run_totals(db: Session, *, run_id: int) -> PayrollRun:
    run = db.get(PayrollRun, run_id)
    if run is None:
        raise NotFoundError("Payroll run not found")
    line_items = list(
        db.execute(select(PayrollLineItem).where(PayrollLineItem.payroll_run_id == run_id)).scalars().all()
    )
    run.total_calculated = sum_money(item.calculated_amount for item in line_items)
    run.total_adjusted = sum_money(item.final_amount for item in line_items)
    run.total_hours = sum(
        (item.actual_hours if item.actual_hours is not None else ZERO for item in line_items),
        Decimal("0.00"),
    )
    run.teacher_count = len({item.teacher_id for item in line_items})
    db.commit()
    db.refresh(run)
    return run


def create_payroll_run(
    db: Session,
    *,
    period_start: date,
    period_end: date,
    notes: str | None = None,
) -> PayrollRunCreationResult:
    """Create a draft payroll run with line items for every active assignment.

    Not idempotent: calling it twice for the same period creates two runs.
    Callers serialize creation with ``payroll_run_creation_lock``.
    """
    if period_start > period_end:
        raise ValidationError("Period start must be on or before period end")

    logger.info("payroll_run_creation_started", period_start=str(period_start), period_end=str(period_end))
    compensation = CompensationStack(db=db, operation="create_payroll_run")

    run = PayrollRun(period_start=period_start, period_end=period_end, status=PayrollRunStatus.draft, notes=notes)
    db.add(run)
    db.commit()
    db.refresh(run)
    compensation.push("delete_payroll_run", delete_entity(db, PayrollRun, run.id))

    try:
        assignments = list_active_assignments(db)
        line_items = build_line_items_for_period(
            assignments,
            run_id=run.id,
            period_start=period_start,
            period_end=period_end,
        )
        if line_items:
            _insert_line_items(db, line_items)
    except Exception as exc:
        run_id = run.id
        compensation.unwind()
        logger.error("payroll_run_creation_failed", payroll_run_id=run_id, error=str(exc))
        raise

    warnings: list[str] = []
    db.refresh(run)
    warnings.extend(apply_pending_adjustments(db, run=run))

    try:
        run = recalculate_run_totals(db, run_id=run.id)
    except Exception as exc:
        db.rollback()
        logger.warning("payroll_run_totals_update_failed", payroll_run_id=run.id, error=str(exc))
        warnings.append(f"Payroll run created but failed to update totals: {exc}")

    logger.info(
        "payroll_run_creation_completed",
        payroll_run_id=run.id,
        line_item_count=len(line_items),
        teacher_count=run.teacher_count,
        total_adjusted=str(run.total_adjusted),
        warning_count=len(warnings),
    )
    return PayrollRunCreationResult(run=run, warnings=warnings)


def update_payroll_run_status(
    db: Session,
    *,
    run_id: int,
    status: PayrollRunStatus,
    now: datetime,
    user_id: int | None = None,
) -> PayrollRun:
    run = get_payroll_run(db, run_id=run_id)
    target = PayrollRunStatus(status)
    current = PayrollRunStatus(run.status)
    if not can_transition(current, target):
        logger.warning(
            "payroll_run_status_transition_rejected",
            payroll_run_id=run_id,
            from_status=current.value,
            to_status=target.value,
        )
        raise ValidationError(f"Cannot move payroll run from {current.value} to {target.value}")

    run.status = target
    if target == PayrollRunStatus.approved:
        run.approved_by = user_id
        run.approved_at = now
    elif target == PayrollRunStatus.paid:
        run.paid_at = now
    db.commit()
    db.refresh(run)
    logger.info(
        "payroll_run_status_updated",
        payroll_run_id=run_id,
        from_status=current.value,
        to_status=target.value,
        user_id=user_id,
    )
    return run


def delete_payroll_run(db: Session, *, run_id: int) -> None:
    run = get_payroll_run(db, run_id=run_id)
    if run.status != PayrollRunStatus.draft:
        raise ValidationError("Only draft payroll runs can be deleted")
    db.execute(
        update(PayrollAdjustment)
        .where(PayrollAdjustment.target_payroll_run_id == run_id)
        .values(target_payroll_run_id=None)
    )
    db.delete(run)
    db.commit()
    logger.info("payroll_run_deleted", payroll_run_id=run_id)


def assert_run_editable(run: PayrollRun) -> None:
    if PayrollRunStatus(run.status) not in EDITABLE_PAYROLL_RUN_STATUSES:
        raise ValidationError("Payroll run can only be edited while in draft or review")
