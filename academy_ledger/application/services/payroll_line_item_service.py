from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from academy_ledger.application.errors import NotFoundError, ValidationError
from academy_ledger.application.services.payroll_run_service import (
    assert_run_editable,
    get_payroll_run,
    recalculate_run_totals,
)
from academy_ledger.domain.money import ZERO, add_money, multiply_money, to_money
from academy_ledger.domain.payroll_status import RateSource
from academy_ledger.infrastructure.db.models import PayrollLineItem, Teacher
from academy_ledger.infrastructure.logging import get_logger

logger = get_logger(__name__)


def get_line_item(db: Session, *, line_item_id: int) -> PayrollLineItem:
    item = db.get(PayrollLineItem, line_item_id)
    if item is None:
        raise NotFoundError("Payroll line item not found")
    return item


def _recompute_amounts(item: PayrollLineItem) -> None:
    hours = item.actual_hours if item.actual_hours is not None else item.calculated_hours
    item.calculated_amount = multiply_money(hours, item.hourly_rate)
    item.final_amount = add_money(item.calculated_amount, item.adjustment_amount)


def update_line_item(
    db: Session,
    *,
    line_item_id: int,
    actual_hours: Decimal | None = None,
    adjustment_amount: Decimal | None = None,
    adjustment_note: str | None = None,
) -> PayrollLineItem:
    """Override hours and/or adjustment on one line item and refresh the run totals."""
    item = get_line_item(db, line_item_id=line_item_id)
    assert_run_editable(item.payroll_run)
    if actual_hours is not None and actual_hours < 0:
        raise ValidationError("Hours cannot be negative")

    if actual_hours is not None:
        item.actual_hours = actual_hours
    if adjustment_amount is not None:
        item.adjustment_amount = to_money(adjustment_amount)
    if adjustment_note is not None:
        item.adjustment_note = adjustment_note
    _recompute_amounts(item)
    db.commit()
    recalculate_run_totals(db, run_id=item.payroll_run_id)
    db.refresh(item)
    logger.info(
        "payroll_line_item_updated",
        line_item_id=item.id,
        payroll_run_id=item.payroll_run_id,
        actual_hours=str(item.actual_hours),
        final_amount=str(item.final_amount),
    )
    return item


def bulk_update_teacher_hours(
    db: Session,
    *,
    run_id: int,
    teacher_ids: list[int],
    hours: Decimal,
) -> int:
    """Set the same actual hours on every line item of the selected teachers."""
    if not teacher_ids:
        raise ValidationError("No teachers selected")
    if hours < 0:
        raise ValidationError("Hours cannot be negative")
    run = get_payroll_run(db, run_id=run_id)
    assert_run_editable(run)

    items = list(
        db.execute(
            select(PayrollLineItem).where(
                PayrollLineItem.payroll_run_id == run_id,
                PayrollLineItem.teacher_id.in_(teacher_ids),
            )
        )
        .scalars()
        .all()
    )
    if not items:
        raise ValidationError("No line items found for selected teachers")

    for item in items:
        item.actual_hours = hours
        _recompute_amounts(item)
    db.commit()
    recalculate_run_totals(db, run_id=run_id)
    logger.info(
        "payroll_teacher_hours_bulk_updated",
        payroll_run_id=run_id,
        teacher_count=len(teacher_ids),
        line_item_count=len(items),
        hours=str(hours),
    )
    return len(items)


def create_manual_line_item(
    db: Session,
    *,
    run_id: int,
    teacher_id: int,
    description: str,
    hours: Decimal,
    hourly_rate: Decimal,
) -> PayrollLineItem:
    """Add an ad-hoc line item (miscellaneous task) with no backing assignment."""
    run = get_payroll_run(db, run_id=run_id)
    assert_run_editable(run)
    if db.get(Teacher, teacher_id) is None:
        raise NotFoundError("Teacher not found")
    if not description.strip():
        raise ValidationError("Description is required")
    if hours < 0 or hourly_rate < 0:
        raise ValidationError("Hours and rate cannot be negative")

    calculated_amount = multiply_money(hours, hourly_rate)
    item = PayrollLineItem(
        payroll_run_id=run_id,
        teacher_id=teacher_id,
        teacher_assignment_id=None,
        description=description.strip(),
        calculated_hours=hours,
        actual_hours=hours,
        hourly_rate=to_money(hourly_rate),
        rate_source=RateSource.teacher,
        calculated_amount=calculated_amount,
        adjustment_amount=ZERO,
        final_amount=calculated_amount,
    )
    db.add(item)
    db.commit()
    recalculate_run_totals(db, run_id=run_id)
    db.refresh(item)
    logger.info("payroll_manual_line_item_created", payroll_run_id=run_id, line_item_id=item.id, teacher_id=teacher_id)
    return item


def delete_line_item(db: Session, *, line_item_id: int) -> None:
    item = get_line_item(db, line_item_id=line_item_id)
    if item.teacher_assignment_id is not None:
        raise ValidationError("Cannot delete assignment-based line items")
    assert_run_editable(item.payroll_run)
    run_id = item.payroll_run_id
    db.delete(item)
    db.commit()
    recalculate_run_totals(db, run_id=run_id)
    logger.info("payroll_line_item_deleted", payroll_run_id=run_id, line_item_id=line_item_id)
