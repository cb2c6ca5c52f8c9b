from datetime import date
from decimal import Decimal

import pytest

from academy_ledger.application.errors import NotFoundError, ValidationError
from academy_ledger.application.services.payroll_line_item_service import (
    bulk_update_teacher_hours,
    create_manual_line_item,
    delete_line_item,
    update_line_item,
)
from academy_ledger.application.services.payroll_run_service import get_payroll_run
from academy_ledger.domain.payroll_status import PayrollRunStatus, RateSource
from academy_ledger.infrastructure.db.models import PayrollLineItem
from tests.helpers.factories import (
    create_assignment,
    create_payroll_line_item,
    create_payroll_run_row,
    create_service,
    create_teacher,
    get_entity_by_id,
)


def seed_run(db_session, status: PayrollRunStatus = PayrollRunStatus.draft):
    return create_payroll_run_row(
        db_session, period_start=date(2026, 1, 5), period_end=date(2026, 1, 9), status=status
    )


def test_update_line_item_recomputes_amounts_and_run_totals(db_session):
    """
    Validate hour and adjustment overrides flow into the run totals.

    1. Seed one draft run with one 10 hour line item at 40 dollars.
    2. Override actual hours and add an adjustment.
    3. Validate the line item amounts are recomputed.
    4. Validate the run totals follow.
    """
    teacher = create_teacher(db_session, "Alice Tutor")
    run = seed_run(db_session)
    item = create_payroll_line_item(
        db_session, run_id=run.id, teacher_id=teacher.id, description="Coaching", calculated_hours="10", hourly_rate="40"
    )

    updated = update_line_item(
        db_session,
        line_item_id=item.id,
        actual_hours=Decimal("12.5"),
        adjustment_amount=Decimal("-20"),
        adjustment_note="Left early",
    )

    assert updated.calculated_amount == Decimal("500.00")
    assert updated.adjustment_amount == Decimal("-20.00")
    assert updated.final_amount == Decimal("480.00")
    assert updated.adjustment_note == "Left early"
    refreshed = get_payroll_run(db_session, run_id=run.id)
    db_session.refresh(refreshed)
    assert refreshed.total_calculated == Decimal("500.00")
    assert refreshed.total_adjusted == Decimal("480.00")
    assert refreshed.total_hours == Decimal("12.50")
    assert refreshed.teacher_count == 1


def test_update_line_item_rejects_negative_hours_and_locked_runs(db_session):
    """
    Validate line item edit guards.

    1. Seed one draft run and one approved run with a line item each.
    2. Submit negative hours on the draft item.
    3. Submit any edit on the approved item.
    4. Validate both calls raise ValidationError.
    """
    teacher = create_teacher(db_session, "Alice Tutor")
    draft = seed_run(db_session)
    approved = seed_run(db_session, status=PayrollRunStatus.approved)
    draft_item = create_payroll_line_item(
        db_session, run_id=draft.id, teacher_id=teacher.id, description="A", calculated_hours="1", hourly_rate="10"
    )
    locked_item = create_payroll_line_item(
        db_session, run_id=approved.id, teacher_id=teacher.id, description="B", calculated_hours="1", hourly_rate="10"
    )

    with pytest.raises(ValidationError) as negative:
        update_line_item(db_session, line_item_id=draft_item.id, actual_hours=Decimal("-1"))
    with pytest.raises(ValidationError) as locked:
        update_line_item(db_session, line_item_id=locked_item.id, actual_hours=Decimal("2"))
    assert str(negative.value) == "Hours cannot be negative"
    assert str(locked.value) == "Payroll run can only be edited while in draft or review"


def test_bulk_update_teacher_hours_sets_hours_for_selected_teachers(db_session):
    """
    Validate bulk hour edits.

    1. Seed one run with items for three teachers.
    2. Set 8 hours for two of the teachers.
    3. Validate the number of updated items.
    4. Validate the unselected teacher is untouched.
    """
    alice = create_teacher(db_session, "Alice Tutor")
    bob = create_teacher(db_session, "Bob Tutor")
    carol = create_teacher(db_session, "Carol Tutor")
    run = seed_run(db_session)
    for teacher in (alice, alice, bob, carol):
        create_payroll_line_item(
            db_session, run_id=run.id, teacher_id=teacher.id, description="Work", calculated_hours="5", hourly_rate="20"
        )

    updated = bulk_update_teacher_hours(db_session, run_id=run.id, teacher_ids=[alice.id, bob.id], hours=Decimal("8"))

    assert updated == 3
    items = get_payroll_run(db_session, run_id=run.id).line_items
    for item in items:
        db_session.refresh(item)
    amounts = {(item.teacher_id, item.final_amount) for item in items}
    assert amounts == {(alice.id, Decimal("160.00")), (bob.id, Decimal("160.00")), (carol.id, Decimal("100.00"))}


def test_bulk_update_teacher_hours_validates_selection(db_session):
    """
    Validate bulk hour edit guards.

    1. Seed one run with no line items.
    2. Submit an empty teacher selection.
    3. Submit a teacher with no line items.
    4. Validate both calls raise ValidationError.
    """
    teacher = create_teacher(db_session, "Alice Tutor")
    run = seed_run(db_session)
    with pytest.raises(ValidationError) as empty:
        bulk_update_teacher_hours(db_session, run_id=run.id, teacher_ids=[], hours=Decimal("1"))
    with pytest.raises(ValidationError) as missing:
        bulk_update_teacher_hours(db_session, run_id=run.id, teacher_ids=[teacher.id], hours=Decimal("1"))
    assert str(empty.value) == "No teachers selected"
    assert str(missing.value) == "No line items found for selected teachers"


def test_create_and_delete_manual_line_item(db_session):
    """
    Validate manual line items.

    1. Seed one draft run and one teacher.
    2. Add a manual line item for a miscellaneous task.
    3. Validate the amount, rate source and run totals.
    4. Delete the item and validate the totals drop back.
    """
    teacher = create_teacher(db_session, "Alice Tutor")
    run = seed_run(db_session)

    item = create_manual_line_item(
        db_session,
        run_id=run.id,
        teacher_id=teacher.id,
        description="  Inventory count  ",
        hours=Decimal("2"),
        hourly_rate=Decimal("17.5"),
    )

    assert item.description == "Inventory count"
    assert item.final_amount == Decimal("35.00")
    assert item.rate_source == RateSource.teacher
    assert get_payroll_run(db_session, run_id=run.id).total_adjusted == Decimal("35.00")

    delete_line_item(db_session, line_item_id=item.id)
    assert get_entity_by_id(db_session, PayrollLineItem, item.id) is None
    assert get_payroll_run(db_session, run_id=run.id).total_adjusted == Decimal("0.00")


def test_manual_line_item_requires_known_teacher(db_session):
    """
    Validate manual line item teacher lookup.

    1. Seed one draft run.
    2. Add a manual line item for an unknown teacher.
    3. Validate NotFoundError is raised.
    4. Validate the error message.
    """
    run = seed_run(db_session)
    with pytest.raises(NotFoundError) as exc:
        create_manual_line_item(
            db_session, run_id=run.id, teacher_id=999, description="Task", hours=Decimal("1"), hourly_rate=Decimal("1")
        )
    assert str(exc.value) == "Teacher not found"


def test_delete_line_item_refuses_assignment_based_items(db_session):
    """
    Validate assignment-based line items cannot be deleted.

    1. Seed one assignment and a line item referencing it.
    2. Call delete on the line item.
    3. Validate ValidationError is raised.
    4. Validate the line item still exists.
    """
    teacher = create_teacher(db_session, "Alice Tutor")
    service = create_service(db_session, code="front_desk", name="Front Desk")
    assignment = create_assignment(db_session, teacher_id=teacher.id, service_id=service.id, hours_per_week="5")
    run = seed_run(db_session)
    item = create_payroll_line_item(
        db_session,
        run_id=run.id,
        teacher_id=teacher.id,
        teacher_assignment_id=assignment.id,
        description="Front Desk",
        calculated_hours="5",
        hourly_rate="15",
    )
    with pytest.raises(ValidationError) as exc:
        delete_line_item(db_session, line_item_id=item.id)
    assert str(exc.value) == "Cannot delete assignment-based line items"
    assert get_entity_by_id(db_session, PayrollLineItem, item.id) is not None
