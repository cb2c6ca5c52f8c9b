from datetime import date
from decimal import Decimal

import pytest

from academy_ledger.application.errors import NotFoundError, ValidationError
from academy_ledger.application.services.payroll_adjustment_service import (
    create_adjustment,
    list_pending_adjustments,
    serialize_payroll_adjustment,
)
from tests.helpers.factories import create_payroll_run_row, create_pending_adjustment, create_teacher


def test_create_adjustment_records_pending_correction(db_session):
    """
    Validate adjustment creation.

    1. Seed one teacher and one source run.
    2. Create an adjustment attributed to an operator.
    3. Validate amount and reason are normalized.
    4. Validate the adjustment is pending with its source run.
    """
    teacher = create_teacher(db_session, "Alice Tutor")
    source = create_payroll_run_row(db_session, period_start=date(2026, 1, 5), period_end=date(2026, 1, 9))

    adjustment = create_adjustment(
        db_session,
        teacher_id=teacher.id,
        amount=Decimal("12.345"),
        reason="  Underpaid Friday  ",
        source_run_id=source.id,
        user_id=3,
    )

    assert adjustment.amount == Decimal("12.35")
    assert adjustment.reason == "Underpaid Friday"
    assert adjustment.source_payroll_run_id == source.id
    assert adjustment.target_payroll_run_id is None
    assert adjustment.created_by == 3


@pytest.mark.parametrize(
    ("amount", "reason", "message"),
    [
        (Decimal("0.001"), "Rounding", "Adjustment amount cannot be zero"),
        (Decimal("10"), "   ", "Adjustment reason is required"),
    ],
)
def test_create_adjustment_validates_amount_and_reason(db_session, amount, reason, message):
    """
    Validate adjustment input guards.

    1. Seed one teacher.
    2. Submit a zero amount or a blank reason.
    3. Validate ValidationError is raised.
    4. Validate the error message.
    """
    teacher = create_teacher(db_session, "Alice Tutor")
    with pytest.raises(ValidationError) as exc:
        create_adjustment(db_session, teacher_id=teacher.id, amount=amount, reason=reason)
    assert str(exc.value) == message


def test_create_adjustment_requires_known_teacher_and_run(db_session):
    """
    Validate adjustment references.

    1. Seed one teacher.
    2. Submit an unknown teacher, then an unknown source run.
    3. Validate NotFoundError is raised both times.
    4. Validate the error messages.
    """
    teacher = create_teacher(db_session, "Alice Tutor")
    with pytest.raises(NotFoundError) as missing_teacher:
        create_adjustment(db_session, teacher_id=999, amount=Decimal("5"), reason="x")
    with pytest.raises(NotFoundError) as missing_run:
        create_adjustment(db_session, teacher_id=teacher.id, amount=Decimal("5"), reason="x", source_run_id=999)
    assert str(missing_teacher.value) == "Teacher not found"
    assert str(missing_run.value) == "Payroll run not found"


def test_list_pending_adjustments_excludes_linked(db_session):
    """
    Validate the pending adjustments listing.

    1. Seed two adjustments and link one to a run.
    2. List pending adjustments.
    3. Validate only the unlinked adjustment is returned.
    4. Validate the serialized payload carries the teacher name.
    """
    teacher = create_teacher(db_session, "Alice Tutor")
    run = create_payroll_run_row(db_session, period_start=date(2026, 1, 5), period_end=date(2026, 1, 9))
    pending = create_pending_adjustment(db_session, teacher_id=teacher.id, amount="10.00", reason="Pending")
    linked = create_pending_adjustment(db_session, teacher_id=teacher.id, amount="20.00", reason="Linked")
    linked.target_payroll_run_id = run.id
    db_session.commit()

    listed = list_pending_adjustments(db_session)

    assert [adjustment.id for adjustment in listed] == [pending.id]
    payload = serialize_payroll_adjustment(listed[0])
    assert payload["teacher_name"] == "Alice Tutor"
    assert payload["amount"] == Decimal("10.00")
