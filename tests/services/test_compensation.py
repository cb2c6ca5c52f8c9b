from academy_ledger.application.services.compensation import CompensationStack, delete_entity
from academy_ledger.infrastructure.db.models import Family
from tests.helpers.factories import create_family, get_entity_by_id


def test_unwind_runs_steps_newest_first(db_session):
    """
    Validate compensation order.

    1. Push three undo steps that record their label.
    2. Unwind the stack once.
    3. Validate the steps ran newest first.
    4. Validate the stack is empty afterwards.
    """
    calls: list[str] = []
    stack = CompensationStack(db=db_session, operation="test")
    for label in ("first", "second", "third"):
        stack.push(label, lambda label=label: calls.append(label))

    failures = stack.unwind()

    assert calls == ["third", "second", "first"]
    assert failures == []
    assert stack.steps == []


def test_unwind_continues_after_failed_step(db_session):
    """
    Validate a failing undo does not stop the others.

    1. Seed one family and push a delete step for it.
    2. Push a step that raises.
    3. Unwind the stack once.
    4. Validate the failure is reported and the family is deleted.
    """
    family = create_family(db_session, "Smith Family")
    stack = CompensationStack(db=db_session, operation="test")
    stack.push("delete_family", delete_entity(db_session, Family, family.id))

    def broken_undo():
        raise RuntimeError("undo failed")

    stack.push("broken", broken_undo)

    failures = stack.unwind()

    assert failures == ["broken: undo failed"]
    assert get_entity_by_id(db_session, Family, family.id) is None


def test_clear_drops_pending_steps(db_session):
    """
    Validate clearing a stack after success.

    1. Push one delete step for a seeded family.
    2. Clear the stack.
    3. Unwind the now-empty stack.
    4. Validate the family still exists.
    """
    family = create_family(db_session, "Smith Family")
    stack = CompensationStack(db=db_session, operation="test")
    stack.push("delete_family", delete_entity(db_session, Family, family.id))

    stack.clear()
    stack.unwind()

    assert get_entity_by_id(db_session, Family, family.id) is not None
