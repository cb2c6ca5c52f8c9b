from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from academy_ledger.application.errors import NotFoundError, ValidationError
from academy_ledger.application.services.payment_service import (
    list_invoice_payments,
    record_payment,
    recalculate_invoice_balance,
)
from academy_ledger.domain.invoice_status import InvoiceStatus
from academy_ledger.infrastructure.db.models import EventOrder
from tests.helpers.factories import (
    create_event_order,
    create_family,
    create_invoice,
    create_payment,
    get_entity_by_id,
)

NOW = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)


def seed_invoice(db_session, *, status: InvoiceStatus = InvoiceStatus.sent, amount_paid: str = "0.00"):
    family = create_family(db_session, "Smith Family", "smith@example.com")
    return create_invoice(
        db_session,
        family_id=family.id,
        public_id="pay0000001",
        invoice_date=date(2026, 3, 1),
        line_amounts=["60.00", "40.00"],
        status=status,
        amount_paid=amount_paid,
    )


def test_record_payment_marks_invoice_partial(db_session):
    """
    Validate a payment smaller than the balance.

    1. Seed one sent invoice for 100 dollars.
    2. Record a 40 dollar payment.
    3. Validate the payment row and applied amount.
    4. Validate the invoice is partial with 60 dollars due.
    """
    invoice = seed_invoice(db_session)

    result = record_payment(
        db_session, invoice_id=invoice.id, amount=Decimal("40"), payment_date=date(2026, 3, 2), now=NOW
    )

    assert result.payment.amount == Decimal("40.00")
    assert result.payment.payment_method == "manual"
    assert result.invoice.status == InvoiceStatus.partial
    assert result.invoice.amount_paid == Decimal("40.00")
    assert result.invoice.balance_due == Decimal("60.00")
    assert result.warnings == []


def test_record_payment_caps_at_balance_and_syncs_event_orders(db_session):
    """
    Validate an overpayment is capped and linked event orders are paid.

    1. Seed one invoice with 30 dollars already paid and one linked event order.
    2. Record a payment larger than the balance.
    3. Validate only the balance is applied and the invoice is paid.
    4. Validate the event order is marked paid.
    """
    invoice = seed_invoice(db_session, status=InvoiceStatus.partial, amount_paid="30.00")
    order = create_event_order(
        db_session,
        family_id=invoice.family_id,
        event_title="Spring Gala",
        total_cents=10000,
        invoice_id=invoice.id,
        payment_status="stepup_pending",
    )

    result = record_payment(
        db_session, invoice_id=invoice.id, amount=Decimal("500"), payment_date=date(2026, 3, 2), now=NOW
    )

    assert result.payment.amount == Decimal("70.00")
    assert result.invoice.amount_paid == Decimal("100.00")
    assert result.invoice.status == InvoiceStatus.paid
    synced = get_entity_by_id(db_session, EventOrder, order.id)
    db_session.refresh(synced)
    assert synced.payment_status == "paid"
    assert synced.paid_at is not None


@pytest.mark.parametrize(
    ("status", "amount_paid", "amount", "message"),
    [
        (InvoiceStatus.sent, "0.00", "0", "Payment amount must be greater than zero"),
        (InvoiceStatus.void, "0.00", "10", "Cannot record a payment on a void invoice"),
        (InvoiceStatus.paid, "100.00", "10", "Invoice is already fully paid"),
        (InvoiceStatus.partial, "100.00", "10", "Invoice has no balance due"),
    ],
)
def test_record_payment_rejects_unpayable_invoices(db_session, status, amount_paid, amount, message):
    """
    Validate payment guards.

    1. Seed one invoice in the given state.
    2. Record a payment once.
    3. Validate ValidationError is raised.
    4. Validate the error message.
    """
    invoice = seed_invoice(db_session, status=status, amount_paid=amount_paid)
    with pytest.raises(ValidationError) as exc:
        record_payment(db_session, invoice_id=invoice.id, amount=Decimal(amount), payment_date=date(2026, 3, 2), now=NOW)
    assert str(exc.value) == message


def test_record_payment_raises_not_found_for_missing_invoice(db_session):
    """
    Validate payments need an existing invoice.

    1. Use an invoice id that was never stored.
    2. Record a payment once.
    3. Validate NotFoundError is raised.
    4. Validate the error message.
    """
    with pytest.raises(NotFoundError) as exc:
        record_payment(db_session, invoice_id=404, amount=Decimal("1"), payment_date=date(2026, 3, 2), now=NOW)
    assert str(exc.value) == "Invoice not found"


def test_recalculate_invoice_balance_repairs_drift(db_session):
    """
    Validate balance repair from payment rows.

    1. Seed one invoice whose cached amount paid is zero.
    2. Seed two payment rows totalling 50 dollars.
    3. Recalculate the balance.
    4. Validate amount paid and status match the payment rows.
    """
    invoice = seed_invoice(db_session)
    create_payment(db_session, invoice_id=invoice.id, amount="30.00", payment_date=date(2026, 3, 2))
    create_payment(db_session, invoice_id=invoice.id, amount="20.00", payment_date=date(2026, 3, 1))

    repaired = recalculate_invoice_balance(db_session, invoice_id=invoice.id)

    assert repaired.amount_paid == Decimal("50.00")
    assert repaired.status == InvoiceStatus.partial
    listed = list_invoice_payments(db_session, invoice_id=invoice.id)
    assert [payment.payment_date for payment in listed] == [date(2026, 3, 1), date(2026, 3, 2)]
