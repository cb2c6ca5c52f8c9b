from datetime import date

from academy_ledger.domain.invoice_status import InvoiceStatus
from academy_ledger.infrastructure.db.models import EventOrder, Invoice
from academy_ledger.interfaces.api.v1.dependencies.context import get_today
from academy_ledger.main import app
from tests.helpers.factories import (
    create_enrollment,
    create_event_order,
    create_family,
    create_invoice,
    create_payment,
    create_service,
    create_student,
    get_entity_by_id,
)

DRAFT_PERIOD = {
    "period_start": "2026-02-02",
    "period_end": "2026-02-06",
    "invoice_date": "2026-01-30",
    "due_date": "2026-02-06",
    "invoice_type": "weekly",
}


def seed_coaching_enrollment(db_session, name: str):
    coaching = create_service(db_session, code="academic_coaching", name="Academic Coaching")
    family = create_family(db_session, f"{name} Family", f"{name.lower()}@example.com")
    student = create_student(db_session, family_id=family.id, full_name=f"{name} Kid")
    return create_enrollment(
        db_session,
        family_id=family.id,
        student_id=student.id,
        service_id=coaching.id,
        hours_per_week="5",
        hourly_rate_customer="40",
    )


def seed_invoice(db_session, *, public_id: str, line_amounts: list[str], family_id: int | None = None, **kwargs):
    if family_id is None:
        family_id = create_family(db_session, f"Family {public_id}", "family@example.com", "Pat Smith").id
    return create_invoice(
        db_session,
        family_id=family_id,
        public_id=public_id,
        invoice_date=date(2026, 1, 25),
        line_amounts=line_amounts,
        **kwargs,
    )


def test_generate_drafts_returns_201_with_invoices(client, db_session):
    """
    Validate draft generation over HTTP.

    1. Seed one coaching enrollment.
    2. Call the draft generation endpoint once.
    3. Receive created response payload.
    4. Validate the draft invoice and its line item.
    """
    enrollment = seed_coaching_enrollment(db_session, "Smith")

    response = client.post("/api/v1/invoices/drafts", json={"enrollment_ids": [enrollment.id], **DRAFT_PERIOD})

    assert response.status_code == 201
    payload = response.json()
    assert payload["failures"] == []
    assert payload["is_partial"] is False
    invoice = payload["invoices"][0]
    assert invoice["status"] == "draft"
    assert invoice["family_name"] == "Smith Family"
    assert invoice["subtotal"] == "200.00"
    assert invoice["line_items"][0]["description"] == "Smith Kid - Academic Coaching: 5 hrs × $40.00"


def test_generate_drafts_returns_400_when_every_family_fails(client, db_session, monkeypatch):
    """
    Validate an all-failed batch maps to a bad request.

    1. Seed one coaching enrollment.
    2. Force line item insertion to fail.
    3. Call the draft generation endpoint once.
    4. Validate the 400 response carries the per-family errors.
    """
    enrollment = seed_coaching_enrollment(db_session, "Smith")

    def failing_insert(db, *, invoice_id, lines):
        raise RuntimeError("database unavailable")

    monkeypatch.setattr(
        "academy_ledger.application.services.invoice_draft_service._insert_line_items", failing_insert
    )

    response = client.post("/api/v1/invoices/drafts", json={"enrollment_ids": [enrollment.id], **DRAFT_PERIOD})

    assert response.status_code == 400
    assert response.json()["detail"] == "Failed to generate any invoices"
    assert response.json()["errors"][0]["family_name"] == "Smith Family"
    assert response.json()["errors"][0]["error"] == "database unavailable"


def test_generate_drafts_returns_409_while_locked(client, db_session, fake_redis):
    """
    Validate concurrent generation for one period is refused.

    1. Seed one coaching enrollment.
    2. Hold every key the fake Redis sees as already taken.
    3. Call the draft generation endpoint once.
    4. Validate the conflict response.
    """
    enrollment = seed_coaching_enrollment(db_session, "Smith")
    fake_redis.set = lambda key, value, nx=False, ex=None: None

    response = client.post("/api/v1/invoices/drafts", json={"enrollment_ids": [enrollment.id], **DRAFT_PERIOD})

    assert response.status_code == 409
    assert response.json()["detail"] == "Invoices are already being generated for this period"


def test_consolidate_invoices_endpoint(client, db_session):
    """
    Validate consolidation over HTTP.

    1. Seed two outstanding invoices for one family with one payment.
    2. Call the consolidation endpoint once.
    3. Receive created response payload.
    4. Validate the merged invoice and the voided sources.
    """
    first = seed_invoice(db_session, public_id="cons000001", line_amounts=["100.00"], invoice_number="INV-0001")
    second = seed_invoice(
        db_session,
        public_id="cons000002",
        line_amounts=["50.00"],
        invoice_number="INV-0002",
        family_id=first.family_id,
    )
    create_payment(db_session, invoice_id=first.id, amount="20.00", payment_date=date(2026, 1, 28))

    response = client.post(
        "/api/v1/invoices/consolidate",
        json={"invoice_ids": [first.id, second.id], "invoice_date": "2026-02-01"},
    )

    assert response.status_code == 201
    invoice = response.json()["invoice"]
    assert invoice["subtotal"] == "150.00"
    assert invoice["amount_paid"] == "20.00"
    assert invoice["status"] == "partial"
    assert invoice["notes"] == "Consolidated from: INV-0001, INV-0002"
    assert [item["description"] for item in invoice["line_items"]] == ["INV-0001: Line 1", "INV-0002: Line 1"]
    assert client.get(f"/api/v1/invoices/{first.id}").json()["status"] == "void"


def test_consolidate_requires_two_invoices(client, db_session):
    """
    Validate the consolidation guard.

    1. Seed one invoice.
    2. Call the consolidation endpoint with only that invoice.
    3. Receive bad-request response.
    4. Validate the error detail.
    """
    invoice = seed_invoice(db_session, public_id="solo000001", line_amounts=["10.00"])
    response = client.post(
        "/api/v1/invoices/consolidate", json={"invoice_ids": [invoice.id], "invoice_date": "2026-02-01"}
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "Must select at least 2 invoices to consolidate"


def test_bulk_void_reports_missing_invoices(client, db_session):
    """
    Validate bulk voiding.

    1. Seed one sent invoice.
    2. Void it together with an unknown id.
    3. Receive the batch summary.
    4. Validate counts and the per-invoice error.
    """
    invoice = seed_invoice(db_session, public_id="bulk000001", line_amounts=["10.00"])

    response = client.post("/api/v1/invoices/bulk-void", json={"invoice_ids": [invoice.id, 999]})

    assert response.status_code == 200
    assert response.json() == {
        "succeeded": 1,
        "failed": 1,
        "total": 2,
        "errors": [{"invoice_id": 999, "error": "Invoice not found"}],
    }


def test_enqueue_reminders_returns_202(client, monkeypatch):
    """
    Validate reminder enqueue endpoint contract.

    1. Patch task enqueue helper.
    2. Call reminder endpoint once.
    3. Receive accepted response payload.
    4. Validate task id and the forwarded arguments.
    """
    calls = []

    def fake_enqueue(*, invoice_ids, today):
        calls.append((invoice_ids, today))
        return "task-123"

    monkeypatch.setattr(
        "academy_ledger.interfaces.api.v1.routes.invoices.enqueue_payment_reminders_task", fake_enqueue
    )
    app.dependency_overrides[get_today] = lambda: date(2026, 3, 5)

    response = client.post("/api/v1/invoices/reminders", json={"invoice_ids": [3, 4]})

    assert response.status_code == 202
    assert response.json() == {"task_id": "task-123", "status": "queued", "message": "Payment reminders queued"}
    assert calls == [([3, 4], date(2026, 3, 5))]


def test_enqueue_reminders_returns_503_when_broker_fails(client, monkeypatch):
    """
    Validate reminder enqueue failure mapping.

    1. Patch task enqueue helper to raise.
    2. Call reminder endpoint once.
    3. Receive service unavailable response.
    4. Validate the error detail.
    """

    def broken_enqueue(*, invoice_ids, today):
        raise RuntimeError("broker down")

    monkeypatch.setattr(
        "academy_ledger.interfaces.api.v1.routes.invoices.enqueue_payment_reminders_task", broken_enqueue
    )

    response = client.post("/api/v1/invoices/reminders", json={"invoice_ids": [1]})

    assert response.status_code == 503
    assert response.json()["detail"] == "Failed to enqueue reminder task"


def test_send_invoice_and_reminder_endpoints(client, db_session, notifier):
    """
    Validate delivery endpoints with the recording notifier.

    1. Seed one draft invoice due in early February.
    2. Send it and then send a reminder with a pinned date.
    3. Receive both response payloads.
    4. Validate statuses and the payloads the notifier recorded.
    """
    invoice = seed_invoice(
        db_session,
        public_id="send000001",
        line_amounts=["80.00", "20.00"],
        status=InvoiceStatus.draft,
        invoice_number="INV-0005",
        due_date=date(2026, 2, 1),
    )
    app.dependency_overrides[get_today] = lambda: date(2026, 2, 20)

    sent = client.post(f"/api/v1/invoices/{invoice.id}/send")
    reminded = client.post(f"/api/v1/invoices/{invoice.id}/reminder")

    assert sent.status_code == 200
    assert sent.json()["delivered"] is True
    assert sent.json()["invoice"]["status"] == "sent"
    assert sent.json()["invoice"]["sent_to"] == "family@example.com"
    assert reminded.status_code == 200
    assert reminded.json()["delivered"] is True
    assert [payload["type"] for payload in notifier.payloads] == ["send", "reminder_14"]
    assert notifier.payloads[1]["days_overdue"] == 19


def test_send_invoice_reports_undelivered_and_missing(client, db_session, notifier):
    """
    Validate delivery failures.

    1. Seed one draft invoice and make the notifier reject everything.
    2. Send the invoice and send an unknown invoice.
    3. Receive both responses.
    4. Validate the warning payload and the 404.
    """
    invoice = seed_invoice(db_session, public_id="fail000001", line_amounts=["10.00"], status=InvoiceStatus.draft)
    notifier.fail_all = True

    undelivered = client.post(f"/api/v1/invoices/{invoice.id}/send")
    missing = client.post("/api/v1/invoices/999/send")

    assert undelivered.status_code == 200
    assert undelivered.json()["delivered"] is False
    assert undelivered.json()["warnings"] == ["Failed to deliver invoice INV-fail000001"]
    assert undelivered.json()["invoice"]["status"] == "draft"
    assert missing.status_code == 404
    assert missing.json()["detail"] == "Invoice not found"


def test_invoice_line_item_endpoints_keep_totals_in_sync(client, db_session):
    """
    Validate line item editing over HTTP.

    1. Seed one draft invoice with one line.
    2. Add a line, edit its quantity and delete the original line.
    3. Read the invoice back.
    4. Validate amounts and the recomputed subtotal.
    """
    invoice = seed_invoice(db_session, public_id="edit000001", line_amounts=["50.00"], status=InvoiceStatus.draft)
    original_id = invoice.line_items[0].id

    added = client.post(
        f"/api/v1/invoices/{invoice.id}/line-items",
        json={"description": "Workbook", "quantity": "2", "unit_price": "15"},
    )
    edited = client.patch(f"/api/v1/invoice-line-items/{added.json()['id']}", json={"quantity": "3"})
    removed = client.delete(f"/api/v1/invoice-line-items/{original_id}")
    detail = client.get(f"/api/v1/invoices/{invoice.id}")

    assert added.status_code == 201
    assert added.json()["amount"] == "30.00"
    assert edited.json()["amount"] == "45.00"
    assert removed.status_code == 204
    assert detail.json()["subtotal"] == "45.00"
    assert [item["description"] for item in detail.json()["line_items"]] == ["Workbook"]


def test_list_family_invoices_and_delete(client, db_session):
    """
    Validate family listing and deletion.

    1. Seed two invoices for one family.
    2. List them, delete one and list again.
    3. Request invoices of an unknown family.
    4. Validate listings, the 204 and the 404.
    """
    first = seed_invoice(db_session, public_id="list000001", line_amounts=["10.00"])
    second = seed_invoice(db_session, public_id="list000002", line_amounts=["20.00"], family_id=first.family_id)

    before = client.get(f"/api/v1/families/{first.family_id}/invoices")
    deleted = client.delete(f"/api/v1/invoices/{first.id}")
    after = client.get(f"/api/v1/families/{first.family_id}/invoices")
    unknown = client.get("/api/v1/families/999/invoices")

    assert sorted(invoice["id"] for invoice in before.json()) == [first.id, second.id]
    assert deleted.status_code == 204
    assert [invoice["id"] for invoice in after.json()] == [second.id]
    assert unknown.status_code == 404


def test_reconciliation_lists_invoice_issues(client, db_session):
    """
    Validate the integrity report endpoint.

    1. Seed one invoice whose amount paid disagrees with its payments.
    2. Call the reconciliation endpoint once.
    3. Receive the findings.
    4. Validate the finding code and entity.
    """
    invoice = seed_invoice(db_session, public_id="drft000001", line_amounts=["100.00"], amount_paid="40.00")

    response = client.get("/api/v1/reconciliation/invoice-issues")

    assert response.status_code == 200
    findings = response.json()
    assert [(finding["check_code"], finding["entity_id"]) for finding in findings] == [
        ("amount_paid_mismatch", invoice.id)
    ]
    assert findings[0]["entity_type"] == "invoice"


def test_hub_invoice_endpoint_bills_sessions(client, db_session):
    """
    Validate Hub invoices over HTTP.

    1. Seed one family without a registered Hub service.
    2. Post two sessions, one without a daily rate.
    3. Post an empty session list.
    4. Validate the lines, the configured default rate and the 422.
    """
    family = create_family(db_session, "Lee Family", "lee@example.com")

    created = client.post(
        "/api/v1/invoices/hub",
        json={
            "family_id": family.id,
            "invoice_date": "2026-03-06",
            "sessions": [
                {"student_name": "Mia Lee", "session_date": "2026-03-02", "daily_rate": "90"},
                {"student_name": "Mia Lee", "session_date": "2026-03-03"},
            ],
        },
    )
    empty = client.post(
        "/api/v1/invoices/hub", json={"family_id": family.id, "invoice_date": "2026-03-06", "sessions": []}
    )

    assert created.status_code == 201
    assert [(item["description"], item["amount"]) for item in created.json()["line_items"]] == [
        ("Mia Lee - Hub (Mar 2, 2026)", "90.00"),
        ("Mia Lee - Hub (Mar 3, 2026)", "100.00"),
    ]
    assert created.json()["total_amount"] == "190.00"
    assert created.json()["status"] == "draft"
    assert empty.status_code == 422


def test_update_invoice_endpoint_marks_orders_paid(client, db_session):
    """
    Validate invoice header edits over HTTP.

    1. Seed one sent invoice with one linked event order.
    2. Patch the status to paid with new notes.
    3. Patch an unknown invoice and clear the invoice date.
    4. Validate the saved invoice, the synced order, the 404 and the 400.
    """
    invoice = seed_invoice(db_session, public_id="patch00001", line_amounts=["25.00"])
    order = create_event_order(
        db_session,
        family_id=invoice.family_id,
        event_title="Robotics",
        total_cents=2500,
        invoice_id=invoice.id,
        payment_status="stepup_pending",
    )

    paid = client.patch(f"/api/v1/invoices/{invoice.id}", json={"status": "paid", "notes": "Paid at front desk"})
    missing = client.patch("/api/v1/invoices/999", json={"notes": "Late"})
    cleared = client.patch(f"/api/v1/invoices/{invoice.id}", json={"invoice_date": None})

    assert paid.status_code == 200
    assert paid.json()["warnings"] == []
    assert paid.json()["invoice"]["status"] == "paid"
    assert paid.json()["invoice"]["notes"] == "Paid at front desk"
    assert paid.json()["invoice"]["invoice_date"] == "2026-01-25"
    synced = get_entity_by_id(db_session, EventOrder, order.id)
    db_session.refresh(synced)
    assert synced.payment_status == "paid"
    assert synced.paid_at is not None
    assert missing.status_code == 404
    assert cleared.status_code == 400
    assert cleared.json()["detail"] == "Invoice fields cannot be cleared: invoice_date"


def test_bulk_send_and_bulk_delete_endpoints(client, db_session, notifier):
    """
    Validate bulk delivery and bulk deletion over HTTP.

    1. Seed two draft invoices and make the notifier reject the second.
    2. Bulk send both, then bulk delete both plus an unknown id.
    3. Receive both batch summaries.
    4. Validate counts, per-invoice errors and that the invoices are gone.
    """
    first = seed_invoice(db_session, public_id="batch00001", line_amounts=["10.00"], status=InvoiceStatus.draft)
    second = seed_invoice(db_session, public_id="batch00002", line_amounts=["20.00"], status=InvoiceStatus.draft)
    notifier.fail_for.add(second.id)

    sent = client.post("/api/v1/invoices/bulk-send", json={"invoice_ids": [first.id, second.id]})
    deleted = client.post("/api/v1/invoices/bulk-delete", json={"invoice_ids": [first.id, second.id, 999]})

    assert sent.status_code == 200
    assert sent.json() == {
        "succeeded": 1,
        "failed": 1,
        "total": 2,
        "errors": [{"invoice_id": second.id, "error": "Failed to deliver invoice INV-batch00002"}],
    }
    assert [payload["invoice_id"] for payload in notifier.payloads] == [first.id]
    assert deleted.status_code == 200
    assert deleted.json() == {
        "succeeded": 2,
        "failed": 1,
        "total": 3,
        "errors": [{"invoice_id": 999, "error": "Invoice not found"}],
    }
    assert get_entity_by_id(db_session, Invoice, first.id) is None
    assert get_entity_by_id(db_session, Invoice, second.id) is None
