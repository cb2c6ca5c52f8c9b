from datetime import date

from academy_ledger.application.services.payroll_export_service import generate_payroll_csv, payroll_memo
from academy_ledger.application.services.payroll_run_service import get_payroll_run
from tests.helpers.factories import create_payroll_line_item, create_payroll_run_row, create_teacher


def test_generate_payroll_csv_sums_per_teacher_and_skips_non_positive(db_session):
    """
    Validate the bank upload CSV.

    1. Seed one run with two items for one teacher and one item each for three others.
    2. Give one teacher a negative total.
    3. Generate the CSV for the run.
    4. Validate header, name order, totals, quoting and memo.
    """
    run_row = create_payroll_run_row(db_session, period_start=date(2026, 1, 5), period_end=date(2026, 1, 9))
    bob = create_teacher(db_session, "bob Tutor")
    alice = create_teacher(db_session, "Alice Tutor")
    ann = create_teacher(db_session, 'Ann "AJ" Lee')
    carl = create_teacher(db_session, "Carl Owes")
    create_payroll_line_item(
        db_session, run_id=run_row.id, teacher_id=bob.id, description="A", calculated_hours="2", hourly_rate="25"
    )
    create_payroll_line_item(
        db_session, run_id=run_row.id, teacher_id=bob.id, description="B", calculated_hours="1.5", hourly_rate="20"
    )
    create_payroll_line_item(
        db_session, run_id=run_row.id, teacher_id=alice.id, description="C", calculated_hours="4", hourly_rate="12.5"
    )
    create_payroll_line_item(
        db_session, run_id=run_row.id, teacher_id=ann.id, description="D", calculated_hours="1", hourly_rate="10"
    )
    create_payroll_line_item(
        db_session,
        run_id=run_row.id,
        teacher_id=carl.id,
        description="E",
        calculated_hours="0",
        hourly_rate="0",
        adjustment_amount="-10.00",
    )

    csv_text = generate_payroll_csv(get_payroll_run(db_session, run_id=run_row.id), organization_name="Eaton")

    memo = '"Eaton Payroll Jan 5, 2026 - Jan 9, 2026"'
    assert csv_text.splitlines() == [
        "Name,Amount,Memo",
        f'"Alice Tutor",50.00,{memo}',
        f'"Ann ""AJ"" Lee",10.00,{memo}',
        f'"bob Tutor",80.00,{memo}',
    ]


def test_payroll_memo_spans_months(db_session):
    """
    Validate the memo for a period crossing months.

    1. Seed one run from late January into February.
    2. Build the memo once.
    3. Validate both month names are present.
    4. Validate the organization name leads the memo.
    """
    run = create_payroll_run_row(db_session, period_start=date(2026, 1, 26), period_end=date(2026, 2, 6))
    assert payroll_memo(run, "Eaton") == "Eaton Payroll Jan 26, 2026 - Feb 6, 2026"


def test_generate_payroll_csv_quotes_commas_and_terminates_rows(db_session):
    """
    Validate names with commas stay in one column and every row ends with a newline.

    1. Seed one run with a single teacher whose name contains a comma.
    2. Give the teacher a total that is not a whole dollar amount.
    3. Generate the CSV for the run.
    4. Validate the exact file text.
    """
    run_row = create_payroll_run_row(db_session, period_start=date(2026, 1, 26), period_end=date(2026, 2, 6))
    eva = create_teacher(db_session, "Diaz, Eva")
    create_payroll_line_item(
        db_session, run_id=run_row.id, teacher_id=eva.id, description="A", calculated_hours="3", hourly_rate="33.35"
    )

    csv_text = generate_payroll_csv(get_payroll_run(db_session, run_id=run_row.id), organization_name="Eaton")

    assert csv_text == (
        "Name,Amount,Memo\n"
        '"Diaz, Eva",100.05,"Eaton Payroll Jan 26, 2026 - Feb 6, 2026"\n'
    )
