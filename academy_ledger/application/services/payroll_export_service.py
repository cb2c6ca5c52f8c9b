import csv
import io
from decimal import Decimal

from academy_ledger.domain.dates import format_long_date
from academy_ledger.domain.money import ZERO, add_money, to_money
from academy_ledger.infrastructure.db.models import PayrollRun

CSV_HEADER = ("Name", "Amount", "Memo")


def payroll_memo(run: PayrollRun, organization_name: str) -> str:
    return f"{organization_name} Payroll {format_long_date(run.period_start)} - {format_long_date(run.period_end)}"


def teacher_totals(run: PayrollRun) -> dict[int, tuple[str, Decimal]]:
    totals: dict[int, tuple[str, Decimal]] = {}
    for item in run.line_items:
        name = item.teacher.display_name if item.teacher is not None else "Unknown Teacher"
        _, running = totals.get(item.teacher_id, (name, ZERO))
        totals[item.teacher_id] = (name, add_money(running, item.final_amount))
    return totals


def generate_payroll_csv(run: PayrollRun, *, organization_name: str) -> str:
    """Bank upload file: one row per teacher with a positive total, sorted by name.

    The header is bare; names and memo are always quoted and amounts never are.
    """
    memo = payroll_memo(run, organization_name)
    payable = sorted(
        (entry for entry in teacher_totals(run).values() if entry[1] > ZERO),
        key=lambda entry: entry[0].lower(),
    )
    buffer = io.StringIO()
    csv.writer(buffer, lineterminator="\n").writerow(CSV_HEADER)
    writer = csv.writer(buffer, quoting=csv.QUOTE_NONNUMERIC, lineterminator="\n")
    for name, total in payable:
        writer.writerow([name, to_money(total), memo])
    return buffer.getvalue()
