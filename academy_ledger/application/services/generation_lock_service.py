from collections.abc import Iterator
from contextlib import contextmanager
from datetime import date

from academy_ledger.application.errors import ConflictError
from academy_ledger.config import settings
from academy_ledger.domain.invoice_status import InvoiceType
from academy_ledger.infrastructure.cache.cache_service import acquire_lock, release_lock


def payroll_run_lock_key(*, period_start: date, period_end: date) -> str:
    return f"payroll_run_lock:{period_start.isoformat()}:{period_end.isoformat()}"


def invoice_generation_lock_key(*, period_start: date, period_end: date, invoice_type: InvoiceType) -> str:
    return f"invoice_generation_lock:{InvoiceType(invoice_type).value}:{period_start.isoformat()}:{period_end.isoformat()}"


@contextmanager
def _held_lock(lock_key: str, conflict_message: str) -> Iterator[None]:
    lock_token = acquire_lock(lock_key, settings.generation_lock_ttl_seconds)
    if lock_token is None:
        raise ConflictError(conflict_message)
    try:
        yield
    finally:
        release_lock(lock_key, lock_token)


@contextmanager
def payroll_run_creation_lock(*, period_start: date, period_end: date) -> Iterator[None]:
    with _held_lock(
        payroll_run_lock_key(period_start=period_start, period_end=period_end),
        "A payroll run is already being created for this period",
    ):
        yield


@contextmanager
def invoice_generation_lock(*, period_start: date, period_end: date, invoice_type: InvoiceType) -> Iterator[None]:
    with _held_lock(
        invoice_generation_lock_key(period_start=period_start, period_end=period_end, invoice_type=invoice_type),
        "Invoices are already being generated for this period",
    ):
        yield
