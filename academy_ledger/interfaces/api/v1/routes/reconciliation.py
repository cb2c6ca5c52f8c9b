from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from academy_ledger.application.services.invoice_integrity_service import find_invoice_integrity_issues
from academy_ledger.infrastructure.db.session import get_db
from academy_ledger.interfaces.api.v1.schemas.invoice import IntegrityFindingResponse

router = APIRouter(prefix="/reconciliation", tags=["reconciliation"])


@router.get(
    "/invoice-issues",
    response_model=list[IntegrityFindingResponse],
    summary="Find invoice integrity issues",
    description="Invoices whose amount paid or subtotal no longer match their payment or line item rows.",
)
def list_invoice_issues(db: Session = Depends(get_db)):
    return find_invoice_integrity_issues(db)
