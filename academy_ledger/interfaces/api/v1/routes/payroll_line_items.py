from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from academy_ledger.application.services.payroll_line_item_service import delete_line_item, update_line_item
from academy_ledger.application.services.payroll_run_service import serialize_payroll_line_item
from academy_ledger.infrastructure.db.session import get_db
from academy_ledger.interfaces.api.v1.schemas.payroll import PayrollLineItemResponse, PayrollLineItemUpdate

router = APIRouter(prefix="/payroll-line-items", tags=["payroll"])


@router.patch(
    "/{line_item_id}",
    response_model=PayrollLineItemResponse,
    summary="Correct payroll line item",
    description="Override actual hours and/or the adjustment of one line item; run totals are refreshed.",
    responses={400: {"description": "Run not editable"}, 404: {"description": "Line item not found"}},
)
def update_line_item_endpoint(line_item_id: int, payload: PayrollLineItemUpdate, db: Session = Depends(get_db)):
    item = update_line_item(
        db,
        line_item_id=line_item_id,
        actual_hours=payload.actual_hours,
        adjustment_amount=payload.adjustment_amount,
        adjustment_note=payload.adjustment_note,
    )
    return serialize_payroll_line_item(item)


@router.delete(
    "/{line_item_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete manual line item",
    description="Delete a manual line item. Assignment-based items cannot be deleted.",
    responses={400: {"description": "Item is assignment-based or run not editable"}, 404: {"description": "Not found"}},
)
def delete_line_item_endpoint(line_item_id: int, db: Session = Depends(get_db)):
    delete_line_item(db, line_item_id=line_item_id)
