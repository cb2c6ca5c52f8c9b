from datetime import datetime

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from academy_ledger.application.services.generation_lock_service import payroll_run_creation_lock
from academy_ledger.application.services.payroll_export_service import generate_payroll_csv
from academy_ledger.application.services.payroll_line_item_service import (
    bulk_update_teacher_hours,
    create_manual_line_item,
)
from academy_ledger.application.services.payroll_run_service import (
    create_payroll_run,
    delete_payroll_run,
    get_payroll_run,
    list_payroll_runs,
    serialize_payroll_line_item,
    serialize_payroll_run,
    update_payroll_run_status,
)
from academy_ledger.config import settings
from academy_ledger.domain.payroll_status import PayrollRunStatus
from academy_ledger.infrastructure.db.session import get_db
from academy_ledger.infrastructure.logging import get_logger
from academy_ledger.interfaces.api.v1.dependencies.context import get_current_user_id, get_now
from academy_ledger.interfaces.api.v1.schemas.payroll import (
    PayrollBulkHoursResponse,
    PayrollBulkHoursUpdate,
    PayrollLineItemResponse,
    PayrollManualLineItemCreate,
    PayrollRunCreate,
    PayrollRunCreateResponse,
    PayrollRunDetailResponse,
    PayrollRunResponse,
    PayrollRunStatusUpdate,
)

router = APIRouter(prefix="/payroll-runs", tags=["payroll"])
logger = get_logger(__name__)


@router.post(
    "",
    response_model=PayrollRunCreateResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create payroll run",
    description=(
        "Create a draft payroll run for the period with one line item per active teacher assignment. "
        "Pending adjustments are absorbed into the new run. Creation per period is serialized with a Redis lock."
    ),
    responses={400: {"description": "Invalid period"}, 409: {"description": "Run creation already in progress"}},
)
def create_payroll_run_endpoint(payload: PayrollRunCreate, db: Session = Depends(get_db)):
    with payroll_run_creation_lock(period_start=payload.period_start, period_end=payload.period_end):
        result = create_payroll_run(
            db,
            period_start=payload.period_start,
            period_end=payload.period_end,
            notes=payload.notes,
        )
    return {"run": serialize_payroll_run(result.run, include_line_items=True), "warnings": result.warnings}


@router.get(
    "",
    response_model=list[PayrollRunResponse],
    summary="List payroll runs",
    description="List payroll runs, newest period first, optionally filtered by status.",
)
def list_payroll_runs_endpoint(
    run_status: PayrollRunStatus | None = Query(default=None, alias="status"),
    db: Session = Depends(get_db),
):
    return [serialize_payroll_run(run) for run in list_payroll_runs(db, status=run_status)]


@router.get(
    "/{run_id}",
    response_model=PayrollRunDetailResponse,
    summary="Get payroll run",
    description="Return one payroll run with its line items.",
    responses={404: {"description": "Payroll run not found"}},
)
def get_payroll_run_endpoint(run_id: int, db: Session = Depends(get_db)):
    return serialize_payroll_run(get_payroll_run(db, run_id=run_id), include_line_items=True)


@router.patch(
    "/{run_id}/status",
    response_model=PayrollRunResponse,
    summary="Advance payroll run status",
    description="Move a run one step along draft, review, approved, paid. Approval records the caller (`X-User-Id`).",
    responses={400: {"description": "Transition not allowed"}, 404: {"description": "Payroll run not found"}},
)
def update_payroll_run_status_endpoint(
    run_id: int,
    payload: PayrollRunStatusUpdate,
    user_id: int | None = Depends(get_current_user_id),
    now: datetime = Depends(get_now),
    db: Session = Depends(get_db),
):
    run = update_payroll_run_status(db, run_id=run_id, status=payload.status, now=now, user_id=user_id)
    return serialize_payroll_run(run)


@router.delete(
    "/{run_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete payroll run",
    description="Delete a draft payroll run. Adjustments it absorbed return to the pending pool.",
    responses={400: {"description": "Run is not a draft"}, 404: {"description": "Payroll run not found"}},
)
def delete_payroll_run_endpoint(run_id: int, db: Session = Depends(get_db)):
    delete_payroll_run(db, run_id=run_id)


@router.get(
    "/{run_id}/export.csv",
    summary="Export payroll CSV",
    description="Bank upload file with one `Name,Amount,Memo` row per teacher with a positive total.",
    responses={200: {"content": {"text/csv": {}}}, 404: {"description": "Payroll run not found"}},
)
def export_payroll_run_csv(run_id: int, db: Session = Depends(get_db)):
    run = get_payroll_run(db, run_id=run_id)
    content = generate_payroll_csv(run, organization_name=settings.organization_name)
    filename = f"payroll-{run.period_start.isoformat()}-{run.period_end.isoformat()}.csv"
    logger.info("payroll_csv_exported", payroll_run_id=run_id)
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post(
    "/{run_id}/line-items",
    response_model=PayrollLineItemResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add manual line item",
    description="Add a miscellaneous line item with no backing assignment to an editable run.",
    responses={400: {"description": "Run not editable"}, 404: {"description": "Run or teacher not found"}},
)
def create_manual_line_item_endpoint(
    run_id: int,
    payload: PayrollManualLineItemCreate,
    db: Session = Depends(get_db),
):
    item = create_manual_line_item(
        db,
        run_id=run_id,
        teacher_id=payload.teacher_id,
        description=payload.description,
        hours=payload.hours,
        hourly_rate=payload.hourly_rate,
    )
    return serialize_payroll_line_item(item)


@router.post(
    "/{run_id}/bulk-hours",
    response_model=PayrollBulkHoursResponse,
    summary="Set hours for teachers",
    description="Set the same actual hours on every line item of the selected teachers in an editable run.",
    responses={400: {"description": "Run not editable or no matching items"}, 404: {"description": "Run not found"}},
)
def bulk_update_hours_endpoint(run_id: int, payload: PayrollBulkHoursUpdate, db: Session = Depends(get_db)):
    updated = bulk_update_teacher_hours(db, run_id=run_id, teacher_ids=payload.teacher_ids, hours=payload.hours)
    return {"updated": updated}
