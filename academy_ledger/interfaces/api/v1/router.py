from fastapi import APIRouter

from academy_ledger.interfaces.api.v1.routes.invoices import router as invoices_router
from academy_ledger.interfaces.api.v1.routes.payments import router as payments_router
from academy_ledger.interfaces.api.v1.routes.payroll_adjustments import router as payroll_adjustments_router
from academy_ledger.interfaces.api.v1.routes.payroll_line_items import router as payroll_line_items_router
from academy_ledger.interfaces.api.v1.routes.payroll_runs import router as payroll_runs_router
from academy_ledger.interfaces.api.v1.routes.ping import router as ping_router
from academy_ledger.interfaces.api.v1.routes.reconciliation import router as reconciliation_router

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(invoices_router)
api_router.include_router(payments_router)
api_router.include_router(payroll_adjustments_router)
api_router.include_router(payroll_line_items_router)
api_router.include_router(payroll_runs_router)
api_router.include_router(ping_router)
api_router.include_router(reconciliation_router)
