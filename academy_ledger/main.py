from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from academy_ledger.application.errors import (
    BatchFailedError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from academy_ledger.config import settings
from academy_ledger.infrastructure.logging import configure_logging, get_logger
from academy_ledger.interfaces.api.v1.router import api_router

logger = get_logger(__name__)

OPENAPI_DESCRIPTION = """
Billing and payroll API for a tutoring and coaching business.

- Payroll: build payroll runs from teacher assignments, correct hours, carry adjustments forward, export the bank CSV.
- Invoicing: generate draft invoices per family, consolidate outstanding invoices, record payments, send invoices
  and reminders through the notification webhook.

Send `X-User-Id` to have approvals and adjustments attributed to an operator.
"""

OPENAPI_TAGS = [
    {"name": "health", "description": "Service health and connectivity checks."},
    {"name": "payroll", "description": "Payroll runs, line-item corrections, adjustments and CSV export."},
    {"name": "invoices", "description": "Draft generation, consolidation, line items, voiding and notifications."},
    {"name": "payments", "description": "Payment recording and balance repair."},
    {"name": "reconciliation", "description": "Read-only integrity checks over invoice aggregates."},
]


@asynccontextmanager
async def lifespan(_: FastAPI):
    configure_logging()
    logger.info("app_startup", app_name=settings.app_name, version=settings.app_version)
    yield
    logger.info("app_shutdown", app_name=settings.app_name)


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description=OPENAPI_DESCRIPTION,
    openapi_tags=OPENAPI_TAGS,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.frontend_url, "http://localhost:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
def root():
    return {"message": f"{settings.app_name} is running"}


@app.exception_handler(NotFoundError)
async def handle_not_found(_: Request, exc: NotFoundError):
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": str(exc)})


@app.exception_handler(ConflictError)
async def handle_conflict(_: Request, exc: ConflictError):
    return JSONResponse(status_code=status.HTTP_409_CONFLICT, content={"detail": str(exc)})


@app.exception_handler(BatchFailedError)
async def handle_batch_failed(_: Request, exc: BatchFailedError):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": str(exc), "errors": exc.errors},
    )


@app.exception_handler(ValidationError)
async def handle_validation(_: Request, exc: ValidationError):
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": str(exc)})


app.include_router(api_router)
