from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session, selectinload

from academy_ledger.application.errors import BatchFailedError, NotFoundError, ValidationError
from academy_ledger.application.services.compensation import CompensationStack, delete_entity
from academy_ledger.application.services.invoice_service import get_family, new_draft_invoice
from academy_ledger.domain.billing import (
    SCHOLARSHIP_PAYMENT_METHOD,
    EnrollmentStatus,
    EventPaymentStatus,
    EventType,
    ServiceCode,
)
from academy_ledger.domain.dates import format_long_date
from academy_ledger.domain.invoice_pricing import (
    DEFAULT_DAILY_RATE,
    EnrollmentRates,
    build_line_item_description,
    hub_session_description,
    is_class_title_match,
    price_enrollment_line,
    registration_fee_description,
)
from academy_ledger.domain.invoice_status import InvoiceType
from academy_ledger.domain.money import cents_to_dollars, sum_money, to_money
from academy_ledger.infrastructure.db.models import Enrollment, EventOrder, Invoice, InvoiceLineItem, Service
from academy_ledger.infrastructure.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class CustomLineAmount:
    quantity: Decimal
    unit_price: Decimal
    amount: Decimal


@dataclass
class DraftLine:
    description: str
    quantity: Decimal
    unit_price: Decimal
    amount: Decimal
    enrollment_id: int | None = None


@dataclass
class DraftGenerationResult:
    invoices: list[Invoice] = field(default_factory=list)
    failures: list[dict] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_partial(self) -> bool:
        return bool(self.failures)


def enrollment_rates(enrollment: Enrollment) -> EnrollmentRates:
    service = enrollment.service
    return EnrollmentRates(
        service_code=service.code if service is not None else None,
        billing_frequency=service.billing_frequency if service is not None else None,
        hours_per_week=enrollment.hours_per_week,
        hourly_rate_customer=enrollment.hourly_rate_customer,
        daily_rate=enrollment.daily_rate,
        weekly_tuition=enrollment.weekly_tuition,
        monthly_rate=enrollment.monthly_rate,
    )


def build_enrollment_line(
    enrollment: Enrollment,
    *,
    custom: CustomLineAmount | None = None,
    default_daily_rate: Decimal = DEFAULT_DAILY_RATE,
) -> DraftLine:
    if custom is not None:
        quantity, unit_price, amount = custom.quantity, to_money(custom.unit_price), to_money(custom.amount)
    else:
        priced = price_enrollment_line(enrollment_rates(enrollment), default_daily_rate)
        quantity, unit_price, amount = priced.quantity, priced.unit_price, priced.amount

    service = enrollment.service
    return DraftLine(
        enrollment_id=enrollment.id,
        description=build_line_item_description(
            student_name=enrollment.student.full_name if enrollment.student is not None else None,
            service_name=service.name if service is not None else None,
            service_code=service.code if service is not None else None,
            billing_frequency=service.billing_frequency if service is not None else None,
            quantity=quantity,
            unit_price=unit_price,
        ),
        quantity=quantity,
        unit_price=unit_price,
        amount=amount,
    )


def load_billable_enrollments(db: Session, *, enrollment_ids: list[int]) -> list[Enrollment]:
    return list(
        db.execute(
            select(Enrollment)
            .where(Enrollment.id.in_(enrollment_ids), Enrollment.status == EnrollmentStatus.active)
            .options(
                selectinload(Enrollment.family),
                selectinload(Enrollment.student),
                selectinload(Enrollment.service),
            )
            .order_by(Enrollment.family_id, Enrollment.id)
        )
        .scalars()
        .all()
    )


def group_by_family(enrollments: list[Enrollment]) -> dict[int, list[Enrollment]]:
    groups: dict[int, list[Enrollment]] = defaultdict(list)
    for enrollment in enrollments:
        groups[enrollment.family_id].append(enrollment)
    return dict(groups)


def find_registration_fee_orders(
    db: Session,
    *,
    family_id: int,
    enrollments: list[Enrollment],
) -> list[tuple[EventOrder, Enrollment]]:
    """Pending scholarship class orders that match one of the family's elective enrollments."""
    electives = [
        enrollment
        for enrollment in enrollments
        if enrollment.service is not None and enrollment.service.code == ServiceCode.elective_classes
    ]
    if not electives:
        return []

    pending_orders = db.execute(
        select(EventOrder)
        .where(
            EventOrder.family_id == family_id,
            EventOrder.payment_method == SCHOLARSHIP_PAYMENT_METHOD,
            EventOrder.payment_status == EventPaymentStatus.stepup_pending.value,
            EventOrder.invoice_id.is_(None),
            EventOrder.event_type == EventType.class_.value,
        )
        .order_by(EventOrder.id)
    ).scalars()

    matches: list[tuple[EventOrder, Enrollment]] = []
    for order in pending_orders:
        enrollment = next(
            (candidate for candidate in electives if is_class_title_match(order.event_title, candidate.class_title)),
            None,
        )
        if enrollment is not None:
            matches.append((order, enrollment))
    return matches


def registration_fee_line(order: EventOrder, enrollment: Enrollment) -> DraftLine:
    amount = cents_to_dollars(order.total_cents)
    student_name = enrollment.student.full_name if enrollment.student is not None else None
    return DraftLine(
        enrollment_id=None,
        description=registration_fee_description(student_name, order.event_title),
        quantity=Decimal("1"),
        unit_price=amount,
        amount=amount,
    )


def _insert_invoice(db: Session, invoice: Invoice) -> Invoice:
    db.add(invoice)
    db.commit()
    db.refresh(invoice)
    return invoice


def _insert_line_items(db: Session, *, invoice_id: int, lines: list[DraftLine]) -> None:
    db.add_all(
        [
            InvoiceLineItem(
                invoice_id=invoice_id,
                enrollment_id=line.enrollment_id,
                description=line.description,
                quantity=line.quantity,
                unit_price=line.unit_price,
                amount=line.amount,
                sort_order=index,
            )
            for index, line in enumerate(lines)
        ]
    )
    db.commit()


def _delete_line_items(db: Session, invoice_id: int):
    def _undo() -> None:
        db.execute(delete(InvoiceLineItem).where(InvoiceLineItem.invoice_id == invoice_id))

    return _undo


def _update_invoice_totals(db: Session, *, invoice: Invoice, lines: list[DraftLine]) -> None:
    subtotal = sum_money(line.amount for line in lines)
    invoice.subtotal = subtotal
    invoice.total_amount = subtotal
    db.commit()


def _link_orders(db: Session, *, invoice_id: int, order_ids: list[int]) -> None:
    db.execute(update(EventOrder).where(EventOrder.id.in_(order_ids)).values(invoice_id=invoice_id))
    db.commit()


def generate_draft_invoices(
    db: Session,
    *,
    enrollment_ids: list[int],
    period_start: date,
    period_end: date,
    invoice_date: date,
    due_date: date,
    invoice_type: InvoiceType,
    custom_amounts: dict[int, CustomLineAmount] | None = None,
    default_daily_rate: Decimal = DEFAULT_DAILY_RATE,
) -> DraftGenerationResult:
    """Create one draft invoice per family from the selected enrollments.

    Families are processed independently. A family whose invoice cannot be
    completed is rolled back through its compensation stack and reported in
    ``failures``; the others still get their invoices. Only when every family
    fails does the call raise.
    """
    if not enrollment_ids:
        raise ValidationError("No enrollments selected")
    if period_start > period_end:
        raise ValidationError("Period start must be on or before period end")
    invoice_type = InvoiceType(invoice_type)
    custom_amounts = custom_amounts or {}

    enrollments = load_billable_enrollments(db, enrollment_ids=enrollment_ids)
    if not enrollments:
        raise ValidationError("No billable enrollments found")

    groups = group_by_family(enrollments)
    logger.info(
        "invoice_draft_generation_started",
        family_count=len(groups),
        enrollment_count=len(enrollments),
        invoice_type=invoice_type.value,
        period_start=str(period_start),
        period_end=str(period_end),
    )
    result = DraftGenerationResult()

    for family_id, family_enrollments in groups.items():
        family = family_enrollments[0].family
        family_name = family.display_name if family is not None else "Unknown family"
        compensation = CompensationStack(db=db, operation="generate_draft_invoice")
        registration_orders: list[tuple[EventOrder, Enrollment]] = []
        try:
            invoice = _insert_invoice(
                db,
                new_draft_invoice(
                    family_id=family_id,
                    invoice_date=invoice_date,
                    due_date=due_date,
                    period_start=period_start,
                    period_end=period_end,
                ),
            )
            compensation.push("delete_invoice", delete_entity(db, Invoice, invoice.id))

            lines = [
                build_enrollment_line(
                    enrollment,
                    custom=custom_amounts.get(enrollment.id),
                    default_daily_rate=default_daily_rate,
                )
                for enrollment in family_enrollments
            ]
            if invoice_type == InvoiceType.monthly:
                registration_orders = find_registration_fee_orders(
                    db, family_id=family_id, enrollments=family_enrollments
                )
                lines.extend(registration_fee_line(order, enrollment) for order, enrollment in registration_orders)

            _insert_line_items(db, invoice_id=invoice.id, lines=lines)
            compensation.push("delete_line_items", _delete_line_items(db, invoice.id))
            _update_invoice_totals(db, invoice=invoice, lines=lines)
        except Exception as exc:
            compensation.unwind()
            result.failures.append({"family_id": family_id, "family_name": family_name, "error": str(exc)})
            logger.warning("invoice_draft_family_failed", family_id=family_id, error=str(exc))
            continue

        if registration_orders:
            try:
                _link_orders(db, invoice_id=invoice.id, order_ids=[order.id for order, _ in registration_orders])
            except Exception as exc:
                db.rollback()
                result.warnings.append(
                    f"Invoice for {family_name} created but failed to link registration fees: {exc}"
                )
                logger.warning("invoice_draft_registration_link_failed", invoice_id=invoice.id, error=str(exc))

        db.refresh(invoice)
        result.invoices.append(invoice)

    logger.info(
        "invoice_draft_generation_completed",
        created=len(result.invoices),
        failed=len(result.failures),
        warning_count=len(result.warnings),
    )
    if not result.invoices:
        raise BatchFailedError("Failed to generate any invoices", result.failures)
    return result


def generate_event_invoice(
    db: Session,
    *,
    family_id: int,
    order_ids: list[int],
    invoice_date: date,
    due_date: date | None,
) -> Invoice:
    """Bill a family's selected, not yet invoiced event orders on one draft invoice."""
    if not order_ids:
        raise ValidationError("No event orders selected")
    get_family(db, family_id=family_id)
    orders = list(
        db.execute(select(EventOrder).where(EventOrder.id.in_(order_ids)).order_by(EventOrder.id)).scalars().all()
    )
    if len(orders) != len(set(order_ids)):
        raise NotFoundError("Event order not found")
    if any(order.family_id != family_id for order in orders):
        raise ValidationError("All event orders must belong to the same family")
    if any(order.invoice_id is not None for order in orders):
        raise ValidationError("Event order is already invoiced")

    invoice = new_draft_invoice(family_id=family_id, invoice_date=invoice_date, due_date=due_date)
    lines = []
    for order in orders:
        amount = cents_to_dollars(order.total_cents)
        when = f" ({format_long_date(order.event_date)})" if order.event_date else ""
        lines.append(
            InvoiceLineItem(
                enrollment_id=None,
                description=f"{order.event_title}{when} - Registration Fee",
                quantity=Decimal("1"),
                unit_price=amount,
                amount=amount,
                sort_order=len(lines),
            )
        )
    invoice.line_items = lines
    subtotal = sum_money(line.amount for line in lines)
    invoice.subtotal = subtotal
    invoice.total_amount = subtotal
    db.add(invoice)
    db.flush()
    for order in orders:
        order.invoice_id = invoice.id
    db.commit()
    db.refresh(invoice)
    logger.info("event_invoice_created", invoice_id=invoice.id, family_id=family_id, order_count=len(orders))
    return invoice


@dataclass(frozen=True)
class HubSession:
    student_name: str
    session_date: date
    daily_rate: Decimal | None = None


def generate_hub_invoice(
    db: Session,
    *,
    family_id: int,
    sessions: list[HubSession],
    invoice_date: date,
    due_date: date | None,
    default_daily_rate: Decimal = DEFAULT_DAILY_RATE,
) -> Invoice:
    """Bill drop-in Hub days on one draft invoice, one line per session in date order.

    A session without its own rate bills ``default_daily_rate``. Lines are
    named after the registered Hub service, or plain "Hub" when none exists.
    """
    if not sessions:
        raise ValidationError("No Hub sessions selected")
    get_family(db, family_id=family_id)
    hub = db.execute(select(Service).where(Service.code == ServiceCode.eaton_hub)).scalar_one_or_none()
    hub_name = hub.name if hub is not None else "Hub"

    invoice = new_draft_invoice(family_id=family_id, invoice_date=invoice_date, due_date=due_date)
    ordered = sorted(sessions, key=lambda session: (session.session_date, session.student_name))
    lines = []
    for session in ordered:
        rate = to_money(session.daily_rate if session.daily_rate is not None else default_daily_rate)
        lines.append(
            InvoiceLineItem(
                enrollment_id=None,
                description=hub_session_description(session.student_name, session.session_date, hub_name),
                quantity=Decimal("1"),
                unit_price=rate,
                amount=rate,
                sort_order=len(lines),
            )
        )
    invoice.line_items = lines
    subtotal = sum_money(line.amount for line in lines)
    invoice.subtotal = subtotal
    invoice.total_amount = subtotal
    db.add(invoice)
    db.commit()
    db.refresh(invoice)
    logger.info(
        "hub_invoice_created",
        invoice_id=invoice.id,
        family_id=family_id,
        session_count=len(lines),
        total_amount=str(subtotal),
    )
    return invoice
