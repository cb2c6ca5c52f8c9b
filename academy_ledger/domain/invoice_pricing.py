from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from academy_ledger.domain.billing import BillingFrequency, ServiceCode
from academy_ledger.domain.dates import format_long_date
from academy_ledger.domain.money import multiply_money, to_money

DEFAULT_DAILY_RATE = Decimal("100.00")


@dataclass(frozen=True)
class EnrollmentRates:
    service_code: str | None
    billing_frequency: BillingFrequency | str | None
    hours_per_week: Decimal | None = None
    hourly_rate_customer: Decimal | None = None
    daily_rate: Decimal | None = None
    weekly_tuition: Decimal | None = None
    monthly_rate: Decimal | None = None


@dataclass(frozen=True)
class PricedLine:
    quantity: Decimal
    unit_price: Decimal
    amount: Decimal


def _frequency_value(frequency: BillingFrequency | str | None) -> str | None:
    if isinstance(frequency, BillingFrequency):
        return frequency.value
    return frequency


def calculate_enrollment_amount(rates: EnrollmentRates, default_daily_rate: Decimal = DEFAULT_DAILY_RATE) -> Decimal:
    """Amount billed for one enrollment in one invoice.

    Checked in order: academic coaching always bills hours x hourly rate, the
    hub and per-session services bill the daily rate, weekly services bill
    weekly tuition and everything else bills the monthly rate.
    """
    frequency = _frequency_value(rates.billing_frequency)
    if rates.service_code == ServiceCode.academic_coaching:
        return multiply_money(rates.hours_per_week, rates.hourly_rate_customer)
    if rates.service_code == ServiceCode.eaton_hub or frequency == BillingFrequency.per_session.value:
        return to_money(rates.daily_rate if rates.daily_rate is not None else default_daily_rate)
    if frequency == BillingFrequency.weekly.value:
        return to_money(rates.weekly_tuition)
    return to_money(rates.monthly_rate)


def price_enrollment_line(rates: EnrollmentRates, default_daily_rate: Decimal = DEFAULT_DAILY_RATE) -> PricedLine:
    amount = calculate_enrollment_amount(rates, default_daily_rate)
    if rates.service_code == ServiceCode.academic_coaching:
        return PricedLine(
            quantity=Decimal(rates.hours_per_week) if rates.hours_per_week is not None else Decimal("0"),
            unit_price=to_money(rates.hourly_rate_customer),
            amount=amount,
        )
    return PricedLine(quantity=Decimal("1"), unit_price=amount, amount=amount)


def format_quantity(quantity: Decimal | int) -> str:
    """Render ``5.00`` as ``5`` and ``2.50`` as ``2.5``."""
    normalized = Decimal(quantity).normalize()
    return f"{normalized:f}"


def build_line_item_description(
    *,
    student_name: str | None,
    service_name: str | None,
    service_code: str | None,
    billing_frequency: BillingFrequency | str | None,
    quantity: Decimal | int,
    unit_price: Decimal,
) -> str:
    prefix = f"{student_name or 'Unknown Student'} - {service_name or 'Service'}"
    qty = format_quantity(quantity)
    unit = f"${to_money(unit_price):.2f}"
    is_single = Decimal(quantity) == 1
    frequency = _frequency_value(billing_frequency)

    if service_code == ServiceCode.academic_coaching:
        return f"{prefix}: {qty} hrs × {unit}"
    if service_code == ServiceCode.eaton_online or frequency == BillingFrequency.weekly.value:
        if is_single:
            return f"{prefix}: {unit}/week"
        return f"{prefix}: {qty} weeks × {unit}"
    if service_code == ServiceCode.learning_pod:
        if is_single:
            return prefix
        return f"{prefix}: {qty} sessions × {unit}"
    if not is_single:
        return f"{prefix}: {qty} × {unit}"
    return prefix


def is_class_title_match(event_title: str | None, class_title: str | None) -> bool:
    """Case-insensitive substring match in either direction."""
    if not class_title or not event_title:
        return False
    event = event_title.lower()
    title = class_title.lower()
    return event in title or title in event


def registration_fee_description(student_name: str | None, event_title: str) -> str:
    return f"{student_name or 'Student'} - Registration Fee: {event_title}"


def hub_session_description(student_name: str, session_date: date, hub_name: str) -> str:
    return f"{student_name} - {hub_name} ({format_long_date(session_date)})"
