"""Currency arithmetic on dollar amounts.

Every operation normalizes its inputs to ``Decimal`` and rounds the result to
whole cents with ROUND_HALF_UP, so repeated additions never accumulate binary
floating point error. Floats are converted through ``str`` first: ``0.1``
becomes ``Decimal("0.1")``, not ``Decimal(0.1000000000000000055...)``.
"""

from collections.abc import Iterable
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

MoneyInput = Decimal | int | float | str


def _as_decimal(value: MoneyInput | None) -> Decimal:
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def to_money(value: MoneyInput | None) -> Decimal:
    """Normalize a value to dollars and cents. ``None`` counts as zero."""
    return _as_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def add_money(a: MoneyInput | None, b: MoneyInput | None) -> Decimal:
    return to_money(to_money(a) + to_money(b))


def subtract_money(a: MoneyInput | None, b: MoneyInput | None) -> Decimal:
    return to_money(to_money(a) - to_money(b))


def multiply_money(quantity: MoneyInput | None, rate: MoneyInput | None) -> Decimal:
    """Multiply a quantity (hours, sessions, weeks) by a rate.

    The quantity keeps its own precision; only the product is rounded.
    """
    return to_money(_as_decimal(quantity) * to_money(rate))


def sum_money(values: Iterable[MoneyInput | None]) -> Decimal:
    total = ZERO
    for value in values:
        total = add_money(total, value)
    return total


def min_money(a: MoneyInput | None, b: MoneyInput | None) -> Decimal:
    return min(to_money(a), to_money(b))


def dollars_to_cents(value: MoneyInput | None) -> int:
    return int(to_money(value) * 100)


def cents_to_dollars(cents: int | None) -> Decimal:
    return to_money(Decimal(cents or 0) / 100)


def format_currency(value: MoneyInput | None) -> str:
    amount = to_money(value)
    sign = "-" if amount < 0 else ""
    return f"{sign}${abs(amount):,.2f}"


def parse_money_input(text: str | None) -> Decimal | None:
    """Parse user-typed money such as ``"$1,250.5"``. Returns None when unusable."""
    if text is None:
        return None
    cleaned = text.replace("$", "").replace(",", "").strip()
    if cleaned == "":
        return None
    try:
        parsed = Decimal(cleaned)
    except InvalidOperation:
        return None
    if not parsed.is_finite():
        return None
    return to_money(parsed)


def calculate_percentage(part: MoneyInput | None, whole: MoneyInput | None) -> Decimal:
    whole_amount = to_money(whole)
    if whole_amount == ZERO:
        return ZERO
    return (to_money(part) * 100 / whole_amount).quantize(CENT, rounding=ROUND_HALF_UP)
