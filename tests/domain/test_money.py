from decimal import Decimal

from academy_ledger.domain.money import (
    calculate_percentage,
    cents_to_dollars,
    dollars_to_cents,
    format_currency,
    multiply_money,
    parse_money_input,
    sum_money,
    to_money,
)


def test_sum_money_does_not_accumulate_float_error():
    """
    Validate summing float dollar amounts stays exact.

    1. Sum 0.10 and 0.20 given as floats.
    2. Read the Decimal result.
    3. Validate the result is exactly 0.30.
    4. Validate the result keeps two decimal places.
    """
    total = sum_money([0.1, 0.2])
    assert total == Decimal("0.30")
    assert str(total) == "0.30"


def test_to_money_rounds_half_up():
    """
    Validate cent rounding uses half-up.

    1. Normalize a value sitting exactly on a half cent.
    2. Normalize None.
    3. Validate the half cent rounds up.
    4. Validate None counts as zero.
    """
    assert to_money("2.005") == Decimal("2.01")
    assert to_money(None) == Decimal("0.00")


def test_multiply_money_keeps_quantity_precision():
    """
    Validate quantity times rate rounds only the product.

    1. Multiply 2.5 hours by a 40 dollar rate.
    2. Multiply 1.333 hours by a 30 dollar rate.
    3. Validate the first product is 100.00.
    4. Validate the second product is rounded to cents.
    """
    assert multiply_money("2.5", "40") == Decimal("100.00")
    assert multiply_money("1.333", "30") == Decimal("39.99")


def test_cents_conversions_are_symmetric():
    """
    Validate dollars and cents conversions.

    1. Convert 12.34 dollars to cents.
    2. Convert 1999 cents to dollars.
    3. Validate the integer cents value.
    4. Validate the Decimal dollars value.
    """
    assert dollars_to_cents("12.34") == 1234
    assert cents_to_dollars(1999) == Decimal("19.99")


def test_format_currency_groups_thousands_and_signs_negatives():
    """
    Validate currency formatting.

    1. Format one positive amount above one thousand.
    2. Format one negative amount.
    3. Validate thousands separators and cents.
    4. Validate the minus sign precedes the dollar sign.
    """
    assert format_currency(Decimal("1234.5")) == "$1,234.50"
    assert format_currency("-20") == "-$20.00"


def test_parse_money_input_accepts_typed_values_and_rejects_garbage():
    """
    Validate parsing of user-typed money.

    1. Parse a value with dollar sign and separators.
    2. Parse blank and non-numeric inputs.
    3. Validate the parsed amount is normalized to cents.
    4. Validate unusable inputs return None.
    """
    assert parse_money_input("$1,250.5") == Decimal("1250.50")
    assert parse_money_input("   ") is None
    assert parse_money_input("abc") is None
    assert parse_money_input("NaN") is None
    assert parse_money_input(None) is None


def test_calculate_percentage_handles_zero_whole():
    """
    Validate percentage helper.

    1. Compute 25 of 200.
    2. Compute any part of a zero whole.
    3. Validate the percentage is 12.50.
    4. Validate zero whole returns zero.
    """
    assert calculate_percentage(25, 200) == Decimal("12.50")
    assert calculate_percentage(10, 0) == Decimal("0.00")
