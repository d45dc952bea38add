from decimal import Decimal, ROUND_HALF_UP

CENT = Decimal("0.01")


def to_decimal(value) -> Decimal:
    """Exact decimal for ints, strings, floats and Decimals (floats go through str)."""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_money(value) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def to_minor_units(value) -> int:
    """Rupees to paise."""
    return int((to_decimal(value) * 100).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def format_amount(value) -> str:
    """'100' for whole amounts, '44.95' otherwise."""
    amount = round_money(value)
    if amount == amount.to_integral_value():
        return str(int(amount))
    return str(amount)
