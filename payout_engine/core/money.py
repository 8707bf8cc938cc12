from decimal import Decimal, ROUND_HALF_UP

ZERO = Decimal("0")
CENT = Decimal("0.01")


def to_decimal(value) -> Decimal:
    """Coerce DB/JSON numbers (None, int, float, Decimal) to Decimal."""
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def quantize_money(value: Decimal) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def format_currency(value) -> str:
    """$45,000.00 style, negatives as -$1.00."""
    amount = quantize_money(value)
    sign = "-" if amount < 0 else ""
    return f"{sign}${abs(amount):,.2f}"


def format_percent(rate) -> str:
    pct = (to_decimal(rate) * 100).normalize()
    return f"{pct:f}%"
