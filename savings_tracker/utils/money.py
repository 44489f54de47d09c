from decimal import Decimal, InvalidOperation, ROUND_HALF_UP


def parse_money(value) -> Decimal:
    if value is None:
        raise ValueError("missing money value")

    if isinstance(value, bool):
        raise ValueError("invalid money value")

    if isinstance(value, (int, float, Decimal)):
        normalized = str(value)
    else:
        normalized = value.strip()
    if not normalized:
        raise ValueError("empty money value")

    is_negative = normalized.startswith("(") and normalized.endswith(")")
    normalized = normalized.replace("£", "").replace("$", "").replace(",", "")

    if is_negative:
        normalized = normalized[1:-1]

    try:
        amount = Decimal(normalized).quantize(
            Decimal("0.01"),
            rounding=ROUND_HALF_UP
        )
    except InvalidOperation as exc:
        raise ValueError("invalid money value") from exc

    if not amount.is_finite():
        raise ValueError("invalid money value")

    return -amount if is_negative else amount


def round_money(value: float) -> float:
    """Round a float balance to whole pence for display."""
    return float(Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def format_money(value: float) -> str:
    return f"£{round_money(value):,.2f}"
