from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

TWO_PLACES = Decimal("0.01")


def to_decimal(value, default=Decimal("0")):
    if value is None:
        return default
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return default


def format_zcreds(amount) -> str:
    return str(to_decimal(amount).quantize(TWO_PLACES, rounding=ROUND_HALF_UP))


def format_zcred_display(amount) -> str:
    return f"{format_zcreds(amount)} Z-Credits"


def format_currency(amount, currency="ZC") -> str:
    if currency == "PKR":
        return f"PKR {format_zcreds(amount)}"
    return f"{format_zcreds(amount)} ZC"


def format_signed(amount) -> str:
    value = to_decimal(amount)
    return f"{'+' if value > 0 else ''}{format_zcreds(value)}"
