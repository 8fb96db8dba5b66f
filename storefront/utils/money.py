# storefront/utils/money.py

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

Money = Decimal

ZERO = Decimal("0")
CENT = Decimal("0.01")


def D(x) -> Money:
    """Parse a number or decimal string into Decimal. Blank/None means zero."""
    if isinstance(x, Decimal):
        return x
    if isinstance(x, float):
        x = repr(x)
    try:
        return Decimal(str(x if x not in (None, "") else "0").strip())
    except InvalidOperation:
        raise ValueError(f"invalid decimal value: {x!r}")


def opt_D(x) -> Money | None:
    if x is None or (isinstance(x, str) and x.strip() == ""):
        return None
    return D(x)


def round_money(x: Money) -> Money:
    return D(x).quantize(CENT, rounding=ROUND_HALF_UP)


def to_string_money(x) -> str:
    return str(round_money(x))


def money_or_none(x) -> str | None:
    return None if x is None else to_string_money(x)


def format_brl(value, symbol="R$") -> str:
    # 1234.5 -> "R$ 1.234,50"
    q = round_money(value)
    whole, frac = f"{q:,.2f}".split(".")
    return f"{symbol} {whole.replace(',', '.')},{frac}"
