"""
Fixed-precision amount helpers.

Stellar amounts carry at most 7 fractional digits; bookkept balances are stored
as decimal strings with exactly that precision once they have been touched by a
transfer ("0" is the untouched initial value).
"""
from decimal import Decimal, InvalidOperation, ROUND_DOWN

PRECISION = 7
QUANTUM = Decimal(1).scaleb(-PRECISION)  # 0.0000001
# Largest amount a Stellar payment can carry (int64 stroops)
MAX_AMOUNT = Decimal("922337203685.4775807")


def parse_balance(raw) -> Decimal:
    """Stored balance string -> Decimal. Missing means zero; garbage raises ValueError."""
    if raw is None or raw == "":
        return Decimal(0)
    try:
        value = Decimal(str(raw).strip())
    except InvalidOperation:
        raise ValueError(f"malformed balance value: {raw!r}")
    if not value.is_finite() or value < 0:
        raise ValueError(f"malformed balance value: {raw!r}")
    return value


def to_storage(value: Decimal) -> str:
    """Decimal -> fixed 7dp string, e.g. Decimal('90') -> '90.0000000'."""
    return f"{value.quantize(QUANTUM, rounding=ROUND_DOWN):f}"


def format_amount(value: Decimal) -> str:
    """Human form without exponent or trailing zeros: 10.50 -> '10.5', 1E+2 -> '100'."""
    text = f"{value.normalize():f}"
    return text


def subtract(balance: Decimal, amount: Decimal) -> Decimal:
    return (balance - amount).quantize(QUANTUM, rounding=ROUND_DOWN)
