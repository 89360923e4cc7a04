"""Fiat to native amount conversion.

All arithmetic is done with ``Decimal`` in a local high-precision context so
repeated runs give identical results regardless of the caller's context.
"""

from decimal import ROUND_HALF_EVEN, Decimal, InvalidOperation, localcontext
from typing import Optional, Union

_PRECISION = 78

NumberLike = Union[Decimal, int, str]


def compute_native_amount(amount_usd: NumberLike, price_usd: NumberLike, decimals: int) -> Decimal:
    """``amount_usd / price_usd`` quantized to ``decimals`` places (ROUND_HALF_EVEN).

    Raises ValueError for a missing, zero or negative price.
    """
    usd = Decimal(str(amount_usd))
    price = Decimal(str(price_usd))
    if not price.is_finite() or price <= 0:
        raise ValueError("price must be positive")

    with localcontext() as ctx:
        ctx.prec = _PRECISION
        ctx.rounding = ROUND_HALF_EVEN
        quantum = Decimal(1).scaleb(-decimals)
        return (usd / price).quantize(quantum, rounding=ROUND_HALF_EVEN)


def to_smallest_unit(amount: Decimal, decimals: int) -> int:
    """Exact integer count of smallest units (wei, lamports) for ``amount``."""
    with localcontext() as ctx:
        ctx.prec = _PRECISION
        scaled = amount.scaleb(decimals)
        return int(scaled.to_integral_value(rounding=ROUND_HALF_EVEN))


def from_smallest_unit(raw: int, decimals: int) -> Decimal:
    with localcontext() as ctx:
        ctx.prec = _PRECISION
        return Decimal(int(raw)).scaleb(-decimals)


def parse_usd_amount(text: Optional[str]) -> Optional[Decimal]:
    """Parse user text such as ``"5"``, ``"$5.50"`` or ``"1,000"``; None when not a number."""
    if text is None:
        return None
    cleaned = text.strip().replace(",", "").replace("$", "").strip()
    if cleaned.lower().endswith("usd"):
        cleaned = cleaned[:-3].strip()
    if not cleaned:
        return None
    try:
        value = Decimal(cleaned)
    except InvalidOperation:
        return None
    if not value.is_finite():
        return None
    return value


def format_native(amount: Decimal, max_places: int = 6) -> str:
    """Display form: at most ``max_places`` decimals, trailing zeros trimmed."""
    with localcontext() as ctx:
        ctx.prec = _PRECISION
        quantum = Decimal(1).scaleb(-max_places)
        text = format(amount.quantize(quantum, rounding=ROUND_HALF_EVEN), "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text or "0"


def format_usd(amount: Decimal) -> str:
    with localcontext() as ctx:
        ctx.prec = _PRECISION
        return f"${amount.quantize(Decimal('0.01'), rounding=ROUND_HALF_EVEN):,}"
