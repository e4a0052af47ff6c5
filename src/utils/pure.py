"""Pure helpers for money and cart lines. No I/O in here."""

import math
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from numbers import Number
from typing import Iterable, List, Mapping, Optional, Tuple, Union

from db.models import CartLine

TAX_RATE = Decimal("0.08")
CENT = Decimal("0.01")
# largest value an SQLite INTEGER column can hold
SQLITE_INT_MAX = 2**63 - 1


def round_cents(amount: Decimal) -> Decimal:
    """Round half-up at the cent boundary."""
    return Decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)


def to_cents(amount: Union[Decimal, int, float, str]) -> int:
    """Convert a money amount to integer cents, as stored in the database."""
    try:
        value = Decimal(str(amount))
    except InvalidOperation:
        raise ValueError(f"Not a money amount: {amount!r}")
    if not value.is_finite():
        raise ValueError(f"Not a money amount: {amount!r}")
    return int(round_cents(value) * 100)


def from_cents(cents: Optional[int]) -> Decimal:
    return (Decimal(int(cents or 0)) / 100).quantize(CENT)


def compute_totals(
    priced_lines: Iterable[Tuple[Decimal, int]], tax_rate: Decimal = TAX_RATE
) -> Tuple[Decimal, Decimal]:
    """
    Return (subtotal, total) for (unit price, quantity) pairs.

    total = subtotal * (1 + tax_rate), rounded half-up to cents.
    """
    subtotal = sum((price * qty for price, qty in priced_lines), Decimal("0"))
    subtotal = round_cents(subtotal)
    total = round_cents(subtotal * (Decimal("1") + tax_rate))
    return subtotal, total


def storable_id(val: int) -> bool:
    """True if val fits an SQLite INTEGER; larger ids cannot match any row."""
    return -SQLITE_INT_MAX - 1 <= val <= SQLITE_INT_MAX


def positive_int(val) -> Optional[int]:
    """
    Return val as an int if it is a finite positive integer, else None.

    Accepts ints, integral floats/Decimals and integral numeric strings.
    Rejects bools, fractions, NaN and infinities.
    """
    if isinstance(val, bool) or val is None:
        return None
    if isinstance(val, int):
        return val if val > 0 else None
    if isinstance(val, str):
        val = val.strip()
        if not val:
            return None
        try:
            val = Decimal(val)
        except InvalidOperation:
            return None
    if isinstance(val, Decimal):
        if not val.is_finite() or val != val.to_integral_value():
            return None
        val = int(val)
        return val if val > 0 else None
    if isinstance(val, Number):
        try:
            fval = float(val)
        except (TypeError, ValueError):
            return None
        if not math.isfinite(fval) or not fval.is_integer():
            return None
        return int(fval) if fval > 0 else None
    return None


def parse_cart_line(raw: Union[CartLine, Mapping]) -> Optional[CartLine]:
    """Turn a submitted line ({id|product_id, quantity} or CartLine) into a CartLine."""
    if isinstance(raw, CartLine):
        pid, qty = raw.product_id, raw.quantity
    elif isinstance(raw, Mapping):
        pid = raw.get("product_id")
        if pid is None:
            pid = raw.get("id")
        qty = raw.get("quantity")
    else:
        return None
    pid, qty = positive_int(pid), positive_int(qty)
    if pid is None or qty is None:
        return None
    return CartLine(product_id=pid, quantity=qty)


def merge_cart_lines(lines: Iterable[CartLine]) -> List[CartLine]:
    """Collapse duplicate product ids by summing quantities; first-seen order is kept."""
    merged: dict[int, int] = {}
    for line in lines:
        merged[line.product_id] = merged.get(line.product_id, 0) + line.quantity
    return [CartLine(product_id=pid, quantity=qty) for pid, qty in merged.items()]
