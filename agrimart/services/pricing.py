# agrimart/services/pricing.py
"""
Per-unit price resolution. Product listing, product detail, the cart and the
order snapshot all go through `compute_unit_price`, so the price a customer
sees is the price they pay.
"""
import re
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP

from ..utils.money import D, Money, round_whole

_NUMBER = re.compile(r"-?\d+(?:\.\d+)?")


@dataclass(frozen=True)
class UnitPrice:
    mrp: Money
    selling_price: Money
    off_percent: str     # bare numeric string; clients append "% OFF"


def strip_off_suffix(value) -> str | None:
    """'12.5% OFF' -> '12.5'. Returns None when there is no number at all."""
    if value is None:
        return None
    m = _NUMBER.search(str(value))
    return m.group(0) if m else None


def compute_off_percent(mrp, selling_price) -> str:
    mrp, sp = D(mrp), D(selling_price)
    if mrp <= 0:
        return "0"
    pct = (mrp - sp) / mrp * Decimal("100")
    if pct == pct.to_integral_value():
        return str(int(pct))
    whole = pct.quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    two = pct.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return str(int(whole)) if two == whole else str(two)


def compute_unit_price(unit, subcategory_percent_off, is_premium_user: bool) -> UnitPrice:
    mrp = D(unit.mrp)
    sp = D(unit.selling_price)
    pct = D(subcategory_percent_off)

    if not is_premium_user or pct <= 0:
        stored = strip_off_suffix(getattr(unit, "off_per", None))
        return UnitPrice(mrp=mrp, selling_price=sp,
                         off_percent=stored if stored is not None else compute_off_percent(mrp, sp))

    # the old selling price becomes the struck-through mrp
    discounted = round_whole(sp * (Decimal("1") - pct / Decimal("100")))
    return UnitPrice(mrp=sp, selling_price=discounted,
                     off_percent=compute_off_percent(sp, discounted))
