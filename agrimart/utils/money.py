# agrimart/utils/money.py

from decimal import Decimal, ROUND_HALF_UP, ROUND_FLOOR

Money = Decimal

def D(x) -> Money:
    return x if isinstance(x, Decimal) else Decimal(str(x or "0"))

def round_money(x: Money) -> Money:
    return D(x).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)

def round_whole(x) -> Money:
    # half-up to a whole rupee, the way displayed prices are rounded
    return D(x).quantize(Decimal("1"), rounding=ROUND_HALF_UP)

def floor_int(x) -> int:
    return int(D(x).to_integral_value(rounding=ROUND_FLOOR))

def to_number(x):
    """JSON-friendly number: ints stay ints, everything else becomes a 2dp float."""
    x = round_money(x)
    if x == x.to_integral_value():
        return int(x)
    return float(x)
