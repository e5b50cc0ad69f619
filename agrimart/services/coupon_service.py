# agrimart/services/coupon_service.py
import logging
from dataclasses import dataclass, field
from decimal import Decimal

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from ..errors import AlreadyUsed, BelowMinimum, NotFound, StoreError
from ..extensions import db
from ..model import CouponCode, CouponHistory
from ..utils.api import api_ok, api_error
from ..utils.money import D, Money, round_money

logger = logging.getLogger(__name__)

COUPON_USES = ("one", "many")


@dataclass
class CouponResult:
    valid: bool
    discount: Money = field(default_factory=lambda: Decimal("0"))
    coupon: CouponCode | None = None
    error: StoreError | None = None

    def raise_for_error(self):
        if self.error is not None:
            raise self.error
        return self


def validate_coupon(coupon_id, user_id: int, cart_total) -> CouponResult:
    """Read-only: the checks run in order and the first failure wins."""
    coupon = None
    if coupon_id not in (None, ""):
        try:
            coupon = db.session.get(CouponCode, int(coupon_id))
        except (TypeError, ValueError):
            coupon = None
    if not coupon or coupon.deleted:
        return CouponResult(valid=False, error=NotFound("Coupon not found"))

    if coupon.use == "one":
        used = CouponHistory.query.filter_by(coupon_id=coupon.id, user_id=user_id).first()
        if used:
            return CouponResult(valid=False, coupon=coupon, error=AlreadyUsed("Coupon already used"))

    total = D(cart_total)
    if coupon.min_price is not None and total < D(coupon.min_price):
        return CouponResult(
            valid=False, coupon=coupon,
            error=BelowMinimum(f"Add items worth {round_money(D(coupon.min_price) - total)} more to use this coupon"),
        )

    discount = total * D(coupon.discount) / Decimal("100")
    if coupon.upto is not None and discount > D(coupon.upto):
        discount = D(coupon.upto)
    return CouponResult(valid=True, discount=round_money(discount), coupon=coupon)


def redeem_coupon(coupon: CouponCode, user_id: int, order_id: int | None = None):
    """Record a single-use redemption. Losing the race to a concurrent order raises AlreadyUsed."""
    if coupon.use != "one":
        return None
    row = CouponHistory(coupon_id=coupon.id, user_id=user_id, order_id=order_id)
    db.session.add(row)
    try:
        db.session.flush()
    except IntegrityError:
        db.session.rollback()
        logger.info("coupon %s already redeemed by user %s", coupon.id, user_id)
        raise AlreadyUsed("Coupon already used")
    return row


def _parse_amount(data, key, required=False):
    raw = data.get(key)
    if raw in (None, ""):
        if required:
            raise ValueError(f"{key} is required")
        return None
    try:
        v = D(raw)
    except ArithmeticError:
        raise ValueError(f"{key} must be numeric")
    if not v.is_finite():
        raise ValueError(f"{key} must be numeric")
    if v < 0:
        raise ValueError(f"{key} must be >= 0")
    return v


def create_coupon_from_payload(data: dict):
    name = (data.get("name") or "").strip()
    code = (data.get("code") or "").strip()
    use = (data.get("use") or "one").lower().strip()

    if not name:
        return api_error("name is required"), 400
    if not code:
        return api_error("code is required"), 400
    if use not in COUPON_USES:
        return api_error("use must be 'one' or 'many'"), 400
    try:
        discount = _parse_amount(data, "discount", required=True)
        upto = _parse_amount(data, "upto")
        min_price = _parse_amount(data, "minPrice")
    except ValueError as e:
        return api_error(str(e)), 400
    if discount > 100:
        return api_error("discount must be <= 100"), 400

    # soft-deleted codes still hold the unique index
    existing = CouponCode.query.filter(func.lower(CouponCode.code) == code.lower()).first()
    if existing:
        return api_error("Coupon code already exists"), 400

    c = CouponCode(
        name=name, code=code, description=data.get("description"),
        discount=discount, upto=upto, min_price=min_price, use=use,
    )
    db.session.add(c)
    db.session.commit()
    return api_ok("Coupon created", c.as_api()), 201


def update_coupon_from_payload(c: CouponCode, data: dict):
    if "name" in data:
        name = (data.get("name") or "").strip()
        if not name:
            return api_error("name cannot be empty"), 400
        c.name = name
    if "description" in data:
        c.description = data.get("description")
    if "use" in data:
        use = (data.get("use") or "").lower().strip()
        if use not in COUPON_USES:
            return api_error("use must be 'one' or 'many'"), 400
        c.use = use
    try:
        if "discount" in data:
            discount = _parse_amount(data, "discount", required=True)
            if discount > 100:
                return api_error("discount must be <= 100"), 400
            c.discount = discount
        if "upto" in data:
            c.upto = _parse_amount(data, "upto")
        if "minPrice" in data:
            c.min_price = _parse_amount(data, "minPrice")
    except ValueError as e:
        return api_error(str(e)), 400

    db.session.commit()
    return api_ok("Coupon updated", c.as_api()), 200
