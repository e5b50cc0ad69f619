# agrimart/services/cart_service.py
import logging
from dataclasses import dataclass, field
from decimal import Decimal

from flask import current_app
from sqlalchemy import func

from ..errors import NotFound, ValidationError
from ..extensions import db
from ..model import Address, CartLine, Product, ProductUnit, User
from ..utils.money import D, Money, round_money, to_number
from . import coin_service
from .coupon_service import validate_coupon
from .pricing import UnitPrice, compute_unit_price

logger = logging.getLogger(__name__)


@dataclass
class PricedLine:
    line: CartLine
    product: Product
    unit: ProductUnit
    price: UnitPrice
    quantity: int

    @property
    def product_id(self):
        return self.product.id

    @property
    def sub_category_id(self):
        return self.product.sub_category_id

    @property
    def product_price(self) -> Money:
        return self.price.selling_price

    @property
    def total(self) -> Money:
        return self.price.selling_price * self.quantity

    @property
    def eligible_coins(self) -> int:
        return int(self.product.coin_can_used or 0) * self.quantity

    def as_api(self):
        return {
            "cartId": self.line.id,
            "productId": self.product.id,
            "unitId": self.unit.id,
            "name": self.product.name,
            "qty": self.unit.qty,
            "mrp": to_number(self.price.mrp),
            "sellingPrice": to_number(self.price.selling_price),
            "offPer": self.price.off_percent,
            "quantity": self.quantity,
            "totalPrice": to_number(self.total),
        }


@dataclass
class CoinSummary:
    balance: int
    usable: int
    earnable: int

    def as_api(self):
        return {"balance": self.balance, "usable": self.usable, "earnable": self.earnable}


@dataclass
class BillSummary:
    lines: list = field(default_factory=list)
    item_total: Money = field(default_factory=lambda: Decimal("0"))
    discount: Money = field(default_factory=lambda: Decimal("0"))
    shipping_fee: Money = field(default_factory=lambda: Decimal("0"))
    donation: Money = field(default_factory=lambda: Decimal("0"))
    grand_total: Money = field(default_factory=lambda: Decimal("0"))
    coupon_id: int | None = None
    # None for first-time buyers: clients hide the coin UI entirely
    coins: CoinSummary | None = None

    def as_api(self):
        return {
            "items": [pl.as_api() for pl in self.lines],
            "itemTotal": to_number(self.item_total),
            "discount": to_number(self.discount),
            "shippingFee": to_number(self.shipping_fee),
            "donate": to_number(self.donation),
            "grandTotal": to_number(self.grand_total),
            "couponId": self.coupon_id,
            "coins": self.coins.as_api() if self.coins else None,
        }


# ---- pricing ---------------------------------------------------------------

def price_unit_for(user: User | None, product: Product, unit: ProductUnit) -> UnitPrice:
    pct = product.sub_category.percentage_off if product.sub_category else 0
    return compute_unit_price(unit, pct, bool(user and user.is_premium))


def priced_lines(user: User) -> list[PricedLine]:
    out = []
    for line in CartLine.live_for(user.id).all():
        product, unit = line.product, line.unit
        if product is None or unit is None:
            logger.warning("cart line %s points at a missing product/unit, skipping", line.id)
            continue
        out.append(PricedLine(
            line=line, product=product, unit=unit,
            price=price_unit_for(user, product, unit),
            quantity=int(line.quantity),
        ))
    return out


def shipping_fee_for(item_total) -> Money:
    cfg = current_app.config
    if D(item_total) > D(cfg["FREE_SHIPPING_ABOVE"]):
        return Decimal("0")
    return D(cfg["SHIPPING_FEE"])


def parse_donation(raw) -> Money:
    if raw in (None, ""):
        return Decimal("0")
    try:
        v = D(raw)
    except ArithmeticError:
        raise ValidationError("donate must be a number")
    if not v.is_finite():
        raise ValidationError("donate must be a number")
    if v < 0:
        raise ValidationError("donate must be >= 0")
    return round_money(v)


def get_cart_summary(user: User, coupon_id=None, donation=0) -> BillSummary:
    """Read-only bill for the cart screen and the checkout preview."""
    lines = priced_lines(user)
    donation = parse_donation(donation)

    item_total = sum((pl.total for pl in lines), Decimal("0"))
    shipping = shipping_fee_for(item_total)

    discount = Decimal("0")
    if coupon_id not in (None, ""):
        discount = validate_coupon(coupon_id, user.id, item_total).raise_for_error().discount

    grand = max(Decimal("0"), item_total - discount + shipping + donation)
    summary = BillSummary(
        lines=lines,
        item_total=round_money(item_total),
        discount=discount,
        shipping_fee=shipping,
        donation=donation,
        grand_total=round_money(grand),
        coupon_id=int(coupon_id) if coupon_id not in (None, "") else None,
    )

    if coin_service.has_previous_orders(user.id):
        eligible = sum(pl.eligible_coins for pl in lines)
        summary.coins = CoinSummary(
            balance=int(user.coins or 0),
            usable=coin_service.max_coins_usable(user.id, eligible, grand),
            earnable=coin_service.calculate_coins_earned(lines),
        )
    return summary


def first_address(user_id: int):
    return Address.query.filter_by(user_id=user_id).order_by(Address.id.asc()).first()


# ---- mutations (caller commits) -------------------------------------------

def cart_count(user_id: int) -> int:
    total = (
        db.session.query(func.coalesce(func.sum(CartLine.quantity), 0))
        .filter(CartLine.user_id == user_id, CartLine.deleted.is_(False))
        .scalar()
    )
    return int(total or 0)


def _live_line(user_id: int, product_id: int, unit_id: int) -> CartLine | None:
    return CartLine.query.filter_by(
        user_id=user_id, product_id=product_id, unit_id=unit_id, deleted=False
    ).first()


def _require_unit(product_id: int, unit_id: int):
    product = db.session.get(Product, product_id)
    if not product or product.deleted:
        raise NotFound("Product not found")
    unit = db.session.get(ProductUnit, unit_id)
    if not unit or unit.deleted or unit.product_id != product.id:
        raise NotFound("Product unit not found")
    return product, unit


def add_item(user_id: int, product_id: int, unit_id: int, quantity: int = 1) -> CartLine:
    if quantity < 1:
        raise ValidationError("quantity must be >= 1")
    _require_unit(product_id, unit_id)
    line = _live_line(user_id, product_id, unit_id)
    if line:
        line.quantity += quantity
    else:
        line = CartLine(user_id=user_id, product_id=product_id, unit_id=unit_id, quantity=quantity)
        db.session.add(line)
    db.session.flush()
    return line


def increment_item(user_id: int, product_id: int, unit_id: int) -> CartLine:
    line = _live_line(user_id, product_id, unit_id)
    if not line:
        return add_item(user_id, product_id, unit_id, 1)
    line.quantity += 1
    db.session.flush()
    return line


def decrement_item(user_id: int, product_id: int, unit_id: int) -> CartLine | None:
    """Returns the line, or None once it has been removed."""
    line = _live_line(user_id, product_id, unit_id)
    if not line:
        raise ValidationError("Item not in cart", data={"count": 0})
    if line.quantity <= 1:
        line.deleted = True
        db.session.flush()
        return None
    line.quantity -= 1
    db.session.flush()
    return line


def remove_item(user_id: int, product_id: int, unit_id: int):
    line = _live_line(user_id, product_id, unit_id)
    if not line:
        raise NotFound("Item not in cart")
    line.deleted = True
    db.session.flush()


def clear_cart(user_id: int) -> int:
    n = (
        CartLine.query.filter_by(user_id=user_id, deleted=False)
        .update({CartLine.deleted: True}, synchronize_session="fetch")
    )
    db.session.flush()
    return n
