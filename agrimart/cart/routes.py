# agrimart/cart/routes.py
from flask import request

from ..errors import ValidationError
from ..extensions import db
from ..services import cart_service
from ..utils.api import ok
from ..utils.decorators import current_user, role_at_least
from . import bp


def _count_payload(user_id: int, line=None):
    return {
        "count": line.quantity if line is not None else 0,
        "totalCartCount": cart_service.cart_count(user_id),
    }


def _int_field(data, key, default=None):
    raw = data.get(key, default)
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise ValidationError(f"{key} is required")


# ---- endpoints -------------------------------------------------------------

@bp.post("/items")
@role_at_least("user")
def add_item():
    """
    Body: { "productId": int, "unitId": int, "quantity": int }
    Adds to an existing line for the same product/unit.
    """
    user = current_user()
    data = request.get_json(silent=True) or {}
    product_id = _int_field(data, "productId")
    unit_id = _int_field(data, "unitId")
    qty = _int_field(data, "quantity", 1)

    line = cart_service.add_item(user.id, product_id, unit_id, qty)
    db.session.commit()
    return ok("Item added to cart", _count_payload(user.id, line), status=201)


@bp.patch("/items/<int:product_id>/<int:unit_id>/increment")
@role_at_least("user")
def increment_item(product_id: int, unit_id: int):
    user = current_user()
    line = cart_service.increment_item(user.id, product_id, unit_id)
    db.session.commit()
    return ok("Cart updated", _count_payload(user.id, line))


@bp.patch("/items/<int:product_id>/<int:unit_id>/decrement")
@role_at_least("user")
def decrement_item(product_id: int, unit_id: int):
    user = current_user()
    line = cart_service.decrement_item(user.id, product_id, unit_id)
    db.session.commit()
    msg = "Cart updated" if line is not None else "Item removed from cart"
    return ok(msg, _count_payload(user.id, line))


@bp.delete("/items/<int:product_id>/<int:unit_id>")
@role_at_least("user")
def remove_item(product_id: int, unit_id: int):
    user = current_user()
    cart_service.remove_item(user.id, product_id, unit_id)
    db.session.commit()
    return ok("Item removed from cart", _count_payload(user.id))


@bp.get("/count")
@role_at_least("user")
def cart_count():
    user = current_user()
    return ok("cart count", {"totalCartCount": cart_service.cart_count(user.id)})


@bp.get("/summary")
@role_at_least("user")
def cart_summary():
    """
    Query params:
      - coupon: coupon id to preview (never redeemed here)
      - donate: donation amount, default 0
    """
    user = current_user()
    summary = cart_service.get_cart_summary(
        user,
        coupon_id=request.args.get("coupon"),
        donation=request.args.get("donate", 0),
    )
    address = cart_service.first_address(user.id)
    data = summary.as_api()
    data["address"] = address.as_dict() if address else None
    return ok("cart summary", data)
