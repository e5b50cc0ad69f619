# agrimart/coupon/routes.py
from flask import request, jsonify

from ..errors import NotFound, ValidationError
from ..extensions import db
from ..model import CouponCode
from ..services.coupon_service import (
    create_coupon_from_payload, update_coupon_from_payload, validate_coupon,
)
from ..utils.api import api_ok, ok
from ..utils.decorators import current_user, role_at_least, role_required
from ..utils.money import to_number
from . import bp


def _live_coupon(coupon_id: int) -> CouponCode:
    c = db.session.get(CouponCode, coupon_id)
    if not c or c.deleted:
        raise NotFound("Coupon not found")
    return c


@bp.post("")
@role_required("admin")
def create_coupon():
    body, status = create_coupon_from_payload(request.get_json(silent=True) or {})
    return jsonify(body), status


@bp.get("")
@role_at_least("user")
def list_coupons():
    items = CouponCode.query.filter(CouponCode.deleted.is_(False)).order_by(CouponCode.id.desc()).all()
    return jsonify(api_ok("ok", [c.as_api() for c in items])), 200


@bp.get("/<int:coupon_id>")
@role_at_least("user")
def get_coupon(coupon_id: int):
    return ok("coupon", _live_coupon(coupon_id).as_api())


@bp.patch("/<int:coupon_id>")
@role_required("admin")
def update_coupon(coupon_id: int):
    body, status = update_coupon_from_payload(_live_coupon(coupon_id), request.get_json(silent=True) or {})
    return jsonify(body), status


@bp.delete("/<int:coupon_id>")
@role_required("admin")
def delete_coupon(coupon_id: int):
    c = _live_coupon(coupon_id)
    c.deleted = True
    db.session.commit()
    return ok("Coupon deleted", {"id": c.id})


@bp.post("/validate")
@role_at_least("user")
def validate():
    """
    Body: { "couponId": int, "cartTotal": number }
    Read-only preview; redemption only happens when an order is placed.
    """
    data = request.get_json(silent=True) or {}
    if data.get("couponId") in (None, ""):
        raise ValidationError("couponId is required")
    if data.get("cartTotal") in (None, ""):
        raise ValidationError("cartTotal is required")
    try:
        cart_total = float(data["cartTotal"])
    except (TypeError, ValueError):
        raise ValidationError("cartTotal must be a number")

    result = validate_coupon(data["couponId"], current_user().id, cart_total).raise_for_error()
    return ok("Coupon applied", {
        "valid": result.valid,
        "discount": to_number(result.discount),
        "coupon": result.coupon.as_api(),
    })
