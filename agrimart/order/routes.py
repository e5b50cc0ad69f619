# agrimart/order/routes.py
from flask import request

from ..errors import ValidationError
from ..model import OnlineOrder
from ..services import order_service, refund_service
from ..utils.api import ok, paginate
from ..utils.decorators import current_user, role_at_least, role_required
from . import bp


def _filtered(q):
    status = request.args.get("status")
    if status:
        q = q.filter(OnlineOrder.status == status)
    return q.order_by(OnlineOrder.created_at.desc(), OnlineOrder.id.desc())


@bp.post("")
@role_at_least("user")
def place_order():
    """
    Body: { "addressId": int, "couponId"?: int, "donationAmount"?: number, "coinUsed"?: int }
    """
    user = current_user()
    data = request.get_json(silent=True) or {}
    order = order_service.place_order(
        user,
        address_id=data.get("addressId"),
        coupon_id=data.get("couponId"),
        donation=data.get("donationAmount", 0),
        coin_used=data.get("coinUsed", 0),
    )
    return ok("Order created successfully", {
        "id": order.id,
        "orderId": order.order_code,
        "paymentSessionId": order.payment_session_id,
        "externalOrderId": order.external_order_id,
        "summary": order.summary(),
    }, status=201)


@bp.get("")
@role_at_least("user")
def list_orders():
    """
    Query params:
      - page, per_page
      - status=Pending|Accepted|...|Delivered|Cancelled
    """
    user = current_user()
    q = _filtered(OnlineOrder.query.filter(OnlineOrder.created_by == user.id))
    return ok("orders", paginate(q, request.args.get("page"), request.args.get("per_page"),
                                 lambda o: o.as_api()))


@bp.get("/admin")
@role_required("admin")
def admin_list_orders():
    q = OnlineOrder.query
    user_id = request.args.get("userId")
    if user_id:
        q = q.filter(OnlineOrder.created_by == user_id)
    q = _filtered(q)
    return ok("orders", paginate(q, request.args.get("page"), request.args.get("per_page"),
                                 lambda o: o.as_api()))


@bp.get("/<ident>")
@role_at_least("user")
def get_order(ident):
    user = current_user()
    owner = None if user.role == "admin" else user.id
    return ok("order", order_service.find_order(ident, owner).as_api())


@bp.patch("/<ident>/cancel")
@role_at_least("user")
def cancel_order(ident):
    user = current_user()
    order = order_service.find_order(ident, user.id)
    outcome = refund_service.cancel_order(order)
    return ok(outcome.message, outcome.as_api())


@bp.patch("/<ident>/status")
@role_at_least("delivery")
def change_status(ident):
    """Body: { "status": str, "estimatedDate"?: ISO-8601 }"""
    data = request.get_json(silent=True) or {}
    new_status = (data.get("status") or "").strip()
    if not new_status:
        raise ValidationError("Order status can't be empty")

    order = order_service.find_order(ident)
    outcome = order_service.change_order_status(order, new_status, data.get("estimatedDate"))
    if outcome is not None:
        return ok(outcome.message, {**order.as_api(), **outcome.as_api()})
    return ok("Order status updated", order.as_api())


@bp.post("/<ident>/return")
@role_at_least("user")
def request_return(ident):
    """Body: { "reason": str, "comment"?: str, "image"?: str }"""
    user = current_user()
    data = request.get_json(silent=True) or {}
    order = order_service.find_order(ident, user.id)
    record = order_service.request_return(order, data.get("reason"), data.get("comment"), data.get("image"))
    return ok("Return requested", {"return": record.as_api(), "order": order.as_api()}, status=201)


@bp.patch("/<ident>/return/cancel")
@role_at_least("user")
def cancel_return(ident):
    user = current_user()
    order = order_service.find_order(ident, user.id)
    order_service.cancel_return(order)
    return ok("Return cancelled", order.as_api())


@bp.patch("/<ident>/return-status")
@role_required("admin")
def change_return_status(ident):
    """Body: { "status": "Approved" | "Rejected" | "PickedUp" | "Success" }"""
    data = request.get_json(silent=True) or {}
    new_status = (data.get("status") or "").strip()
    if not new_status:
        raise ValidationError("Return status can't be empty")

    order = order_service.find_order(ident)
    outcome = order_service.change_return_status(order, new_status, admin_id=current_user().id)
    if outcome is not None:
        return ok(outcome.message, {**order.as_api(), **outcome.as_api()})
    return ok("Return status updated", order.as_api())
