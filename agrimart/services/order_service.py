# agrimart/services/order_service.py
import logging
import math
import time
from datetime import datetime, timezone

from flask import current_app
from sqlalchemy import update

from ..errors import (
    InternalError, InvalidOrderAmount, InvalidStatus, NotFound, StoreError, ValidationError,
)
from ..extensions import db
from ..gateway import get_gateway
from ..model import Address, OnlineOrder, OrderItem, ReturnRequest, User
from ..model.order import ORDER_STATUSES
from ..utils.money import D, round_money
from . import cart_service, coin_service, outbox, refund_service
from .coupon_service import redeem_coupon, validate_coupon

logger = logging.getLogger(__name__)

ADMIN_RETURN_STATUSES = ("Approved", "Rejected", "PickedUp", "Success")


def _parse_iso8601(s):
    if not s:
        return None
    s = str(s).strip()
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(s)
    except ValueError:
        raise ValidationError("Invalid datetime format for estimatedDate")
    if dt.tzinfo:
        return dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def _parse_coins(raw) -> int:
    if raw in (None, ""):
        return 0
    try:
        v = int(raw)
    except (TypeError, ValueError, OverflowError):
        raise ValidationError("coinUsed must be a whole number")
    if v < 0:
        raise ValidationError("coinUsed must be >= 0")
    return v


def _next_order_code() -> str:
    ms = int(time.time() * 1000)
    while OnlineOrder.query.filter_by(order_code=f"ONLINE_ORDER_{ms}").first():
        ms += 1
    return f"ONLINE_ORDER_{ms}"


def _snapshot(pl: cart_service.PricedLine) -> OrderItem:
    return OrderItem(
        product_id=pl.product.id,
        unit_id=pl.unit.id,
        sub_category_id=pl.product.sub_category_id,
        name=pl.product.name,
        qty=pl.unit.qty,
        mrp=pl.price.mrp,
        product_price=pl.price.selling_price,
        quantity=pl.quantity,
    )


def _customer_phone(user: User) -> str:
    return (user.phone or "").replace("+91", "").strip()


def place_order(user: User, address_id, coupon_id=None, donation=0, coin_used=0) -> OnlineOrder:
    """
    Turn the user's cart into a Pending order and open a payment session.
    Everything happens in one transaction: any failure leaves no order, no
    coin deduction, no coupon redemption and the cart untouched.
    """
    try:
        order = _place_order(user, address_id, coupon_id, donation, coin_used)
        db.session.commit()
    except StoreError:
        db.session.rollback()
        raise
    except Exception as e:
        db.session.rollback()
        logger.exception("order placement failed for user %s", user.id)
        raise InternalError("Order could not be created") from e

    logger.info("order %s placed by user %s: grandTotal=%s coinUsed=%s",
                order.order_code, user.id, order.grand_total, order.coin_used)
    return order


def _place_order(user, address_id, coupon_id, donation, coin_used):
    if not address_id:
        raise ValidationError("addressId is required")

    # serialize checkouts per user
    user = db.session.query(User).filter(User.id == user.id).with_for_update().one()

    lines = cart_service.priced_lines(user)
    if not lines:
        raise ValidationError("Cart is empty")
    try:
        address = Address.query.filter_by(id=int(address_id), user_id=user.id).first()
    except (TypeError, ValueError):
        address = None
    if not address:
        raise NotFound("Address not found")

    items = [_snapshot(pl) for pl in lines]
    total = round_money(sum((it.product_price * it.quantity for it in items), D(0)))

    coupon = None
    discount = D(0)
    if coupon_id not in (None, ""):
        result = validate_coupon(coupon_id, user.id, total).raise_for_error()
        coupon, discount = result.coupon, result.discount

    shipping = cart_service.shipping_fee_for(total)
    donation = cart_service.parse_donation(donation)
    subtotal = total - discount + shipping + donation

    requested = _parse_coins(coin_used)
    final_coins = 0
    if requested > 0 and coin_service.has_previous_orders(user.id):
        eligible = sum(pl.eligible_coins for pl in lines)
        final_coins = min(requested, coin_service.max_coins_usable(user.id, eligible, subtotal))

    grand = round_money(subtotal - final_coins)
    if grand <= 0:
        raise InvalidOrderAmount()

    ledger_entry = coin_service.deduct_coins(user.id, final_coins, None, "OnlineStore")
    coins_earned = coin_service.calculate_coins_earned(items)
    redemption = redeem_coupon(coupon, user.id) if coupon else None

    session = get_gateway().create_session(
        grand,
        current_app.config["PAYMENT_CURRENCY"],
        metadata={
            "forPayment": "OnlineStore",
            "coupon": coupon.id if coupon else "",
            "donate": str(donation),
            "addressId": address.id,
            "userId": user.id,
            "coinUsed": final_coins,
        },
        customer={"customer_id": str(user.id), "customer_phone": _customer_phone(user)},
    )

    order = OnlineOrder(
        order_code=_next_order_code(),
        created_by=user.id,
        status="Pending",
        address_json=address.as_dict(),
        external_order_id=session.external_order_id,
        payment_session_id=session.session_id,
        coupon_id=coupon.id if coupon else None,
        total_amount=total,
        discount_amount=discount,
        shipping_fee=shipping,
        donate=donation,
        grand_total=grand,
        coin_used=final_coins,
        coins_earned=coins_earned,
        coins_credited=False,
        is_premium_purchase=bool(user.is_premium),
        items=items,
    )
    db.session.add(order)
    db.session.flush()

    if ledger_entry is not None:
        ledger_entry.order_id = order.id
    if redemption is not None:
        redemption.order_id = order.id

    cart_service.clear_cart(user.id)
    return order


# ---- lookups ---------------------------------------------------------------

def find_order(identifier, user_id: int | None = None) -> OnlineOrder:
    """Numeric id or the human-readable ONLINE_ORDER_<ms> code."""
    ident = str(identifier or "").strip()
    q = OnlineOrder.query
    if user_id is not None:
        q = q.filter(OnlineOrder.created_by == user_id)
    if ident.isdigit():
        order = q.filter(OnlineOrder.id == int(ident)).first()
    else:
        order = q.filter(OnlineOrder.order_code == ident).first()
    if not order:
        raise NotFound("Order not found with this ID")
    return order


# ---- status ----------------------------------------------------------------

def change_order_status(order: OnlineOrder, new_status: str, estimated_date=None):
    """
    Any status of the fixed set is accepted from any other one; operators use
    this to correct mistakes. Returns a RefundOutcome when the change was a
    cancellation, None otherwise.
    """
    if new_status not in ORDER_STATUSES:
        raise InvalidStatus("Please enter valid order status")

    if new_status == "Cancelled":
        return refund_service.cancel_order(order)

    order.status = new_status
    if estimated_date:
        order.estimated_date = _parse_iso8601(estimated_date)

    tasks = []
    if new_status == "Delivered":
        order.delivered_at = datetime.utcnow()
        tasks = _queue_delivery_credit(order)

    db.session.commit()
    logger.info("order %s -> %s", order.order_code, new_status)
    outbox.dispatch_all(tasks)
    return None


def _queue_delivery_credit(order: OnlineOrder) -> list:
    flipped = db.session.execute(
        update(OnlineOrder)
        .where(OnlineOrder.id == order.id, OnlineOrder.coins_credited.is_(False))
        .values(coins_credited=True)
        .execution_options(synchronize_session="fetch")
    ).rowcount
    if flipped != 1:
        logger.info("coins for order %s already credited", order.order_code)
        return []

    earned = order.coins_earned
    if earned is None:
        earned = coin_service.calculate_coins_earned(order.items)
        order.coins_earned = earned
    if earned <= 0:
        return []

    task = outbox.enqueue(outbox.CREDIT_COINS, {
        "userId": order.created_by,
        "coins": int(earned),
        "orderId": order.id,
        "orderType": "OnlineStore",
    })
    return [task.id]


# ---- returns ---------------------------------------------------------------

def _days_since(created_at: datetime) -> int:
    delta = abs((datetime.utcnow() - created_at).total_seconds())
    return math.ceil(delta / 86400)


def request_return(order: OnlineOrder, reason: str, comment=None, return_image=None) -> ReturnRequest:
    if not (reason or "").strip():
        raise ValidationError("Reason can't be empty")
    if order.status == "Cancelled":
        raise InvalidStatus("Cancelled order can't be returned")
    if order.is_return and order.return_status not in ("Cancelled", "Rejected"):
        raise InvalidStatus("Return already requested for this order")

    window = current_app.config["RETURN_WINDOW_DAYS"]
    if order.created_at and _days_since(order.created_at) > window:
        raise ValidationError(f"Order can't be return after {window} days")

    record = ReturnRequest(order_id=order.id, reason=reason.strip(),
                           comment=comment or None, return_image=return_image or None)
    db.session.add(record)
    order.return_status = "Pending"
    order.is_return = True
    db.session.commit()
    logger.info("return requested for order %s", order.order_code)
    return record


def cancel_return(order: OnlineOrder):
    if order.return_status == "Approved":
        raise InvalidStatus("Return order already accepted by admin")
    if order.return_status != "Pending":
        raise InvalidStatus("No pending return to cancel")
    order.return_status = "Cancelled"
    db.session.commit()


def change_return_status(order: OnlineOrder, new_status: str, admin_id: int | None = None):
    if new_status not in ADMIN_RETURN_STATUSES:
        raise InvalidStatus("Please enter valid return status")
    if not order.is_return:
        raise InvalidStatus("No return requested for this order")

    if new_status == "Success":
        return refund_service.settle_return(order, admin_id=admin_id)

    order.return_status = new_status
    db.session.commit()
    logger.info("return for order %s -> %s", order.order_code, new_status)
    return None

