# agrimart/services/refund_service.py
"""
Cancellation and return refunds.

Cancelling always succeeds from the customer's side: the order is claimed as
Cancelled first, then the gateway refund is attempted. A refund that fails or
whose outcome cannot be confirmed leaves the order cancelled with
refund=False and a note for manual processing.
"""
import logging
import time
from dataclasses import dataclass

from flask import current_app
from sqlalchemy import update

from ..errors import AlreadyCancelled, ExternalServiceError, GatewayTimeout, InvalidStatus
from ..extensions import db
from ..gateway import RefundResult, get_gateway
from ..model import OnlineOrder, Payment, Refund
from . import outbox

logger = logging.getLogger(__name__)

MANUAL_REFUND_NOTE = "Order has been cancelled but refund needs manual processing."


@dataclass
class RefundOutcome:
    refunded: bool
    message: str
    refund_id: str | None = None
    note: str | None = None

    def as_api(self):
        data = {"refund": self.refunded, "refundId": self.refund_id}
        if self.note:
            data["note"] = self.note
            # clients open the support chat with this account
            data["supportAdminId"] = current_app.config.get("SUPPORT_ADMIN_ID")
        return data


def _dig(doc, *path):
    cur = doc
    for key in path:
        if not isinstance(cur, dict):
            return None
        cur = cur.get(key)
    return cur


# Payment rows carry the gateway order id in whichever shape was current when
# they were written; newest first.
_EXTERNAL_ID_SHAPES = (
    lambda p: _dig(p.payment_response, "order", "order_id"),
    lambda p: _dig(p.legacy_payment_response, "order", "order_id"),
    lambda p: p.cfo_order_id,
)


def external_order_id_for(payment: Payment | None, order: OnlineOrder | None = None) -> str | None:
    if payment is not None:
        for shape in _EXTERNAL_ID_SHAPES:
            value = shape(payment)
            if value:
                return str(value)
    if order is not None and order.external_order_id:
        return str(order.external_order_id)
    return None


def payment_for(order: OnlineOrder) -> Payment | None:
    return (
        Payment.query.filter_by(online_order_id=order.id)
        .order_by(Payment.id.desc())
        .first()
    )


def new_refund_id(order: OnlineOrder) -> str:
    return f"REFUND_{int(time.time() * 1000)}_{str(order.id)[-6:]}"


def issue_refund(external_order_id: str, amount, refund_id: str) -> RefundResult:
    """
    Ask the gateway for a refund. A timeout is an unknown outcome, so the
    refund id is looked up before anything is decided.
    """
    gateway = get_gateway()
    try:
        result = gateway.refund(external_order_id, amount, refund_id)
    except GatewayTimeout:
        logger.warning("refund %s for %s timed out, checking gateway", refund_id, external_order_id)
        try:
            found = gateway.get_refund(external_order_id, refund_id)
        except ExternalServiceError as e:
            logger.error("refund %s lookup failed: %s", refund_id, e)
            found = None
        if found and found.success:
            logger.info("refund %s was applied despite the timeout", refund_id)
            return found
        return RefundResult(success=False, refund_id=refund_id, failure_reason="Refund outcome unknown")
    except ExternalServiceError as e:
        logger.error("refund %s for %s failed: %s", refund_id, external_order_id, e)
        return RefundResult(success=False, refund_id=refund_id, failure_reason=e.message)

    if result.success:
        logger.info("refund %s for %s accepted (%s)", refund_id, external_order_id, result.status)
    else:
        logger.error("refund %s for %s refused: %s", refund_id, external_order_id, result.failure_reason)
    return result


def _record_refund(order: OnlineOrder, payment: Payment, external_order_id: str, result: RefundResult,
                   *, cancelled=False, rejected=False, admin_id=None):
    db.session.add(Refund(
        type="OnlineStore",
        external_order_id=external_order_id,
        external_refund_response=result.response,
        user_id=order.created_by,
        online_order_id=order.id,
        amount=order.grand_total,
        refund_id=result.refund_id,
        cancelled=cancelled,
        rejected=rejected,
        admin_id=admin_id,
    ))
    payment.refund = True
    payment.refund_id = result.refund_id
    order.refund = True
    order.refund_id = result.refund_id


def _claim_payment(order: OnlineOrder):
    """
    Flip the captured payment's refund flag before the gateway is called.
    Only the caller that flips it may issue a refund; a failed refund hands
    the flag back with `_release_payment`.
    """
    payment = payment_for(order)
    if not payment or payment.payment_status != "SUCCESS" or payment.refund or order.refund:
        return None, None
    external_id = external_order_id_for(payment, order)
    if not external_id:
        return None, None

    claimed = db.session.execute(
        update(Payment)
        .where(Payment.id == payment.id, Payment.refund.is_(False))
        .values(refund=True)
        .execution_options(synchronize_session="fetch")
    ).rowcount
    db.session.commit()
    if claimed != 1:
        logger.info("payment %s is already being refunded", payment.id)
        return None, None
    return payment, external_id


def _release_payment(payment: Payment):
    payment.refund = False
    db.session.commit()


def cancel_order(order: OnlineOrder) -> RefundOutcome:
    # first request wins; a concurrent second cancel sees rowcount 0
    claimed = db.session.execute(
        update(OnlineOrder)
        .where(OnlineOrder.id == order.id, OnlineOrder.status != "Cancelled", OnlineOrder.refund.is_(False))
        .values(status="Cancelled")
        .execution_options(synchronize_session="fetch")
    ).rowcount
    if claimed != 1:
        db.session.rollback()
        if order.status == "Cancelled":
            raise AlreadyCancelled()
        raise InvalidStatus("Order already refunded")

    tasks = []
    if (order.coin_used or 0) > 0:
        tasks.append(outbox.enqueue(outbox.REFUND_COINS, {
            "userId": order.created_by,
            "coins": int(order.coin_used),
            "orderId": order.id,
            "orderType": "OnlineStore",
            "key": f"refund:OnlineStore:{order.id}",
        }).id)
    db.session.commit()
    logger.info("order %s cancelled", order.order_code)

    try:
        payment, external_id = _claim_payment(order)
        if not payment:
            return RefundOutcome(
                refunded=False,
                message="Order cancelled successfully. Payment was not captured, so no refund required.",
            )

        result = issue_refund(external_id, order.grand_total, new_refund_id(order))
        if not result.success:
            _release_payment(payment)
            return RefundOutcome(
                refunded=False,
                message="Order cancelled. Refund processing failed, please contact support.",
                refund_id=result.refund_id,
                note=MANUAL_REFUND_NOTE,
            )

        _record_refund(order, payment, external_id, result, cancelled=True)
        db.session.commit()
        return RefundOutcome(refunded=True, refund_id=result.refund_id,
                             message="Order cancelled and refund processed successfully")
    finally:
        outbox.dispatch_all(tasks)


def refund_late_capture(order: OnlineOrder) -> RefundOutcome | None:
    """Send back a payment the gateway captured after the order was cancelled."""
    payment, external_id = _claim_payment(order)
    if not payment:
        return None

    result = issue_refund(external_id, order.grand_total, new_refund_id(order))
    if not result.success:
        _release_payment(payment)
        logger.error("order %s was paid after cancellation. %s", order.order_code, MANUAL_REFUND_NOTE)
        return RefundOutcome(refunded=False, refund_id=result.refund_id, note=MANUAL_REFUND_NOTE,
                             message="Payment captured for a cancelled order. Refund processing failed.")

    _record_refund(order, payment, external_id, result, cancelled=True)
    db.session.commit()
    logger.info("payment captured after cancelling order %s refunded as %s", order.order_code, result.refund_id)
    return RefundOutcome(refunded=True, refund_id=result.refund_id,
                         message="Payment captured for a cancelled order was refunded")


def settle_return(order: OnlineOrder, admin_id: int | None = None) -> RefundOutcome:
    """Refund an approved return. Runs when an admin moves the return to Success."""
    claimed = db.session.execute(
        update(OnlineOrder)
        .where(OnlineOrder.id == order.id, OnlineOrder.return_status != "Success",
               OnlineOrder.refund.is_(False))
        .values(return_status="Success")
        .execution_options(synchronize_session="fetch")
    ).rowcount
    if claimed != 1:
        db.session.rollback()
        raise InvalidStatus("Return already settled")
    db.session.commit()

    payment, external_id = _claim_payment(order)
    if not payment:
        logger.warning("return for order %s settled without a captured payment", order.order_code)
        return RefundOutcome(refunded=False, message="Return settled. No captured payment to refund.",
                             note=MANUAL_REFUND_NOTE)

    result = issue_refund(external_id, order.grand_total, new_refund_id(order))
    if not result.success:
        _release_payment(payment)
        return RefundOutcome(refunded=False, refund_id=result.refund_id, note=MANUAL_REFUND_NOTE,
                             message="Return settled. Refund processing failed, please contact support.")

    _record_refund(order, payment, external_id, result, rejected=True, admin_id=admin_id)
    db.session.commit()
    return RefundOutcome(refunded=True, refund_id=result.refund_id,
                         message="Return settled and refund processed successfully")
