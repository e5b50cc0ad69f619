# agrimart/services/payment_service.py
"""Gateway webhook handling. Gateways redeliver, so every path here is idempotent."""
import json
import logging
from dataclasses import dataclass

from sqlalchemy.exc import IntegrityError

from ..errors import ValidationError
from ..extensions import db
from ..gateway import get_gateway
from ..model import OnlineOrder, Payment
from ..utils.money import D
from . import coin_service, refund_service

logger = logging.getLogger(__name__)

_STATUS_MAP = {
    "SUCCESS": "SUCCESS",
    "FAILED": "FAILED",
    "USER_DROPPED": "FAILED",
    "CANCELLED": "FAILED",
}


@dataclass
class WebhookAck:
    message: str
    order_code: str | None = None
    duplicate: bool = False

    def as_api(self):
        return {"orderId": self.order_code, "duplicate": self.duplicate}


def _get(doc, *path):
    for key in path:
        if not isinstance(doc, dict):
            return None
        doc = doc.get(key)
    return doc


def handle_webhook(raw_body: bytes, timestamp: str, signature: str) -> WebhookAck:
    if not get_gateway().verify_webhook_signature(raw_body, timestamp, signature):
        logger.warning("webhook rejected: bad signature")
        raise ValidationError("Webhook signature is not verified")

    try:
        body = json.loads(raw_body or b"{}")
    except ValueError:
        raise ValidationError("Webhook body is not valid JSON")
    data = body.get("data") or {}

    for_payment = _get(data, "order", "order_tags", "forPayment")
    if for_payment != "OnlineStore":
        logger.info("webhook for %r ignored", for_payment)
        return WebhookAck(message="Webhook acknowledged")

    external_id = _get(data, "payment_gateway_details", "gateway_order_id") or _get(data, "order", "order_id")
    gateway_payment_id = _get(data, "payment", "cf_payment_id")
    raw_status = (_get(data, "payment", "payment_status") or "").upper()
    status = _STATUS_MAP.get(raw_status, "PENDING")
    logger.info("webhook: order=%s payment=%s status=%s", external_id, gateway_payment_id, raw_status)

    if gateway_payment_id is not None:
        gateway_payment_id = str(gateway_payment_id)
        if Payment.query.filter_by(gateway_payment_id=gateway_payment_id).first():
            return WebhookAck(message="Payment already recorded", duplicate=True)

    order = OnlineOrder.query.filter_by(external_order_id=external_id).first() if external_id else None
    if not order:
        # acknowledge anyway, a non-2xx only makes the gateway retry forever
        logger.warning("webhook for unknown gateway order %s", external_id)
        return WebhookAck(message="Order not found, webhook acknowledged")

    order.payment_status = status
    if order.coins_earned is None:
        order.coins_earned = coin_service.calculate_coins_earned(order.items)

    db.session.add(Payment(
        type="OnlineStore",
        user_id=order.created_by,
        online_order_id=order.id,
        order_code=order.order_code,
        payment_response=data,
        cfo_order_id=external_id,
        gateway_payment_id=gateway_payment_id,
        payment_status=status,
        amount=D(_get(data, "payment", "payment_amount") or order.grand_total),
    ))
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        logger.info("payment %s recorded by a concurrent delivery", gateway_payment_id)
        return WebhookAck(message="Payment already recorded", order_code=order.order_code, duplicate=True)

    # the customer cancelled before the gateway captured the money
    if status == "SUCCESS" and order.status == "Cancelled":
        outcome = refund_service.refund_late_capture(order)
        if outcome is not None:
            return WebhookAck(message=outcome.message, order_code=order.order_code)

    return WebhookAck(message="Payment created successfully", order_code=order.order_code)
