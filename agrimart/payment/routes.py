# agrimart/payment/routes.py
from flask import request

from ..services import payment_service
from ..utils.api import ok
from . import bp


@bp.post("/webhook")
def webhook():
    """
    Called by the payment gateway, not by users: no JWT, the HMAC signature
    in x-webhook-signature / x-webhook-timestamp authenticates the body.
    """
    ack = payment_service.handle_webhook(
        request.get_data(cache=True),
        request.headers.get("x-webhook-timestamp", ""),
        request.headers.get("x-webhook-signature", ""),
    )
    return ok(ack.message, ack.as_api())
