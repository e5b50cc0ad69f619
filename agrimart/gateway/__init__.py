"""Payment gateway factory.

`init_gateway(app)` picks the adapter from PAYMENT_GATEWAY ("cashfree" or
"fake"); `get_gateway()` returns the one bound to the current app and
`set_gateway()` swaps it.
"""

from flask import current_app

from .cashfree import CashfreeGateway
from .fake import FakeGateway
from .port import PaymentGateway, RefundResult, SessionResult, compute_signature

_EXT_KEY = "payment_gateway"


def build_gateway(config) -> PaymentGateway:
    kind = (config.get("PAYMENT_GATEWAY") or "fake").lower()
    if kind == "cashfree":
        return CashfreeGateway.from_config(config)
    if kind == "fake":
        return FakeGateway(webhook_secret=config.get("CF_CLIENT_SECRET") or "")
    raise ValueError(f"unknown PAYMENT_GATEWAY: {kind}")


def init_gateway(app) -> None:
    app.extensions[_EXT_KEY] = build_gateway(app.config)


def get_gateway() -> PaymentGateway:
    return current_app.extensions[_EXT_KEY]


def set_gateway(gateway: PaymentGateway, app=None) -> None:
    (app or current_app).extensions[_EXT_KEY] = gateway


__all__ = [
    "PaymentGateway",
    "SessionResult",
    "RefundResult",
    "CashfreeGateway",
    "FakeGateway",
    "compute_signature",
    "build_gateway",
    "init_gateway",
    "get_gateway",
    "set_gateway",
]
