"""In-memory payment gateway for development and tests.

Behaviour can be switched at runtime: every call can be made to succeed,
fail with a definite refusal, or time out. All calls are recorded.
"""

from uuid import uuid4

from ..errors import ExternalServiceError, GatewayTimeout
from .port import PaymentGateway, RefundResult, SessionResult

MODES = ("succeed", "fail", "timeout")


class FakeGateway(PaymentGateway):
    """Configurable fake payment gateway."""

    def __init__(self, webhook_secret: str = "") -> None:
        self.webhook_secret = webhook_secret
        self.session_mode = "succeed"
        self.refund_mode = "succeed"
        # refunds the "gateway" has actually applied, even when the caller timed out
        self.refunds: dict[str, RefundResult] = {}
        self.apply_on_timeout = False
        self.failure_reason = "Gateway refused the request"
        self.calls: list[dict] = []

    def configure(self, session: str | None = None, refund: str | None = None,
                  failure_reason: str | None = None, apply_on_timeout: bool | None = None) -> None:
        for mode in (session, refund):
            if mode is not None and mode not in MODES:
                raise ValueError(f"mode must be one of {MODES}")
        if session is not None:
            self.session_mode = session
        if refund is not None:
            self.refund_mode = refund
        if failure_reason is not None:
            self.failure_reason = failure_reason
        if apply_on_timeout is not None:
            self.apply_on_timeout = apply_on_timeout

    def calls_to(self, method: str) -> list[dict]:
        return [c for c in self.calls if c["method"] == method]

    def create_session(self, amount, currency, metadata, customer) -> SessionResult:
        self.calls.append({
            "method": "create_session",
            "amount": amount,
            "currency": currency,
            "metadata": metadata,
            "customer": customer,
        })
        if self.session_mode == "timeout":
            raise GatewayTimeout()
        if self.session_mode == "fail":
            raise ExternalServiceError(self.failure_reason)
        ext = f"fake_order_{uuid4().hex[:12]}"
        return SessionResult(
            session_id=f"fake_session_{uuid4().hex[:16]}",
            external_order_id=ext,
            raw={"order_id": ext, "order_amount": float(amount), "order_currency": currency},
        )

    def refund(self, external_order_id, amount, refund_id) -> RefundResult:
        self.calls.append({
            "method": "refund",
            "external_order_id": external_order_id,
            "amount": amount,
            "refund_id": refund_id,
        })
        applied = RefundResult(
            success=True,
            refund_id=refund_id,
            status="SUCCESS",
            response={"refund_id": refund_id, "order_id": external_order_id,
                      "refund_amount": float(amount), "refund_status": "SUCCESS"},
        )
        if self.refund_mode == "timeout":
            if self.apply_on_timeout:
                self.refunds[refund_id] = applied
            raise GatewayTimeout()
        if self.refund_mode == "fail":
            return RefundResult(success=False, refund_id=refund_id, failure_reason=self.failure_reason)
        self.refunds[refund_id] = applied
        return applied

    def get_refund(self, external_order_id, refund_id) -> RefundResult | None:
        self.calls.append({
            "method": "get_refund",
            "external_order_id": external_order_id,
            "refund_id": refund_id,
        })
        return self.refunds.get(refund_id)
