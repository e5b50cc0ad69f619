"""Payment gateway port.

Checkout, cancellation and the webhook endpoint only talk to this
interface; the Cashfree adapter and the in-memory fake both implement it.
"""

import base64
import hashlib
import hmac
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal


@dataclass(frozen=True)
class SessionResult:
    """A payment session the client app completes with the gateway SDK."""

    session_id: str
    external_order_id: str
    raw: dict = field(default_factory=dict)


@dataclass(frozen=True)
class RefundResult:
    """Outcome of a refund the gateway gave a definite answer about."""

    success: bool
    refund_id: str | None = None
    status: str | None = None
    response: dict | None = None
    failure_reason: str | None = None


def compute_signature(secret: str, timestamp: str, raw_body: bytes) -> str:
    """base64(HMAC-SHA256(secret, timestamp + body)), the webhook signature scheme."""
    msg = (timestamp or "").encode() + (raw_body or b"")
    digest = hmac.new((secret or "").encode(), msg, hashlib.sha256).digest()
    return base64.b64encode(digest).decode()


class PaymentGateway(ABC):
    """Abstract payment gateway interface."""

    webhook_secret: str = ""

    @abstractmethod
    def create_session(
        self,
        amount: Decimal,
        currency: str,
        metadata: dict,
        customer: dict,
    ) -> SessionResult:
        """Open a payment session. Raises ExternalServiceError when the gateway refuses."""
        ...

    @abstractmethod
    def refund(self, external_order_id: str, amount: Decimal, refund_id: str) -> RefundResult:
        """
        Refund a paid order in full. Raises GatewayTimeout when the outcome is
        unknown; a definite refusal comes back as RefundResult(success=False).
        """
        ...

    @abstractmethod
    def get_refund(self, external_order_id: str, refund_id: str) -> RefundResult | None:
        """Look a refund up by our refund id. None when the gateway has no such refund."""
        ...

    def verify_webhook_signature(self, raw_body: bytes, timestamp: str, signature: str) -> bool:
        if not signature or not timestamp or not self.webhook_secret:
            return False
        expected = compute_signature(self.webhook_secret, timestamp, raw_body)
        return hmac.compare_digest(expected, signature)
