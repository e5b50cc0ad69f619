"""
Cashfree PG client.

Endpoints (relative to CF_BASE_URL, which points at .../pg/orders):
    - POST /                              - create order, returns payment_session_id
    - POST /{order_id}/refunds            - refund an order
    - GET  /{order_id}/refunds/{refund_id} - refund status

Every call carries x-api-version / x-client-id / x-client-secret and runs
under PAYMENT_GATEWAY_TIMEOUT.
"""

import logging
from decimal import Decimal
from typing import Any

import httpx

from ..errors import ExternalServiceError, GatewayTimeout
from .port import PaymentGateway, RefundResult, SessionResult

logger = logging.getLogger(__name__)


class CashfreeGateway(PaymentGateway):
    def __init__(self, base_url: str, client_id: str, client_secret: str,
                 api_version: str = "2023-08-01", timeout: float = 30,
                 transport: httpx.BaseTransport | None = None):
        self._base_url = base_url.rstrip("/")
        self._client_id = client_id
        self._client_secret = client_secret
        self._api_version = api_version
        self._timeout = timeout
        self._transport = transport
        self.webhook_secret = client_secret

        if not client_id or not client_secret:
            logger.error("CF_CLIENT_ID / CF_CLIENT_SECRET not configured")

    @classmethod
    def from_config(cls, config) -> "CashfreeGateway":
        return cls(
            base_url=config["CF_BASE_URL"],
            client_id=config["CF_CLIENT_ID"],
            client_secret=config["CF_CLIENT_SECRET"],
            api_version=config["CF_API_VERSION"],
            timeout=config["PAYMENT_GATEWAY_TIMEOUT"],
        )

    def _headers(self) -> dict[str, str]:
        return {
            "x-api-version": self._api_version,
            "x-client-id": self._client_id,
            "x-client-secret": self._client_secret,
            "Content-Type": "application/json",
        }

    def _request(self, method: str, path: str, json: dict | None = None) -> httpx.Response:
        url = f"{self._base_url}{path}"
        try:
            with httpx.Client(headers=self._headers(), timeout=self._timeout,
                              transport=self._transport) as client:
                return client.request(method, url, json=json)
        except httpx.TimeoutException as e:
            logger.error("cashfree timeout on %s %s: %s", method, path or "/", e)
            raise GatewayTimeout(f"Payment gateway timed out: {e}") from e
        except httpx.HTTPError as e:
            logger.error("cashfree connection error on %s %s: %s", method, path or "/", e)
            raise ExternalServiceError(f"Could not reach payment gateway: {e}") from e

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            return response.json().get("message") or response.text
        except ValueError:
            return response.text

    def create_session(self, amount: Decimal, currency: str, metadata: dict, customer: dict) -> SessionResult:
        payload: dict[str, Any] = {
            "order_currency": currency,
            "order_amount": float(amount),
            "order_tags": {k: "" if v is None else str(v) for k, v in metadata.items()},
            "customer_details": customer,
        }
        logger.info("creating cashfree order: amount=%s user=%s", amount, customer.get("customer_id"))
        response = self._request("POST", "", json=payload)

        if response.status_code >= 400:
            msg = self._error_message(response)
            logger.error("cashfree create order failed (%s): %s", response.status_code, msg)
            raise ExternalServiceError(f"Payment session could not be created: {msg}")

        data = response.json()
        logger.info("cashfree order created: %s", data.get("order_id"))
        return SessionResult(
            session_id=data.get("payment_session_id"),
            external_order_id=data.get("order_id"),
            raw=data,
        )

    def refund(self, external_order_id: str, amount: Decimal, refund_id: str) -> RefundResult:
        if not self._client_id or not self._client_secret:
            return RefundResult(success=False, refund_id=refund_id,
                                failure_reason="Payment gateway credentials not configured")

        logger.info("requesting cashfree refund %s for %s (%s)", refund_id, external_order_id, amount)
        response = self._request(
            "POST",
            f"/{external_order_id}/refunds",
            json={"refund_amount": float(amount), "refund_id": refund_id},
        )
        if response.status_code >= 400:
            msg = self._error_message(response)
            logger.warning("cashfree refund %s refused (%s): %s", refund_id, response.status_code, msg)
            return RefundResult(success=False, refund_id=refund_id, failure_reason=msg)

        data = response.json()
        return RefundResult(success=True, refund_id=refund_id,
                            status=data.get("refund_status"), response=data)

    def get_refund(self, external_order_id: str, refund_id: str) -> RefundResult | None:
        response = self._request("GET", f"/{external_order_id}/refunds/{refund_id}")
        if response.status_code == 404:
            return None
        if response.status_code >= 400:
            raise ExternalServiceError(f"Refund lookup failed: {self._error_message(response)}")

        data = response.json()
        status = data.get("refund_status")
        return RefundResult(success=status != "CANCELLED", refund_id=refund_id,
                            status=status, response=data)
