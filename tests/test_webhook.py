import json

import pytest

from agrimart.gateway import compute_signature
from agrimart.model import Payment, Refund
from agrimart.services import order_service, refund_service
from agrimart.services.refund_service import MANUAL_REFUND_NOTE

SECRET = "test-webhook-secret"
TIMESTAMP = "1760000000000"


def _event(external_order_id, payment_id="cf_pay_1", status="SUCCESS", for_payment="OnlineStore", amount=450):
    return {
        "type": "PAYMENT_SUCCESS_WEBHOOK",
        "data": {
            "order": {
                "order_id": external_order_id,
                "order_amount": amount,
                "order_tags": {"forPayment": for_payment},
            },
            "payment": {
                "cf_payment_id": payment_id,
                "payment_status": status,
                "payment_amount": amount,
            },
        },
    }


def _post(client, event, secret=SECRET):
    raw = json.dumps(event).encode()
    return client.post(
        "/payment/webhook",
        data=raw,
        content_type="application/json",
        headers={
            "x-webhook-timestamp": TIMESTAMP,
            "x-webhook-signature": compute_signature(secret, TIMESTAMP, raw),
        },
    )


@pytest.fixture()
def pending_order(customer, address_of, catalogue, fill_cart):
    fill_cart(customer, catalogue.kg, 2)
    return order_service.place_order(customer, address_of(customer).id)


class TestWebhookEndpoint:
    def test_bad_signature(self, client, pending_order):
        r = _post(client, _event(pending_order.external_order_id), secret="wrong")
        assert r.status_code == 400
        assert r.get_json()["message"] == "Webhook signature is not verified"
        assert Payment.query.count() == 0

    def test_missing_signature(self, client, pending_order):
        r = client.post("/payment/webhook", json=_event(pending_order.external_order_id))
        assert r.status_code == 400

    def test_success_records_payment(self, client, pending_order):
        r = _post(client, _event(pending_order.external_order_id))
        assert r.status_code == 200
        assert r.get_json()["data"] == {"orderId": pending_order.order_code, "duplicate": False}

        assert pending_order.payment_status == "SUCCESS"
        payment = Payment.query.one()
        assert payment.online_order_id == pending_order.id
        assert payment.cfo_order_id == pending_order.external_order_id
        assert payment.gateway_payment_id == "cf_pay_1"
        assert payment.payment_response["order"]["order_id"] == pending_order.external_order_id

    @pytest.mark.parametrize("raw, mapped", [
        ("FAILED", "FAILED"),
        ("USER_DROPPED", "FAILED"),
        ("CANCELLED", "FAILED"),
        ("NOT_ATTEMPTED", "PENDING"),
    ])
    def test_status_mapping(self, client, pending_order, raw, mapped):
        _post(client, _event(pending_order.external_order_id, status=raw))
        assert pending_order.payment_status == mapped
        assert Payment.query.one().payment_status == mapped

    def test_redelivery_is_a_no_op(self, client, pending_order):
        event = _event(pending_order.external_order_id)
        _post(client, event)
        r = _post(client, event)
        assert r.status_code == 200
        assert r.get_json()["data"]["duplicate"] is True
        assert Payment.query.count() == 1

    def test_other_payment_kinds_are_acknowledged(self, client, pending_order):
        r = _post(client, _event(pending_order.external_order_id, for_payment="Premium"))
        assert r.status_code == 200
        assert Payment.query.count() == 0
        assert pending_order.payment_status == "PENDING"

    def test_unknown_order_is_acknowledged(self, client, app):
        r = _post(client, _event("no_such_order"))
        assert r.status_code == 200
        assert r.get_json()["message"] == "Order not found, webhook acknowledged"
        assert Payment.query.count() == 0

    def test_paid_order_can_be_refunded_on_cancel(self, client, auth, customer, pending_order, gateway):
        _post(client, _event(pending_order.external_order_id))
        r = client.patch(f"/orders/{pending_order.id}/cancel", headers=auth(customer))
        assert r.get_json()["data"]["refund"] is True
        assert gateway.calls_to("refund")[0]["external_order_id"] == pending_order.external_order_id


class TestPaymentAfterCancellation:
    def test_late_capture_is_refunded(self, client, pending_order, gateway):
        assert refund_service.cancel_order(pending_order).refunded is False

        r = _post(client, _event(pending_order.external_order_id))
        assert r.status_code == 200
        assert r.get_json()["message"] == "Payment captured for a cancelled order was refunded"

        assert pending_order.status == "Cancelled"
        assert pending_order.payment_status == "SUCCESS"
        assert pending_order.refund is True
        assert len(gateway.calls_to("refund")) == 1
        assert Refund.query.filter_by(online_order_id=pending_order.id).one().cancelled is True

        # redelivery must not pay out again
        _post(client, _event(pending_order.external_order_id))
        assert len(gateway.calls_to("refund")) == 1

    def test_failed_late_refund_is_logged_for_manual_processing(self, client, caplog, pending_order, gateway):
        refund_service.cancel_order(pending_order)
        gateway.configure(refund="fail")

        with caplog.at_level("ERROR", logger="agrimart.services.refund_service"):
            r = _post(client, _event(pending_order.external_order_id))
        assert r.status_code == 200
        assert pending_order.refund is False
        assert Payment.query.one().refund is False
        assert MANUAL_REFUND_NOTE in caplog.text

    def test_failed_payment_on_cancelled_order_is_left_alone(self, client, pending_order, gateway):
        refund_service.cancel_order(pending_order)
        _post(client, _event(pending_order.external_order_id, status="FAILED"))
        assert gateway.calls_to("refund") == []
