from datetime import datetime, timedelta

import pytest

from agrimart.errors import InvalidStatus, ValidationError
from agrimart.extensions import db
from agrimart.model import Refund, ReturnRequest
from agrimart.services import order_service, refund_service


@pytest.fixture()
def delivered(customer, address_of, catalogue, fill_cart):
    fill_cart(customer, catalogue.kg, 2)
    order = order_service.place_order(customer, address_of(customer).id)
    order_service.change_order_status(order, "Delivered")
    return order


def _age(order, **delta):
    order.created_at = datetime.utcnow() - timedelta(**delta)
    db.session.commit()


class TestRequestReturn:
    def test_within_window(self, client, auth, customer, delivered):
        r = client.post(f"/orders/{delivered.id}/return",
                        json={"reason": "Damaged", "comment": "Box was crushed"}, headers=auth(customer))
        assert r.status_code == 201
        data = r.get_json()["data"]
        assert data["order"]["returnStatus"] == "Pending"
        assert data["order"]["isReturn"] is True
        assert ReturnRequest.query.filter_by(order_id=delivered.id).one().reason == "Damaged"

    def test_just_inside_window(self, delivered):
        _age(delivered, days=6, hours=23)
        order_service.request_return(delivered, "Wrong item")
        assert delivered.return_status == "Pending"

    def test_outside_window(self, client, auth, customer, delivered):
        _age(delivered, days=8)
        r = client.post(f"/orders/{delivered.id}/return", json={"reason": "Late"}, headers=auth(customer))
        assert r.status_code == 400
        assert r.get_json()["message"] == "Order can't be return after 7 days"
        assert ReturnRequest.query.count() == 0

    def test_reason_required(self, delivered):
        with pytest.raises(ValidationError):
            order_service.request_return(delivered, "  ")

    def test_second_request_refused_while_pending(self, delivered):
        order_service.request_return(delivered, "Damaged")
        with pytest.raises(InvalidStatus):
            order_service.request_return(delivered, "Damaged again")


class TestCancelReturn:
    def test_cancel_pending_return(self, client, auth, customer, delivered):
        order_service.request_return(delivered, "Changed my mind")
        r = client.patch(f"/orders/{delivered.id}/return/cancel", headers=auth(customer))
        assert r.status_code == 200
        assert r.get_json()["data"]["returnStatus"] == "Cancelled"

    def test_cannot_cancel_approved_return(self, client, auth, customer, admin, delivered):
        order_service.request_return(delivered, "Damaged")
        client.patch(f"/orders/{delivered.id}/return-status", json={"status": "Approved"}, headers=auth(admin))

        r = client.patch(f"/orders/{delivered.id}/return/cancel", headers=auth(customer))
        assert r.status_code == 400
        assert r.get_json()["message"] == "Return order already accepted by admin"
        assert delivered.return_status == "Approved"


class TestAdminReturnStatus:
    def test_success_refunds_the_payment(self, client, auth, admin, customer, delivered, mark_paid, gateway):
        mark_paid(delivered)
        order_service.request_return(delivered, "Damaged")
        h = auth(admin)

        assert client.patch(f"/orders/{delivered.id}/return-status",
                            json={"status": "PickedUp"}, headers=h).status_code == 200
        r = client.patch(f"/orders/{delivered.id}/return-status", json={"status": "Success"}, headers=h)
        assert r.status_code == 200
        data = r.get_json()["data"]
        assert data["returnStatus"] == "Success"
        assert data["refund"] is True

        refund = Refund.query.filter_by(online_order_id=delivered.id).one()
        assert refund.rejected is True
        assert refund.cancelled is False
        assert refund.admin_id == admin.id
        assert len(gateway.calls_to("refund")) == 1
        # earned coins stay with the buyer
        assert customer.coins == 20

    def test_success_twice_is_refused(self, admin, delivered, mark_paid, gateway):
        mark_paid(delivered)
        order_service.request_return(delivered, "Damaged")
        order_service.change_return_status(delivered, "Success", admin_id=admin.id)
        with pytest.raises(InvalidStatus):
            order_service.change_return_status(delivered, "Success", admin_id=admin.id)
        assert len(gateway.calls_to("refund")) == 1

    def test_unknown_return_status(self, delivered):
        order_service.request_return(delivered, "Damaged")
        with pytest.raises(InvalidStatus):
            order_service.change_return_status(delivered, "Pending")

    def test_no_return_requested(self, delivered):
        with pytest.raises(InvalidStatus):
            order_service.change_return_status(delivered, "Approved")

    def test_only_admin(self, client, auth, courier, delivered):
        r = client.patch(f"/orders/{delivered.id}/return-status", json={"status": "Approved"},
                         headers=auth(courier))
        assert r.status_code == 403


class TestPaidOrderIsRefundedOnce:
    def test_cancelled_order_cannot_be_returned(self, delivered, mark_paid, gateway):
        mark_paid(delivered)
        assert refund_service.cancel_order(delivered).refunded is True

        with pytest.raises(InvalidStatus, match="Cancelled order"):
            order_service.request_return(delivered, "Damaged")
        assert len(gateway.calls_to("refund")) == 1

    def test_returned_order_cannot_be_cancelled(self, admin, delivered, mark_paid, gateway):
        mark_paid(delivered)
        order_service.request_return(delivered, "Damaged")
        assert order_service.change_return_status(delivered, "Success", admin_id=admin.id).refunded is True

        with pytest.raises(InvalidStatus, match="already refunded"):
            order_service.change_order_status(delivered, "Cancelled")
        assert delivered.status == "Delivered"
        assert len(gateway.calls_to("refund")) == 1
        assert Refund.query.count() == 1

    def test_cancel_during_pending_return_blocks_settlement(self, admin, delivered, mark_paid, gateway):
        mark_paid(delivered)
        order_service.request_return(delivered, "Damaged")
        assert refund_service.cancel_order(delivered).refunded is True

        with pytest.raises(InvalidStatus):
            order_service.change_return_status(delivered, "Success", admin_id=admin.id)
        assert len(gateway.calls_to("refund")) == 1
        assert Refund.query.filter_by(online_order_id=delivered.id).one().cancelled is True
