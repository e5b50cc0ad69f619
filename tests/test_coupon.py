from decimal import Decimal

import pytest

from agrimart.errors import AlreadyUsed, BelowMinimum, NotFound
from agrimart.extensions import db
from agrimart.model import CouponCode, CouponHistory
from agrimart.services.coupon_service import redeem_coupon, validate_coupon


class TestValidateCoupon:
    def test_percentage_discount_below_cap(self, customer, coupon):
        result = validate_coupon(coupon.id, customer.id, 200)
        assert result.valid
        assert result.discount == Decimal("20.00")

    def test_discount_capped_by_upto(self, customer, coupon):
        result = validate_coupon(coupon.id, customer.id, 1000)
        assert result.discount == Decimal("30.00")

    def test_unknown_coupon(self, customer):
        result = validate_coupon(12345, customer.id, 500)
        assert not result.valid
        assert isinstance(result.error, NotFound)

    def test_deleted_coupon_is_not_found(self, customer, coupon):
        coupon.deleted = True
        db.session.commit()
        with pytest.raises(NotFound):
            validate_coupon(coupon.id, customer.id, 500).raise_for_error()

    def test_below_minimum(self, customer, coupon):
        result = validate_coupon(coupon.id, customer.id, 99)
        assert isinstance(result.error, BelowMinimum)

    def test_single_use_already_redeemed(self, customer, coupon):
        db.session.add(CouponHistory(coupon_id=coupon.id, user_id=customer.id))
        db.session.commit()
        result = validate_coupon(coupon.id, customer.id, 500)
        assert isinstance(result.error, AlreadyUsed)

    def test_already_used_is_checked_before_minimum(self, customer, coupon):
        db.session.add(CouponHistory(coupon_id=coupon.id, user_id=customer.id))
        db.session.commit()
        assert isinstance(validate_coupon(coupon.id, customer.id, 10).error, AlreadyUsed)

    def test_multi_use_coupon_ignores_history(self, customer):
        c = CouponCode(name="Always", code="ALWAYS5", discount=5, use="many")
        db.session.add(c)
        db.session.commit()
        db.session.add(CouponHistory(coupon_id=c.id, user_id=customer.id))
        db.session.commit()
        assert validate_coupon(c.id, customer.id, 100).discount == Decimal("5.00")

    def test_validation_never_writes(self, customer, coupon):
        validate_coupon(coupon.id, customer.id, 500)
        validate_coupon(coupon.id, customer.id, 500)
        assert CouponHistory.query.count() == 0


class TestRedeemCoupon:
    def test_second_redemption_raises(self, customer, coupon):
        redeem_coupon(coupon, customer.id)
        db.session.commit()
        with pytest.raises(AlreadyUsed):
            redeem_coupon(coupon, customer.id)
        assert CouponHistory.query.filter_by(coupon_id=coupon.id).count() == 1

    def test_multi_use_is_not_recorded(self, customer):
        c = CouponCode(name="Always", code="ALWAYS5", discount=5, use="many")
        db.session.add(c)
        db.session.commit()
        assert redeem_coupon(c, customer.id) is None


class TestCouponRoutes:
    def test_validate_endpoint(self, client, auth, customer, coupon):
        r = client.post("/coupons/validate", json={"couponId": coupon.id, "cartTotal": 250},
                        headers=auth(customer))
        assert r.status_code == 200
        body = r.get_json()
        assert body["data"]["discount"] == 25
        assert body["data"]["coupon"]["code"] == "SAVE10"

    def test_validate_endpoint_below_minimum(self, client, auth, customer, coupon):
        r = client.post("/coupons/validate", json={"couponId": coupon.id, "cartTotal": 50},
                        headers=auth(customer))
        assert r.status_code == 400
        assert r.get_json()["success"] is False

    def test_admin_creates_coupon(self, client, auth, admin):
        r = client.post("/coupons", json={
            "name": "Monsoon", "code": "RAIN20", "discount": 20, "upto": 100, "minPrice": 300, "use": "one",
        }, headers=auth(admin))
        assert r.status_code == 201
        assert r.get_json()["data"]["code"] == "RAIN20"

    def test_duplicate_code_is_case_insensitive(self, client, auth, admin, coupon):
        r = client.post("/coupons", json={"name": "Dup", "code": "save10", "discount": 5},
                        headers=auth(admin))
        assert r.status_code == 400

    def test_discount_over_hundred_rejected(self, client, auth, admin):
        r = client.post("/coupons", json={"name": "Bad", "code": "BAD", "discount": 150},
                        headers=auth(admin))
        assert r.status_code == 400

    def test_deleted_code_cannot_be_recreated(self, client, auth, admin, coupon):
        h = auth(admin)
        assert client.delete(f"/coupons/{coupon.id}", headers=h).status_code == 200
        r = client.post("/coupons", json={"name": "Again", "code": "SAVE10", "discount": 5}, headers=h)
        assert r.status_code == 400
        assert r.get_json()["message"] == "Coupon code already exists"

    @pytest.mark.parametrize("field, value", [("discount", "NaN"), ("upto", "Infinity"), ("minPrice", "NaN")])
    def test_non_finite_amounts_rejected(self, client, auth, admin, field, value):
        payload = {"name": "Odd", "code": "ODD", "discount": 5, field: value}
        r = client.post("/coupons", json=payload, headers=auth(admin))
        assert r.status_code == 400
        assert r.get_json()["message"] == f"{field} must be numeric"

    def test_customer_cannot_create(self, client, auth, customer):
        r = client.post("/coupons", json={"name": "X", "code": "X", "discount": 5}, headers=auth(customer))
        assert r.status_code == 403

    def test_delete_hides_coupon(self, client, auth, admin, customer, coupon):
        assert client.delete(f"/coupons/{coupon.id}", headers=auth(admin)).status_code == 200
        assert client.get(f"/coupons/{coupon.id}", headers=auth(customer)).status_code == 404
