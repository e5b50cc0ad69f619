from agrimart.extensions import db
from agrimart.model import CoinConfiguration
from agrimart.services import coin_service


class TestCoinBalance:
    def test_my_coins(self, client, auth, make_user, past_order):
        u = make_user(coins=10)
        order = past_order(u)
        coin_service.credit_coins(u.id, 15, order.id)
        db.session.commit()

        data = client.get("/coins", headers=auth(u)).get_json()["data"]
        assert data == {"totalCoins": 25, "coinsEarned": 15, "coinsUsed": 0, "coinsRefunded": 0}

    def test_history_is_scoped_to_the_caller(self, client, auth, make_user, admin, past_order):
        a, b = make_user(coins=50), make_user(coins=50)
        coin_service.deduct_coins(a.id, 5, past_order(a).id)
        coin_service.deduct_coins(b.id, 7, past_order(b).id)
        db.session.commit()

        items = client.get("/coins/history", headers=auth(a)).get_json()["data"]["items"]
        assert [e["coins"] for e in items] == [5]

        # userId is ignored for non-admins
        items = client.get(f"/coins/history?userId={b.id}", headers=auth(a)).get_json()["data"]["items"]
        assert [e["userId"] for e in items] == [a.id]

        items = client.get(f"/coins/history?userId={b.id}", headers=auth(admin)).get_json()["data"]["items"]
        assert [e["coins"] for e in items] == [7]

    def test_history_type_filter(self, client, auth, make_user, past_order):
        u = make_user(coins=50)
        order = past_order(u)
        coin_service.deduct_coins(u.id, 5, order.id)
        coin_service.refund_coins(u.id, 5, order.id)
        db.session.commit()

        items = client.get("/coins/history?type=Refunded", headers=auth(u)).get_json()["data"]["items"]
        assert [e["type"] for e in items] == ["Refunded"]
        assert client.get("/coins/history?type=Stolen", headers=auth(u)).status_code == 400
        assert client.get("/coins/history?orderType=Kiosk", headers=auth(u)).status_code == 400

    def test_statistics_admin_only(self, client, auth, admin, make_user, past_order):
        u = make_user(coins=30)
        order = past_order(u)
        coin_service.deduct_coins(u.id, 10, order.id)
        coin_service.credit_coins(u.id, 4, order.id)
        db.session.commit()

        assert client.get("/coins/statistics", headers=auth(u)).status_code == 403
        data = client.get("/coins/statistics", headers=auth(admin)).get_json()["data"]
        assert data == {
            "totalAdded": 4,
            "totalUsed": 10,
            "totalRefunded": 0,
            "totalDeducted": 0,
            "outstandingBalance": 24,
        }


class TestCoinConfigurations:
    def test_create_requires_unique_live_config(self, client, auth, admin, catalogue):
        r = client.post("/coins/configurations",
                        json={"subCategoryId": catalogue.veg.id, "coinType": "fixed", "coinValue": 3},
                        headers=auth(admin))
        assert r.status_code == 400

        CoinConfiguration.query.filter_by(sub_category_id=catalogue.veg.id).update({"deleted": True})
        db.session.commit()
        r = client.post("/coins/configurations",
                        json={"subCategoryId": catalogue.veg.id, "coinType": "fixed", "coinValue": 3},
                        headers=auth(admin))
        assert r.status_code == 201
        assert r.get_json()["data"]["coinType"] == "fixed"

    def test_create_validation(self, client, auth, admin, catalogue):
        h = auth(admin)
        assert client.post("/coins/configurations", json={"coinType": "fixed", "coinValue": 1},
                           headers=h).status_code == 400
        assert client.post("/coins/configurations",
                           json={"subCategoryId": catalogue.veg.id, "coinType": "bonus", "coinValue": 1},
                           headers=h).status_code == 400
        assert client.post("/coins/configurations",
                           json={"subCategoryId": 999, "coinType": "fixed", "coinValue": 1},
                           headers=h).status_code == 404

    def test_non_finite_coin_value(self, client, auth, admin, catalogue):
        cfg = CoinConfiguration.query.filter_by(sub_category_id=catalogue.seeds.id).one()
        h = auth(admin)
        r = client.patch(f"/coins/configurations/{cfg.id}", json={"coinValue": "NaN"}, headers=h)
        assert r.status_code == 400
        assert r.get_json()["message"] == "coinValue must be a number"
        r = client.patch(f"/coins/configurations/{cfg.id}", json={"coinValue": "Infinity"}, headers=h)
        assert r.status_code == 400
        assert cfg.coin_value == 2

    def test_update_and_delete(self, client, auth, admin, catalogue):
        cfg = CoinConfiguration.query.filter_by(sub_category_id=catalogue.seeds.id).one()
        h = auth(admin)

        r = client.patch(f"/coins/configurations/{cfg.id}", json={"coinValue": 4, "enabled": False}, headers=h)
        assert r.status_code == 200
        assert r.get_json()["data"]["coinValue"] == 4
        assert r.get_json()["data"]["enabled"] is False

        assert client.delete(f"/coins/configurations/{cfg.id}", headers=h).status_code == 200
        listed = client.get("/coins/configurations", headers=h).get_json()["data"]
        assert cfg.id not in [c["id"] for c in listed]

    def test_customer_cannot_configure(self, client, auth, customer, catalogue):
        assert client.get("/coins/configurations", headers=auth(customer)).status_code == 403
