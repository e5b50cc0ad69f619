"""Shared fixtures: app on in-memory SQLite, a small catalogue, users and tokens."""

from datetime import datetime
from types import SimpleNamespace

import pytest
from flask_jwt_extended import create_access_token

from agrimart import create_app
from agrimart.config import TestConfig
from agrimart.extensions import db
from agrimart.gateway import get_gateway
from agrimart.model import (
    Address, CartLine, CoinConfiguration, CouponCode, OnlineOrder, Payment, Product, ProductUnit,
    SubCategory, User,
)


@pytest.fixture()
def app():
    app = create_app(TestConfig)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def gateway(app):
    return get_gateway()


@pytest.fixture()
def auth(app):
    def _headers(user):
        return {"Authorization": f"Bearer {create_access_token(identity=str(user.id))}"}
    return _headers


@pytest.fixture()
def catalogue(app):
    veg = SubCategory(name="Vegetables", percentage_off=10)
    seeds = SubCategory(name="Seeds", percentage_off=0)
    db.session.add_all([veg, seeds])
    db.session.flush()

    tomato = Product(name="Tomato", sub_category_id=veg.id, coin_can_used=40)
    okra = Product(name="Okra seeds", sub_category_id=seeds.id, coin_can_used=0)
    db.session.add_all([tomato, okra])
    db.session.flush()

    kg = ProductUnit(product_id=tomato.id, qty="1 kg", mrp=250, selling_price=200, off_per="20% OFF")
    seed_pack = ProductUnit(product_id=okra.id, qty="100 g", mrp=120, selling_price=90, off_per="25")
    db.session.add_all([kg, seed_pack])
    db.session.add_all([
        CoinConfiguration(sub_category_id=veg.id, coin_type="percentage", coin_value=5),
        CoinConfiguration(sub_category_id=seeds.id, coin_type="fixed", coin_value=2),
    ])
    db.session.commit()
    return SimpleNamespace(veg=veg, seeds=seeds, tomato=tomato, okra=okra, kg=kg, seed_pack=seed_pack)


@pytest.fixture()
def make_user(app):
    counter = {"n": 0}

    def _make(role="user", premium=False, coins=0):
        counter["n"] += 1
        n = counter["n"]
        u = User(name=f"{role}-{n}", phone=f"+91900000{n:04d}", email=f"{role}{n}@example.com",
                 role=role, is_premium=premium, coins=coins)
        db.session.add(u)
        db.session.flush()
        db.session.add(Address(user_id=u.id, name=u.name, phone=u.phone, house="1", area="Main Road",
                               city="Pune", state="MH", pincode="411001"))
        db.session.commit()
        return u
    return _make


@pytest.fixture()
def customer(make_user):
    return make_user()


@pytest.fixture()
def premium_customer(make_user):
    return make_user(premium=True)


@pytest.fixture()
def admin(make_user):
    return make_user(role="admin")


@pytest.fixture()
def courier(make_user):
    return make_user(role="delivery")


@pytest.fixture()
def address_of(app):
    def _address(user):
        return Address.query.filter_by(user_id=user.id).first()
    return _address


@pytest.fixture()
def fill_cart(app):
    def _fill(user, unit, quantity=1):
        line = CartLine(user_id=user.id, product_id=unit.product_id, unit_id=unit.id, quantity=quantity)
        db.session.add(line)
        db.session.commit()
        return line
    return _fill


@pytest.fixture()
def past_order(app):
    """An order row written straight to the table, e.g. to make a user a returning buyer."""
    counter = {"n": 0}

    def _order(user, status="Delivered", grand_total=100, coin_used=0, coins_earned=0):
        counter["n"] += 1
        o = OnlineOrder(
            order_code=f"ONLINE_ORDER_PAST_{counter['n']}",
            created_by=user.id,
            status=status,
            total_amount=grand_total,
            grand_total=grand_total,
            coin_used=coin_used,
            coins_earned=coins_earned,
            created_at=datetime.utcnow(),
        )
        db.session.add(o)
        db.session.commit()
        return o
    return _order


@pytest.fixture()
def returning_customer(make_user, past_order):
    u = make_user(coins=100)
    past_order(u, status="Delivered")
    return u


@pytest.fixture()
def coupon(app):
    c = CouponCode(name="Ten percent", code="SAVE10", discount=10, upto=30, min_price=100, use="one")
    db.session.add(c)
    db.session.commit()
    return c


@pytest.fixture()
def mark_paid(app):
    """Record a captured payment for an order the way the webhook does."""
    def _paid(order, shape="current"):
        ext = order.external_order_id or f"ext_{order.id}"
        p = Payment(type="OnlineStore", user_id=order.created_by, online_order_id=order.id,
                    order_code=order.order_code, payment_status="SUCCESS", amount=order.grand_total)
        if shape == "current":
            p.payment_response = {"order": {"order_id": ext}}
        elif shape == "legacy":
            p.legacy_payment_response = {"order": {"order_id": ext}}
        elif shape == "flat":
            p.cfo_order_id = ext
        db.session.add(p)
        db.session.commit()
        return p
    return _paid
