# agrimart/cli.py
import click
from flask.cli import with_appcontext

from .extensions import db
from .model import Address, CoinConfiguration, CouponCode, Product, ProductUnit, SubCategory, User
from .services import outbox


@click.command("drain-outbox")
@click.option("--limit", default=100, show_default=True, help="Max tasks to dispatch in this run")
@with_appcontext
def drain_outbox(limit):
    """Retry pending coin credit / coin refund tasks that are due."""
    stats = outbox.drain(limit=limit)
    click.echo(f"picked={stats['picked']} done={stats['done']} failed={stats['failed']}")


@click.command("seed-demo")
@with_appcontext
def seed_demo():
    """Small catalogue, one admin, one customer with an address and a coupon."""
    if SubCategory.query.first():
        click.echo("Database already has data, skipping"); return

    veg = SubCategory(name="Vegetables", percentage_off=10)
    seeds = SubCategory(name="Seeds", percentage_off=0)
    db.session.add_all([veg, seeds]); db.session.flush()

    tomato = Product(name="Tomato", sub_category_id=veg.id, coin_can_used=10)
    okra = Product(name="Okra seeds", sub_category_id=seeds.id, coin_can_used=5)
    db.session.add_all([tomato, okra]); db.session.flush()
    db.session.add_all([
        ProductUnit(product_id=tomato.id, qty="1 kg", mrp=250, selling_price=200, off_per="20"),
        ProductUnit(product_id=tomato.id, qty="500 g", mrp=130, selling_price=110, off_per="15.38"),
        ProductUnit(product_id=okra.id, qty="100 g", mrp=120, selling_price=90, off_per="25"),
    ])
    db.session.add_all([
        CoinConfiguration(sub_category_id=veg.id, coin_type="percentage", coin_value=5),
        CoinConfiguration(sub_category_id=seeds.id, coin_type="fixed", coin_value=2),
    ])

    admin = User(name="Admin", phone="+919000000001", email="admin@example.com", role="admin")
    customer = User(name="Customer", phone="+919000000002", email="customer@example.com")
    db.session.add_all([admin, customer]); db.session.flush()
    db.session.add(Address(user_id=customer.id, name="Customer", phone="9000000002",
                           house="12", area="Market Road", city="Pune", state="MH", pincode="411001"))
    db.session.add(CouponCode(name="Ten percent", code="SAVE10", discount=10, upto=30, min_price=100, use="one"))
    db.session.commit()
    click.echo(f"Seeded: admin={admin.id} customer={customer.id}")


def register_cli(app):
    app.cli.add_command(drain_outbox)
    app.cli.add_command(seed_demo)
