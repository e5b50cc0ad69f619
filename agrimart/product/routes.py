# agrimart/product/routes.py
from flask import request
from flask_jwt_extended import get_jwt_identity, verify_jwt_in_request
from sqlalchemy import asc, desc

from ..errors import NotFound
from ..extensions import db
from ..model import Product, User
from ..services.cart_service import price_unit_for
from ..utils.api import ok, paginate
from ..utils.money import to_number
from . import bp


def _viewer() -> User | None:
    """Prices depend on premium membership, so a token is honoured but not required."""
    verify_jwt_in_request(optional=True)
    identity = get_jwt_identity()
    try:
        return db.session.get(User, int(identity)) if identity else None
    except (TypeError, ValueError):
        return None


def _sort_products(query, sort):
    sort = (sort or "").strip()
    mapping = {
        "id": asc(Product.id), "-id": desc(Product.id),
        "name": asc(Product.name), "-name": desc(Product.name),
    }
    return query.order_by(mapping.get(sort, desc(Product.id)))


def _product_api(product: Product, viewer: User | None):
    data = product.as_api()
    units = []
    for unit in product.units:
        if unit.deleted:
            continue
        price = price_unit_for(viewer, product, unit)
        units.append({
            "id": unit.id,
            "qty": unit.qty,
            "mrp": to_number(price.mrp),
            "sellingPrice": to_number(price.selling_price),
            "offPer": price.off_percent,
        })
    data["units"] = units
    return data


@bp.get("")
def list_products():
    """
    Query params:
      q             -> substring match on name
      subCategoryId -> filter
      sort          -> id | -id | name | -name
      page, per_page
    """
    viewer = _viewer()
    q = Product.query.filter(Product.deleted.is_(False))
    term = (request.args.get("q") or "").strip()
    if term:
        q = q.filter(Product.name.ilike(f"%{term}%"))
    sub_id = request.args.get("subCategoryId")
    if sub_id:
        q = q.filter(Product.sub_category_id == sub_id)
    q = _sort_products(q, request.args.get("sort"))
    return ok("products", paginate(q, request.args.get("page"), request.args.get("per_page"),
                                   lambda p: _product_api(p, viewer)))


@bp.get("/<int:product_id>")
def get_product(product_id: int):
    viewer = _viewer()
    product = db.session.get(Product, product_id)
    if not product or product.deleted:
        raise NotFound("Product not found")
    return ok("product", _product_api(product, viewer))
