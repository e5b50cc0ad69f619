# agrimart/coin/routes.py
from flask import request
from sqlalchemy import func

from ..errors import NotFound, ValidationError
from ..extensions import db
from ..model import CoinConfiguration, CoinHistory, SubCategory, User
from ..model.coin import COIN_TYPES, LEDGER_TYPES, ORDER_TYPES
from ..services import coin_service
from ..utils.api import ok, paginate
from ..utils.decorators import current_user, role_at_least, role_required
from ..utils.money import D
from . import bp


def _coin_value(raw):
    try:
        v = D(raw)
    except ArithmeticError:
        raise ValidationError("coinValue must be a number")
    if not v.is_finite():
        raise ValidationError("coinValue must be a number")
    if v < 0:
        raise ValidationError("coinValue must be >= 0")
    return v


def _coin_type(raw):
    t = (raw or "").strip().lower()
    if t not in COIN_TYPES:
        raise ValidationError("coinType must be 'percentage' or 'fixed'")
    return t


def _live_config(config_id: int) -> CoinConfiguration:
    c = db.session.get(CoinConfiguration, config_id)
    if not c or c.deleted:
        raise NotFound("Coin configuration not found")
    return c


# ---- balance & ledger ------------------------------------------------------

@bp.get("")
@role_at_least("user")
def my_coins():
    return ok("coins", coin_service.get_user_coin_stats(current_user().id))


@bp.get("/history")
@role_at_least("user")
def coin_history():
    """
    Users see their own ledger. Admins may filter:
      - userId, orderId, type=Added|Used|Refunded|Deducted, orderType=OnlineStore|LocalStore
    """
    user = current_user()
    q = CoinHistory.query
    if user.role != "admin":
        q = q.filter(CoinHistory.user_id == user.id)
    else:
        if request.args.get("userId"):
            q = q.filter(CoinHistory.user_id == request.args.get("userId"))
        if request.args.get("orderId"):
            q = q.filter(CoinHistory.order_id == request.args.get("orderId"))

    entry_type = request.args.get("type")
    if entry_type:
        if entry_type not in LEDGER_TYPES:
            raise ValidationError("Invalid coin history type")
        q = q.filter(CoinHistory.type == entry_type)
    order_type = request.args.get("orderType")
    if order_type:
        if order_type not in ORDER_TYPES:
            raise ValidationError("Invalid order type")
        q = q.filter(CoinHistory.order_type == order_type)

    q = q.order_by(CoinHistory.created_at.desc(), CoinHistory.id.desc())
    return ok("coin history", paginate(q, request.args.get("page"), request.args.get("per_page"),
                                       lambda e: e.as_api()))


@bp.get("/statistics")
@role_required("admin")
def coin_statistics():
    totals = coin_service.ledger_totals()
    outstanding = db.session.query(func.coalesce(func.sum(User.coins), 0)).scalar()
    return ok("coin statistics", {
        "totalAdded": totals.get("Added", 0),
        "totalUsed": totals.get("Used", 0),
        "totalRefunded": totals.get("Refunded", 0),
        "totalDeducted": totals.get("Deducted", 0),
        "outstandingBalance": int(outstanding or 0),
    })


# ---- earn configuration (admin) -------------------------------------------

@bp.get("/configurations")
@role_required("admin")
def list_configurations():
    items = (CoinConfiguration.query.filter(CoinConfiguration.deleted.is_(False))
             .order_by(CoinConfiguration.id.desc()).all())
    return ok("coin configurations", [c.as_api() for c in items])


@bp.post("/configurations")
@role_required("admin")
def create_configuration():
    """Body: { "subCategoryId": int, "coinType": "percentage" | "fixed", "coinValue": number }"""
    data = request.get_json(silent=True) or {}
    try:
        sub_id = int(data.get("subCategoryId"))
    except (TypeError, ValueError):
        raise ValidationError("subCategoryId is required")
    coin_type = _coin_type(data.get("coinType"))
    if data.get("coinValue") in (None, ""):
        raise ValidationError("coinValue is required")
    coin_value = _coin_value(data.get("coinValue"))

    sub = db.session.get(SubCategory, sub_id)
    if not sub or sub.deleted:
        raise NotFound("Sub category not found")

    # one live configuration per subcategory
    existing = CoinConfiguration.query.filter_by(sub_category_id=sub_id, deleted=False).first()
    if existing:
        raise ValidationError("Coin configuration already exists for this sub category")

    c = CoinConfiguration(
        created_by=current_user().id,
        sub_category_id=sub_id,
        coin_type=coin_type,
        coin_value=coin_value,
        enabled=bool(data.get("enabled", True)),
    )
    db.session.add(c)
    db.session.commit()
    return ok("Coin configuration created", c.as_api(), status=201)


@bp.patch("/configurations/<int:config_id>")
@role_required("admin")
def update_configuration(config_id: int):
    c = _live_config(config_id)
    data = request.get_json(silent=True) or {}
    if "coinType" in data:
        c.coin_type = _coin_type(data.get("coinType"))
    if "coinValue" in data:
        c.coin_value = _coin_value(data.get("coinValue"))
    if "enabled" in data:
        c.enabled = bool(data.get("enabled"))
    db.session.commit()
    return ok("Coin configuration updated", c.as_api())


@bp.delete("/configurations/<int:config_id>")
@role_required("admin")
def delete_configuration(config_id: int):
    c = _live_config(config_id)
    c.deleted = True
    db.session.commit()
    return ok("Coin configuration deleted", {"id": c.id})
