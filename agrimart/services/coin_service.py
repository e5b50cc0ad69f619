# agrimart/services/coin_service.py
"""
Coin ledger.

`User.coins` is a denormalized balance; every change to it goes together with
exactly one CoinHistory row in the same session transaction. The functions
here flush but never commit: the caller owns the unit of work.
"""
import logging
from decimal import Decimal

from sqlalchemy import func, update

from ..errors import InsufficientBalance, NotFound
from ..extensions import db
from ..model import CoinConfiguration, CoinHistory, OnlineOrder, Product, User
from ..model.order import QUALIFYING_STATUSES
from ..utils.money import D, floor_int, round_whole

logger = logging.getLogger(__name__)


def _orderable_sub_category_ids(items) -> dict:
    """product_id -> sub_category_id, for items that don't carry it already."""
    missing = {it.product_id for it in items if getattr(it, "sub_category_id", None) is None}
    if not missing:
        return {}
    rows = db.session.query(Product.id, Product.sub_category_id).filter(Product.id.in_(missing)).all()
    return {pid: sid for pid, sid in rows}


def calculate_coins_earned(items) -> int:
    """
    items: anything with product_id, product_price, quantity and optionally
    sub_category_id (OrderItem snapshots, priced cart lines).
    """
    items = list(items)
    if not items:
        return 0
    sub_map = _orderable_sub_category_ids(items)

    def _sub(it):
        sid = getattr(it, "sub_category_id", None)
        return sid if sid is not None else sub_map.get(it.product_id)

    sub_ids = {s for s in (_sub(it) for it in items) if s is not None}
    configs = {}
    if sub_ids:
        for c in CoinConfiguration.query.filter(
            CoinConfiguration.sub_category_id.in_(sub_ids),
            CoinConfiguration.enabled.is_(True),
            CoinConfiguration.deleted.is_(False),
        ):
            configs.setdefault(c.sub_category_id, c)

    total = Decimal("0")
    for it in items:
        cfg = configs.get(_sub(it))
        if not cfg:
            continue
        line_total = D(it.product_price) * int(it.quantity)
        if cfg.coin_type == "percentage":
            total += round_whole(line_total * D(cfg.coin_value) / Decimal("100"))
        elif cfg.coin_type == "fixed":
            total += D(cfg.coin_value) * int(it.quantity)
    return int(round_whole(total))


def max_coins_usable(user_id: int, product_eligible_coins, order_grand_total) -> int:
    user = db.session.get(User, user_id)
    if not user:
        return 0
    usable = min(int(user.coins or 0), int(product_eligible_coins or 0), floor_int(order_grand_total))
    return max(0, usable)


def deduct_coins(user_id: int, amount: int, order_id: int | None = None, order_type: str = "OnlineStore"):
    amount = int(amount or 0)
    if amount <= 0:
        return None

    # conditional decrement: never read-then-write the balance
    res = db.session.execute(
        update(User)
        .where(User.id == user_id, User.coins >= amount)
        .values(coins=User.coins - amount)
        .execution_options(synchronize_session="fetch")
    )
    if res.rowcount != 1:
        user = db.session.get(User, user_id)
        if not user:
            raise NotFound("User not found")
        raise InsufficientBalance(f"Insufficient coins. Available: {user.coins}, Required: {amount}")

    entry = CoinHistory(
        user_id=user_id,
        coins=amount,
        order_id=order_id,
        type="Used",
        order_type=order_type,
        description=f"Coins used for {order_type} order",
    )
    db.session.add(entry)
    db.session.flush()
    logger.info("deducted %s coins from user %s (order %s)", amount, user_id, order_id)
    return entry


def credit_coins(user_id: int, amount: int, order_id: int, order_type: str = "OnlineStore") -> bool:
    """Returns True when coins were credited now, False when there was nothing to do."""
    amount = int(amount or 0)
    if amount <= 0:
        return False

    existing = CoinHistory.query.filter_by(user_id=user_id, order_id=order_id, type="Added").first()
    if existing:
        logger.info("coins already credited for order %s", order_id)
        return False

    res = db.session.execute(
        update(User)
        .where(User.id == user_id)
        .values(coins=User.coins + amount)
        .execution_options(synchronize_session="fetch")
    )
    if res.rowcount != 1:
        raise NotFound("User not found")

    db.session.add(CoinHistory(
        user_id=user_id,
        coins=amount,
        order_id=order_id,
        type="Added",
        order_type=order_type,
        description=f"Coins earned from {order_type} order",
        idempotency_key=f"credit:{order_type}:{order_id}",
    ))
    db.session.flush()
    logger.info("credited %s coins to user %s for order %s", amount, user_id, order_id)
    return True


def refund_coins(user_id: int, amount: int, order_id: int, order_type: str = "OnlineStore",
                 idempotency_key: str | None = None) -> bool:
    amount = int(amount or 0)
    if amount <= 0:
        return False

    if idempotency_key and CoinHistory.query.filter_by(idempotency_key=idempotency_key).first():
        logger.info("coin refund %s already applied", idempotency_key)
        return False

    res = db.session.execute(
        update(User)
        .where(User.id == user_id)
        .values(coins=User.coins + amount)
        .execution_options(synchronize_session="fetch")
    )
    if res.rowcount != 1:
        raise NotFound("User not found")

    db.session.add(CoinHistory(
        user_id=user_id,
        coins=amount,
        order_id=order_id,
        type="Refunded",
        order_type=order_type,
        description=f"Coins refunded for cancelled {order_type} order",
        idempotency_key=idempotency_key,
    ))
    db.session.flush()
    logger.info("refunded %s coins to user %s for order %s", amount, user_id, order_id)
    return True


def has_previous_orders(user_id: int, order_type: str = "OnlineStore") -> bool:
    if order_type != "OnlineStore":
        # local-store orders live with the retailer service, not in this database
        logger.debug("no local order history for user %s", user_id)
        return False
    count = (
        db.session.query(func.count(OnlineOrder.id))
        .filter(OnlineOrder.created_by == user_id, OnlineOrder.status.in_(QUALIFYING_STATUSES))
        .scalar()
    )
    return (count or 0) > 0


def ledger_totals(user_id: int | None = None) -> dict:
    q = db.session.query(CoinHistory.type, func.coalesce(func.sum(CoinHistory.coins), 0))
    if user_id is not None:
        q = q.filter(CoinHistory.user_id == user_id)
    return {t: int(total) for t, total in q.group_by(CoinHistory.type).all()}


def get_user_coin_stats(user_id: int) -> dict:
    user = db.session.get(User, user_id)
    if not user:
        return {"totalCoins": 0, "coinsEarned": 0, "coinsUsed": 0, "coinsRefunded": 0}
    totals = ledger_totals(user_id)
    return {
        "totalCoins": int(user.coins or 0),
        "coinsEarned": totals.get("Added", 0),
        "coinsUsed": totals.get("Used", 0),
        "coinsRefunded": totals.get("Refunded", 0),
    }
