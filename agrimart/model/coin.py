# agrimart/model/coin.py
from sqlalchemy.sql import func
from ..extensions import db

COIN_TYPES = ("percentage", "fixed")
LEDGER_TYPES = ("Added", "Used", "Refunded", "Deducted")
ORDER_TYPES = ("OnlineStore", "LocalStore")


class CoinConfiguration(db.Model):
    __tablename__ = "coin_configuration"
    __table_args__ = (
        db.CheckConstraint("coin_value >= 0", name="ck_coin_value_non_negative"),
        db.Index("ix_coin_config_lookup", "sub_category_id", "deleted", "enabled"),
    )

    id = db.Column(db.Integer, primary_key=True)
    created_by = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=True)
    sub_category_id = db.Column(db.Integer, db.ForeignKey("product_sub_category.id"), nullable=False)
    coin_type = db.Column(db.String(16), nullable=False, default="percentage")
    coin_value = db.Column(db.Numeric(10, 2), nullable=False)
    enabled = db.Column(db.Boolean, nullable=False, default=True)
    deleted = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime, server_default=func.now())
    updated_at = db.Column(db.DateTime, onupdate=func.now(), server_default=func.now())

    sub_category = db.relationship("SubCategory", lazy="joined")

    def as_api(self):
        return {
            "id": self.id,
            "subCategory": self.sub_category.as_dict() if self.sub_category else None,
            "coinType": self.coin_type,
            "coinValue": float(self.coin_value or 0),
            "enabled": self.enabled,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }


class CoinHistory(db.Model):
    """Append-only coin ledger. `coins` is always a positive magnitude; `type` gives the sign."""
    __tablename__ = "coin_history"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False, index=True)
    coins = db.Column(db.Integer, nullable=False)
    # null while the order row is still being written
    order_id = db.Column(db.Integer, db.ForeignKey("online_order.id"), nullable=True, index=True)
    type = db.Column(db.String(16), nullable=False, index=True)
    order_type = db.Column(db.String(16), nullable=False, default="OnlineStore")
    description = db.Column(db.String(255))
    idempotency_key = db.Column(db.String(64), unique=True, nullable=True)
    created_at = db.Column(db.DateTime, server_default=func.now(), index=True)

    def as_api(self):
        return {
            "id": self.id,
            "userId": self.user_id,
            "coins": self.coins,
            "orderId": self.order_id,
            "type": self.type,
            "orderType": self.order_type,
            "description": self.description,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }
