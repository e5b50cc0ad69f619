# --- agrimart/model/coupon.py ---

from ..extensions import db
from sqlalchemy.sql import func

class CouponCode(db.Model):
    __tablename__ = "coupon_code"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    code = db.Column(db.String(64), unique=True, nullable=False, index=True)
    description = db.Column(db.String(255))

    discount = db.Column(db.Numeric(5, 2), nullable=False, default=0)   # percent off the cart total
    upto = db.Column(db.Numeric(12, 2), nullable=True)                  # cap on the discount amount
    min_price = db.Column(db.Numeric(12, 2), nullable=True)             # require cart total >= this
    use = db.Column(db.String(8), nullable=False, default="one")        # "one" | "many"

    deleted = db.Column(db.Boolean, default=False, index=True)

    created_at = db.Column(db.DateTime, server_default=func.now())
    updated_at = db.Column(db.DateTime, onupdate=func.now(), server_default=func.now())

    def as_api(self):
        return {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "description": self.description,
            "discount": float(self.discount or 0),
            "upto": float(self.upto) if self.upto is not None else None,
            "minPrice": float(self.min_price) if self.min_price is not None else None,
            "use": self.use,
        }

class CouponHistory(db.Model):
    """One row per redemption of a single-use coupon; the unique key is the reuse gate."""
    __tablename__ = "coupon_history"
    __table_args__ = (
        db.UniqueConstraint("coupon_id", "user_id", name="uq_coupon_history_coupon_user"),
    )

    id = db.Column(db.Integer, primary_key=True)
    coupon_id = db.Column(db.Integer, db.ForeignKey("coupon_code.id", ondelete="CASCADE"), index=True, nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey("user.id"), index=True, nullable=False)
    order_id = db.Column(db.Integer, db.ForeignKey("online_order.id"), nullable=True)
    created_at = db.Column(db.DateTime, server_default=func.now())
