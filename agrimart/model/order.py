from sqlalchemy.sql import func
from ..extensions import db

ORDER_STATUSES = (
    "Pending",
    "Accepted",
    "Rejected",
    "Product shipped",
    "On the way",
    "Out for delivery",
    "Your Destination",
    "Delivered",
    "Cancelled",
)
TERMINAL_STATUSES = ("Delivered", "Cancelled", "Rejected")
# statuses that make a user "returning" for coin purposes
QUALIFYING_STATUSES = (
    "Delivered",
    "Pending",
    "Accepted",
    "Product shipped",
    "On the way",
    "Out for delivery",
    "Your Destination",
)
RETURN_STATUSES = ("non", "Pending", "Approved", "Rejected", "PickedUp", "Success", "Cancelled")
PAYMENT_STATUSES = ("PENDING", "SUCCESS", "FAILED")


def _num(v):
    return float(v) if v is not None else 0.0


class OnlineOrder(db.Model):
    __tablename__ = "online_order"

    id = db.Column(db.Integer, primary_key=True)
    order_code = db.Column(db.String(40), unique=True, index=True, nullable=False)  # "ONLINE_ORDER_<ms>"
    created_by = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False, index=True)
    status = db.Column(db.String(20), nullable=False, default="Pending", index=True)

    # address snapshot, not a reference
    address_json = db.Column(db.JSON)

    # gateway bookkeeping
    external_order_id = db.Column(db.String(64), index=True)       # gateway order id (cf_order_id)
    payment_session_id = db.Column(db.String(255))
    payment_status = db.Column(db.String(10), nullable=False, default="PENDING")
    coupon_id = db.Column(db.Integer, db.ForeignKey("coupon_code.id"), nullable=True)

    # money snapshot
    total_amount = db.Column(db.Numeric(12, 2), nullable=False)
    discount_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    shipping_fee = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    donate = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    grand_total = db.Column(db.Numeric(12, 2), nullable=False)
    coin_used = db.Column(db.Integer, nullable=False, default=0)
    coins_earned = db.Column(db.Integer, nullable=True)
    # flips false -> true exactly once, on the first delivery
    coins_credited = db.Column(db.Boolean, nullable=False, default=False)

    # fulfillment / after-sales
    estimated_date = db.Column(db.DateTime)
    delivered_at = db.Column(db.DateTime)
    is_return = db.Column(db.Boolean, nullable=False, default=False)
    return_status = db.Column(db.String(10), nullable=False, default="non")
    refund = db.Column(db.Boolean, nullable=False, default=False)
    refund_id = db.Column(db.String(64))
    is_premium_purchase = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime, server_default=func.now(), index=True)
    updated_at = db.Column(db.DateTime, onupdate=func.now(), server_default=func.now())

    items = db.relationship(
        "OrderItem",
        backref="order",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="OrderItem.id.asc()",
    )

    def summary(self):
        return {
            "totalAmount": _num(self.total_amount),
            "discountAmount": _num(self.discount_amount),
            "shippingFee": _num(self.shipping_fee),
            "donate": _num(self.donate),
            "grandTotal": _num(self.grand_total),
            "coinUsed": self.coin_used or 0,
            "coinsEarned": self.coins_earned or 0,
            "coinsCredited": bool(self.coins_credited),
        }

    def as_api(self):
        return {
            "id": self.id,
            "orderId": self.order_code,
            "status": self.status,
            "paymentStatus": self.payment_status,
            "externalOrderId": self.external_order_id,
            "address": self.address_json,
            "productDetails": [i.as_api() for i in self.items],
            "summary": self.summary(),
            "isReturn": self.is_return,
            "returnStatus": self.return_status,
            "refund": self.refund,
            "refundId": self.refund_id,
            "estimatedDate": self.estimated_date.isoformat() if self.estimated_date else None,
            "deliveredAt": self.delivered_at.isoformat() if self.delivered_at else None,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }


class OrderItem(db.Model):
    """Line snapshot frozen at purchase time; later catalogue edits never touch it."""
    __tablename__ = "online_order_item"

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("online_order.id"), nullable=False, index=True)

    product_id = db.Column(db.Integer, index=True, nullable=False)
    unit_id = db.Column(db.Integer)
    sub_category_id = db.Column(db.Integer)
    name = db.Column(db.String(255))
    qty = db.Column(db.String(64))                      # unit label, e.g. "1 kg"

    mrp = db.Column(db.Numeric(12, 2), nullable=False)
    product_price = db.Column(db.Numeric(12, 2), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)

    def line_total(self):
        return self.product_price * self.quantity

    def as_api(self):
        return {
            "productId": self.product_id,
            "unitId": self.unit_id,
            "name": self.name,
            "qty": self.qty,
            "mrp": _num(self.mrp),
            "productPrice": _num(self.product_price),
            "quantity": self.quantity,
        }
