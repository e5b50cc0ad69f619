# agrimart/model/payment.py
from sqlalchemy.sql import func
from ..extensions import db


class Payment(db.Model):
    __tablename__ = "payment"

    id = db.Column(db.Integer, primary_key=True)
    type = db.Column(db.String(16), nullable=False, default="OnlineStore")  # LocalStore | OnlineStore | Premium
    user_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=True, index=True)
    online_order_id = db.Column(db.Integer, db.ForeignKey("online_order.id"), nullable=True, index=True)
    order_code = db.Column(db.String(40))

    # full webhook body; rows written before the rename carry it under the legacy column
    payment_response = db.Column(db.JSON)
    legacy_payment_response = db.Column("paymentResonse", db.JSON)
    cfo_order_id = db.Column(db.String(64), index=True)
    gateway_payment_id = db.Column(db.String(64), unique=True, nullable=True)

    payment_status = db.Column(db.String(10), nullable=False, default="PENDING")
    amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    refund = db.Column(db.Boolean, nullable=False, default=False)
    refund_id = db.Column(db.String(64))

    created_at = db.Column(db.DateTime, server_default=func.now())
    updated_at = db.Column(db.DateTime, onupdate=func.now(), server_default=func.now())


class Refund(db.Model):
    __tablename__ = "refund"

    id = db.Column(db.Integer, primary_key=True)
    type = db.Column(db.String(16), nullable=False, default="OnlineStore")
    external_order_id = db.Column(db.String(64), nullable=False)
    external_refund_response = db.Column(db.JSON)
    user_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False)
    online_order_id = db.Column(db.Integer, db.ForeignKey("online_order.id"), nullable=False, index=True)
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    refund_id = db.Column(db.String(64), unique=True, nullable=False)
    cancelled = db.Column(db.Boolean, nullable=False, default=False)   # refund for a cancellation
    rejected = db.Column(db.Boolean, nullable=False, default=False)    # refund for an accepted return
    admin_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=True)
    created_at = db.Column(db.DateTime, server_default=func.now())

    def as_api(self):
        return {
            "id": self.id,
            "refundId": self.refund_id,
            "externalOrderId": self.external_order_id,
            "orderId": self.online_order_id,
            "amount": float(self.amount or 0),
            "cancelled": self.cancelled,
            "rejected": self.rejected,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }


class ReturnRequest(db.Model):
    __tablename__ = "return"

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("online_order.id"), nullable=False, index=True)
    reason = db.Column(db.String(500), nullable=False)
    comment = db.Column(db.String(1000))
    return_image = db.Column(db.String(512))
    created_at = db.Column(db.DateTime, server_default=func.now())

    def as_api(self):
        return {
            "id": self.id,
            "orderId": self.order_id,
            "reason": self.reason,
            "comment": self.comment,
            "returnImage": self.return_image,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }
