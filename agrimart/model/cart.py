# agrimart/model/cart.py
from sqlalchemy.sql import func
from ..extensions import db

class CartLine(db.Model):
    __tablename__ = "online_store_cart"
    __table_args__ = (
        db.CheckConstraint("quantity >= 1", name="ck_cart_quantity_positive"),
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("online_product.id"), nullable=False, index=True)
    unit_id = db.Column(db.Integer, db.ForeignKey("product_unit.id"), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False, default=1)
    deleted = db.Column(db.Boolean, nullable=False, default=False, index=True)

    created_at = db.Column(db.DateTime, server_default=func.now())
    updated_at = db.Column(db.DateTime, onupdate=func.now(), server_default=func.now())

    product = db.relationship("Product", lazy="joined")
    unit = db.relationship("ProductUnit", lazy="joined")

    @classmethod
    def live_for(cls, user_id: int):
        return cls.query.filter_by(user_id=user_id, deleted=False).order_by(cls.id.asc())
