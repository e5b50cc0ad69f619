# agrimart/model/product.py
from ..extensions import db
from sqlalchemy.sql import func

class SubCategory(db.Model):
    __tablename__ = "product_sub_category"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    # premium-only discount for everything filed under this subcategory
    percentage_off = db.Column(db.Numeric(5, 2), nullable=False, default=0)
    deleted = db.Column(db.Boolean, default=False)

    def as_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "percentageOff": float(self.percentage_off or 0),
            }


class Product(db.Model):
    __tablename__ = "online_product"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False, index=True)
    sub_category_id = db.Column(db.Integer, db.ForeignKey("product_sub_category.id"), nullable=True, index=True)
    # coins a buyer may redeem per unit bought
    coin_can_used = db.Column(db.Integer, nullable=False, default=0)
    deleted = db.Column(db.Boolean, default=False)

    created_at = db.Column(db.DateTime, server_default=func.now())
    updated_at = db.Column(db.DateTime, onupdate=func.now(), server_default=func.now())

    sub_category = db.relationship("SubCategory", lazy="joined")
    units = db.relationship(
        "ProductUnit",
        backref="product",
        lazy="selectin",
        order_by="ProductUnit.id.asc()",
    )

    def as_api(self):
        return {
            "id": self.id,
            "name": self.name,
            "subCategory": self.sub_category.as_dict() if self.sub_category else None,
            "coinCanUsed": self.coin_can_used,
        }


class ProductUnit(db.Model):
    __tablename__ = "product_unit"

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("online_product.id"), nullable=False, index=True)
    qty = db.Column(db.String(64), nullable=False)         # e.g. "1 kg", "500 ml"
    mrp = db.Column(db.Numeric(12, 2), nullable=False)
    selling_price = db.Column(db.Numeric(12, 2), nullable=False)
    off_per = db.Column(db.String(16))                      # bare number, no "% OFF"
    deleted = db.Column(db.Boolean, default=False)
