# --- agrimart/model/user.py ---
from sqlalchemy.sql import func

from ..extensions import db

class User(db.Model):
    __tablename__ = "user"
    __table_args__ = (
        db.CheckConstraint("coins >= 0", name="ck_user_coins_non_negative"),
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    phone = db.Column(db.String(20), nullable=False)
    email = db.Column(db.String(255), nullable=True, index=True)
    role = db.Column(db.String(50), nullable=False, default="user", index=True)  # user, delivery, admin
    is_premium = db.Column(db.Boolean, nullable=False, default=False)
    # denormalized coin balance, kept in step with CoinHistory
    coins = db.Column(db.Integer, nullable=False, default=0)
    deleted = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, server_default=func.now())

    def as_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "phone": self.phone,
            "email": self.email,
            "role": self.role,
            "isPremium": self.is_premium,
            }


class Address(db.Model):
    __tablename__ = "address"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False, index=True)
    name = db.Column(db.String(120))
    phone = db.Column(db.String(20))
    house = db.Column(db.String(255))
    area = db.Column(db.String(255))
    city = db.Column(db.String(120))
    state = db.Column(db.String(120))
    pincode = db.Column(db.String(12))
    created_at = db.Column(db.DateTime, server_default=func.now())

    def as_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "phone": self.phone,
            "house": self.house,
            "area": self.area,
            "city": self.city,
            "state": self.state,
            "pincode": self.pincode,
        }
