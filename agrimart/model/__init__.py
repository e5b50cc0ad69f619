# ------ agrimart/model/__init__.py ------

from .user import User, Address
from .product import SubCategory, Product, ProductUnit
from .cart import CartLine
from .coin import CoinConfiguration, CoinHistory
from .coupon import CouponCode, CouponHistory
from .order import OnlineOrder, OrderItem
from .payment import Payment, Refund, ReturnRequest
from .outbox import OutboxTask

__all__ = [
    "User",
    "Address",
    "SubCategory",
    "Product",
    "ProductUnit",
    "CartLine",
    "CoinConfiguration",
    "CoinHistory",
    "CouponCode",
    "CouponHistory",
    "OnlineOrder",
    "OrderItem",
    "Payment",
    "Refund",
    "ReturnRequest",
    "OutboxTask",
]
