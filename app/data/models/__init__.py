# import all models so SQLAlchemy registers them in Base.metadata

from app.data.models.coupon import CouponModel
from app.data.models.cart import CartModel
from app.data.models.cart_item import CartItemModel

__all__ = ["CouponModel", "CartModel", "CartItemModel"]
