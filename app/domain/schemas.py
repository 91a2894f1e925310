# app/domain/schemas.py
from pydantic import BaseModel, Field, ConfigDict, PlainSerializer
from pydantic.alias_generators import to_camel
from typing import Annotated, Any, Dict, List, Optional
from decimal import Decimal
from datetime import datetime

from app.utils.settings import CART_MAX_QUANTITY


# JSON clients expect numbers, not the string form pydantic uses for Decimal
Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AddItemIn(CamelModel):
    """Body of POST /cart."""

    product_id: Optional[str] = Field(None, description="Catalog product id")
    quantity: Optional[int] = Field(
        None, le=CART_MAX_QUANTITY, description="Defaults to the configured quantity (1)"
    )


class UpdateItemIn(CamelModel):
    """Body of PUT /cart/{itemId}."""

    quantity: Optional[int] = Field(
        None, le=CART_MAX_QUANTITY, description="New absolute quantity (must be >= 1)"
    )


class ApplyCouponIn(CamelModel):
    """Body of POST /cart/coupon."""

    code: Optional[str] = Field(None, description="Coupon code, case-insensitive")


class CartItemOut(CamelModel):
    id: int = Field(..., serialization_alias="_id")
    product_id: str
    product: Optional[Dict[str, Any]] = None
    quantity: int
    price: Money


class CouponOut(CamelModel):
    code: str
    discount_type: str
    discount_value: Money
    max_discount: Optional[Money] = None


class CartOut(CamelModel):
    id: Optional[int] = Field(None, serialization_alias="_id")
    user: Optional[str] = None
    items: List[CartItemOut] = []
    subtotal: Money = Decimal("0.00")
    total: Money = Decimal("0.00")
    discount: Money = Decimal("0.00")
    coupon: Optional[CouponOut] = None
    currency: str
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class CartResponse(CamelModel):
    success: bool = True
    cart: CartOut


class CartActionResponse(CamelModel):
    success: bool = True
    message: str
    cart: CartOut


class ErrorOut(BaseModel):
    success: bool = False
    message: str
