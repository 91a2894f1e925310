# app/services/pricing.py
"""
Pricing rules shared by the cart engine.

All amounts are Decimals quantized to 2 places; nothing here touches the
database or the catalog.
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Iterable, Optional

ZERO = Decimal("0.00")
CENT = Decimal("0.01")
# largest amount the Numeric(12, 2) money columns hold
MAX_AMOUNT = Decimal("9999999999.99")

PERCENTAGE = "percentage"
FIXED = "fixed"


def to_money(value: Any) -> Decimal:
    if value is None:
        return ZERO
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def effective_price(product: Dict[str, Any]) -> Decimal:
    """salePrice when set (and non-zero), otherwise basePrice."""
    pricing = product.get("pricing") or {}
    sale_price = pricing.get("salePrice")
    if sale_price:
        return to_money(sale_price)
    return to_money(pricing.get("basePrice"))


def has_stock_for(product: Dict[str, Any], quantity: int) -> bool:
    inventory = product.get("inventory") or {}
    if inventory.get("allowOutOfStockPurchase"):
        return True
    return int(inventory.get("stock") or 0) >= quantity


def subtotal(items: Iterable) -> Decimal:
    return sum((to_money(i.price) * i.quantity for i in items), ZERO)


def floor_total(amount: Decimal, discount: Decimal) -> Decimal:
    total = to_money(amount) - to_money(discount)
    return total if total > ZERO else ZERO


def coupon_discount(
    discount_type: str,
    discount_value: Decimal,
    base: Decimal,
    max_discount: Optional[Decimal] = None,
) -> Decimal:
    # fixed discounts are not capped by the base; floor_total absorbs the overshoot
    if discount_type == PERCENTAGE:
        discount = to_money(to_money(base) * to_money(discount_value) / Decimal(100))
        if max_discount and discount > to_money(max_discount):
            discount = to_money(max_discount)
        return discount
    return to_money(discount_value)
