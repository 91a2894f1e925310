#app/api/routers/cart.py
from fastapi import APIRouter, Depends, HTTPException

from app.api.deps import get_cart_service, get_current_user_id
from app.domain.errors import CartError
from app.domain.schemas import (
    AddItemIn,
    ApplyCouponIn,
    CartActionResponse,
    CartResponse,
    UpdateItemIn,
)
from app.services.cart_service import CartService

router = APIRouter(prefix="/cart", tags=["cart"])


def _fail(e: CartError):
    return HTTPException(status_code=e.status_code, detail=e.message)


@router.get("", response_model=CartResponse)
def get_cart(
    user_id: str = Depends(get_current_user_id),
    svc: CartService = Depends(get_cart_service),
):
    try:
        return {"success": True, "cart": svc.get_cart(user_id)}
    except CartError as e:
        raise _fail(e)


@router.post("", response_model=CartActionResponse)
def add_item(
    payload: AddItemIn,
    user_id: str = Depends(get_current_user_id),
    svc: CartService = Depends(get_cart_service),
):
    try:
        cart = svc.add_item(user_id, payload.product_id, payload.quantity)
    except CartError as e:
        raise _fail(e)
    return {"success": True, "message": "Item added to cart", "cart": cart}


@router.delete("", response_model=CartActionResponse)
def clear_cart(
    user_id: str = Depends(get_current_user_id),
    svc: CartService = Depends(get_cart_service),
):
    try:
        cart = svc.clear_cart(user_id)
    except CartError as e:
        raise _fail(e)
    return {"success": True, "message": "Cart cleared", "cart": cart}


# coupon routes are registered before /{item_id} so "coupon" is never read as an item id
@router.post("/coupon", response_model=CartActionResponse)
def apply_coupon(
    payload: ApplyCouponIn,
    user_id: str = Depends(get_current_user_id),
    svc: CartService = Depends(get_cart_service),
):
    try:
        cart = svc.apply_coupon(user_id, payload.code)
    except CartError as e:
        raise _fail(e)
    return {"success": True, "message": "Coupon applied successfully", "cart": cart}


@router.post("/coupon/revalidate", response_model=CartActionResponse)
def revalidate_coupon(
    user_id: str = Depends(get_current_user_id),
    svc: CartService = Depends(get_cart_service),
):
    try:
        cart = svc.revalidate_coupon(user_id)
    except CartError as e:
        raise _fail(e)
    return {"success": True, "message": "Coupon revalidated", "cart": cart}


@router.delete("/coupon", response_model=CartActionResponse)
def remove_coupon(
    user_id: str = Depends(get_current_user_id),
    svc: CartService = Depends(get_cart_service),
):
    try:
        cart = svc.remove_coupon(user_id)
    except CartError as e:
        raise _fail(e)
    return {"success": True, "message": "Coupon removed", "cart": cart}


@router.put("/{item_id}", response_model=CartActionResponse)
def update_item(
    item_id: str,
    payload: UpdateItemIn,
    user_id: str = Depends(get_current_user_id),
    svc: CartService = Depends(get_cart_service),
):
    try:
        cart = svc.update_item(user_id, item_id, payload.quantity)
    except CartError as e:
        raise _fail(e)
    return {"success": True, "message": "Cart item updated", "cart": cart}


@router.delete("/{item_id}", response_model=CartActionResponse)
def remove_item(
    item_id: str,
    user_id: str = Depends(get_current_user_id),
    svc: CartService = Depends(get_cart_service),
):
    try:
        cart = svc.remove_item(user_id, item_id)
    except CartError as e:
        raise _fail(e)
    return {"success": True, "message": "Item removed from cart", "cart": cart}
