from contextlib import contextmanager
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, Any, Optional
from sqlalchemy.orm import Session
from app.data.models.cart import CartModel
from app.data.models.cart_item import CartItemModel
from app.data.models.coupon import CouponModel
from app.domain.errors import (
    BelowMinimumError,
    CartError,
    ConflictError,
    InsufficientStockError,
    InvalidArgumentError,
    InvalidStateError,
    LimitExceededError,
    NotFoundError,
    ServiceUnavailableError,
)
from app.repos.cart_repo import CartRepo
from app.repos.coupon_repo import CouponRepo
from app.services.product_client import ProductClient
from app.services.lock_service import LockService
from app.services.pricing import (
    MAX_AMOUNT,
    ZERO,
    coupon_discount,
    effective_price,
    floor_total,
    has_stock_for,
    subtotal,
    to_money,
)
from app.utils.settings import CartConfig
from app.utils.logging import get_logger

logger = get_logger(__name__)

PRODUCT_SUMMARY_FIELDS = ("_id", "name", "images", "pricing", "inventory")


def _utc(value: datetime) -> datetime:
    # sqlite hands back naive datetimes; everything is stored in UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class CartService:
    """
    Cart & pricing use cases for the authenticated user.
    commands (add, update, remove, clear, coupons) run under a per-user lock
    and persist through an optimistic version check
    query (get) is read only
    """

    def __init__(
        self,
        db: Session,
        product_client: ProductClient,
        lock_service: LockService,
        config: CartConfig | None = None,
    ):
        self.repo = CartRepo(db)
        self.coupons = CouponRepo(db)
        self.product_client = product_client
        self.lock_service = lock_service
        self.config = config or CartConfig()

    #query
    def get_cart(self, user_id: str) -> Dict[str, Any]:
        cart = self.repo.get_cart_by_user(user_id)

        if not cart:
            # no cart yet is a valid state
            return self._empty_cart()

        return self._to_view(cart)

    #commands
    def add_item(self, user_id: str, product_id: str | None, quantity: int | None = None) -> Dict[str, Any]:
        if not product_id or not str(product_id).strip():
            raise InvalidArgumentError("Product ID is required")

        product_id = str(product_id).strip()
        quantity = self.config.default_quantity if quantity is None else quantity
        if quantity < 1:
            raise InvalidArgumentError("Quantity must be at least 1")
        self._check_quantity(quantity)

        product = self.product_client.fetch_product(product_id)
        if not product:
            raise NotFoundError("Product not found")

        if not has_stock_for(product, quantity):
            raise InsufficientStockError("Insufficient stock")

        with self._write(user_id):
            cart = self.repo.get_cart_by_user(user_id)
            if not cart:
                logger.info(f"Creating cart for user {user_id}")
                cart = self.repo.create_cart(
                    CartModel(user_id=user_id, total=ZERO, discount=ZERO, version=1)
                )

            price = effective_price(product)
            existing_item = next((i for i in cart.items if i.product_id == product_id), None)

            if existing_item:
                new_quantity = existing_item.quantity + quantity
                self._check_quantity(new_quantity)
                if not has_stock_for(product, new_quantity):
                    raise InsufficientStockError("Insufficient stock for the requested quantity")

                logger.info(
                    f"Product {product_id} already in cart of user {user_id}, "
                    f"quantity {existing_item.quantity} -> {new_quantity}"
                )
                existing_item.quantity = new_quantity
                existing_item.price = price
            else:
                logger.info(f"Adding product {product_id} to cart of user {user_id}")
                cart.items.append(
                    CartItemModel(product_id=product_id, quantity=quantity, price=price)
                )

            products = {product_id: product}
            total = self._recalculate(cart, products)
            self._save(cart, total=total)

        return self._view(user_id, products)

    def update_item(self, user_id: str, item_id: str, quantity: int | None) -> Dict[str, Any]:
        if quantity is None or quantity < 1:
            raise InvalidArgumentError("Valid quantity is required")
        self._check_quantity(quantity)

        with self._write(user_id):
            cart = self._require_cart(user_id)

            item = self._find_item(cart, item_id)
            if item is None:
                raise NotFoundError("Item not found in cart")

            product = self.product_client.fetch_product(item.product_id)
            if not product:
                raise NotFoundError("Product not found")

            if not has_stock_for(product, quantity):
                raise InsufficientStockError("Insufficient stock")

            logger.info(f"Item {item_id} of user {user_id}: quantity {item.quantity} -> {quantity}")
            item.quantity = quantity

            products = {item.product_id: product}
            total = self._recalculate(cart, products)
            self._save(cart, total=total)

        return self._view(user_id, products)

    def remove_item(self, user_id: str, item_id: str) -> Dict[str, Any]:
        with self._write(user_id):
            cart = self._require_cart(user_id)

            item = self._find_item(cart, item_id)
            if item is not None:
                logger.info(f"Removing item {item_id} from cart of user {user_id}")
                cart.items.remove(item)
            else:
                # removing an unknown item leaves the cart as it is
                logger.info(f"Item {item_id} not in cart of user {user_id}, nothing to remove")

            products = {}
            total = self._recalculate(cart, products)
            self._save(cart, total=total)

        return self._view(user_id, products)

    def clear_cart(self, user_id: str) -> Dict[str, Any]:
        with self._write(user_id):
            cart = self._require_cart(user_id)

            logger.info(f"Clearing cart of user {user_id}")
            cart.items.clear()
            self._save(cart, total=ZERO, discount=ZERO, coupon_id=None)

        return self._view(user_id)

    def apply_coupon(self, user_id: str, code: str | None) -> Dict[str, Any]:
        if not code or not code.strip():
            raise InvalidArgumentError("Coupon code is required")

        code = code.strip().upper()
        now = datetime.now(timezone.utc)

        coupon = self.coupons.get_valid_coupon(code, now)
        if not coupon:
            raise NotFoundError("Invalid or expired coupon")

        self._check_usage(coupon)

        with self._write(user_id):
            cart = self.repo.get_cart_by_user(user_id)
            if not cart or not cart.items:
                raise InvalidStateError("Cart is empty")

            # pre-discount baseline from the stored snapshots
            base = subtotal(cart.items)
            self._check_minimum(coupon, base)

            discount = self._discount_for(coupon, base)
            logger.info(f"Applying coupon {code} to cart of user {user_id}: discount {discount}")
            self._save(
                cart,
                discount=discount,
                coupon_id=coupon.id,
                total=floor_total(base, discount),
            )

        return self._view(user_id)

    def remove_coupon(self, user_id: str) -> Dict[str, Any]:
        with self._write(user_id):
            cart = self._require_cart(user_id)

            logger.info(f"Removing coupon from cart of user {user_id}")
            self._save(
                cart,
                discount=ZERO,
                coupon_id=None,
                total=floor_total(subtotal(cart.items), ZERO),
            )

        return self._view(user_id)

    def revalidate_coupon(self, user_id: str) -> Dict[str, Any]:
        """
        Re-checks the attached coupon against the current subtotal.
        Item changes keep the discount as it was; this is the explicit way to
        re-run the minimum order value and discount cap. A coupon that no longer
        applies is detached before the error is raised.
        """
        now = datetime.now(timezone.utc)

        with self._write(user_id):
            cart = self._require_cart(user_id)

            coupon = cart.coupon
            if coupon is None:
                raise InvalidStateError("No coupon applied to cart")

            base = subtotal(cart.items)
            try:
                if not self._is_valid_now(coupon, now):
                    raise NotFoundError("Invalid or expired coupon")
                self._check_usage(coupon)
                if not cart.items:
                    raise InvalidStateError("Cart is empty")
                self._check_minimum(coupon, base)
            except CartError as e:
                logger.info(f"Coupon {coupon.code} no longer applies to cart of user {user_id}: {e}")
                self._save(cart, discount=ZERO, coupon_id=None, total=floor_total(base, ZERO))
                raise

            discount = self._discount_for(coupon, base)
            self._save(cart, discount=discount, total=floor_total(base, discount))

        return self._view(user_id)

    # helpers
    @contextmanager
    def _write(self, user_id: str):
        with self.lock_service.cart_lock(user_id, ttl=self.config.lock_ttl_seconds):
            try:
                yield
            except Exception as e:
                self.repo.rollback()
                logger.error(f"Cart operation for user {user_id} failed: {e}")
                raise

    def _require_cart(self, user_id: str) -> CartModel:
        cart = self.repo.get_cart_by_user(user_id)
        if not cart:
            raise NotFoundError("Cart not found")
        return cart

    @staticmethod
    def _find_item(cart: CartModel, item_id: str) -> CartItemModel | None:
        return next((i for i in cart.items if str(i.id) == str(item_id)), None)

    def _check_quantity(self, quantity: int) -> None:
        if quantity > self.config.max_quantity:
            raise InvalidArgumentError(f"Quantity cannot exceed {self.config.max_quantity}")

    def _recalculate(self, cart: CartModel, products: Dict[str, Optional[dict]]) -> Decimal:
        """
        Refreshes every price snapshot from the catalog and returns the new total.
        The stored discount is reused as is. Every product read lands in `products`,
        which the response view reuses.
        """
        for item in cart.items:
            if item.product_id not in products:
                products[item.product_id] = self.product_client.fetch_product(item.product_id)
            product = products[item.product_id]

            if product:
                item.price = effective_price(product)
            else:
                logger.warning(
                    f"Product {item.product_id} is gone from the catalog, keeping price {item.price}"
                )

        base = subtotal(cart.items)
        if base > MAX_AMOUNT:
            raise InvalidArgumentError("Cart total exceeds the maximum supported amount")

        return floor_total(base, cart.discount)

    def _save(self, cart: CartModel, **fields) -> None:
        cart_id, version = cart.id, cart.version

        # optimistic locking: update ... where id = :id and version = :version
        rowcount = self.repo.update_cart_version(
            cart_id=cart_id,
            old_version=version,
            new_data={
                **fields,
                "version": version + 1,
                "updated_at": datetime.now(timezone.utc),
            },
        )

        if rowcount == 0:
            raise ConflictError("Cart was modified by another request")

        self.repo.commit()
        logger.info(f"Cart {cart_id} saved, new version: {version + 1}")

    @staticmethod
    def _is_valid_now(coupon: CouponModel, now: datetime) -> bool:
        return bool(coupon.is_active) and _utc(coupon.start_date) <= now <= _utc(coupon.end_date)

    @staticmethod
    def _check_usage(coupon: CouponModel) -> None:
        if coupon.usage_limit and coupon.used_count >= coupon.usage_limit:
            raise LimitExceededError("Coupon usage limit exceeded")

    def _check_minimum(self, coupon: CouponModel, base: Decimal) -> None:
        if coupon.min_order_value and base < to_money(coupon.min_order_value):
            raise BelowMinimumError(
                f"Minimum order value of {self.config.currency} "
                f"{to_money(coupon.min_order_value)} required for this coupon"
            )

    @staticmethod
    def _discount_for(coupon: CouponModel, base: Decimal) -> Decimal:
        return coupon_discount(
            discount_type=coupon.discount_type,
            discount_value=coupon.discount_value,
            base=base,
            max_discount=coupon.max_discount,
        )

    # views
    def _empty_cart(self) -> Dict[str, Any]:
        return {
            "id": None,
            "user": None,
            "items": [],
            "subtotal": ZERO,
            "total": ZERO,
            "discount": ZERO,
            "coupon": None,
            "currency": self.config.currency,
        }

    def _view(self, user_id: str, products: Optional[Dict[str, Optional[dict]]] = None) -> Dict[str, Any]:
        # response of a committed command: catalog trouble from here on must not fail it
        cart = self.repo.get_cart_by_user(user_id)
        return self._to_view(cart, products)

    def _to_view(self, cart: CartModel, products: Optional[Dict[str, Optional[dict]]] = None) -> Dict[str, Any]:
        products = dict(products or {})

        items = []
        for i in cart.items:
            if i.product_id not in products:
                products[i.product_id] = self._lookup_product(i.product_id)
            product = products[i.product_id]
            items.append(
                {
                    "id": i.id,
                    "product_id": i.product_id,
                    "product": self._product_summary(product),
                    "quantity": i.quantity,
                    "price": to_money(i.price),
                }
            )

        coupon = None
        if cart.coupon is not None:
            coupon = {
                "code": cart.coupon.code,
                "discount_type": cart.coupon.discount_type,
                "discount_value": to_money(cart.coupon.discount_value),
                "max_discount": to_money(cart.coupon.max_discount) if cart.coupon.max_discount else None,
            }

        return {
            "id": cart.id,
            "user": cart.user_id,
            "items": items,
            "subtotal": subtotal(cart.items),
            "total": to_money(cart.total),
            "discount": to_money(cart.discount),
            "coupon": coupon,
            "currency": self.config.currency,
            "updated_at": cart.updated_at,
        }

    def _lookup_product(self, product_id: str) -> dict | None:
        try:
            return self.product_client.fetch_product(product_id)
        except ServiceUnavailableError as e:
            logger.warning(f"No product summary for {product_id}: {e}")
            return None

    @staticmethod
    def _product_summary(product: dict | None) -> dict | None:
        if not product:
            return None
        return {k: product[k] for k in PRODUCT_SUMMARY_FIELDS if k in product}
