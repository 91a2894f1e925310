import copy
import os
from datetime import datetime, timedelta, timezone
from decimal import Decimal

# must be set before anything under app/ reads the settings
os.environ["DATABASE_URL"] = "sqlite://"

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.data.database import Base
from app.data.models import CouponModel
from app.domain.errors import ServiceUnavailableError
from app.repos.coupon_repo import CouponRepo
from app.services.cart_service import CartService
from app.services.lock_service import LockService
from app.utils.settings import CartConfig


class FakeProductClient:
    """In-memory catalog with the same contract as ProductClient."""

    def __init__(self):
        self.products = {}
        self.calls = []
        # number of reads that succeed before the catalog goes down; None keeps it up
        self.fail_after = None

    def add(self, product_id, base_price, sale_price=None, stock=10, allow_out_of_stock=False):
        self.products[product_id] = {
            "_id": product_id,
            "name": f"Tile {product_id}",
            "images": [],
            "pricing": {"basePrice": base_price, "salePrice": sale_price},
            "inventory": {"stock": stock, "allowOutOfStockPurchase": allow_out_of_stock},
        }
        return self.products[product_id]

    def fetch_product(self, product_id):
        self.calls.append(product_id)
        if self.fail_after is not None and len(self.calls) > self.fail_after:
            raise ServiceUnavailableError("Product catalog unavailable")
        product = self.products.get(product_id)
        return copy.deepcopy(product) if product else None


class FakeRedis:
    """Just enough of redis.Redis for LockService."""

    def __init__(self):
        self.store = {}

    def set(self, name, value, nx=False, ex=None):
        if nx and name in self.store:
            return None
        self.store[name] = value
        return True

    def eval(self, script, numkeys, key, token):
        if self.store.get(key) == token:
            del self.store[key]
            return 1
        return 0


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(bind=engine, autoflush=False, autocommit=False)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def catalog():
    return FakeProductClient()


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def lock_service(fake_redis):
    return LockService(client=fake_redis)


@pytest.fixture
def service(db, catalog, lock_service):
    return CartService(
        db=db,
        product_client=catalog,
        lock_service=lock_service,
        config=CartConfig(currency="INR", default_quantity=1, lock_ttl_seconds=5),
    )


@pytest.fixture
def make_coupon(db):
    def _make(
        code="SAVE10",
        discount_type="percentage",
        discount_value=10,
        max_discount=None,
        min_order_value=None,
        usage_limit=None,
        used_count=0,
        is_active=True,
        starts_in=timedelta(days=-1),
        ends_in=timedelta(days=1),
    ):
        now = datetime.now(timezone.utc)
        return CouponRepo(db).create_coupon(
            CouponModel(
                code=code,
                discount_type=discount_type,
                discount_value=Decimal(str(discount_value)),
                max_discount=Decimal(str(max_discount)) if max_discount is not None else None,
                min_order_value=Decimal(str(min_order_value)) if min_order_value is not None else None,
                usage_limit=usage_limit,
                used_count=used_count,
                is_active=is_active,
                start_date=now + starts_in,
                end_date=now + ends_in,
            )
        )

    return _make


def assert_total_invariant(cart):
    subtotal = sum((Decimal(str(i["price"])) * i["quantity"] for i in cart["items"]), Decimal("0"))
    expected = max(Decimal("0"), subtotal - Decimal(str(cart["discount"])))
    assert Decimal(str(cart["total"])) == expected


@pytest.fixture
def check_totals():
    return assert_total_invariant
