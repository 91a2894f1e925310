# app/data/seed.py
from datetime import datetime, timezone, timedelta
from decimal import Decimal

from app.data.database import Base, SessionLocal, engine
from app.data.models import CouponModel
from app.repos.coupon_repo import CouponRepo
from app.utils.logging import get_logger

logger = get_logger(__name__)

SAMPLE_COUPONS = [
    {
        "code": "TILE10",
        "description": "10% off, up to 30",
        "discount_type": "percentage",
        "discount_value": Decimal("10"),
        "max_discount": Decimal("30"),
    },
    {
        "code": "FLAT50",
        "description": "50 off orders over 500",
        "discount_type": "fixed",
        "discount_value": Decimal("50"),
        "min_order_value": Decimal("500"),
    },
]


def seed():
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        repo = CouponRepo(db)
        now = datetime.now(timezone.utc)
        for data in SAMPLE_COUPONS:
            # only seed what is missing
            if repo.get_by_code(data["code"]):
                continue
            repo.create_coupon(
                CouponModel(
                    start_date=now - timedelta(days=1),
                    end_date=now + timedelta(days=90),
                    **data,
                )
            )
            logger.info(f"Seeded coupon {data['code']}")
    finally:
        db.close()


if __name__ == "__main__":
    seed()
