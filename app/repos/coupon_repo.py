# app/repos/coupon_repo.py
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.data.models.coupon import CouponModel


class CouponRepo:
    def __init__(self, db: Session):
        self.db = db

    def get_valid_coupon(self, code: str, now: datetime) -> CouponModel | None:
        """Active coupon with this (already uppercased) code whose window contains now."""
        return self.db.execute(
            select(CouponModel).where(
                CouponModel.code == code,
                CouponModel.is_active.is_(True),
                CouponModel.start_date <= now,
                CouponModel.end_date >= now,
            )
        ).scalar_one_or_none()

    def get_by_code(self, code: str) -> CouponModel | None:
        return self.db.execute(
            select(CouponModel).where(CouponModel.code == code.upper())
        ).scalar_one_or_none()

    def create_coupon(self, coupon: CouponModel) -> CouponModel:
        coupon.code = coupon.code.upper()
        self.db.add(coupon)
        self.db.commit()
        self.db.refresh(coupon)
        return coupon
