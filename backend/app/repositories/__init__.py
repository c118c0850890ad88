from app.repositories.coupon_repository import CouponRepository, CouponStore

__all__ = [
    "CouponRepository",
    "CouponStore",
]
