from app.schemas.coupon import (
    ApplyCouponRequest,
    ApplyCouponResponse,
    CouponAnalyticsResponse,
    CouponCreate,
    CouponResponse,
    CouponUpdate,
    ValidateCouponRequest,
    ValidateCouponResponse,
)

__all__ = [
    "ApplyCouponRequest",
    "ApplyCouponResponse",
    "CouponAnalyticsResponse",
    "CouponCreate",
    "CouponResponse",
    "CouponUpdate",
    "ValidateCouponRequest",
    "ValidateCouponResponse",
]
