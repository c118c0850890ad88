from app.models.coupon import Coupon, DiscountType
from app.models.coupon_redemption import CouponRedemption
