"""CouponRedemption model: one row per successful coupon application."""

from sqlalchemy import Column, DateTime, ForeignKey, Numeric, String

from app.core.database import Base
from app.models.shared import UUIDType, generate_uuid, utc_now


class CouponRedemption(Base):
    """A single redemption of a coupon by a user."""

    __tablename__ = "coupon_redemptions"

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    coupon_id = Column(
        UUIDType, ForeignKey("coupons.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    user_id = Column(String(255), nullable=False, index=True)
    used_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    order_value = Column(Numeric(12, 2), nullable=False)
    discount_applied = Column(Numeric(12, 2), nullable=False)
