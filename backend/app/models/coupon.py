"""Coupon model for storefront discount offers."""

from enum import Enum

from sqlalchemy import JSON, Boolean, Column, DateTime, Integer, Numeric, String, Text

from app.core.database import Base
from app.models.shared import UUIDType, generate_uuid, utc_now


class DiscountType(str, Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class Coupon(Base):
    """Coupon model for storefront discount offers."""

    __tablename__ = "coupons"

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    code = Column(String(50), unique=True, index=True, nullable=False)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)

    discount_type = Column(String(20), nullable=False)
    discount_value = Column(Numeric(12, 2), nullable=False)
    max_discount = Column(Numeric(12, 2), nullable=True)  # percentage only
    min_order_value = Column(Numeric(12, 2), nullable=False, default=0)

    valid_from = Column(DateTime(timezone=True), nullable=False)
    valid_until = Column(DateTime(timezone=True), nullable=False)

    usage_limit = Column(Integer, nullable=True)  # null = unlimited
    usage_count = Column(Integer, nullable=False, default=0)
    user_usage_limit = Column(Integer, nullable=False, default=1)

    # Empty lists mean "no restriction"
    payment_methods = Column(JSON, nullable=False, default=list)
    specific_users = Column(JSON, nullable=False, default=list)

    is_active = Column(Boolean, nullable=False, default=True, index=True)
    priority = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now)

    @property
    def user_restrictions(self) -> dict[str, list[str]]:
        return {"specific_users": list(self.specific_users or [])}
