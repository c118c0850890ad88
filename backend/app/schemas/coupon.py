"""Coupon request and response schemas.

All models serialize with camelCase keys, which is what the storefront client
sends and expects; snake_case names are accepted as well.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Self
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from app.models.coupon import DiscountType
from app.models.shared import as_utc


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _to_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return value
    return as_utc(value)


class UserRestrictions(CamelModel):
    specific_users: list[str] = Field(default_factory=list)


class CouponCreate(CamelModel):
    code: str = Field(min_length=1, max_length=50)
    title: str = Field(min_length=1, max_length=255)
    description: str | None = None
    discount_type: DiscountType
    discount_value: Decimal = Field(gt=0)
    max_discount: Decimal | None = Field(default=None, ge=0)
    min_order_value: Decimal = Field(default=Decimal("0"), ge=0)
    valid_from: datetime
    valid_until: datetime
    usage_limit: int | None = Field(default=None, ge=0)
    user_usage_limit: int = Field(default=1, ge=1)
    payment_methods: list[str] = Field(default_factory=list)
    user_restrictions: UserRestrictions = Field(default_factory=UserRestrictions)
    is_active: bool = True
    priority: int = 0

    @field_validator("valid_from", "valid_until")
    @classmethod
    def normalize_window(cls, value: datetime | None) -> datetime | None:
        """Store validity windows in UTC."""
        return _to_utc(value)

    @model_validator(mode="after")
    def validate_window(self) -> Self:
        """Validate valid_until does not precede valid_from."""
        if self.valid_until < self.valid_from:
            msg = "validUntil must not be earlier than validFrom"
            raise ValueError(msg)
        return self

    @model_validator(mode="after")
    def validate_percentage_range(self) -> Self:
        """Validate percentage coupons do not exceed 100%."""
        if self.discount_type == DiscountType.PERCENTAGE and self.discount_value > 100:
            msg = "discountValue cannot exceed 100 for percentage coupons"
            raise ValueError(msg)
        return self


class CouponUpdate(CamelModel):
    code: str | None = Field(default=None, min_length=1, max_length=50)
    title: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    discount_type: DiscountType | None = None
    discount_value: Decimal | None = Field(default=None, gt=0)
    max_discount: Decimal | None = Field(default=None, ge=0)
    min_order_value: Decimal | None = Field(default=None, ge=0)
    valid_from: datetime | None = None
    valid_until: datetime | None = None
    usage_limit: int | None = Field(default=None, ge=0)
    user_usage_limit: int | None = Field(default=None, ge=1)
    payment_methods: list[str] | None = None
    user_restrictions: UserRestrictions | None = None
    is_active: bool | None = None
    priority: int | None = None

    @field_validator("valid_from", "valid_until")
    @classmethod
    def normalize_window(cls, value: datetime | None) -> datetime | None:
        """Store validity windows in UTC."""
        return _to_utc(value)


class CouponResponse(CamelModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    code: str
    title: str
    description: str | None = None
    discount_type: str
    discount_value: Decimal
    max_discount: Decimal | None = None
    min_order_value: Decimal
    valid_from: datetime
    valid_until: datetime
    usage_limit: int | None = None
    usage_count: int
    user_usage_limit: int
    payment_methods: list[str]
    user_restrictions: UserRestrictions
    is_active: bool
    priority: int
    created_at: datetime
    updated_at: datetime


class ValidateCouponRequest(CamelModel):
    code: str = Field(min_length=1)
    order_value: Decimal = Field(ge=0)
    # Sent by the storefront cart; not used in any rule.
    products: list[Any] = Field(default_factory=list)
    payment_method: str | None = None


class CouponSummary(CamelModel):
    id: UUID
    code: str
    title: str
    discount_type: str
    discount_value: Decimal


class ValidateCouponResponse(CamelModel):
    valid: bool = True
    coupon: CouponSummary
    discount_amount: Decimal
    final_amount: Decimal


class ApplyCouponRequest(CamelModel):
    code: str = Field(min_length=1)
    order_value: Decimal = Field(ge=0)
    discount_applied: Decimal = Field(ge=0)


class ApplyCouponResponse(CamelModel):
    message: str


class DailyUsage(CamelModel):
    count: int
    discount: Decimal
    order_value: Decimal


class CouponAnalyticsData(CamelModel):
    total_usage: int
    total_discount: Decimal
    total_order_value: Decimal
    average_order_value: Decimal
    usage_by_day: dict[str, DailyUsage]


class CouponAnalyticsResponse(CamelModel):
    coupon: CouponResponse
    analytics: CouponAnalyticsData
