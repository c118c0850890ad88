"""Coupon validation and redemption service."""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import NoReturn
from uuid import UUID

from sqlalchemy.orm import Session

from app.core.config import settings
from app.models.coupon import Coupon, DiscountType
from app.models.coupon_redemption import CouponRedemption
from app.models.shared import as_utc, utc_now
from app.repositories.coupon_repository import CouponRepository, normalize_code
from app.schemas.coupon import CouponCreate, CouponUpdate

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")


class CouponError(ValueError):
    """Base class for coupon failures reported back to the caller."""


class CouponNotFoundError(CouponError):
    pass


class CouponValidationError(CouponError):
    pass


class CouponConflictError(CouponError):
    pass


@dataclass
class CouponValidation:
    """Result of a successful coupon validation."""

    coupon: Coupon
    discount_amount: Decimal
    final_amount: Decimal


@dataclass
class DailyUsageStats:
    count: int = 0
    discount: Decimal = Decimal("0")
    order_value: Decimal = Decimal("0")


@dataclass
class CouponAnalytics:
    """Aggregates over a coupon's redemption log."""

    total_usage: int
    total_discount: Decimal
    total_order_value: Decimal
    average_order_value: Decimal
    usage_by_day: dict[str, DailyUsageStats] = field(default_factory=dict)


def calculate_discount(coupon: Coupon, order_value: Decimal) -> Decimal:
    """Calculate the discount a coupon grants on an order.

    Percentage coupons take discount_value percent of the order, capped at
    max_discount when one is set. Fixed coupons take discount_value. Either
    way the discount never exceeds the order value.
    """
    order_value = Decimal(str(order_value))
    discount_value = Decimal(str(coupon.discount_value))

    if coupon.discount_type == DiscountType.PERCENTAGE.value:
        discount = order_value * discount_value / Decimal("100")
        if coupon.max_discount is not None:
            discount = min(discount, Decimal(str(coupon.max_discount)))
    else:
        discount = discount_value

    discount = discount.quantize(CENTS, rounding=ROUND_HALF_UP)
    return min(discount, order_value)


def format_amount(value: Decimal) -> str:
    """Render whole amounts without decimals ("1000"), others with two ("99.50")."""
    value = Decimal(str(value))
    if value == value.to_integral_value():
        return str(value.quantize(Decimal("1")))
    return str(value.quantize(CENTS))


def is_within_window(coupon: Coupon, now: datetime) -> bool:
    return as_utc(coupon.valid_from) <= now <= as_utc(coupon.valid_until)


class CouponService:
    """Service for listing, validating, redeeming, and reporting on coupons."""

    def __init__(self, db: Session):
        self.db = db
        self.coupon_repo = CouponRepository(db)

    def list_active(self, now: datetime | None = None) -> list[Coupon]:
        """List currently valid coupons by priority, then newest first."""
        return self.coupon_repo.find_active(as_utc(now) if now else utc_now())

    def validate(
        self,
        code: str,
        order_value: Decimal,
        user_id: str,
        payment_method: str | None = None,
        now: datetime | None = None,
    ) -> CouponValidation:
        """Check whether a coupon can be applied to an order and preview the discount.

        Checks run in a fixed order and the first failure is raised. Nothing is
        written: usage counters only move in apply().

        Raises:
            CouponNotFoundError: If no active coupon has this code.
            CouponValidationError: If any eligibility rule fails.
        """
        now = as_utc(now) if now else utc_now()
        order_value = Decimal(str(order_value))

        coupon = self.coupon_repo.find_by_code(code)
        if not coupon:
            self._reject(code, user_id, "Invalid coupon code", CouponNotFoundError)

        if not is_within_window(coupon, now):
            self._reject(code, user_id, "Coupon has expired or not yet valid")

        if coupon.usage_limit is not None and coupon.usage_count >= coupon.usage_limit:
            self._reject(code, user_id, "Coupon usage limit exceeded")

        min_order_value = Decimal(str(coupon.min_order_value or 0))
        if order_value < min_order_value:
            self._reject(
                code,
                user_id,
                "Minimum order value should be "
                f"{settings.CURRENCY_SYMBOL}{format_amount(min_order_value)}",
            )

        user_usage = self.coupon_repo.count_user_redemptions(coupon.id, user_id)  # type: ignore[arg-type]
        if user_usage >= coupon.user_usage_limit:
            self._reject(code, user_id, "You have already used this coupon")

        allowed_methods = list(coupon.payment_methods or [])
        if allowed_methods and payment_method and payment_method not in allowed_methods:
            self._reject(
                code,
                user_id,
                f"This coupon is only valid for {', '.join(allowed_methods)} payments",
            )

        discount_amount = calculate_discount(coupon, order_value)
        return CouponValidation(
            coupon=coupon,
            discount_amount=discount_amount,
            final_amount=order_value - discount_amount,
        )

    def apply(
        self,
        code: str,
        user_id: str,
        order_value: Decimal,
        discount_applied: Decimal,
        now: datetime | None = None,
    ) -> CouponRedemption:
        """Record a redemption of a previously validated coupon.

        Eligibility is not re-checked here except, when
        COUPON_ENFORCE_USAGE_LIMIT_ON_APPLY is set, the global usage limit,
        which is enforced by the store's conditional update.

        Raises:
            CouponNotFoundError: If no active coupon has this code.
            CouponValidationError: If the usage limit was reached in the meantime.
        """
        coupon = self.coupon_repo.find_by_code(code)
        if not coupon:
            raise CouponNotFoundError("Coupon not found")

        redemption = self.coupon_repo.redeem(
            coupon.id,  # type: ignore[arg-type]
            user_id=str(user_id),
            order_value=Decimal(str(order_value)),
            discount_applied=Decimal(str(discount_applied)),
            used_at=as_utc(now) if now else utc_now(),
            enforce_usage_limit=settings.COUPON_ENFORCE_USAGE_LIMIT_ON_APPLY,
        )
        if redemption is None:
            logger.warning("Redeem of coupon %s by user %s hit the usage limit", coupon.code, user_id)
            raise CouponValidationError("Coupon usage limit exceeded")

        logger.info(
            "Coupon %s redeemed by user %s (order %s, discount %s)",
            coupon.code,
            user_id,
            redemption.order_value,
            redemption.discount_applied,
        )
        return redemption

    def list_available_for_user(self, user_id: str, now: datetime | None = None) -> list[Coupon]:
        """List currently valid coupons the user may still redeem."""
        user_id = str(user_id)
        coupons = self.list_active(now)
        counts = self.coupon_repo.user_redemption_counts(
            user_id,
            [c.id for c in coupons],  # type: ignore[misc]
        )

        available = []
        for coupon in coupons:
            if counts.get(coupon.id, 0) >= coupon.user_usage_limit:  # type: ignore[call-overload]
                continue
            specific_users = coupon.specific_users or []
            if specific_users and user_id not in specific_users:
                continue
            available.append(coupon)
        return available

    def analytics(self, coupon_id: UUID) -> tuple[Coupon, CouponAnalytics]:
        """Aggregate a coupon's redemption log.

        Raises:
            CouponNotFoundError: If the coupon does not exist.
        """
        coupon = self.coupon_repo.get_by_id(coupon_id)
        if not coupon:
            raise CouponNotFoundError("Coupon not found")

        redemptions = self.coupon_repo.get_redemptions(coupon_id)

        total_discount = Decimal("0")
        total_order_value = Decimal("0")
        usage_by_day: dict[str, DailyUsageStats] = {}
        for redemption in redemptions:
            discount = Decimal(str(redemption.discount_applied))
            order_value = Decimal(str(redemption.order_value))
            total_discount += discount
            total_order_value += order_value

            day = as_utc(redemption.used_at).date().isoformat()  # type: ignore[arg-type]
            stats = usage_by_day.setdefault(day, DailyUsageStats())
            stats.count += 1
            stats.discount += discount
            stats.order_value += order_value

        average_order_value = (
            (total_order_value / len(redemptions)).quantize(CENTS, rounding=ROUND_HALF_UP)
            if redemptions
            else Decimal("0")
        )

        return coupon, CouponAnalytics(
            total_usage=coupon.usage_count,  # type: ignore[arg-type]
            total_discount=total_discount,
            total_order_value=total_order_value,
            average_order_value=average_order_value,
            usage_by_day=usage_by_day,
        )

    def create(self, data: CouponCreate) -> Coupon:
        """Create a coupon.

        Raises:
            CouponConflictError: If the code is already taken.
        """
        if self.coupon_repo.find_by_code(data.code, active_only=False):
            raise CouponConflictError("Coupon with this code already exists")
        coupon = self.coupon_repo.create(data)
        logger.info("Created coupon %s (%s)", coupon.code, coupon.id)
        return coupon

    def update(self, coupon_id: UUID, data: CouponUpdate) -> Coupon:
        """Replace the provided fields of a coupon.

        Raises:
            CouponNotFoundError: If the coupon does not exist.
            CouponConflictError: If the new code belongs to another coupon.
            CouponValidationError: If the resulting validity window is inverted
                or a percentage coupon would exceed 100%.
        """
        coupon = self.coupon_repo.get_by_id(coupon_id)
        if not coupon:
            raise CouponNotFoundError("Coupon not found")

        if data.code:
            existing = self.coupon_repo.find_by_code(data.code, active_only=False)
            if existing and existing.id != coupon.id:
                raise CouponConflictError("Coupon with this code already exists")

        valid_from = as_utc(data.valid_from or coupon.valid_from)  # type: ignore[arg-type]
        valid_until = as_utc(data.valid_until or coupon.valid_until)  # type: ignore[arg-type]
        if valid_until < valid_from:
            raise CouponValidationError("validUntil must not be earlier than validFrom")

        discount_type = data.discount_type.value if data.discount_type else coupon.discount_type
        discount_value = Decimal(str(data.discount_value or coupon.discount_value))
        if discount_type == DiscountType.PERCENTAGE.value and discount_value > 100:
            raise CouponValidationError("discountValue cannot exceed 100 for percentage coupons")

        updated = self.coupon_repo.update(coupon_id, data)
        logger.info("Updated coupon %s (%s)", updated.code, coupon_id)  # type: ignore[union-attr]
        return updated  # type: ignore[return-value]

    def _reject(
        self,
        code: str,
        user_id: str,
        reason: str,
        error: type[CouponError] = CouponValidationError,
    ) -> NoReturn:
        logger.info("Coupon %s rejected for user %s: %s", normalize_code(code), user_id, reason)
        raise error(reason)
