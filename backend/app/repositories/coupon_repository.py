"""Coupon repository for data access."""

from abc import ABC, abstractmethod
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from app.models.coupon import Coupon
from app.models.coupon_redemption import CouponRedemption
from app.schemas.coupon import CouponCreate, CouponUpdate

NULLABLE_FIELDS = frozenset({"description", "max_discount", "usage_limit"})


def normalize_code(code: str) -> str:
    """Coupon codes are stored upper-case and matched case-insensitively."""
    return code.strip().upper()


class CouponStore(ABC):
    """Storage operations the coupon engine depends on."""

    @abstractmethod
    def find_by_code(self, code: str, active_only: bool = True) -> Coupon | None:
        """Find a coupon by code, case-insensitively."""
        pass  # pragma: no cover

    @abstractmethod
    def find_active(self, now: datetime) -> list[Coupon]:
        """Currently valid coupons, highest priority and newest first."""
        pass  # pragma: no cover

    @abstractmethod
    def count_user_redemptions(self, coupon_id: UUID, user_id: str) -> int:
        """Number of redemptions of a coupon by one user."""
        pass  # pragma: no cover

    @abstractmethod
    def user_redemption_counts(self, user_id: str, coupon_ids: list[UUID]) -> dict[UUID, int]:
        """Redemption counts by one user, keyed by coupon id."""
        pass  # pragma: no cover

    @abstractmethod
    def redeem(
        self,
        coupon_id: UUID,
        user_id: str,
        order_value: Decimal,
        discount_applied: Decimal,
        used_at: datetime,
        enforce_usage_limit: bool = True,
    ) -> CouponRedemption | None:
        """Atomically increment usage_count and record a redemption.

        Returns None when no row qualified for the update.
        """
        pass  # pragma: no cover


class CouponRepository(CouponStore):
    """Repository for Coupon and CouponRedemption models."""

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, coupon_id: UUID) -> Coupon | None:
        """Get a coupon by ID."""
        return self.db.query(Coupon).filter(Coupon.id == coupon_id).first()

    def find_by_code(self, code: str, active_only: bool = True) -> Coupon | None:
        query = self.db.query(Coupon).filter(Coupon.code == normalize_code(code))
        if active_only:
            query = query.filter(Coupon.is_active.is_(True))
        return query.first()

    def find_active(self, now: datetime) -> list[Coupon]:
        return (
            self.db.query(Coupon)
            .filter(
                Coupon.is_active.is_(True),
                Coupon.valid_from <= now,
                Coupon.valid_until >= now,
                or_(Coupon.usage_limit.is_(None), Coupon.usage_count < Coupon.usage_limit),
            )
            .order_by(Coupon.priority.desc(), Coupon.created_at.desc())
            .all()
        )

    def create(self, data: CouponCreate) -> Coupon:
        """Create a new coupon."""
        coupon = Coupon(
            code=normalize_code(data.code),
            title=data.title,
            description=data.description,
            discount_type=data.discount_type.value,
            discount_value=data.discount_value,
            max_discount=data.max_discount,
            min_order_value=data.min_order_value,
            valid_from=data.valid_from,
            valid_until=data.valid_until,
            usage_limit=data.usage_limit,
            user_usage_limit=data.user_usage_limit,
            payment_methods=list(data.payment_methods),
            specific_users=list(data.user_restrictions.specific_users),
            is_active=data.is_active,
            priority=data.priority,
        )
        self.db.add(coupon)
        self.db.commit()
        self.db.refresh(coupon)
        return coupon

    def update(self, coupon_id: UUID, data: CouponUpdate) -> Coupon | None:
        """Update a coupon by ID with the fields present in data."""
        coupon = self.get_by_id(coupon_id)
        if not coupon:
            return None

        update_data = data.model_dump(exclude_unset=True)

        if "code" in update_data and update_data["code"]:
            update_data["code"] = normalize_code(update_data["code"])
        if "discount_type" in update_data and update_data["discount_type"]:
            update_data["discount_type"] = update_data["discount_type"].value
        if "user_restrictions" in update_data:
            restrictions = update_data.pop("user_restrictions") or {}
            update_data["specific_users"] = list(restrictions.get("specific_users", []))
        if "payment_methods" in update_data:
            update_data["payment_methods"] = list(update_data["payment_methods"] or [])

        for key, value in update_data.items():
            if value is None and key not in NULLABLE_FIELDS:
                continue
            setattr(coupon, key, value)

        self.db.commit()
        self.db.refresh(coupon)
        return coupon

    def count_user_redemptions(self, coupon_id: UUID, user_id: str) -> int:
        return (
            self.db.query(func.count(CouponRedemption.id))
            .filter(
                CouponRedemption.coupon_id == coupon_id,
                CouponRedemption.user_id == str(user_id),
            )
            .scalar()
            or 0
        )

    def user_redemption_counts(self, user_id: str, coupon_ids: list[UUID]) -> dict[UUID, int]:
        if not coupon_ids:
            return {}
        rows = (
            self.db.query(CouponRedemption.coupon_id, func.count(CouponRedemption.id))
            .filter(
                CouponRedemption.user_id == str(user_id),
                CouponRedemption.coupon_id.in_(coupon_ids),
            )
            .group_by(CouponRedemption.coupon_id)
            .all()
        )
        return {coupon_id: count for coupon_id, count in rows}

    def get_redemptions(self, coupon_id: UUID) -> list[CouponRedemption]:
        """Get the redemption log of a coupon, oldest first."""
        return (
            self.db.query(CouponRedemption)
            .filter(CouponRedemption.coupon_id == coupon_id)
            .order_by(CouponRedemption.used_at.asc())
            .all()
        )

    def redeem(
        self,
        coupon_id: UUID,
        user_id: str,
        order_value: Decimal,
        discount_applied: Decimal,
        used_at: datetime,
        enforce_usage_limit: bool = True,
    ) -> CouponRedemption | None:
        query = self.db.query(Coupon).filter(Coupon.id == coupon_id, Coupon.is_active.is_(True))
        if enforce_usage_limit:
            query = query.filter(
                or_(Coupon.usage_limit.is_(None), Coupon.usage_count < Coupon.usage_limit)
            )

        # Increment in SQL, never read-modify-write in Python.
        updated = query.update(
            {Coupon.usage_count: Coupon.usage_count + 1},
            synchronize_session=False,
        )
        if not updated:
            self.db.rollback()
            return None

        redemption = CouponRedemption(
            coupon_id=coupon_id,
            user_id=str(user_id),
            used_at=used_at,
            order_value=order_value,
            discount_applied=discount_applied,
        )
        self.db.add(redemption)
        self.db.commit()
        self.db.refresh(redemption)
        return redemption
