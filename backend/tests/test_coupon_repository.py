"""Tests for CouponRepository data access."""

from datetime import UTC, datetime, timedelta
from decimal import Decimal
from uuid import uuid4

import pytest

from app.models.coupon import Coupon, DiscountType
from app.models.coupon_redemption import CouponRedemption
from app.models.shared import as_utc
from app.repositories.coupon_repository import CouponRepository, CouponStore, normalize_code
from app.schemas.coupon import CouponUpdate, UserRestrictions
from tests.conftest import CUSTOMER_ID, OTHER_CUSTOMER_ID, coupon_data


@pytest.fixture
def repo(db_session):
    return CouponRepository(db_session)


def _redeem(repo, coupon, user_id=CUSTOMER_ID, enforce=True):
    return repo.redeem(
        coupon.id,
        user_id=user_id,
        order_value=Decimal("2000"),
        discount_applied=Decimal("200"),
        used_at=datetime.now(UTC),
        enforce_usage_limit=enforce,
    )


def test_repository_implements_store():
    assert issubclass(CouponRepository, CouponStore)


def test_normalize_code():
    assert normalize_code("  save10\n") == "SAVE10"


class TestCreate:
    def test_defaults(self, repo):
        coupon = repo.create(coupon_data())

        assert coupon.id is not None
        assert coupon.code == "SAVE10"
        assert coupon.discount_type == DiscountType.PERCENTAGE.value
        assert coupon.usage_count == 0
        assert coupon.usage_limit is None
        assert coupon.user_usage_limit == 1
        assert coupon.payment_methods == []
        assert coupon.specific_users == []
        assert coupon.is_active is True
        assert coupon.priority == 0
        assert coupon.created_at is not None

    def test_timestamps_set_on_create(self, repo):
        before = datetime.now(UTC)
        coupon = repo.create(coupon_data())
        assert as_utc(coupon.created_at) >= before
        assert coupon.updated_at is not None

    def test_user_restrictions_are_flattened(self, repo):
        coupon = repo.create(
            coupon_data(user_restrictions=UserRestrictions(specific_users=["u1", "u2"]))
        )
        assert coupon.specific_users == ["u1", "u2"]
        assert coupon.user_restrictions == {"specific_users": ["u1", "u2"]}


class TestFind:
    def test_find_by_code_case_insensitive(self, repo):
        coupon = repo.create(coupon_data())
        assert repo.find_by_code("save10").id == coupon.id

    def test_find_by_code_skips_inactive(self, repo):
        repo.create(coupon_data(is_active=False))
        assert repo.find_by_code("SAVE10") is None
        assert repo.find_by_code("SAVE10", active_only=False) is not None

    def test_find_by_code_not_found(self, repo):
        assert repo.find_by_code("MISSING") is None

    def test_get_by_id_not_found(self, repo):
        assert repo.get_by_id(uuid4()) is None

    def test_find_active_respects_window(self, repo):
        now = datetime.now(UTC)
        repo.create(coupon_data(code="NOW"))
        repo.create(
            coupon_data(
                code="LATER",
                valid_from=now + timedelta(hours=1),
                valid_until=now + timedelta(days=1),
            )
        )
        assert [c.code for c in repo.find_active(now)] == ["NOW"]
        assert {c.code for c in repo.find_active(now + timedelta(hours=2))} == {"NOW", "LATER"}

    def test_find_active_unlimited_and_remaining(self, repo, db_session):
        repo.create(coupon_data(code="UNLIMITED"))
        remaining = repo.create(coupon_data(code="REMAINING", usage_limit=2))
        remaining.usage_count = 1
        db_session.commit()

        codes = {c.code for c in repo.find_active(datetime.now(UTC))}
        assert codes == {"UNLIMITED", "REMAINING"}


class TestUpdate:
    def test_partial_update(self, repo):
        coupon = repo.create(coupon_data())
        updated = repo.update(coupon.id, CouponUpdate(code="new10", max_discount=None))

        assert updated.code == "NEW10"
        assert updated.max_discount is None
        assert updated.title == "10% off"

    def test_update_restrictions(self, repo):
        coupon = repo.create(coupon_data())
        updated = repo.update(
            coupon.id,
            CouponUpdate(user_restrictions=UserRestrictions(specific_users=["vip"])),
        )
        assert updated.specific_users == ["vip"]

    def test_explicit_null_on_required_field_is_ignored(self, repo):
        coupon = repo.create(coupon_data())
        updated = repo.update(coupon.id, CouponUpdate(title=None, discount_type=None))
        assert updated.title == "10% off"
        assert updated.discount_type == DiscountType.PERCENTAGE.value

    def test_update_not_found(self, repo):
        assert repo.update(uuid4(), CouponUpdate(title="x")) is None


class TestRedeem:
    def test_increments_and_records(self, repo, db_session):
        coupon = repo.create(coupon_data())
        redemption = _redeem(repo, coupon)

        assert isinstance(redemption, CouponRedemption)
        assert redemption.coupon_id == coupon.id
        db_session.expire_all()
        assert db_session.get(Coupon, coupon.id).usage_count == 1
        assert repo.count_user_redemptions(coupon.id, CUSTOMER_ID) == 1
        assert repo.count_user_redemptions(coupon.id, OTHER_CUSTOMER_ID) == 0

    def test_conditional_on_usage_limit(self, repo):
        coupon = repo.create(coupon_data(usage_limit=1))
        assert _redeem(repo, coupon) is not None
        assert _redeem(repo, coupon, OTHER_CUSTOMER_ID) is None

        assert repo.get_by_id(coupon.id).usage_count == 1
        assert len(repo.get_redemptions(coupon.id)) == 1

    def test_unconditional_when_not_enforced(self, repo):
        coupon = repo.create(coupon_data(usage_limit=1))
        _redeem(repo, coupon)
        assert _redeem(repo, coupon, OTHER_CUSTOMER_ID, enforce=False) is not None
        assert repo.get_by_id(coupon.id).usage_count == 2

    def test_inactive_coupon_not_redeemed(self, repo):
        coupon = repo.create(coupon_data(is_active=False))
        assert _redeem(repo, coupon) is None
        assert repo.get_by_id(coupon.id).usage_count == 0

    def test_successive_redeems_accumulate(self, repo):
        coupon = repo.create(coupon_data())
        _redeem(repo, coupon, "a")
        _redeem(repo, coupon, "b")

        assert repo.get_by_id(coupon.id).usage_count == 2

    def test_user_redemption_counts(self, repo):
        first = repo.create(coupon_data(code="FIRST", user_usage_limit=3))
        second = repo.create(coupon_data(code="SECOND"))
        untouched = repo.create(coupon_data(code="UNTOUCHED"))
        _redeem(repo, first)
        _redeem(repo, first)
        _redeem(repo, second)
        _redeem(repo, second, OTHER_CUSTOMER_ID)

        counts = repo.user_redemption_counts(CUSTOMER_ID, [first.id, second.id, untouched.id])
        assert counts == {first.id: 2, second.id: 1}
        assert repo.user_redemption_counts(CUSTOMER_ID, []) == {}
