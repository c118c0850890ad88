"""Shared test fixtures for all test modules."""

import contextlib
from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import app.models  # noqa: F401
from app.core import database as db_module
from app.core.auth import create_access_token
from app.core.database import Base
from app.models.coupon import DiscountType
from app.schemas.coupon import CouponCreate

# Create an in-memory SQLite engine with StaticPool so all connections
# share the same database state and there are no file-locking issues.
_test_engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
_TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=_test_engine)

CUSTOMER_ID = "user-1"
OTHER_CUSTOMER_ID = "user-2"
ADMIN_ID = "admin-1"


def auth_headers(user_id: str = CUSTOMER_ID, role: str = "customer") -> dict[str, str]:
    """Authorization header carrying a freshly signed access token."""
    return {"Authorization": f"Bearer {create_access_token(user_id, role)}"}


def coupon_data(**overrides) -> CouponCreate:
    """A currently valid 10% coupon; keyword arguments override any field."""
    now = datetime.now(UTC)
    fields = {
        "code": "SAVE10",
        "title": "10% off",
        "discount_type": DiscountType.PERCENTAGE,
        "discount_value": Decimal("10"),
        "max_discount": Decimal("500"),
        "min_order_value": Decimal("1000"),
        "valid_from": now - timedelta(days=1),
        "valid_until": now + timedelta(days=30),
    }
    fields.update(overrides)
    return CouponCreate(**fields)


@pytest.fixture(autouse=True)
def setup_database():
    """Create tables before each test and truncate all data after.

    Patches the module-level engine and SessionLocal so all application code
    uses the in-memory test database. Clears data after each test.
    """
    original_engine = db_module.engine
    original_session = db_module.SessionLocal
    db_module.engine = _test_engine
    db_module.SessionLocal = _TestSessionLocal

    Base.metadata.create_all(bind=_test_engine)

    yield
    with _test_engine.connect() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            with contextlib.suppress(OperationalError):
                conn.execute(table.delete())
        conn.commit()

    db_module.engine = original_engine
    db_module.SessionLocal = original_session


@pytest.fixture
def db_session():
    """Create a database session for direct repository testing."""
    gen = db_module.get_db()
    db = next(gen)
    try:
        yield db
    finally:
        for _ in gen:
            pass
