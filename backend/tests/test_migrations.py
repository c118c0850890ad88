"""Tests for the Alembic revision that creates the coupon tables."""

import importlib.util
from pathlib import Path

import pytest
from alembic.migration import MigrationContext
from alembic.operations import Operations
from sqlalchemy import create_engine, inspect

VERSIONS_DIR = Path(__file__).resolve().parents[1] / "app" / "alembic" / "versions"


def _load_revision(name: str):
    path = next(VERSIONS_DIR.glob(f"*_{name}.py"))
    spec = importlib.util.spec_from_file_location(path.stem, path)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


@pytest.fixture
def engine():
    engine = create_engine("sqlite://")
    yield engine
    engine.dispose()


def _run(engine, fn):
    with engine.begin() as conn:
        ctx = MigrationContext.configure(conn)
        with Operations.context(ctx):
            fn()


def test_upgrade_creates_tables(engine):
    revision = _load_revision("create_coupons_tables")
    _run(engine, revision.upgrade)

    inspector = inspect(engine)
    assert {"coupons", "coupon_redemptions"} <= set(inspector.get_table_names())

    coupon_columns = {c["name"] for c in inspector.get_columns("coupons")}
    assert {
        "code",
        "discount_type",
        "discount_value",
        "max_discount",
        "min_order_value",
        "valid_from",
        "valid_until",
        "usage_limit",
        "usage_count",
        "user_usage_limit",
        "payment_methods",
        "specific_users",
        "is_active",
        "priority",
    } <= coupon_columns

    redemption_columns = {c["name"] for c in inspector.get_columns("coupon_redemptions")}
    assert redemption_columns == {
        "id",
        "coupon_id",
        "user_id",
        "used_at",
        "order_value",
        "discount_applied",
    }


def test_revision_matches_models():
    from app.core.database import Base
    import app.models  # noqa: F401

    revision = _load_revision("create_coupons_tables")
    engine = create_engine("sqlite://")
    _run(engine, revision.upgrade)

    inspector = inspect(engine)
    for table in ("coupons", "coupon_redemptions"):
        migrated = {c["name"] for c in inspector.get_columns(table)}
        modelled = {c.name for c in Base.metadata.tables[table].columns}
        assert migrated == modelled
    engine.dispose()


def test_downgrade_drops_tables(engine):
    revision = _load_revision("create_coupons_tables")
    _run(engine, revision.upgrade)
    _run(engine, revision.downgrade)

    assert inspect(engine).get_table_names() == []
