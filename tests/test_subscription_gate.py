from datetime import timedelta

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from comanda.core.clock import utcnow
from comanda.core.database import Base
from comanda.models import Business, Subscription
from comanda.services.subscription import (
    activate_plan,
    active_plan,
    active_subscription,
    check_quota,
    has_feature,
    increment_usage,
    start_trial,
)


def _build_session():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    business = Business(admin_phone="5491100000001", business_name="Pizzería Sur", is_active=True)
    db.add(business)
    db.commit()
    return db, business


def test_trial_is_idempotent_and_grants_intermediate_plan() -> None:
    db, business = _build_session()

    first = start_trial(db, business.id)
    second = start_trial(db, business.id)

    assert first.id == second.id
    assert first.status == "trial"
    assert active_plan(db, business.id).slug == "intermedio"
    assert has_feature(db, business.id, "ai_enabled")


def test_expired_subscription_is_flipped_on_read() -> None:
    db, business = _build_session()
    now = utcnow()
    db.add(
        Subscription(
            business_id=business.id,
            plan_slug="pro",
            status="active",
            start_date=now - timedelta(days=40),
            end_date=now - timedelta(days=10),
        )
    )
    db.commit()

    assert active_subscription(db, business.id) is None
    assert db.query(Subscription).one().status == "expired"
    assert not has_feature(db, business.id, "ai_enabled")
    assert check_quota(db, business.id, "orders").allowed is False


def test_order_quota_counts_monthly_usage() -> None:
    db, business = _build_session()
    activate_plan(db, business.id, "basico")

    for _ in range(99):
        increment_usage(db, business.id, "order_count")
    assert check_quota(db, business.id, "orders").allowed is True

    increment_usage(db, business.id, "order_count")
    quota = check_quota(db, business.id, "orders")
    assert quota.allowed is False
    assert quota.current == 100
    assert quota.limit == 100


def test_zone_and_analytics_limits_by_plan() -> None:
    db, business = _build_session()
    activate_plan(db, business.id, "basico")

    assert check_quota(db, business.id, "zones", candidate=3).allowed
    assert not check_quota(db, business.id, "zones", candidate=4).allowed
    assert not check_quota(db, business.id, "analytics").allowed

    activate_plan(db, business.id, "pro")
    assert check_quota(db, business.id, "zones", candidate=50).unlimited
    assert check_quota(db, business.id, "orders").unlimited


def test_activate_plan_cancels_previous_subscriptions() -> None:
    db, business = _build_session()
    start_trial(db, business.id)

    subscription = activate_plan(db, business.id, "pro", months=2)
    db.commit()

    statuses = sorted(row.status for row in db.query(Subscription).all())
    assert statuses == ["active", "cancelled"]
    assert active_subscription(db, business.id).id == subscription.id
    assert active_plan(db, business.id).slug == "pro"
