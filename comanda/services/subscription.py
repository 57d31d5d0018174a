"""Plan activo, features y cuotas de cada negocio.

Nada se cachea entre requests: cada consulta lee la base, así un cambio de
plan impacta en el próximo mensaje.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta

from sqlalchemy.orm import Session

from comanda.core.clock import as_utc, month_key, utcnow
from comanda.core.config import TRIAL_DAYS, TRIAL_PLAN_SLUG
from comanda.models.monthly_usage import MonthlyUsage
from comanda.models.subscription import Subscription
from comanda.services.plans import BOOLEAN_FEATURES, UNLIMITED_THRESHOLD, Plan, get_plan

logger = logging.getLogger(__name__)

_LIVE_STATUSES = ("trial", "active")


@dataclass
class QuotaCheck:
    allowed: bool
    current: int
    limit: int | None

    @property
    def unlimited(self) -> bool:
        return self.limit is None


def active_subscription(db: Session, business_id: int) -> Subscription | None:
    subscription = (
        db.query(Subscription)
        .filter(
            Subscription.business_id == business_id,
            Subscription.status.in_(_LIVE_STATUSES),
        )
        .order_by(Subscription.end_date.desc())
        .first()
    )
    if subscription is None:
        return None

    if as_utc(subscription.end_date) <= utcnow():
        logger.info(
            "subscription expired on read",
            extra={"tenant_id": str(business_id)},
        )
        subscription.status = "expired"
        db.flush()
        return None
    return subscription


def active_plan(db: Session, business_id: int) -> Plan | None:
    subscription = active_subscription(db, business_id)
    if subscription is None:
        return None
    return get_plan(subscription.plan_slug)


def has_feature(db: Session, business_id: int, feature: str) -> bool:
    if feature not in BOOLEAN_FEATURES:
        raise ValueError(f"Unknown feature: {feature}")
    plan = active_plan(db, business_id)
    return bool(plan and getattr(plan, feature))


def get_usage(db: Session, business_id: int, month: str | None = None) -> MonthlyUsage | None:
    return (
        db.query(MonthlyUsage)
        .filter(MonthlyUsage.business_id == business_id, MonthlyUsage.month == (month or month_key()))
        .first()
    )


def increment_usage(db: Session, business_id: int, counter: str) -> int:
    if counter not in {"order_count", "analytics_queries"}:
        raise ValueError(f"Unknown usage counter: {counter}")
    usage = get_usage(db, business_id)
    if usage is None:
        usage = MonthlyUsage(business_id=business_id, month=month_key(), order_count=0, analytics_queries=0)
        db.add(usage)
    setattr(usage, counter, (getattr(usage, counter) or 0) + 1)
    db.flush()
    return getattr(usage, counter)


def check_quota(db: Session, business_id: int, quota: str, *, candidate: int | None = None) -> QuotaCheck:
    """``candidate`` es la cantidad propuesta (solo para zonas)."""
    plan = active_plan(db, business_id)
    if plan is None:
        return QuotaCheck(allowed=False, current=0, limit=0)

    if quota == "orders":
        usage = get_usage(db, business_id)
        current = usage.order_count if usage else 0
        limit = plan.monthly_order_limit
        if limit is None:
            return QuotaCheck(allowed=True, current=current, limit=None)
        return QuotaCheck(allowed=current < limit, current=current, limit=limit)

    if quota == "zones":
        current = candidate or 0
        limit = plan.delivery_zone_limit
        if limit >= UNLIMITED_THRESHOLD:
            return QuotaCheck(allowed=True, current=current, limit=None)
        return QuotaCheck(allowed=current <= limit, current=current, limit=limit)

    if quota == "analytics":
        usage = get_usage(db, business_id)
        current = usage.analytics_queries if usage else 0
        limit = plan.analytics_queries_limit
        if limit == 0:
            return QuotaCheck(allowed=False, current=current, limit=0)
        if limit >= UNLIMITED_THRESHOLD:
            return QuotaCheck(allowed=True, current=current, limit=None)
        return QuotaCheck(allowed=current < limit, current=current, limit=limit)

    raise ValueError(f"Unknown quota: {quota}")


def start_trial(db: Session, business_id: int) -> Subscription:
    existing = (
        db.query(Subscription)
        .filter(Subscription.business_id == business_id, Subscription.status != "cancelled")
        .first()
    )
    if existing is not None:
        return existing

    now = utcnow()
    subscription = Subscription(
        business_id=business_id,
        plan_slug=TRIAL_PLAN_SLUG,
        status="trial",
        start_date=now,
        end_date=now + timedelta(days=TRIAL_DAYS),
    )
    db.add(subscription)
    db.flush()
    logger.info("trial started plan=%s", TRIAL_PLAN_SLUG, extra={"tenant_id": str(business_id)})
    return subscription


def activate_plan(db: Session, business_id: int, slug: str, *, months: int = 1) -> Subscription:
    if get_plan(slug) is None:
        raise ValueError(f"Unknown plan: {slug}")

    for previous in (
        db.query(Subscription)
        .filter(Subscription.business_id == business_id, Subscription.status.in_(_LIVE_STATUSES + ("expired",)))
        .all()
    ):
        previous.status = "cancelled"

    now = utcnow()
    subscription = Subscription(
        business_id=business_id,
        plan_slug=slug,
        status="active",
        start_date=now,
        end_date=now + timedelta(days=30 * months),
    )
    db.add(subscription)
    db.flush()
    logger.info("plan activated plan=%s months=%s", slug, months, extra={"tenant_id": str(business_id)})
    return subscription
