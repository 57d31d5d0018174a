from __future__ import annotations

from dataclasses import dataclass

UNLIMITED_THRESHOLD = 999


@dataclass(frozen=True)
class Plan:
    slug: str
    name: str
    price_usd: int
    monthly_order_limit: int | None
    delivery_zone_limit: int
    ai_enabled: bool
    daily_summary: bool
    analytics_queries_limit: int


PLANS: dict[str, Plan] = {
    "basico": Plan(
        slug="basico",
        name="Básico",
        price_usd=10,
        monthly_order_limit=100,
        delivery_zone_limit=3,
        ai_enabled=False,
        daily_summary=False,
        analytics_queries_limit=0,
    ),
    "intermedio": Plan(
        slug="intermedio",
        name="Intermedio",
        price_usd=20,
        monthly_order_limit=500,
        delivery_zone_limit=10,
        ai_enabled=True,
        daily_summary=True,
        analytics_queries_limit=20,
    ),
    "pro": Plan(
        slug="pro",
        name="Pro",
        price_usd=60,
        monthly_order_limit=None,
        delivery_zone_limit=999,
        ai_enabled=True,
        daily_summary=True,
        analytics_queries_limit=999,
    ),
}

BOOLEAN_FEATURES = {"ai_enabled", "daily_summary"}


def normalize_plan_slug(raw: str | None) -> str | None:
    if not raw:
        return None
    slug = raw.strip().lower().replace("á", "a")
    return slug if slug in PLANS else None


def get_plan(slug: str | None) -> Plan | None:
    if not slug:
        return None
    return PLANS.get(slug)


def plan_with_feature(feature: str) -> list[Plan]:
    if feature == "analytics":
        return [plan for plan in PLANS.values() if plan.analytics_queries_limit > 0]
    return [plan for plan in PLANS.values() if getattr(plan, feature, False)]
