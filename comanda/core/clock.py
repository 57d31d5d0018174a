from __future__ import annotations

from datetime import datetime, timezone
from zoneinfo import ZoneInfo

from comanda.core.config import TIMEZONE


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def tenant_tz() -> ZoneInfo:
    return ZoneInfo(TIMEZONE)


def local_now(now: datetime | None = None) -> datetime:
    return (now or utcnow()).astimezone(tenant_tz())


def as_utc(value: datetime) -> datetime:
    """SQLite devuelve datetimes naive; se asumen en UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def month_key(now: datetime | None = None) -> str:
    return local_now(now).strftime("%Y-%m")
