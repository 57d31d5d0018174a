from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from threading import Lock
from typing import Callable

from sqlalchemy.orm import Session

from comanda.core.config import (
    CATALOG_ID,
    META_APP_SECRET,
    META_PHONE_NUMBER_ID,
    META_VERIFY_TOKEN,
    META_WHATSAPP_TOKEN,
    TENANT_CACHE_TTL_SECONDS,
)
from comanda.core.database import SessionLocal
from comanda.models.tenant_channel import TenantChannel
from comanda.whatsapp.base import ChannelCredentials

logger = logging.getLogger(__name__)


@dataclass
class _CacheEntry:
    value: ChannelCredentials | None
    expires_at: float


def credentials_from_row(channel: TenantChannel) -> ChannelCredentials:
    return ChannelCredentials(
        phone_number_id=channel.phone_number_id,
        access_token=channel.access_token,
        verify_token=channel.verify_token,
        app_secret=channel.app_secret,
        catalog_id=channel.catalog_id,
        business_id=channel.business_id,
    )


def load_channel(
    phone_number_id: str, session_factory: Callable[[], Session] = SessionLocal
) -> ChannelCredentials | None:
    db = session_factory()
    try:
        channel = (
            db.query(TenantChannel)
            .filter(TenantChannel.phone_number_id == phone_number_id, TenantChannel.is_active.is_(True))
            .first()
        )
        return credentials_from_row(channel) if channel is not None else None
    finally:
        db.close()


def default_channel(phone_number_id: str | None = None) -> ChannelCredentials | None:
    """Canal de un solo tenant armado con las variables META_* del entorno."""
    if not META_WHATSAPP_TOKEN or not META_PHONE_NUMBER_ID:
        return None
    if phone_number_id and phone_number_id != META_PHONE_NUMBER_ID:
        return None
    return ChannelCredentials(
        phone_number_id=META_PHONE_NUMBER_ID,
        access_token=META_WHATSAPP_TOKEN,
        verify_token=META_VERIFY_TOKEN or None,
        app_secret=META_APP_SECRET or None,
        catalog_id=CATALOG_ID or None,
        business_id=None,
        persisted=False,
    )


class TenantResolver:
    """phone_number_id -> credenciales, con cache TTL.

    También se cachean los faltantes, así un número desconocido no pega en la
    base en cada evento. El lock solo protege el dict, nunca la lectura a la base.
    """

    def __init__(
        self,
        loader: Callable[[str], ChannelCredentials | None] = load_channel,
        *,
        ttl_seconds: float = TENANT_CACHE_TTL_SECONDS,
        max_entries: int = 1024,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._loader = loader
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._cache: dict[str, _CacheEntry] = {}
        # se incrementa en cada invalidate; solo crece con los canales que se vinculan
        self._generations: dict[str, int] = {}
        self._lock = Lock()

    def resolve(self, phone_number_id: str | None) -> ChannelCredentials | None:
        if not phone_number_id:
            return None

        now = self._clock()
        with self._lock:
            entry = self._cache.get(phone_number_id)
            if entry is not None and entry.expires_at > now:
                return entry.value
            generation = self._generations.get(phone_number_id, 0)

        value = self._loader(phone_number_id)

        with self._lock:
            if self._generations.get(phone_number_id, 0) != generation:
                # invalidado mientras se leía: el valor puede ser viejo
                return value
            self._cache[phone_number_id] = _CacheEntry(value=value, expires_at=now + self.ttl_seconds)
            if len(self._cache) > self.max_entries:
                self._evict_expired(now)
        if value is None:
            logger.info("no channel for phone_number_id=%s", phone_number_id)
        return value

    def invalidate(self, phone_number_id: str) -> None:
        with self._lock:
            self._cache.pop(phone_number_id, None)
            self._generations[phone_number_id] = self._generations.get(phone_number_id, 0) + 1

    def __len__(self) -> int:
        with self._lock:
            return len(self._cache)

    def _evict_expired(self, now: float) -> None:
        expired = [key for key, entry in self._cache.items() if entry.expires_at <= now]
        for key in expired:
            del self._cache[key]
        # si sigue lleno, se descartan los que vencen antes
        overflow = len(self._cache) - self.max_entries
        if overflow > 0:
            for key, _entry in sorted(self._cache.items(), key=lambda item: item[1].expires_at)[:overflow]:
                del self._cache[key]
