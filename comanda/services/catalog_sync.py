"""Importa productos del catálogo de Meta al menú del negocio."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import httpx
from sqlalchemy.orm import Session

from comanda.core.config import META_API_VERSION
from comanda.core.errors import CatalogImportError
from comanda.models.product import Product
from comanda.services.formatting import parse_price
from comanda.whatsapp.base import ChannelCredentials

logger = logging.getLogger(__name__)

CATALOG_FIELDS = "id,name,retailer_id,description,price,currency,availability,category"
_MAX_PAGES = 50


@dataclass
class ImportResult:
    inserted: int = 0
    linked: int = 0
    skipped: int = 0

    @property
    def total(self) -> int:
        return self.inserted + self.linked + self.skipped


class CatalogImporter:
    def __init__(self, http_client: httpx.Client | None = None) -> None:
        self._http_client = http_client

    def _get(self, url: str, params: dict[str, Any] | None, headers: dict[str, str]) -> httpx.Response:
        if self._http_client is not None:
            return self._http_client.get(url, params=params, headers=headers)
        with httpx.Client(timeout=20.0) as client:
            return client.get(url, params=params, headers=headers)

    def fetch_catalog(self, channel: ChannelCredentials) -> list[dict[str, Any]]:
        if not channel.catalog_id or not channel.access_token:
            raise CatalogImportError("El canal no tiene catálogo configurado")

        headers = {"Authorization": f"Bearer {channel.access_token}"}
        url: str | None = f"https://graph.facebook.com/{META_API_VERSION}/{channel.catalog_id}/products"
        params: dict[str, Any] | None = {"fields": CATALOG_FIELDS, "limit": 100}
        items: list[dict[str, Any]] = []
        pages = 0
        while url and pages < _MAX_PAGES:
            try:
                response = self._get(url, params, headers)
            except httpx.HTTPError as exc:
                raise CatalogImportError(f"Error de red leyendo el catálogo: {exc}") from exc
            if response.status_code >= 400:
                logger.warning("catalog fetch failed", extra={"status_code": response.status_code})
                raise CatalogImportError(f"Meta respondió {response.status_code} al leer el catálogo")
            try:
                data = response.json()
            except ValueError as exc:
                raise CatalogImportError("Meta devolvió una respuesta inválida al leer el catálogo") from exc
            if not isinstance(data, dict):
                raise CatalogImportError("Meta devolvió una respuesta inválida al leer el catálogo")
            items.extend(data.get("data") or [])
            # paging.next ya trae los parámetros
            url = (data.get("paging") or {}).get("next")
            params = None
            pages += 1
        return items

    def import_products(self, db: Session, business_id: int, channel: ChannelCredentials) -> ImportResult:
        items = self.fetch_catalog(channel)
        existing = db.query(Product).filter(Product.business_id == business_id).all()
        by_retailer = {product.retailer_id: product for product in existing if product.retailer_id}
        unlinked_by_name = {product.name.strip().lower(): product for product in existing if not product.retailer_id}

        result = ImportResult()
        for item in items:
            retailer_id = str(item.get("retailer_id") or item.get("id") or "").strip()
            name = str(item.get("name") or "").strip()
            price = parse_price(item.get("price"))
            if not retailer_id or not name:
                result.skipped += 1
                continue
            if retailer_id in by_retailer:
                result.skipped += 1
                continue

            match = unlinked_by_name.pop(name.lower(), None)
            if match is not None:
                match.retailer_id = retailer_id
                by_retailer[retailer_id] = match
                result.linked += 1
                continue

            if not price or price <= 0:
                result.skipped += 1
                continue
            product = Product(
                business_id=business_id,
                name=name,
                description=item.get("description") or None,
                price=price,
                category=item.get("category") or None,
                is_available=(item.get("availability") or "in stock") == "in stock",
                retailer_id=retailer_id,
            )
            db.add(product)
            by_retailer[retailer_id] = product
            result.inserted += 1

        db.flush()
        logger.info(
            "catalog import inserted=%s linked=%s skipped=%s",
            result.inserted,
            result.linked,
            result.skipped,
            extra={"tenant_id": str(business_id)},
        )
        return result
