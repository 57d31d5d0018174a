from __future__ import annotations

import re
import unicodedata
from typing import Any

ORDER_STATUS_LABELS = {
    "nuevo": "🆕 Nuevo",
    "preparando": "👨‍🍳 Preparando",
    "en_camino": "🛵 En camino",
    "entregado": "✅ Entregado",
    "cancelado": "❌ Cancelado",
}

PAYMENT_METHOD_LABELS = {
    "cash": "Efectivo",
    "transfer": "Transferencia",
    "deposit": "Seña + resto",
}


def format_price(amount: int | float | None) -> str:
    """Formato es-AR: separador de miles con punto, sin decimales."""
    value = int(round(amount or 0))
    return f"{value:,}".replace(",", ".")


def status_label(status: str | None) -> str:
    return ORDER_STATUS_LABELS.get(status or "", status or "-")


def payment_label(method: str | None) -> str:
    return PAYMENT_METHOD_LABELS.get(method or "", method or "-")


def strip_accents(text: str) -> str:
    normalized = unicodedata.normalize("NFKD", text)
    return "".join(ch for ch in normalized if not unicodedata.combining(ch))


def normalize_reply(text: str | None) -> str:
    """Mayúsculas sin tildes, para comparar respuestas cortas (SÍ, MENÚ, ENVÍO)."""
    return strip_accents((text or "").strip()).upper()


def parse_price(raw: Any) -> int | None:
    """"$5.500,00", "5,500.00 ARS" o 5500 -> 5500. Los centavos se descartan."""
    if raw is None:
        return None
    if isinstance(raw, (int, float)):
        return int(raw)
    text = re.sub(r"[^\d.,]", "", str(raw))
    if not text:
        return None
    # un separador seguido de exactamente 2 dígitos al final son decimales
    decimals = re.search(r"[.,]\d{2}$", text)
    if decimals:
        text = text[: decimals.start()]
    digits = re.sub(r"[.,]", "", text)
    return int(digits) if digits else None

