"""Prompts y validación de las extracciones tipadas.

Todas las funciones levantan ``ExtractionError`` tanto si falla la cadena de
providers como si el JSON no tiene la forma esperada; los flows tratan ambos
casos igual: no se extrajo nada y se vuelve a preguntar.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable

from pydantic import BaseModel, ValidationError

from comanda.ai.client import Extractor
from comanda.commands.intents import AdminIntent, intent_from_label
from comanda.core.errors import ExtractionError
from comanda.schemas.extraction import (
    AnswerExtraction,
    BankExtraction,
    HoursExtraction,
    IntentExtraction,
    OrderExtraction,
    ProductItem,
    ProductsExtraction,
    ZonesExtraction,
)

logger = logging.getLogger(__name__)

HOURS_PROMPT = """Sos un asistente que normaliza horarios de atención de un comercio argentino.
Devolvé SOLO un JSON con la forma {"hours": "..."}.
Formato de salida: segmentos separados por coma, días abreviados en español
(Lun, Mar, Mié, Jue, Vie, Sáb, Dom) y horas en 24hs HH:MM.
Ejemplo: "Lun-Vie 11:00-23:00, Sáb 12:00-00:00".
Si el texto no describe un horario, devolvé {"hours": ""}."""

ZONES_PROMPT = """Extraé las zonas de delivery y su costo de envío en pesos argentinos.
Devolvé SOLO un JSON con la forma {"zones": [{"zone_name": "Centro", "price": 1500}]}.
Los precios son números enteros sin símbolos. Si no hay zonas, devolvé {"zones": []}."""

BANK_PROMPT = """Extraé los datos bancarios para transferencias en Argentina.
Devolvé SOLO un JSON con la forma {"alias": "...", "cbu": "...", "account_holder": "..."}.
Usá null para cualquier dato que no esté en el texto. El CBU/CVU tiene 22 dígitos."""

PRODUCTS_PROMPT = """Extraé productos de un menú de comida.
Devolvé SOLO un JSON con la forma
{"products": [{"name": "Pizza Muzzarella", "price": 5500, "category": "Pizzas", "description": null}]}.
Los precios son números enteros en pesos. Si no hay productos, devolvé {"products": []}."""

ORDER_PROMPT = """Sos el asistente de pedidos de un local de comida.
Este es el catálogo disponible:
{catalog}

Interpretá el pedido del cliente y devolvé SOLO un JSON con la forma
{{"items": [{{"product_id": 1, "name": "...", "qty": 2}}], "not_found": ["..."]}}.
Usá únicamente product_id del catálogo. Lo que el cliente pida y no esté en el
catálogo va en "not_found"."""

INTENT_PROMPT = """Clasificá el mensaje del dueño de un local en una intención.
Intenciones posibles: {intents}.
Devolvé SOLO un JSON con la forma {{"intent": "...", "period": null, "planSlug": null}}.
"period" (hoy, semana o mes) solo para sales_summary; "planSlug" (basico,
intermedio o pro) solo para change_plan.
Si no estás seguro, usá "general_question"."""

ANSWER_PROMPT = """Sos el asistente del dueño de un local que vende por WhatsApp.
Contexto del negocio:
{context}

Respondé en español rioplatense, breve y concreto.
Devolvé SOLO un JSON con la forma {{"answer": "..."}}."""


@dataclass
class ExtractedLine:
    product_id: int
    qty: int


@dataclass
class OrderParse:
    lines: list[ExtractedLine]
    not_found: list[str]


def _validate(model: type[BaseModel], data: dict[str, Any]) -> Any:
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise ExtractionError(f"unexpected shape for {model.__name__}", retryable=False) from exc


def extract_business_hours(extractor: Extractor, text: str) -> str:
    parsed = _validate(HoursExtraction, extractor.extract(HOURS_PROMPT, text))
    hours = parsed.hours.strip()
    if not hours:
        raise ExtractionError("no hours in text", retryable=False)
    return hours


def extract_delivery_zones(extractor: Extractor, text: str) -> list[dict[str, Any]]:
    parsed = _validate(ZonesExtraction, extractor.extract(ZONES_PROMPT, text))
    return [{"zone_name": zone.zone_name.strip(), "price": int(round(zone.price))} for zone in parsed.zones]


def extract_bank_details(extractor: Extractor, text: str) -> BankExtraction:
    return _validate(BankExtraction, extractor.extract(BANK_PROMPT, text))


def extract_products(extractor: Extractor, text: str) -> list[ProductItem]:
    parsed = _validate(ProductsExtraction, extractor.extract(PRODUCTS_PROMPT, text))
    return [item for item in parsed.products if item.name.strip() and item.price > 0]


def catalog_lines(products: Iterable[Any]) -> str:
    return "\n".join(
        f'- ID: {product.id} | Nombre: "{product.name}" | Precio: ${product.price} | '
        f"Categoría: {product.category or 'General'}"
        for product in products
    )


def extract_order_items(extractor: Extractor, text: str, products: list[Any]) -> OrderParse:
    """Interpreta el pedido contra el catálogo disponible del negocio.

    Solo se aceptan product_id que estén en ``products``; el resto se reporta
    como no encontrado. Las cantidades se redondean con mínimo 1.
    """
    prompt = ORDER_PROMPT.format(catalog=catalog_lines(products))
    parsed = _validate(OrderExtraction, extractor.extract(prompt, text))

    known_ids = {product.id for product in products}
    lines: list[ExtractedLine] = []
    not_found = [term.strip() for term in parsed.not_found if term and term.strip()]
    for item in parsed.items:
        if item.product_id not in known_ids:
            logger.info("extracted product outside catalog product_id=%s", item.product_id)
            not_found.append(item.name or str(item.product_id))
            continue
        lines.append(ExtractedLine(product_id=item.product_id, qty=max(1, int(round(item.qty)))))
    return OrderParse(lines=lines, not_found=not_found)


def classify_admin_intent(extractor: Extractor, text: str) -> tuple[AdminIntent, dict[str, Any]]:
    labels = ", ".join(sorted(intent.value for intent in AdminIntent if intent is not AdminIntent.CLARIFY))
    parsed = _validate(IntentExtraction, extractor.extract(INTENT_PROMPT.format(intents=labels), text))
    intent = intent_from_label(parsed.intent)
    args: dict[str, Any] = {}
    if intent is AdminIntent.SALES_SUMMARY:
        period = (parsed.period or "hoy").strip().lower()
        args["period"] = period if period in {"hoy", "semana", "mes"} else "hoy"
    return intent, args


def answer_question(extractor: Extractor, text: str, business_context: str) -> str:
    parsed = _validate(AnswerExtraction, extractor.extract(ANSWER_PROMPT.format(context=business_context), text))
    return parsed.answer.strip()
