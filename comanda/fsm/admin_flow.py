"""Wizard de alta del negocio (7 pasos + revisión) y modo edición.

Cada handler recibe la sesión, el evento y un contexto de solo lectura y
devuelve un ``StepResult``. Ninguno toca la base.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Callable

from comanda.ai import extractors
from comanda.ai.client import Extractor
from comanda.core.edge_policy import EdgeCase, policy_for
from comanda.core.errors import ExtractionError, InvariantViolation
from comanda.fsm.effects import (
    AddProducts,
    AdminSession,
    Buttons,
    DeleteProduct,
    FinishOnboarding,
    ListMessage,
    ReplaceZones,
    Reply,
    SaveBank,
    StepResult,
    UpdateBusiness,
    UpdateProduct,
)
from comanda.fsm.states import AdminStep
from comanda.services.formatting import format_price, normalize_reply, parse_price, strip_accents
from comanda.whatsapp.inbound import InboundEvent

logger = logging.getLogger(__name__)

YES_BUTTONS = [("si", "Sí"), ("no", "No")]
DELIVERY_BUTTONS = [("1", "Solo delivery"), ("2", "Solo retiro"), ("3", "Delivery y retiro")]
PAYMENT_ROWS = [
    ("1", "Efectivo", "Solo efectivo"),
    ("2", "Transferencia", "Solo transferencia"),
    ("3", "Efectivo y transf.", "Efectivo o transferencia"),
    ("4", "Efectivo, transf. y seña", "Pedís una seña por transferencia"),
]
EDIT_ROWS = [
    ("1", "Nombre", "Nombre del negocio"),
    ("2", "Horario", "Horario de atención"),
    ("3", "Entrega", "Delivery / retiro"),
    ("4", "Pagos", "Formas de pago"),
    ("5", "Zonas", "Zonas de delivery"),
    ("6", "Banco", "Datos para transferir"),
]

_PAYMENT_FLAGS = {
    "1": (True, False, False),
    "2": (False, True, False),
    "3": (True, True, False),
    "4": (True, True, True),
}


@dataclass
class AdminContext:
    business: Any
    extractor: Extractor
    zones: list[Any] = field(default_factory=list)
    bank: Any = None
    products_count: int = 0
    # todos los productos del negocio, en el orden en que se listan al admin
    products: list[Any] = field(default_factory=list)
    has_catalog: bool = False
    # None = sin límite
    zone_limit: int | None = None


def is_yes(text: str) -> bool:
    return normalize_reply(text) == "SI"


def is_no(text: str) -> bool:
    return normalize_reply(text) == "NO"


def _goto(session: AdminSession, step: AdminStep, *effects, draft: dict[str, Any] | None = None) -> StepResult:
    # la selección de producto no sobrevive al salir del sub-flujo
    return StepResult(session=replace(session, step=step, draft=draft), effects=list(effects))


def _stay(session: AdminSession, *effects) -> StepResult:
    return StepResult(session=session, effects=list(effects))


# --- prompts (también los usan los comandos de edición) ---

def name_prompt() -> Reply:
    return Reply("*Paso 1 de 7* — ¿Cuál es el nombre de tu negocio?")


def hours_prompt() -> Reply:
    return Reply(
        "*Paso 2 de 7* — ¿Cuál es tu horario de atención?\n"
        "Ej: _Lunes a viernes de 11 a 23, sábados de 12 a 0_"
    )


def delivery_prompt() -> Buttons:
    return Buttons("*Paso 3 de 7* — ¿Cómo entregás los pedidos?", DELIVERY_BUTTONS)


def pickup_address_prompt() -> Reply:
    return Reply("📍 ¿Cuál es la dirección donde retiran los pedidos?")


def payments_prompt() -> ListMessage:
    return ListMessage("*Paso 4 de 7* — ¿Qué formas de pago aceptás?", "Elegir", PAYMENT_ROWS, "Formas de pago")


def deposit_prompt() -> Reply:
    return Reply("¿Qué porcentaje de seña pedís? Respondé con un número del 1 al 100.")


def zones_prompt() -> Reply:
    return Reply(
        "*Paso 5 de 7* — Mandame tus zonas de delivery con el costo de envío.\n"
        "Ej: _Centro $1500, Barrio Norte $2000_"
    )


def bank_prompt() -> Reply:
    return Reply("*Paso 6 de 7* — Pasame los datos para transferencias: *alias*, *CBU/CVU* y *titular*.")


def products_prompt(has_catalog: bool = False) -> Reply:
    text = (
        "*Paso 7 de 7* — Cargá tus productos. Mandame nombre, precio y categoría, uno por línea.\n"
        "Ej: _Pizza Muzzarella $5500 (Pizzas)_\n\n"
        "Cuando termines escribí *LISTO*."
    )
    if has_catalog:
        text += "\nSi ya tenés el catálogo de WhatsApp armado, escribí *LISTO* y lo importo."
    return Reply(text)


def business_summary_lines(business: Any, zones: list[Any], bank: Any, products_count: int) -> list[str]:
    """Ficha del negocio; la usan la revisión del alta y VER NEGOCIO."""
    if business.has_delivery and business.has_pickup:
        delivery = "Delivery y retiro"
    elif business.has_delivery:
        delivery = "Solo delivery"
    else:
        delivery = "Solo retiro"

    payments = []
    if business.accepts_cash:
        payments.append("Efectivo")
    if business.accepts_transfer:
        payments.append("Transferencia")
    if business.accepts_deposit and business.deposit_percent:
        payments.append(f"Seña {business.deposit_percent}%")

    lines = [
        f"🏪 Nombre: {business.business_name or '-'}",
        f"🕐 Horario: {business.business_hours or '-'}",
        f"🛵 Entrega: {delivery}",
    ]
    if business.has_pickup:
        lines.append(f"📍 Retiro en: {business.business_address or '-'}")
    lines.append(f"💳 Pagos: {', '.join(payments) or '-'}")
    if business.has_delivery:
        zone_text = ", ".join(f"{zone.zone_name} ${format_price(zone.price)}" for zone in zones) or "-"
        lines.append(f"🗺️ Zonas: {zone_text}")
    if bank is not None:
        lines.append(f"🏦 Alias: {bank.alias or '-'}")
    lines.append(f"🍕 Productos: {products_count}")
    return lines


def review_summary(ctx: AdminContext) -> Buttons:
    lines = ["📋 *Revisá los datos de tu negocio*", ""]
    lines += business_summary_lines(ctx.business, ctx.zones, ctx.bank, ctx.products_count)
    lines.append("")
    lines.append("¿Confirmamos?")
    return Buttons("\n".join(lines), [("confirmar", "Confirmar"), ("editar", "Editar")])


def _reprompt(case: EdgeCase, text: str) -> Reply:
    logger.info("admin step %s", policy_for(case).value, extra={"edge_case": case.value})
    return Reply(text)


# --- paso 1: nombre ---

def _business_name(session: AdminSession, event: InboundEvent, ctx: AdminContext) -> StepResult:
    name = event.text.strip()
    if not name:
        return _stay(session, _reprompt(EdgeCase.VALIDATION_FAILED, "Escribí el nombre de tu negocio."))

    update = UpdateBusiness({"business_name": name})
    if session.step is AdminStep.EDIT_NAME:
        return _goto(session, AdminStep.COMPLETED, update, Reply(f"✅ Nombre actualizado: *{name}*"))
    return _goto(session, AdminStep.BUSINESS_HOURS, update, Reply(f"✅ ¡Genial, *{name}*!"), hours_prompt())


# --- paso 2: horario ---

def _business_hours(session: AdminSession, event: InboundEvent, ctx: AdminContext) -> StepResult:
    editing = session.step in {AdminStep.EDIT_HOURS, AdminStep.EDIT_HOURS_CONFIRM}
    hours_step = AdminStep.EDIT_HOURS if editing else AdminStep.BUSINESS_HOURS
    confirm_step = AdminStep.EDIT_HOURS_CONFIRM if editing else AdminStep.BUSINESS_HOURS_CONFIRM

    try:
        hours = extractors.extract_business_hours(ctx.extractor, event.text)
    except ExtractionError as exc:
        logger.info("hours extraction failed: %s", exc)
        return _goto(
            session,
            hours_step,
            _reprompt(
                EdgeCase.EXTRACTION_FAILED,
                "⚠️ No pude entender el horario. Probá con algo como: _Lun-Vie 11:00-23:00, Sáb 12:00-00:00_",
            ),
        )

    return _goto(
        session,
        confirm_step,
        UpdateBusiness({"business_hours": hours}),
        Buttons(f"🕐 Entendí este horario:\n*{hours}*\n\n¿Es correcto?", YES_BUTTONS),
    )


def _business_hours_confirm(session: AdminSession, event: InboundEvent, ctx: AdminContext) -> StepResult:
    editing = session.step is AdminStep.EDIT_HOURS_CONFIRM
    if is_yes(event.text):
        if editing:
            return _goto(session, AdminStep.COMPLETED, Reply("✅ Horario actualizado."))
        return _goto(session, AdminStep.DELIVERY_METHOD, delivery_prompt())
    if is_no(event.text):
        back = AdminStep.EDIT_HOURS if editing else AdminStep.BUSINESS_HOURS
        return _goto(session, back, Reply("Dale, escribí de nuevo tu horario de atención:"))
    # cualquier otra cosa se toma como un horario corregido
    return _business_hours(session, event, ctx)


# --- paso 3: entrega ---

def _delivery_method(session: AdminSession, event: InboundEvent, ctx: AdminContext) -> StepResult:
    editing = session.step is AdminStep.EDIT_DELIVERY
    choice = event.text.strip()
    if choice not in {"1", "2", "3"}:
        prompt = delivery_prompt()
        return _stay(session, _reprompt(EdgeCase.VALIDATION_FAILED, "Elegí una opción: 1, 2 o 3."), prompt)

    has_delivery = choice in {"1", "3"}
    has_pickup = choice in {"2", "3"}
    fields: dict[str, Any] = {"has_delivery": has_delivery, "has_pickup": has_pickup}

    if has_pickup:
        next_step = AdminStep.EDIT_ADDRESS if editing else AdminStep.PICKUP_ADDRESS
        return _goto(session, next_step, UpdateBusiness(fields), pickup_address_prompt())

    if editing:
        fields["business_address"] = None
        effects = [UpdateBusiness(fields), Reply("✅ Forma de entrega actualizada.")]
        if not ctx.zones:
            effects.append(Reply("Todavía no tenés zonas de delivery. Escribí *EDITAR ZONAS* para cargarlas."))
        return _goto(session, AdminStep.COMPLETED, *effects)

    return _goto(session, AdminStep.PAYMENT_METHODS, UpdateBusiness(fields), payments_prompt())


def _pickup_address(session: AdminSession, event: InboundEvent, ctx: AdminContext) -> StepResult:
    address = event.text.strip()
    if event.location is not None and not address:
        address = event.location.as_address()
    if not address:
        return _stay(session, _reprompt(EdgeCase.VALIDATION_FAILED, "Escribí la dirección del local."))

    update = UpdateBusiness({"business_address": address})
    if session.step is AdminStep.EDIT_ADDRESS:
        return _goto(session, AdminStep.COMPLETED, update, Reply(f"✅ Dirección actualizada: {address}"))
    return _goto(session, AdminStep.PAYMENT_METHODS, update, payments_prompt())


# --- paso 4: pagos ---

def _advance_after_payment(session: AdminSession, ctx: AdminContext, *effects) -> StepResult:
    if ctx.business.has_delivery:
        return _goto(session, AdminStep.DELIVERY_ZONES, *effects, zones_prompt())
    return _goto(session, AdminStep.BANK_DATA, *effects, bank_prompt())


def _payment_methods(session: AdminSession, event: InboundEvent, ctx: AdminContext) -> StepResult:
    editing = session.step is AdminStep.EDIT_PAYMENTS
    choice = event.text.strip()
    flags = _PAYMENT_FLAGS.get(choice)
    if flags is None:
        return _stay(session, _reprompt(EdgeCase.VALIDATION_FAILED, "Elegí una opción del 1 al 4."), payments_prompt())

    cash, transfer, deposit = flags
    fields: dict[str, Any] = {"accepts_cash": cash, "accepts_transfer": transfer, "accepts_deposit": deposit}
    if deposit:
        next_step = AdminStep.EDIT_DEPOSIT_PERCENT if editing else AdminStep.DEPOSIT_PERCENT
        return _goto(session, next_step, UpdateBusiness(fields), deposit_prompt())

    fields["deposit_percent"] = None
    if editing:
        return _goto(session, AdminStep.COMPLETED, UpdateBusiness(fields), Reply("✅ Formas de pago actualizadas."))
    return _advance_after_payment(session, ctx, UpdateBusiness(fields))


def _deposit_percent(session: AdminSession, event: InboundEvent, ctx: AdminContext) -> StepResult:
    raw = event.text.strip().rstrip("%").strip()
    if not raw.isdigit() or not 1 <= int(raw) <= 100:
        return _stay(session, _reprompt(EdgeCase.VALIDATION_FAILED, "Respondé con un número del 1 al 100."))

    update = UpdateBusiness({"deposit_percent": int(raw)})
    if session.step is AdminStep.EDIT_DEPOSIT_PERCENT:
        return _goto(session, AdminStep.COMPLETED, update, Reply(f"✅ Seña actualizada: {int(raw)}%"))
    return _advance_after_payment(session, ctx, update)


# --- paso 5: zonas ---

def _zones_text(zones: list[dict[str, Any]]) -> str:
    return "\n".join(
        f"{index}. {zone['zone_name']} — ${format_price(zone['price'])}" for index, zone in enumerate(zones, start=1)
    )


def _delivery_zones(session: AdminSession, event: InboundEvent, ctx: AdminContext) -> StepResult:
    editing = session.step in {AdminStep.EDIT_ZONES, AdminStep.EDIT_ZONES_CONFIRM}
    zones_step = AdminStep.EDIT_ZONES if editing else AdminStep.DELIVERY_ZONES
    confirm_step = AdminStep.EDIT_ZONES_CONFIRM if editing else AdminStep.DELIVERY_ZONES_CONFIRM

    try:
        zones = extractors.extract_delivery_zones(ctx.extractor, event.text)
    except ExtractionError as exc:
        logger.info("zones extraction failed: %s", exc)
        return _goto(
            session,
            zones_step,
            _reprompt(
                EdgeCase.EXTRACTION_FAILED,
                "⚠️ No pude leer las zonas. Escribilas así: _Centro $1500, Barrio Norte $2000_",
            ),
        )

    if ctx.zone_limit is not None and len(zones) > ctx.zone_limit:
        return _goto(
            session,
            zones_step,
            _reprompt(
                EdgeCase.QUOTA_EXCEEDED,
                f"⚠️ Tu plan permite hasta *{ctx.zone_limit}* zonas de delivery y mandaste {len(zones)}. "
                "Mandame menos zonas o escribí *PLANES* para ver otros planes.",
            ),
        )

    return _goto(
        session,
        confirm_step,
        ReplaceZones(zones),
        Buttons(f"🛵 Zonas cargadas:\n{_zones_text(zones)}\n\n¿Está bien?", YES_BUTTONS),
    )


def _delivery_zones_confirm(session: AdminSession, event: InboundEvent, ctx: AdminContext) -> StepResult:
    editing = session.step is AdminStep.EDIT_ZONES_CONFIRM
    if is_yes(event.text):
        if editing:
            return _goto(session, AdminStep.COMPLETED, Reply("✅ Zonas actualizadas."))
        return _goto(session, AdminStep.BANK_DATA, bank_prompt())
    if is_no(event.text):
        back = AdminStep.EDIT_ZONES if editing else AdminStep.DELIVERY_ZONES
        return _goto(session, back, Reply("Dale, mandame de nuevo las zonas con sus precios:"))
    return _delivery_zones(session, event, ctx)


# --- paso 6: banco ---

def _bank_data(session: AdminSession, event: InboundEvent, ctx: AdminContext) -> StepResult:
    editing = session.step in {AdminStep.EDIT_BANK, AdminStep.EDIT_BANK_CONFIRM}
    bank_step = AdminStep.EDIT_BANK if editing else AdminStep.BANK_DATA
    confirm_step = AdminStep.EDIT_BANK_CONFIRM if editing else AdminStep.BANK_DATA_CONFIRM

    try:
        bank = extractors.extract_bank_details(ctx.extractor, event.text)
    except ExtractionError as exc:
        logger.info("bank extraction failed: %s", exc)
        return _goto(
            session,
            bank_step,
            _reprompt(EdgeCase.EXTRACTION_FAILED, "⚠️ No pude leer los datos. Mandame alias, CBU/CVU y titular."),
        )

    missing = bank.missing_fields()
    if missing:
        return _goto(
            session,
            bank_step,
            _reprompt(
                EdgeCase.VALIDATION_FAILED,
                f"⚠️ Me falta: {', '.join(missing)}. Mandame los datos completos (alias, CBU/CVU y titular).",
            ),
        )

    alias, cbu, holder = bank.alias.strip(), bank.cbu.strip(), bank.account_holder.strip()
    return _goto(
        session,
        confirm_step,
        SaveBank(alias=alias, cbu=cbu, account_holder=holder),
        Buttons(f"🏦 Datos bancarios:\nAlias: {alias}\nCBU/CVU: {cbu}\nTitular: {holder}\n\n¿Son correctos?", YES_BUTTONS),
    )


def _bank_data_confirm(session: AdminSession, event: InboundEvent, ctx: AdminContext) -> StepResult:
    editing = session.step is AdminStep.EDIT_BANK_CONFIRM
    if is_yes(event.text):
        if editing:
            return _goto(session, AdminStep.COMPLETED, Reply("✅ Datos bancarios actualizados."))
        return _goto(session, AdminStep.PRODUCTS, products_prompt(ctx.has_catalog))
    if is_no(event.text):
        back = AdminStep.EDIT_BANK if editing else AdminStep.BANK_DATA
        return _goto(session, back, Reply("Dale, mandame de nuevo alias, CBU/CVU y titular:"))
    return _bank_data(session, event, ctx)


# --- paso 7: productos ---

def _products(session: AdminSession, event: InboundEvent, ctx: AdminContext) -> StepResult:
    if normalize_reply(event.text) == "LISTO":
        if ctx.products_count < 1 and not ctx.has_catalog:
            return _stay(
                session,
                _reprompt(EdgeCase.VALIDATION_FAILED, "⚠️ Cargá al menos un producto antes de escribir *LISTO*."),
            )
        return _goto(session, AdminStep.REVIEW, review_summary(ctx))
    return _add_products(session, event, ctx, "Seguí mandando o escribí *LISTO*.")


def _add_products(session: AdminSession, event: InboundEvent, ctx: AdminContext, follow_up: str) -> StepResult:
    try:
        items = extractors.extract_products(ctx.extractor, event.text)
    except ExtractionError as exc:
        logger.info("products extraction failed: %s", exc)
        items = []

    if not items:
        return _stay(
            session,
            _reprompt(
                EdgeCase.EXTRACTION_FAILED,
                "⚠️ No encontré productos con precio. Probá así: _Pizza Muzzarella $5500 (Pizzas)_",
            ),
        )

    products = [
        {
            "name": item.name.strip(),
            "price": int(round(item.price)),
            "category": (item.category or "").strip() or None,
            "description": (item.description or "").strip() or None,
        }
        for item in items
    ]
    listing = "\n".join(f"• {product['name']} — ${format_price(product['price'])}" for product in products)
    return _stay(
        session,
        AddProducts(products),
        Reply(f"✅ Agregué {len(products)} producto(s):\n{listing}\n\n{follow_up}"),
    )


# --- gestión de productos (después del alta) ---

PRODUCT_FIELD_BUTTONS = [("nombre", "Nombre"), ("precio", "Precio"), ("descripcion", "Descripción")]
_PRODUCT_FIELDS = {
    "1": "name",
    "NOMBRE": "name",
    "2": "price",
    "PRECIO": "price",
    "3": "description",
    "DESCRIPCION": "description",
}
_FIELD_PROMPTS = {
    "name": "✏️ Escribí el nuevo *nombre* del producto:",
    "price": "✏️ Escribí el nuevo *precio* (solo el número, ej: 5500):",
    "description": "✏️ Escribí la nueva *descripción* del producto:",
}
_FIELD_LABELS = {"name": "Nombre", "price": "Precio", "description": "Descripción"}


def product_list_text(products: list[Any]) -> str:
    return "\n".join(
        f"{index}. {product.name} — ${format_price(product.price)}{'' if product.is_available else ' ⏸️'}"
        for index, product in enumerate(products, start=1)
    )


def find_product(products: list[Any], text: str) -> Any | None:
    """Por número de la lista o por nombre: exacto, contenido o que lo contiene."""
    raw = (text or "").strip()
    if raw.isdigit():
        index = int(raw)
        return products[index - 1] if 1 <= index <= len(products) else None

    wanted = strip_accents(raw).lower()
    if not wanted:
        return None
    names = [(strip_accents(product.name).lower(), product) for product in products]
    for matches in (
        lambda name: name == wanted,
        lambda name: wanted in name,
        lambda name: name in wanted,
    ):
        for name, product in names:
            if matches(name):
                return product
    return None


def _selected_product(session: AdminSession, ctx: AdminContext) -> Any | None:
    product_id = (session.draft or {}).get("product_id")
    return next((product for product in ctx.products if product.id == product_id), None)


def _selection_lost(session: AdminSession, command: str) -> StepResult:
    logger.info("product selection lost", extra={"edge_case": EdgeCase.VALIDATION_FAILED.value})
    return _goto(session, AdminStep.COMPLETED, Reply(f"⚠️ Ese producto ya no está en tu menú. Usá *{command}* de nuevo."))


def _not_found_reprompt(ctx: AdminContext) -> Reply:
    return _reprompt(
        EdgeCase.VALIDATION_FAILED,
        f"⚠️ No encontré ese producto. Respondé con un número del 1 al {len(ctx.products)} "
        "o con el nombre, o *CANCELAR*.",
    )


def _edit_products(session: AdminSession, event: InboundEvent, ctx: AdminContext) -> StepResult:
    reply = normalize_reply(event.text)
    if reply in {"LISTO", "CANCELAR"}:
        return _goto(session, AdminStep.COMPLETED, Reply(f"✅ Menú actualizado. Tenés {len(ctx.products)} producto(s)."))

    parts = reply.split()
    if len(parts) == 2 and parts[0] == "ELIMINAR" and parts[1].isdigit():
        index = int(parts[1])
        if not 1 <= index <= len(ctx.products):
            return _stay(
                session,
                _reprompt(EdgeCase.VALIDATION_FAILED, f"⚠️ Número inválido. Elegí entre 1 y {len(ctx.products)}."),
            )
        product = ctx.products[index - 1]
        remaining = [other for other in ctx.products if other.id != product.id]
        return _stay(
            session,
            DeleteProduct(product.id),
            Reply(f"🗑️ *{product.name}* eliminado del menú.\n\n{product_list_text(remaining) or '(menú vacío)'}"),
        )

    return _add_products(session, event, ctx, "Seguí editando o escribí *LISTO* para salir.")


def _edit_product_select(session: AdminSession, event: InboundEvent, ctx: AdminContext) -> StepResult:
    product = find_product(ctx.products, event.text)
    if product is None:
        return _stay(session, _not_found_reprompt(ctx))
    description = product.description or "(sin descripción)"
    return _goto(
        session,
        AdminStep.EDIT_PRODUCT_FIELD,
        Buttons(
            f"✏️ *{product.name}* — ${format_price(product.price)}\n{description}\n\n¿Qué querés modificar?",
            PRODUCT_FIELD_BUTTONS,
        ),
        draft={"product_id": product.id},
    )


def _edit_product_field(session: AdminSession, event: InboundEvent, ctx: AdminContext) -> StepResult:
    if _selected_product(session, ctx) is None:
        return _selection_lost(session, "EDITAR PRODUCTO")
    field_name = _PRODUCT_FIELDS.get(normalize_reply(event.text))
    if field_name is None:
        return _stay(session, Buttons("⚠️ Elegí una opción:", PRODUCT_FIELD_BUTTONS))
    return _goto(
        session,
        AdminStep.EDIT_PRODUCT_VALUE,
        Reply(f"{_FIELD_PROMPTS[field_name]}\n\nO escribí *CANCELAR* para salir."),
        draft={**session.draft, "field": field_name},
    )


def _edit_product_value(session: AdminSession, event: InboundEvent, ctx: AdminContext) -> StepResult:
    product = _selected_product(session, ctx)
    field_name = (session.draft or {}).get("field")
    if product is None or field_name not in _FIELD_LABELS:
        return _selection_lost(session, "EDITAR PRODUCTO")

    raw = event.text.strip()
    if field_name == "price":
        value = parse_price(raw)
        if not value or value <= 0:
            return _stay(session, _reprompt(EdgeCase.VALIDATION_FAILED, "⚠️ Ingresá un precio válido (solo números, ej: 5500)."))
        shown = f"${format_price(value)}"
    elif field_name == "name":
        if len(raw) < 2:
            return _stay(session, _reprompt(EdgeCase.VALIDATION_FAILED, "⚠️ El nombre debe tener al menos 2 caracteres."))
        value = shown = raw
    else:
        value = raw or None
        shown = raw or "(sin descripción)"

    return _goto(
        session,
        AdminStep.COMPLETED,
        UpdateProduct(product.id, {field_name: value}),
        Reply(f"✅ *{product.name}* actualizado\n\n{_FIELD_LABELS[field_name]}: *{shown}*"),
    )


def _edit_pause_product(session: AdminSession, event: InboundEvent, ctx: AdminContext) -> StepResult:
    product = find_product(ctx.products, event.text)
    if product is None:
        return _stay(session, _not_found_reprompt(ctx))
    if product.is_available:
        return _goto(
            session,
            AdminStep.COMPLETED,
            UpdateProduct(product.id, {"is_available": False}),
            Reply(
                f"⏸️ *{product.name}* pausado. Tus clientes no lo van a ver en el menú.\n\n"
                "Para reactivarlo usá *PAUSAR PRODUCTO* y elegilo de nuevo."
            ),
        )
    return _goto(
        session,
        AdminStep.COMPLETED,
        UpdateProduct(product.id, {"is_available": True}),
        Reply(f"✅ *{product.name}* reactivado. Ya aparece en el menú."),
    )


def _edit_delete_product(session: AdminSession, event: InboundEvent, ctx: AdminContext) -> StepResult:
    raw = event.text.strip()
    # solo por número: borrar por nombre aproximado es demasiado fácil de errar
    if not raw.isdigit() or not 1 <= int(raw) <= len(ctx.products):
        return _stay(
            session,
            _reprompt(EdgeCase.VALIDATION_FAILED, f"⚠️ Respondé con un número del 1 al {len(ctx.products)}, o *CANCELAR*."),
        )
    product = ctx.products[int(raw) - 1]
    return _goto(session, AdminStep.COMPLETED, DeleteProduct(product.id), Reply(f"🗑️ *{product.name}* eliminado del menú."))


# --- revisión ---

_EDIT_TARGETS: dict[str, tuple[AdminStep, Callable[[AdminContext], Any]]] = {
    "1": (AdminStep.BUSINESS_NAME, lambda ctx: name_prompt()),
    "2": (AdminStep.BUSINESS_HOURS, lambda ctx: hours_prompt()),
    "3": (AdminStep.DELIVERY_METHOD, lambda ctx: delivery_prompt()),
    "4": (AdminStep.PAYMENT_METHODS, lambda ctx: payments_prompt()),
    "5": (AdminStep.DELIVERY_ZONES, lambda ctx: zones_prompt()),
    "6": (AdminStep.BANK_DATA, lambda ctx: bank_prompt()),
}


def _review(session: AdminSession, event: InboundEvent, ctx: AdminContext) -> StepResult:
    reply = normalize_reply(event.text)
    if reply == "CONFIRMAR":
        return _goto(session, AdminStep.COMPLETED, FinishOnboarding())
    if reply == "EDITAR":
        return _stay(session, ListMessage("¿Qué querés corregir?", "Elegir", EDIT_ROWS, "Datos del negocio"))

    target = _EDIT_TARGETS.get(event.text.strip())
    if target is not None:
        step, prompt = target
        return _goto(session, step, prompt(ctx))
    return _stay(session, review_summary(ctx))


def _completed(session: AdminSession, event: InboundEvent, ctx: AdminContext) -> StepResult:
    return StepResult(session=session, delegate=True)


_HANDLERS: dict[AdminStep, Callable[[AdminSession, InboundEvent, AdminContext], StepResult]] = {
    AdminStep.BUSINESS_NAME: _business_name,
    AdminStep.BUSINESS_HOURS: _business_hours,
    AdminStep.BUSINESS_HOURS_CONFIRM: _business_hours_confirm,
    AdminStep.DELIVERY_METHOD: _delivery_method,
    AdminStep.PICKUP_ADDRESS: _pickup_address,
    AdminStep.PAYMENT_METHODS: _payment_methods,
    AdminStep.DEPOSIT_PERCENT: _deposit_percent,
    AdminStep.DELIVERY_ZONES: _delivery_zones,
    AdminStep.DELIVERY_ZONES_CONFIRM: _delivery_zones_confirm,
    AdminStep.BANK_DATA: _bank_data,
    AdminStep.BANK_DATA_CONFIRM: _bank_data_confirm,
    AdminStep.PRODUCTS: _products,
    AdminStep.REVIEW: _review,
    AdminStep.COMPLETED: _completed,
    AdminStep.EDIT_NAME: _business_name,
    AdminStep.EDIT_HOURS: _business_hours,
    AdminStep.EDIT_HOURS_CONFIRM: _business_hours_confirm,
    AdminStep.EDIT_DELIVERY: _delivery_method,
    AdminStep.EDIT_ADDRESS: _pickup_address,
    AdminStep.EDIT_PAYMENTS: _payment_methods,
    AdminStep.EDIT_DEPOSIT_PERCENT: _deposit_percent,
    AdminStep.EDIT_ZONES: _delivery_zones,
    AdminStep.EDIT_ZONES_CONFIRM: _delivery_zones_confirm,
    AdminStep.EDIT_BANK: _bank_data,
    AdminStep.EDIT_BANK_CONFIRM: _bank_data_confirm,
    AdminStep.EDIT_PRODUCTS: _edit_products,
    AdminStep.EDIT_PRODUCT_SELECT: _edit_product_select,
    AdminStep.EDIT_PRODUCT_FIELD: _edit_product_field,
    AdminStep.EDIT_PRODUCT_VALUE: _edit_product_value,
    AdminStep.EDIT_PAUSE_PRODUCT: _edit_pause_product,
    AdminStep.EDIT_DELETE_PRODUCT: _edit_delete_product,
}

assert set(_HANDLERS) == set(AdminStep), "every admin step needs a handler"


def step(session: AdminSession, event: InboundEvent, ctx: AdminContext) -> StepResult:
    handler = _HANDLERS.get(session.step)
    if handler is None:
        raise InvariantViolation(f"unknown admin step: {session.step!r}")

    # en EDIT_PRODUCTS los cambios ya se aplicaron mensaje a mensaje; CANCELAR cierra como LISTO
    if session.step.is_edit and session.step is not AdminStep.EDIT_PRODUCTS and normalize_reply(event.text) == "CANCELAR":
        return _goto(session, AdminStep.COMPLETED, Reply("Edición cancelada. Todo quedó como estaba."))

    return handler(session, event, ctx)
