"""Flujo de pedido del cliente: menú, carrito, entrega, pago y confirmación."""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Callable

from comanda.ai import extractors
from comanda.ai.client import Extractor
from comanda.core.edge_policy import EdgeCase, policy_for
from comanda.core.errors import ExtractionError, InvariantViolation
from comanda.fsm.effects import (
    Buttons,
    CartLine,
    CatalogSelection,
    CreateOrder,
    CustomerSession,
    ListMessage,
    OrderDraft,
    Reply,
    StepResult,
)
from comanda.fsm.states import CustomerStep
from comanda.services.business_hours import is_within_business_hours
from comanda.services.formatting import format_price, normalize_reply, payment_label
from comanda.whatsapp.inbound import InboundEvent

logger = logging.getLogger(__name__)

GREETINGS = {"HOLA", "BUENAS", "BUEN DIA", "BUENOS DIAS", "BUENAS TARDES", "BUENAS NOCHES", "INICIO", "EMPEZAR", "HI"}
MENU_WORDS = {"MENU", "VER MENU", "CARTA"}
DELIVERY_WORDS = {"1", "DELIVERY", "ENVIO"}
PICKUP_WORDS = {"2", "RETIRO", "RETIRO EN LOCAL", "LOCAL"}

_REMOVE_RE = re.compile(r"^QUITAR\s+(\d+)$")
_CHANGE_QTY_RE = re.compile(r"^CAMBIAR\s+(\d+)\s+A\s+(\d+)$")

ORDER_HINT = "Escribí lo que querés pedir, por ejemplo: _2 muzzarella y 1 coca_"


@dataclass
class CustomerContext:
    business: Any
    extractor: Extractor
    products: list[Any] = field(default_factory=list)
    zones: list[Any] = field(default_factory=list)
    bank: Any = None
    catalog_id: str | None = None
    contact_name: str | None = None
    # resultado de check_quota("orders"); None = sin control
    order_quota: Any = None
    now: datetime | None = None


def _goto(session: CustomerSession, step: CustomerStep, *effects, **changes) -> StepResult:
    return StepResult(session=replace(session, step=step, **changes), effects=list(effects))


def _stay(session: CustomerSession, *effects) -> StepResult:
    return StepResult(session=session, effects=list(effects))


def _reprompt(case: EdgeCase, text: str) -> Reply:
    logger.info("customer step %s", policy_for(case).value, extra={"edge_case": case.value})
    return Reply(text)


# --- textos ---

def welcome_text(ctx: CustomerContext) -> str:
    name = f" {ctx.contact_name}" if ctx.contact_name else ""
    return (
        f"👋 ¡Hola{name}! Bienvenido/a a *{ctx.business.business_name}*.\n\n"
        "Escribí *MENÚ* para ver nuestros productos o decime directamente qué querés pedir."
    )


def closed_text(business: Any) -> str:
    return (
        f"🕐 *{business.business_name}* está cerrado en este momento.\n"
        f"⏰ Nuestro horario: {business.business_hours}\n\n"
        "¡Te esperamos!"
    )


def menu_effects(ctx: CustomerContext) -> list:
    if not ctx.products:
        return [Reply("Todavía no hay productos disponibles. Probá más tarde.")]

    by_category: dict[str, list[Any]] = {}
    for product in ctx.products:
        by_category.setdefault(product.category or "Otros", []).append(product)

    lines = [f"📋 *Menú de {ctx.business.business_name}*"]
    for category, products in by_category.items():
        lines.append("")
        lines.append(f"*{category}*")
        for product in products:
            lines.append(f"• {product.name} — ${format_price(product.price)}")
    lines.append("")
    lines.append(ORDER_HINT)
    effects: list = [Reply("\n".join(lines))]

    if ctx.catalog_id:
        sections = [
            (category[:24], [product.retailer_id for product in products if product.retailer_id])
            for category, products in by_category.items()
        ]
        sections = [(title, ids) for title, ids in sections if ids]
        if sections:
            effects.append(
                CatalogSelection("También podés armar tu pedido desde el catálogo 👇", ctx.catalog_id, sections)
            )
    return effects


def cart_text(session: CustomerSession) -> str:
    lines = ["🛒 *Tu pedido:*"]
    for index, line in enumerate(session.cart, start=1):
        lines.append(f"{index}. {line.qty} x {line.name} — ${format_price(line.total)}")
    lines.append("")
    lines.append(f"*Subtotal: ${format_price(session.subtotal)}*")
    lines.append("")
    lines.append("¿Querés agregar algo más?")
    lines.append("• *SÍ* para agregar")
    lines.append("• *QUITAR 1* para sacar un producto")
    lines.append("• *CAMBIAR 1 A 3* para cambiar la cantidad")
    lines.append("• *SEGUIR* para continuar")
    lines.append("• *CANCELAR* para cancelar")
    return "\n".join(lines)


def order_confirmation_text(order_number: int, draft: OrderDraft) -> str:
    lines = [
        "📩 *¡Pedido recibido!*",
        "",
        f"Pedido *#{order_number}*",
        f"Total: *${format_price(draft.grand_total)}*",
        f"Pago: {payment_label(draft.payment_method)}",
    ]
    if draft.payment_method == "deposit" and draft.deposit_amount:
        lines.append(f"Seña: ${format_price(draft.deposit_amount)}")
    if draft.delivery_method == "delivery":
        lines.append(f"🛵 Entrega en: {draft.client_address}")
    else:
        lines.append(f"🏪 Retirás en: {draft.pickup_address or 'el local'}")
    lines.append("")
    lines.append(f"Escribí *ESTADO #{order_number}* para ver cómo va tu pedido")
    lines.append(f"o *CANCELAR #{order_number}* para cancelarlo.")
    return "\n".join(lines)


def admin_new_order_text(order_number: int, draft: OrderDraft) -> str:
    client = draft.client_name or draft.client_phone
    lines = [
        f"🔔 *Nuevo pedido #{order_number}*",
        "",
        f"👤 Cliente: {client} ({draft.client_phone})",
    ]
    for item in draft.items:
        lines.append(f"• {item['qty']} x {item['name']} — ${format_price(item['subtotal'])}")
    if draft.delivery_method == "delivery":
        lines.append(f"🛵 Delivery ({draft.zone_name}): {draft.client_address} — ${format_price(draft.delivery_price)}")
    else:
        lines.append("🏪 Retira en el local")
    lines.append(f"💰 Total: *${format_price(draft.grand_total)}*")
    payment = payment_label(draft.payment_method)
    if draft.payment_method == "deposit" and draft.deposit_amount:
        payment += f" (seña ${format_price(draft.deposit_amount)})"
    lines.append(f"💳 Pago: {payment} — pendiente")
    lines.append("")
    lines.append(f"*CONFIRMAR PAGO #{order_number}* cuando verifiques el pago")
    lines.append(f"*RECHAZAR PEDIDO #{order_number} motivo* para rechazarlo")
    return "\n".join(lines)


# --- carrito ---

def _merge(cart: list[CartLine], product: Any, qty: int) -> list[CartLine]:
    merged = [replace(line) for line in cart]
    for line in merged:
        if line.product_id == product.id:
            line.qty += qty
            return merged
    merged.append(CartLine(product_id=product.id, name=product.name, price=int(product.price), qty=qty))
    return merged


def _add_from_text(session: CustomerSession, event: InboundEvent, ctx: CustomerContext) -> StepResult:
    if not ctx.products:
        return _stay(session, Reply("Todavía no hay productos disponibles. Probá más tarde."))

    try:
        parsed = extractors.extract_order_items(ctx.extractor, event.text, ctx.products)
    except ExtractionError as exc:
        logger.info("order extraction failed: %s", exc)
        return _stay(
            session,
            _reprompt(EdgeCase.EXTRACTION_FAILED, f"⚠️ No pude interpretar tu pedido. {ORDER_HINT}"),
        )

    missing = ""
    if parsed.not_found:
        missing = f"⚠️ No encontré: {', '.join(parsed.not_found)}"

    if not parsed.lines:
        text = missing or "No encontré productos en tu mensaje."
        return _stay(session, Reply(f"{text}\n\nEscribí *MENÚ* para ver lo que tenemos."))

    by_id = {product.id: product for product in ctx.products}
    cart = session.cart
    for line in parsed.lines:
        cart = _merge(cart, by_id[line.product_id], line.qty)

    updated = replace(session, step=CustomerStep.BUILDING_CART, cart=cart)
    effects = []
    if missing:
        effects.append(Reply(missing))
    effects.append(Reply(cart_text(updated)))
    return StepResult(session=updated, effects=effects)


def _add_native_cart(session: CustomerSession, event: InboundEvent, ctx: CustomerContext) -> StepResult:
    by_retailer = {product.retailer_id: product for product in ctx.products if product.retailer_id}
    cart = session.cart
    unknown: list[str] = []
    for item in event.cart.items if event.cart else []:
        product = by_retailer.get(item.retailer_id)
        if product is None:
            unknown.append(item.retailer_id)
            continue
        cart = _merge(cart, product, max(1, int(item.quantity or 1)))

    if cart == session.cart:
        return _stay(session, Reply("No pude reconocer los productos del carrito. Escribí *MENÚ* para ver lo que tenemos."))

    updated = replace(session, step=CustomerStep.BUILDING_CART, cart=cart)
    effects = []
    if unknown:
        logger.warning("native cart with unknown retailer ids count=%s", len(unknown))
        effects.append(Reply(f"⚠️ {len(unknown)} producto(s) del carrito ya no están disponibles."))
    effects.append(Reply(cart_text(updated)))
    return StepResult(session=updated, effects=effects)


def _viewing_menu(session: CustomerSession, event: InboundEvent, ctx: CustomerContext) -> StepResult:
    if event.kind == "order":
        return _add_native_cart(session, event, ctx)
    reply = normalize_reply(event.text)
    if reply in MENU_WORDS:
        return _stay(session, *menu_effects(ctx))
    if not reply or reply in GREETINGS:
        return _stay(session, Reply(welcome_text(ctx)))
    return _add_from_text(session, event, ctx)


def _building_cart(session: CustomerSession, event: InboundEvent, ctx: CustomerContext) -> StepResult:
    if event.kind == "order":
        return _add_native_cart(session, event, ctx)

    reply = normalize_reply(event.text)
    if reply in {"SEGUIR", "NO"}:
        return advance_to_delivery(session, ctx)
    if reply in MENU_WORDS:
        return _stay(session, *menu_effects(ctx))
    if reply == "SI":
        return _stay(session, Reply("Escribí lo que querés agregar:"))

    match = _REMOVE_RE.match(reply)
    if match:
        index = int(match.group(1))
        if not 1 <= index <= len(session.cart):
            return _stay(session, _reprompt(EdgeCase.VALIDATION_FAILED, f"⚠️ Número inválido. Tenés {len(session.cart)} producto(s) en el carrito."))
        cart = [line for position, line in enumerate(session.cart, start=1) if position != index]
        if not cart:
            return _goto(
                session,
                CustomerStep.VIEWING_MENU,
                Reply("🗑️ Tu carrito quedó vacío. Escribí lo que querés pedir o *MENÚ* para ver los productos."),
                cart=[],
            )
        updated = replace(session, cart=cart)
        return StepResult(session=updated, effects=[Reply(cart_text(updated))])

    match = _CHANGE_QTY_RE.match(reply)
    if match:
        index, qty = int(match.group(1)), int(match.group(2))
        if not 1 <= index <= len(session.cart):
            return _stay(session, _reprompt(EdgeCase.VALIDATION_FAILED, f"⚠️ Número inválido. Tenés {len(session.cart)} producto(s) en el carrito."))
        if qty < 1:
            return _stay(session, _reprompt(EdgeCase.VALIDATION_FAILED, "La cantidad tiene que ser 1 o más. Para sacarlo usá *QUITAR n*."))
        cart = [replace(line) for line in session.cart]
        cart[index - 1].qty = qty
        updated = replace(session, cart=cart)
        return StepResult(session=updated, effects=[Reply(cart_text(updated))])

    if not reply:
        return _stay(session, Reply(cart_text(session)))
    return _add_from_text(session, event, ctx)


# --- entrega ---

def _zone_prompt(ctx: CustomerContext) -> Reply | ListMessage:
    if len(ctx.zones) <= 10:
        rows = [
            (str(index), zone.zone_name[:24], f"Envío ${format_price(zone.price)}")
            for index, zone in enumerate(ctx.zones, start=1)
        ]
        return ListMessage("📍 ¿En qué zona estás?", "Ver zonas", rows, "Zonas")
    lines = ["📍 ¿En qué zona estás?", ""]
    for index, zone in enumerate(ctx.zones, start=1):
        lines.append(f"{index}. {zone.zone_name} — ${format_price(zone.price)}")
    lines.append("")
    lines.append("Respondé con el número.")
    return Reply("\n".join(lines))


def _no_zones(session: CustomerSession) -> StepResult:
    return _stay(session, Reply("No hay zonas de delivery configuradas. Contactá al local."))


def _delivery_buttons(ctx: CustomerContext) -> Buttons:
    body = "¿Cómo querés recibir tu pedido?"
    if ctx.business.business_address:
        body += f"\n\n🏪 Retiro en: {ctx.business.business_address}"
    return Buttons(body, [("1", "🛵 Delivery"), ("2", "🏪 Retiro en local")])


def advance_to_delivery(session: CustomerSession, ctx: CustomerContext) -> StepResult:
    if not session.cart:
        return _goto(session, CustomerStep.VIEWING_MENU, Reply(f"Tu carrito está vacío. {ORDER_HINT}"))

    business = ctx.business
    if business.has_delivery and business.has_pickup:
        return _goto(session, CustomerStep.DELIVERY_METHOD, _delivery_buttons(ctx))
    if business.has_delivery:
        if not ctx.zones:
            return _no_zones(session)
        return _goto(session, CustomerStep.DELIVERY_ZONE, _zone_prompt(ctx), delivery_method="delivery")
    return _show_summary(
        replace(session, delivery_method="pickup", selected_zone_id=None, delivery_address=None),
        ctx,
    )


def _delivery_method(session: CustomerSession, event: InboundEvent, ctx: CustomerContext) -> StepResult:
    reply = normalize_reply(event.text)
    if reply in DELIVERY_WORDS:
        if not ctx.zones:
            return _no_zones(session)
        return _goto(session, CustomerStep.DELIVERY_ZONE, _zone_prompt(ctx), delivery_method="delivery")
    if reply in PICKUP_WORDS:
        return _show_summary(
            replace(session, delivery_method="pickup", selected_zone_id=None, delivery_address=None),
            ctx,
        )
    return _stay(session, _reprompt(EdgeCase.VALIDATION_FAILED, "Respondé *1* para delivery o *2* para retirar."))


def _delivery_zone(session: CustomerSession, event: InboundEvent, ctx: CustomerContext) -> StepResult:
    if not ctx.zones:
        return _no_zones(session)
    raw = event.text.strip()
    if not raw.isdigit() or not 1 <= int(raw) <= len(ctx.zones):
        return _stay(session, _reprompt(EdgeCase.VALIDATION_FAILED, f"Respondé con un número del 1 al {len(ctx.zones)}."))

    zone = ctx.zones[int(raw) - 1]
    return _goto(
        session,
        CustomerStep.DELIVERY_ADDRESS,
        Reply(
            f"🛵 Zona: *{zone.zone_name}* (envío ${format_price(zone.price)})\n\n"
            "🏠 ¿Cuál es tu dirección de entrega? (calle, número, piso/depto)\n"
            "También podés compartir tu ubicación 📍"
        ),
        selected_zone_id=zone.id,
    )


def _delivery_address(session: CustomerSession, event: InboundEvent, ctx: CustomerContext) -> StepResult:
    if event.kind == "location" and event.location is not None:
        address = event.location.as_address()
    else:
        address = event.text.strip()
    if not address:
        return _stay(session, _reprompt(EdgeCase.VALIDATION_FAILED, "Escribí tu dirección de entrega."))
    return _show_summary(replace(session, delivery_address=address), ctx)


# --- resumen y pago ---

def _payment_options(business: Any, grand_total: int) -> tuple[list[dict[str, Any]], int | None]:
    options: list[dict[str, Any]] = []
    deposit_amount = None
    if business.accepts_cash:
        options.append({"key": "cash", "label": "Efectivo (pagás al retirar/recibir)"})
    if business.accepts_transfer:
        options.append({"key": "transfer", "label": "Transferencia"})
    if business.accepts_deposit and business.deposit_percent:
        deposit_amount = math.ceil(grand_total * business.deposit_percent / 100)
        options.append(
            {
                "key": "deposit",
                "label": f"Seña del {business.deposit_percent}% (${format_price(deposit_amount)}) y el resto al recibir",
            }
        )
    if not options:
        options.append({"key": "cash", "label": "Efectivo (pagás al retirar/recibir)"})
    return options, deposit_amount


def _show_summary(session: CustomerSession, ctx: CustomerContext) -> StepResult:
    zone = None
    if session.delivery_method == "delivery":
        zone = next((item for item in ctx.zones if item.id == session.selected_zone_id), None)
        if zone is None:
            if not ctx.zones:
                return _no_zones(session)
            return _goto(session, CustomerStep.DELIVERY_ZONE, _zone_prompt(ctx))

    subtotal = session.subtotal
    delivery_price = int(zone.price) if zone else 0
    grand_total = subtotal + delivery_price
    options, deposit_amount = _payment_options(ctx.business, grand_total)

    checkout = {
        "subtotal": subtotal,
        "delivery_price": delivery_price,
        "grand_total": grand_total,
        "zone_id": zone.id if zone else None,
        "zone_name": zone.zone_name if zone else None,
        "address": session.delivery_address,
        "delivery_method": session.delivery_method,
        "payment_options": [option["key"] for option in options],
        "deposit_amount": deposit_amount,
    }

    lines = ["🧾 *Resumen de tu pedido*", ""]
    for line in session.cart:
        lines.append(f"• {line.qty} x {line.name} — ${format_price(line.total)}")
    lines.append("")
    lines.append(f"Subtotal: ${format_price(subtotal)}")
    if zone:
        lines.append(f"Envío ({zone.zone_name}): ${format_price(delivery_price)}")
    lines.append(f"*Total: ${format_price(grand_total)}*")
    if zone:
        lines.append(f"📍 Entrega en: {session.delivery_address}")
    else:
        lines.append(f"🏪 Retiro en: {ctx.business.business_address or 'el local'}")
    lines.append("")
    lines.append("💳 ¿Cómo querés pagar?")
    for index, option in enumerate(options, start=1):
        lines.append(f"{index}. {option['label']}")
    lines.append("")
    lines.append("Respondé con el número.")

    return _goto(session, CustomerStep.PAYMENT_METHOD, Reply("\n".join(lines)), checkout=checkout)


def _lost_context() -> StepResult:
    logger.warning("checkout context missing", extra={"edge_case": EdgeCase.INVARIANT_VIOLATION.value})
    return StepResult(session=None, effects=[Reply("Algo salió mal. Escribí *HOLA* para empezar de nuevo.")])


def _payment_method(session: CustomerSession, event: InboundEvent, ctx: CustomerContext) -> StepResult:
    checkout = session.checkout
    if not checkout or not checkout.get("payment_options"):
        return _lost_context()

    options = checkout["payment_options"]
    raw = event.text.strip()
    if not raw.isdigit() or not 1 <= int(raw) <= len(options):
        return _stay(session, _reprompt(EdgeCase.VALIDATION_FAILED, f"Elegí una opción del 1 al {len(options)}."))

    method = options[int(raw) - 1]
    if method == "cash":
        return _confirm(session, ctx, "cash")

    bank = ctx.bank
    if bank is None or not (bank.alias or bank.cbu):
        return _stay(
            session,
            Reply("⚠️ No hay datos bancarios configurados. Elegí otra forma de pago o contactá al local."),
        )

    grand_total = checkout["grand_total"]
    if method == "deposit":
        amount = checkout.get("deposit_amount") or grand_total
        detail = (
            f"💰 Seña a transferir: *${format_price(amount)}*\n"
            f"El resto (${format_price(grand_total - amount)}) lo pagás al recibir."
        )
    else:
        detail = f"💰 Monto a transferir: *${format_price(grand_total)}*"

    text = (
        "🏦 *Datos para transferir*\n"
        f"Alias: {bank.alias or '-'}\n"
        f"CBU/CVU: {bank.cbu or '-'}\n"
        f"Titular: {bank.account_holder or '-'}\n\n"
        f"{detail}\n\n"
        "Cuando hayas transferido escribí *LISTO*."
    )
    return _goto(
        session,
        CustomerStep.AWAITING_TRANSFER,
        Reply(text),
        checkout={**checkout, "payment_method": method},
    )


def _awaiting_transfer(session: CustomerSession, event: InboundEvent, ctx: CustomerContext) -> StepResult:
    checkout = session.checkout
    if not checkout or not checkout.get("payment_method"):
        return _lost_context()
    if normalize_reply(event.text) == "LISTO":
        return _confirm(session, ctx, checkout["payment_method"])
    return _stay(
        session,
        Reply("Cuando hayas hecho la transferencia escribí *LISTO*, o *CANCELAR* para cancelar el pedido."),
    )


def _confirm(session: CustomerSession, ctx: CustomerContext, method: str) -> StepResult:
    checkout = session.checkout or {}
    business = ctx.business

    quota = ctx.order_quota
    if quota is not None and not quota.allowed:
        logger.warning("order quota exceeded", extra={"edge_case": EdgeCase.QUOTA_EXCEEDED.value})
        return _stay(
            session,
            Reply("⚠️ En este momento el local no puede tomar más pedidos por WhatsApp. Contactalo directamente."),
            Reply(
                f"⚠️ Un cliente no pudo hacer un pedido: alcanzaste el límite de *{quota.limit}* pedidos "
                "de tu plan este mes. Escribí *PLANES* para ver otras opciones.",
                to=business.admin_phone,
            ),
        )

    draft = OrderDraft(
        business_id=session.business_id,
        client_phone=session.phone,
        client_name=ctx.contact_name,
        client_address=checkout.get("address") if checkout.get("delivery_method") == "delivery" else None,
        items=[
            {
                "product_id": line.product_id,
                "name": line.name,
                "qty": line.qty,
                "price": line.price,
                "subtotal": line.total,
            }
            for line in session.cart
        ],
        subtotal=checkout.get("subtotal", session.subtotal),
        delivery_zone_id=checkout.get("zone_id"),
        delivery_price=checkout.get("delivery_price", 0),
        grand_total=checkout.get("grand_total", session.subtotal),
        payment_method=method,
        deposit_amount=checkout.get("deposit_amount") if method == "deposit" else None,
        delivery_method=checkout.get("delivery_method") or "pickup",
        zone_name=checkout.get("zone_name"),
        pickup_address=business.business_address,
    )
    # con el pedido creado la conversación termina y el estado se borra
    return StepResult(session=None, effects=[CreateOrder(draft)])


# --- entrada ---

def _start(event: InboundEvent, ctx: CustomerContext) -> StepResult:
    business = ctx.business
    if not is_within_business_hours(business.business_hours, ctx.now):
        return StepResult(session=None, effects=[Reply(closed_text(business))])

    session = CustomerSession(
        business_id=business.id,
        phone=event.sender,
        step=CustomerStep.VIEWING_MENU,
    )
    reply = normalize_reply(event.text)
    # un primer mensaje que ya es un pedido se procesa directamente
    if event.kind == "order" or (event.kind == "text" and reply and reply not in GREETINGS and not reply.startswith("HOLA")):
        return _viewing_menu(session, event, ctx)
    return StepResult(session=session, effects=[Reply(welcome_text(ctx))])


_HANDLERS: dict[CustomerStep, Callable[[CustomerSession, InboundEvent, CustomerContext], StepResult]] = {
    CustomerStep.VIEWING_MENU: _viewing_menu,
    CustomerStep.BUILDING_CART: _building_cart,
    CustomerStep.DELIVERY_METHOD: _delivery_method,
    CustomerStep.DELIVERY_ZONE: _delivery_zone,
    CustomerStep.DELIVERY_ADDRESS: _delivery_address,
    CustomerStep.PAYMENT_METHOD: _payment_method,
    CustomerStep.AWAITING_TRANSFER: _awaiting_transfer,
}

assert set(_HANDLERS) == set(CustomerStep), "every customer step needs a handler"


def step(session: CustomerSession | None, event: InboundEvent, ctx: CustomerContext) -> StepResult:
    if session is not None and session.business_id != ctx.business.id:
        raise InvariantViolation("customer session does not belong to this business")

    if normalize_reply(event.text) == "CANCELAR":
        if session is None:
            return StepResult(session=None, effects=[Reply("No tenés ningún pedido en curso.")])
        return StepResult(
            session=None,
            effects=[Reply("❌ Pedido cancelado. Cuando quieras, escribí *HOLA* para empezar de nuevo.")],
        )

    if session is None:
        return _start(event, ctx)

    handler = _HANDLERS.get(session.step)
    if handler is None:
        raise InvariantViolation(f"unknown customer step: {session.step!r}")
    return handler(session, event, ctx)
