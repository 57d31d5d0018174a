"""Comandos del admin una vez terminado el alta.

Orden de evaluación: suscripción vigente, gramática exacta y, solo si el plan
tiene IA, clasificación en lenguaje natural (que nunca llega a un intent
destructivo).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable

import httpx
from sqlalchemy.orm import Session

from comanda.ai import extractors
from comanda.ai.client import Extractor
from comanda.commands.intents import SUPER_ADMIN_INTENTS, AdminIntent, ParsedCommand
from comanda.commands.parser import is_subscription_command, parse_command
from comanda.core.clock import as_utc, local_now
from comanda.core.config import ALERT_PHONE, SUPPORT_PHONE
from comanda.core.edge_policy import EdgeCase, policy_for
from comanda.core.errors import CatalogImportError, ExtractionError
from comanda.fsm.admin_flow import DELIVERY_BUTTONS, PAYMENT_ROWS, business_summary_lines, product_list_text
from comanda.fsm.effects import Buttons, ListMessage, Outbound, Reply
from comanda.fsm.states import AdminStep
from comanda.models.admin import Admin
from comanda.models.bank_details import BankDetails
from comanda.models.business import Business
from comanda.models.delivery_zone import DeliveryZone
from comanda.models.product import Product
from comanda.models.subscription import Subscription
from comanda.services import analytics, orders, subscription
from comanda.services.catalog_sync import CatalogImporter
from comanda.services.formatting import format_price, payment_label, status_label
from comanda.services.plans import PLANS, UNLIMITED_THRESHOLD, Plan, get_plan, plan_with_feature
from comanda.whatsapp.base import ChannelCredentials

logger = logging.getLogger(__name__)

EXPIRED_TEXT = (
    "⚠️ *Tu suscripción expiró.*\n"
    "Tus clientes no pueden hacer pedidos hasta que la renueves.\n\n"
    "Escribí *PLANES* para ver las opciones o *RENOVAR* para renovar."
)
UNKNOWN_COMMAND_TEXT = "❓ Comando no reconocido. Escribí *AYUDA* para ver los comandos disponibles."
CLARIFY_TEXT = "🤔 No te entendí. Escribí *AYUDA* para ver los comandos disponibles."
QUESTION_FALLBACK_TEXT = "No tengo una respuesta para eso ahora. Escribí *AYUDA* para ver lo que puedo hacer."

HELP_TEXT = (
    "📖 *Comandos disponibles*\n\n"
    "*Pedidos*\n"
    "• VER PEDIDOS\n"
    "• VER PEDIDO #N\n"
    "• ESTADO PEDIDO #N preparando | en_camino | entregado | cancelado\n"
    "• CONFIRMAR PAGO #N\n"
    "• RECHAZAR PEDIDO #N motivo\n\n"
    "*Ventas*\n"
    "• VENTAS HOY | SEMANA | MES\n"
    "• ESTADÍSTICAS\n\n"
    "*Negocio*\n"
    "• VER NEGOCIO\n"
    "• VER MENÚ\n"
    "• EDITAR NOMBRE | HORARIO | ENTREGA | DIRECCIÓN | PAGOS | ZONAS | BANCO\n"
    "• EDITAR PRODUCTOS | EDITAR PRODUCTO\n"
    "• PAUSAR PRODUCTO | ELIMINAR PRODUCTO\n"
    "• SINCRONIZAR\n\n"
    "*Plan*\n"
    "• PLAN\n"
    "• PLANES\n"
    "• RENOVAR\n"
    "• CAMBIAR PLAN"
)
HELP_AI_SUFFIX = "\n\n🤖 También podés escribirme normal, por ejemplo: _¿cuánto vendí hoy?_"

CUSTOMER_STATUS_TEXT = {
    "preparando": "👨‍🍳 ¡Ya lo estamos preparando!",
    "en_camino": "🛵 ¡Tu pedido va en camino!",
    "entregado": "✅ ¡Que lo disfrutes!",
    "cancelado": "❌ Tu pedido fue cancelado. Contactá al local por cualquier duda.",
}


@dataclass
class AdminCommandContext:
    db: Session
    business: Business | None
    admin_phone: str
    channel: ChannelCredentials
    extractor: Extractor
    importer: CatalogImporter = field(default_factory=CatalogImporter)
    is_super_admin: bool = False
    text: str = ""
    plan: Plan | None = None


@dataclass
class CommandResult:
    messages: list[Outbound] = field(default_factory=list)
    # paso al que pasa la conversación del admin (modo edición)
    next_step: AdminStep | None = None


def _reply(*texts: str) -> CommandResult:
    return CommandResult(messages=[Reply(text) for text in texts])


def _date(value) -> str:
    return local_now(as_utc(value)).strftime("%d/%m/%Y")


def _zones(ctx: AdminCommandContext) -> list[DeliveryZone]:
    return ctx.db.query(DeliveryZone).filter(DeliveryZone.business_id == ctx.business.id).order_by(DeliveryZone.id).all()


def _bank(ctx: AdminCommandContext) -> BankDetails | None:
    return ctx.db.query(BankDetails).filter(BankDetails.business_id == ctx.business.id).first()


def menu_products(db: Session, business_id: int) -> list[Product]:
    """Orden estable del menú: la numeración que ve el admin sale de acá."""
    return (
        db.query(Product)
        .filter(Product.business_id == business_id)
        .order_by(Product.category, Product.name, Product.id)
        .all()
    )


def _products(ctx: AdminCommandContext) -> list[Product]:
    return menu_products(ctx.db, ctx.business.id)


def business_context_text(business: Any, zones: list[Any], products: list[Any]) -> str:
    lines = [
        f"Nombre: {business.business_name}",
        f"Horario: {business.business_hours}",
        f"Delivery: {'sí' if business.has_delivery else 'no'}; retiro: {'sí' if business.has_pickup else 'no'}",
    ]
    if zones:
        lines.append("Zonas: " + ", ".join(f"{zone.zone_name} ${zone.price}" for zone in zones))
    if products:
        lines.append("Productos: " + ", ".join(f"{product.name} ${product.price}" for product in products[:50]))
    return "\n".join(lines)


def order_detail_text(order) -> str:
    lines = [
        f"📦 *Pedido #{order.order_number}* — {status_label(order.order_status)}",
        f"👤 {order.client_name or order.client_phone} ({order.client_phone})",
    ]
    for item in order.items or []:
        lines.append(f"• {item.get('qty')} x {item.get('name')} — ${format_price(item.get('subtotal'))}")
    if order.client_address:
        lines.append(f"🛵 {order.client_address} (envío ${format_price(order.delivery_price)})")
    else:
        lines.append("🏪 Retira en el local")
    lines.append(f"💰 Total: *${format_price(order.grand_total)}*")
    paid = "confirmado" if order.payment_status == "confirmed" else "pendiente"
    payment = payment_label(order.payment_method)
    if order.payment_method == "deposit" and order.deposit_amount:
        payment += f" (seña ${format_price(order.deposit_amount)})"
    lines.append(f"💳 {payment} — {paid}")
    lines.append(f"🕐 {local_now(as_utc(order.created_at)).strftime('%d/%m %H:%M')}")
    return "\n".join(lines)


def plan_lines(plan: Plan) -> list[str]:
    orders_limit = "ilimitados" if plan.monthly_order_limit is None else str(plan.monthly_order_limit)
    zones_limit = "ilimitadas" if plan.delivery_zone_limit >= UNLIMITED_THRESHOLD else str(plan.delivery_zone_limit)
    if plan.analytics_queries_limit == 0:
        stats = "no"
    elif plan.analytics_queries_limit >= UNLIMITED_THRESHOLD:
        stats = "ilimitadas"
    else:
        stats = f"{plan.analytics_queries_limit}/mes"
    return [
        f"*{plan.name}* — USD {plan.price_usd}/mes",
        f"• Pedidos: {orders_limit} por mes",
        f"• Zonas de delivery: {zones_limit}",
        f"• Asistente con IA: {'sí' if plan.ai_enabled else 'no'}",
        f"• Resumen diario al cierre: {'sí' if plan.daily_summary else 'no'}",
        f"• Estadísticas: {stats}",
    ]


def _plans_text() -> str:
    blocks = ["\n".join(plan_lines(plan)) for plan in PLANS.values()]
    return "💎 *Planes disponibles*\n\n" + "\n\n".join(blocks)


def _support_phone() -> str:
    return ALERT_PHONE or SUPPORT_PHONE


# --- ayuda y conversación ---

def handle_help(ctx: AdminCommandContext, args: dict[str, Any]) -> CommandResult:
    if ctx.plan is not None and ctx.plan.ai_enabled:
        return _reply(HELP_TEXT + HELP_AI_SUFFIX)
    return _reply(HELP_TEXT)


def handle_greeting(ctx: AdminCommandContext, args: dict[str, Any]) -> CommandResult:
    name = ctx.business.business_name if ctx.business else None
    suffix = f" con *{name}*" if name else ""
    return _reply(f"👋 ¡Hola! ¿En qué te ayudo{suffix}? Escribí *AYUDA* para ver los comandos.")


def handle_general_question(ctx: AdminCommandContext, args: dict[str, Any]) -> CommandResult:
    context = business_context_text(ctx.business, _zones(ctx), _products(ctx))
    try:
        answer = extractors.answer_question(ctx.extractor, ctx.text, context)
    except ExtractionError as exc:
        logger.info("general question failed: %s", exc, extra={"edge_case": EdgeCase.EXTRACTION_FAILED.value})
        return _reply(QUESTION_FALLBACK_TEXT)
    return _reply(answer or QUESTION_FALLBACK_TEXT)


def handle_clarify(ctx: AdminCommandContext, args: dict[str, Any]) -> CommandResult:
    return _reply(CLARIFY_TEXT)


# --- vistas ---

def handle_view_menu(ctx: AdminCommandContext, args: dict[str, Any]) -> CommandResult:
    products = _products(ctx)
    if not products:
        return _reply("Todavía no cargaste productos. Usá *SINCRONIZAR* para traerlos de tu catálogo.")

    lines = ["📋 *Tu menú*"]
    category = object()
    for product in products:
        if product.category != category:
            category = product.category
            lines.append("")
            lines.append(f"*{category or 'Otros'}*")
        paused = "" if product.is_available else " _(no disponible)_"
        lines.append(f"• {product.name} — ${format_price(product.price)}{paused}")
    return _reply("\n".join(lines))


def handle_view_business(ctx: AdminCommandContext, args: dict[str, Any]) -> CommandResult:
    products_count = ctx.db.query(Product).filter(Product.business_id == ctx.business.id).count()
    lines = ["🏪 *Tu negocio*", ""]
    lines += business_summary_lines(ctx.business, _zones(ctx), _bank(ctx), products_count)
    lines.append("")
    lines.append("Para cambiar algo usá *EDITAR NOMBRE*, *EDITAR HORARIO*, etc.")
    return _reply("\n".join(lines))


def handle_view_orders(ctx: AdminCommandContext, args: dict[str, Any]) -> CommandResult:
    open_orders = orders.list_open_orders(ctx.db, ctx.business.id)
    if not open_orders:
        return _reply("✅ No tenés pedidos pendientes.")
    lines = ["📦 *Pedidos en curso*", ""]
    for order in open_orders:
        paid = "💳✅" if order.payment_status == "confirmed" else "💳⏳"
        lines.append(
            f"#{order.order_number} · {status_label(order.order_status)} · ${format_price(order.grand_total)} · "
            f"{order.client_name or order.client_phone} {paid}"
        )
    lines.append("")
    lines.append("Escribí *VER PEDIDO #N* para ver el detalle.")
    return _reply("\n".join(lines))


def handle_view_order(ctx: AdminCommandContext, args: dict[str, Any]) -> CommandResult:
    order_number = args["order_number"]
    order = orders.get_order(ctx.db, ctx.business.id, order_number)
    if order is None:
        return _reply(f"No encontré el pedido #{order_number}.")
    return _reply(order_detail_text(order))


# --- pedidos ---

def handle_order_status(ctx: AdminCommandContext, args: dict[str, Any]) -> CommandResult:
    order_number, status = args["order_number"], args["status"]
    if status not in orders.ADMIN_TARGET_STATUSES:
        return _reply(f"⚠️ Estado inválido. Usá: {', '.join(orders.ADMIN_TARGET_STATUSES)}.")

    outcome = orders.change_status(ctx.db, ctx.business.id, order_number, status)
    if outcome.outcome == "not_found":
        return _reply(f"No encontré el pedido #{order_number}.")
    if outcome.outcome == "unchanged":
        return _reply(f"El pedido #{order_number} ya está {status_label(status)}.")
    if outcome.outcome == "closed":
        return _reply(
            f"⚠️ El pedido #{order_number} ya está {status_label(outcome.order.order_status)} y no se puede cambiar."
        )

    order = outcome.order
    customer_text = (
        f"📦 Tu pedido *#{order_number}* de *{ctx.business.business_name}* está: {status_label(status)}\n"
        f"{CUSTOMER_STATUS_TEXT[status]}"
    )
    return CommandResult(
        messages=[
            Reply(f"✅ Pedido #{order_number} → {status_label(status)}"),
            Reply(customer_text, to=order.client_phone),
        ]
    )


def handle_confirm_payment(ctx: AdminCommandContext, args: dict[str, Any]) -> CommandResult:
    order_number = args["order_number"]
    outcome = orders.confirm_payment(ctx.db, ctx.business.id, order_number)
    if outcome.outcome == "not_found":
        return _reply(f"No encontré el pedido #{order_number}.")
    if outcome.outcome == "already_confirmed":
        return _reply(f"⚠️ El pago del pedido #{order_number} ya estaba confirmado.")
    if outcome.outcome == "cancelled_order":
        return _reply(f"⚠️ El pedido #{order_number} está cancelado.")

    return CommandResult(
        messages=[
            Reply(f"✅ Pago del pedido #{order_number} confirmado."),
            Reply(
                f"✅ ¡Recibimos tu pago! Tu pedido *#{order_number}* de *{ctx.business.business_name}* ya está en marcha.",
                to=outcome.order.client_phone,
            ),
        ]
    )


def handle_reject_order(ctx: AdminCommandContext, args: dict[str, Any]) -> CommandResult:
    order_number = args["order_number"]
    reason = args.get("reason")
    outcome = orders.reject_order(ctx.db, ctx.business.id, order_number)
    if outcome.outcome == "not_found":
        return _reply(f"No encontré el pedido #{order_number}.")
    if outcome.outcome == "already_cancelled":
        return _reply(f"⚠️ El pedido #{order_number} ya estaba cancelado.")
    if outcome.outcome == "delivered":
        return _reply(f"⚠️ El pedido #{order_number} ya fue entregado, no se puede rechazar.")

    customer_text = f"❌ Tu pedido *#{order_number}* fue rechazado por *{ctx.business.business_name}*."
    if reason:
        customer_text += f"\nMotivo: {reason}"
    return CommandResult(
        messages=[
            Reply(f"❌ Pedido #{order_number} rechazado."),
            Reply(customer_text, to=outcome.order.client_phone),
        ]
    )


# --- ventas ---

def handle_sales_summary(ctx: AdminCommandContext, args: dict[str, Any]) -> CommandResult:
    period = args.get("period") or "hoy"
    summary = orders.sales_summary(ctx.db, ctx.business.id, period)
    lines = [
        f"📈 *Ventas de {orders.PERIOD_LABELS[period]}*",
        f"_Desde el {summary.since.strftime('%d/%m %H:%M')}_",
        "",
        f"🧾 Pedidos: {summary.total_orders}",
        f"✅ Pagados: {summary.confirmed_orders}",
        f"⏳ En curso: {summary.in_progress_orders}",
        f"❌ Cancelados: {summary.cancelled_orders}",
        "",
        f"💰 *Facturado: ${format_price(summary.revenue)}*",
        f"• Transferencia/seña: ${format_price(summary.transfer_revenue)}",
        f"• Efectivo: ${format_price(summary.cash_revenue)}",
    ]
    return _reply("\n".join(lines))


def handle_analytics(ctx: AdminCommandContext, args: dict[str, Any]) -> CommandResult:
    quota = subscription.check_quota(ctx.db, ctx.business.id, "analytics")
    if not quota.allowed:
        logger.info(
            "analytics refused %s",
            policy_for(EdgeCase.QUOTA_EXCEEDED).value,
            extra={"edge_case": EdgeCase.QUOTA_EXCEEDED.value},
        )
        if quota.limit == 0:
            names = " y ".join(plan.name for plan in plan_with_feature("analytics"))
            return _reply(f"📊 Las estadísticas están incluidas en los planes {names}. Escribí *PLANES* para ver más.")
        return _reply(
            f"⚠️ Ya usaste tus consultas de estadísticas del mes ({quota.current}/{quota.limit}). "
            "Escribí *PLANES* para ver otros planes."
        )

    report = analytics.build_report(ctx.db, ctx.business.id)
    subscription.increment_usage(ctx.db, ctx.business.id, "analytics_queries")
    return _reply(analytics.format_report(report, ctx.business.business_name))


def handle_sync_catalog(ctx: AdminCommandContext, args: dict[str, Any]) -> CommandResult:
    if not ctx.channel.catalog_id:
        return _reply("⚠️ Este número no tiene un catálogo de WhatsApp configurado.")
    try:
        result = ctx.importer.import_products(ctx.db, ctx.business.id, ctx.channel)
    except (CatalogImportError, httpx.HTTPError) as exc:
        logger.warning(
            "catalog sync failed: %s",
            exc,
            extra={"tenant_id": str(ctx.business.id), "edge_case": EdgeCase.SIDE_EFFECT_FAILED.value},
        )
        return _reply("⚠️ No pude sincronizar el catálogo. Probá de nuevo en unos minutos.")

    lines = [
        "🔄 *Catálogo sincronizado*",
        f"• Nuevos: {result.inserted}",
        f"• Vinculados: {result.linked}",
        f"• Sin cambios: {result.skipped}",
    ]
    if not ctx.business.is_active:
        products_count = ctx.db.query(Product).filter(Product.business_id == ctx.business.id).count()
        if products_count > 0:
            ctx.business.is_active = True
            lines.append("")
            lines.append("🎉 Tu negocio ya está activo: tus clientes pueden hacer pedidos.")
    return _reply("\n".join(lines))


# --- edición ---

def _edit(step: AdminStep, text: str, *extra: Outbound) -> CommandResult:
    return CommandResult(messages=[Reply(text), *extra], next_step=step)


def handle_edit_name(ctx: AdminCommandContext, args: dict[str, Any]) -> CommandResult:
    return _edit(
        AdminStep.EDIT_NAME,
        f"✏️ Nombre actual: *{ctx.business.business_name or '-'}*\n\nEscribí el nuevo nombre (o *CANCELAR*).",
    )


def handle_edit_hours(ctx: AdminCommandContext, args: dict[str, Any]) -> CommandResult:
    return _edit(
        AdminStep.EDIT_HOURS,
        f"🕐 Horario actual: *{ctx.business.business_hours or '-'}*\n\nEscribí el nuevo horario (o *CANCELAR*).",
    )


def handle_edit_delivery(ctx: AdminCommandContext, args: dict[str, Any]) -> CommandResult:
    business = ctx.business
    current = "Delivery y retiro" if business.has_delivery and business.has_pickup else (
        "Solo delivery" if business.has_delivery else "Solo retiro"
    )
    return CommandResult(
        messages=[Buttons(f"🛵 Entrega actual: *{current}*\n\n¿Cómo entregás los pedidos?", DELIVERY_BUTTONS)],
        next_step=AdminStep.EDIT_DELIVERY,
    )


def handle_edit_address(ctx: AdminCommandContext, args: dict[str, Any]) -> CommandResult:
    if not ctx.business.has_pickup:
        return _reply("Tu negocio no tiene retiro en el local. Usá *EDITAR ENTREGA* para activarlo.")
    return _edit(
        AdminStep.EDIT_ADDRESS,
        f"📍 Dirección actual: *{ctx.business.business_address or '-'}*\n\nEscribí la nueva dirección (o *CANCELAR*).",
    )


def handle_edit_payments(ctx: AdminCommandContext, args: dict[str, Any]) -> CommandResult:
    business = ctx.business
    current = []
    if business.accepts_cash:
        current.append("Efectivo")
    if business.accepts_transfer:
        current.append("Transferencia")
    if business.accepts_deposit:
        current.append(f"Seña {business.deposit_percent or 0}%")
    return CommandResult(
        messages=[
            ListMessage(
                f"💳 Pagos actuales: *{', '.join(current) or '-'}*\n\n¿Qué formas de pago aceptás?",
                "Elegir",
                PAYMENT_ROWS,
                "Formas de pago",
            )
        ],
        next_step=AdminStep.EDIT_PAYMENTS,
    )


def handle_edit_zones(ctx: AdminCommandContext, args: dict[str, Any]) -> CommandResult:
    if not ctx.business.has_delivery:
        return _reply("Tu negocio no hace delivery. Usá *EDITAR ENTREGA* para activarlo.")
    zones = _zones(ctx)
    current = "\n".join(f"• {zone.zone_name} — ${format_price(zone.price)}" for zone in zones) or "(ninguna)"
    return _edit(
        AdminStep.EDIT_ZONES,
        f"🗺️ Zonas actuales:\n{current}\n\n"
        "Mandame *todas* las zonas con su precio; reemplazan a las actuales (o *CANCELAR*).",
    )


def handle_edit_bank(ctx: AdminCommandContext, args: dict[str, Any]) -> CommandResult:
    bank = _bank(ctx)
    if bank is None:
        current = "(sin datos)"
    else:
        current = f"Alias: {bank.alias or '-'}\nCBU/CVU: {bank.cbu or '-'}\nTitular: {bank.account_holder or '-'}"
    return _edit(
        AdminStep.EDIT_BANK,
        f"🏦 Datos actuales:\n{current}\n\nMandame alias, CBU/CVU y titular nuevos (o *CANCELAR*).",
    )


NO_PRODUCTS_TEXT = "Todavía no tenés productos cargados. Usá *EDITAR PRODUCTOS* para agregarlos."


def handle_edit_products(ctx: AdminCommandContext, args: dict[str, Any]) -> CommandResult:
    listing = product_list_text(_products(ctx)) or "(menú vacío)"
    return _edit(
        AdminStep.EDIT_PRODUCTS,
        f"🍕 Tu menú:\n{listing}\n\n"
        "Mandame productos nuevos con su precio para agregarlos, "
        "*ELIMINAR N* para sacar uno o *LISTO* para terminar.",
    )


def handle_edit_product(ctx: AdminCommandContext, args: dict[str, Any]) -> CommandResult:
    products = _products(ctx)
    if not products:
        return _reply(NO_PRODUCTS_TEXT)
    return _edit(
        AdminStep.EDIT_PRODUCT_SELECT,
        f"✏️ ¿Qué producto querés modificar?\n\n{product_list_text(products)}\n\n"
        "Respondé con el número o el nombre (o *CANCELAR*).",
    )


def handle_pause_product(ctx: AdminCommandContext, args: dict[str, Any]) -> CommandResult:
    products = _products(ctx)
    if not products:
        return _reply(NO_PRODUCTS_TEXT)
    return _edit(
        AdminStep.EDIT_PAUSE_PRODUCT,
        f"⏸️ ¿Qué producto querés pausar o reactivar?\n\n{product_list_text(products)}\n\n"
        "Los pausados (⏸️) se reactivan eligiéndolos de nuevo. Respondé con el número o el nombre (o *CANCELAR*).",
    )


def handle_delete_product(ctx: AdminCommandContext, args: dict[str, Any]) -> CommandResult:
    products = _products(ctx)
    if not products:
        return _reply(NO_PRODUCTS_TEXT)
    return _edit(
        AdminStep.EDIT_DELETE_PRODUCT,
        f"🗑️ ¿Qué producto querés eliminar?\n\n{product_list_text(products)}\n\n"
        "Respondé con el número (o *CANCELAR*).",
    )


# --- plan ---

def handle_view_plan(ctx: AdminCommandContext, args: dict[str, Any]) -> CommandResult:
    current = subscription.active_subscription(ctx.db, ctx.business.id)
    plan = get_plan(current.plan_slug) if current else None
    if current is None or plan is None:
        return _reply("⚠️ No tenés una suscripción activa.\n\nEscribí *PLANES* para ver las opciones o *RENOVAR*.")

    usage = subscription.get_usage(ctx.db, ctx.business.id)
    order_count = usage.order_count if usage else 0
    analytics_count = usage.analytics_queries if usage else 0
    orders_limit = "∞" if plan.monthly_order_limit is None else str(plan.monthly_order_limit)
    status = "prueba gratis" if current.status == "trial" else "activo"

    lines = plan_lines(plan)
    lines[0] = f"📋 Tu plan: *{plan.name}* ({status})"
    lines.insert(1, f"Vence: {_date(current.end_date)}")
    lines.append("")
    lines.append("*Uso este mes*")
    lines.append(f"• Pedidos: {order_count}/{orders_limit}")
    if plan.analytics_queries_limit:
        analytics_limit = "∞" if plan.analytics_queries_limit >= UNLIMITED_THRESHOLD else str(plan.analytics_queries_limit)
        lines.append(f"• Estadísticas: {analytics_count}/{analytics_limit}")
    return _reply("\n".join(lines))


def handle_view_plans(ctx: AdminCommandContext, args: dict[str, Any]) -> CommandResult:
    return _reply(_plans_text() + "\n\nPara cambiar escribí *CAMBIAR PLAN PRO* (o el que elijas).")


def handle_renew(ctx: AdminCommandContext, args: dict[str, Any]) -> CommandResult:
    phone = _support_phone()
    contact = f"+{phone}" if phone else "soporte"
    current = (
        ctx.db.query(Subscription)
        .filter(Subscription.business_id == ctx.business.id, Subscription.status != "cancelled")
        .order_by(Subscription.end_date.desc())
        .first()
    )
    plan = get_plan(current.plan_slug) if current else None
    amount = f"USD {plan.price_usd} del plan *{plan.name}*" if plan else "el valor del plan que elijas"
    return _reply(
        "🔄 *Renovar suscripción*\n\n"
        f"Transferí {amount} y mandá el comprobante a {contact}.\n"
        "Te avisamos por acá apenas quede activo.\n\n"
        "Si querés otro plan escribí *PLANES*."
    )


def handle_change_plan(ctx: AdminCommandContext, args: dict[str, Any]) -> CommandResult:
    slug = args.get("plan_slug")
    plan = get_plan(slug)
    if plan is None:
        return _reply(
            _plans_text() + "\n\nEscribí *CAMBIAR PLAN BASICO*, *CAMBIAR PLAN INTERMEDIO* o *CAMBIAR PLAN PRO*."
        )

    if not ALERT_PHONE:
        logger.warning("plan change requested without ALERT_PHONE", extra={"tenant_id": str(ctx.business.id)})
        return _reply("⚠️ No pude enviar tu pedido de cambio. Escribinos a soporte.")

    alert = (
        "🔔 *Pedido de cambio de plan*\n"
        f"Negocio: {ctx.business.business_name} (id {ctx.business.id})\n"
        f"Admin: +{ctx.admin_phone}\n"
        f"Plan: {plan.name} (USD {plan.price_usd}/mes)\n\n"
        "Cuando recibas el pago, mandá:\n"
        f"CONFIRMAR PAGO {ctx.admin_phone} {plan.slug.upper()}"
    )
    return CommandResult(
        messages=[
            Reply(
                f"📨 Pedido de cambio al plan *{plan.name}* enviado.\n"
                f"Transferí USD {plan.price_usd} y mandá el comprobante a +{ALERT_PHONE}. "
                "Te avisamos cuando esté activo."
            ),
            Reply(alert, to=ALERT_PHONE),
        ]
    )


# --- super-admin ---

def handle_super_confirm_payment(ctx: AdminCommandContext, args: dict[str, Any]) -> CommandResult:
    if not ctx.is_super_admin:
        return handle_clarify(ctx, args)

    phone, slug = args["phone"], args["plan_slug"]
    plan = get_plan(slug)
    admin = ctx.db.query(Admin).filter(Admin.phone == phone).first()
    if plan is None:
        return _reply("❌ Plan inválido. Usá BASICO, INTERMEDIO o PRO.")
    if admin is None or admin.business_id is None:
        return _reply(f"❌ No encontré un negocio para +{phone}.")

    business = ctx.db.get(Business, admin.business_id)
    activated = subscription.activate_plan(ctx.db, admin.business_id, plan.slug)
    until = _date(activated.end_date)
    name = business.business_name if business else f"negocio {admin.business_id}"
    logger.info("plan confirmed by super admin plan=%s", plan.slug, extra={"tenant_id": str(admin.business_id)})
    return CommandResult(
        messages=[
            Reply(f"✅ Plan *{plan.name}* activado para *{name}* hasta el {until}."),
            Reply(f"🎉 ¡Tu plan *{plan.name}* está activo hasta el {until}! Gracias por confiar en nosotros.", to=phone),
        ]
    )


def handle_view_subscriptions(ctx: AdminCommandContext, args: dict[str, Any]) -> CommandResult:
    if not ctx.is_super_admin:
        return handle_clarify(ctx, args)

    businesses = ctx.db.query(Business).order_by(Business.id).limit(50).all()
    if not businesses:
        return _reply("No hay negocios registrados.")

    lines = ["📋 *Suscripciones*", ""]
    for business in businesses:
        latest = (
            ctx.db.query(Subscription)
            .filter(Subscription.business_id == business.id, Subscription.status != "cancelled")
            .order_by(Subscription.end_date.desc())
            .first()
        )
        name = business.business_name or f"(sin nombre #{business.id})"
        if latest is None:
            lines.append(f"• {name} (+{business.admin_phone}) — sin suscripción")
            continue
        plan = get_plan(latest.plan_slug)
        lines.append(
            f"• {name} (+{business.admin_phone}) — {plan.name if plan else latest.plan_slug} · "
            f"{latest.status} · vence {_date(latest.end_date)}"
        )
    return _reply("\n".join(lines))


INTENT_HANDLERS: dict[AdminIntent, Callable[[AdminCommandContext, dict[str, Any]], CommandResult]] = {
    AdminIntent.HELP: handle_help,
    AdminIntent.GREETING: handle_greeting,
    AdminIntent.GENERAL_QUESTION: handle_general_question,
    AdminIntent.CLARIFY: handle_clarify,
    AdminIntent.VIEW_MENU: handle_view_menu,
    AdminIntent.VIEW_BUSINESS: handle_view_business,
    AdminIntent.VIEW_ORDERS: handle_view_orders,
    AdminIntent.VIEW_ORDER: handle_view_order,
    AdminIntent.SALES_SUMMARY: handle_sales_summary,
    AdminIntent.ANALYTICS: handle_analytics,
    AdminIntent.SYNC_CATALOG: handle_sync_catalog,
    AdminIntent.EDIT_NAME: handle_edit_name,
    AdminIntent.EDIT_HOURS: handle_edit_hours,
    AdminIntent.EDIT_ADDRESS: handle_edit_address,
    AdminIntent.EDIT_DELIVERY: handle_edit_delivery,
    AdminIntent.EDIT_PAYMENTS: handle_edit_payments,
    AdminIntent.EDIT_ZONES: handle_edit_zones,
    AdminIntent.EDIT_BANK: handle_edit_bank,
    AdminIntent.EDIT_PRODUCTS: handle_edit_products,
    AdminIntent.EDIT_PRODUCT: handle_edit_product,
    AdminIntent.PAUSE_PRODUCT: handle_pause_product,
    AdminIntent.DELETE_PRODUCT: handle_delete_product,
    AdminIntent.VIEW_PLAN: handle_view_plan,
    AdminIntent.VIEW_PLANS: handle_view_plans,
    AdminIntent.RENEW: handle_renew,
    AdminIntent.CHANGE_PLAN: handle_change_plan,
    AdminIntent.ORDER_STATUS: handle_order_status,
    AdminIntent.CONFIRM_PAYMENT: handle_confirm_payment,
    AdminIntent.REJECT_ORDER: handle_reject_order,
    AdminIntent.SUPER_CONFIRM_PAYMENT: handle_super_confirm_payment,
    AdminIntent.VIEW_SUBSCRIPTIONS: handle_view_subscriptions,
}

assert set(INTENT_HANDLERS) == set(AdminIntent), "every admin intent needs a handler"


def run_intent(ctx: AdminCommandContext, command: ParsedCommand) -> CommandResult:
    handler = INTENT_HANDLERS.get(command.intent, handle_clarify)
    if ctx.business is None and command.intent not in SUPER_ADMIN_INTENTS:
        return handle_clarify(ctx, command.args)
    logger.info("admin command intent=%s", command.intent.value)
    return handler(ctx, command.args)


def handle_admin_command(ctx: AdminCommandContext, text: str) -> CommandResult:
    ctx.text = text or ""
    parsed = parse_command(ctx.text)

    if parsed is not None and parsed.intent in SUPER_ADMIN_INTENTS:
        return run_intent(ctx, parsed)

    current = subscription.active_subscription(ctx.db, ctx.business.id)
    ctx.plan = get_plan(current.plan_slug) if current else None
    if current is None and not is_subscription_command(ctx.text) and not ctx.is_super_admin:
        logger.info("admin command blocked: subscription expired", extra={"tenant_id": str(ctx.business.id)})
        return _reply(EXPIRED_TEXT)

    if parsed is None:
        if ctx.plan is None or not ctx.plan.ai_enabled:
            return _reply(UNKNOWN_COMMAND_TEXT)
        try:
            intent, args = extractors.classify_admin_intent(ctx.extractor, ctx.text)
        except ExtractionError as exc:
            logger.info("intent classification failed: %s", exc, extra={"edge_case": EdgeCase.EXTRACTION_FAILED.value})
            intent, args = AdminIntent.CLARIFY, {}
        parsed = ParsedCommand(intent, args)

    return run_intent(ctx, parsed)
