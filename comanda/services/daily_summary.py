"""Resumen del día que reciben los admins al cierre, si el plan lo incluye.

Lo dispara ``scripts/send_daily_summaries.py`` desde cron; se puede correr con
cualquier frecuencia porque cada negocio recibe a lo sumo uno por día local.
"""

from __future__ import annotations

import logging
from collections import Counter
from datetime import datetime, timezone

from sqlalchemy.orm import Session

from comanda.core.clock import local_now
from comanda.fsm.effects import Reply
from comanda.models.business import Business
from comanda.models.order import Order
from comanda.models.tenant_channel import TenantChannel
from comanda.services import subscription
from comanda.services.business_hours import parse_business_hours
from comanda.services.formatting import format_price
from comanda.services.orders import OPEN_STATUSES, period_start
from comanda.services.tenant_resolver import credentials_from_row, default_channel
from comanda.whatsapp.base import ChannelCredentials
from comanda.whatsapp.service import WhatsAppService

logger = logging.getLogger(__name__)

_MEDALS = ("🥇", "🥈", "🥉")


def closing_minute(business_hours: str | None, now: datetime | None = None) -> int | None:
    """Minuto local en que cierra el último turno de hoy; None si hoy no abre."""
    local = local_now(now)
    today = (local.weekday() + 1) % 7
    closings = []
    for segment in parse_business_hours(business_hours):
        if today not in segment.days:
            continue
        if segment.end_minute <= segment.start_minute:
            # cierra pasada la medianoche: el resumen sale a las 23
            closings.append(23 * 60)
        else:
            closings.append(segment.end_minute)
    return max(closings) if closings else None


def build_daily_summary(db: Session, business: Business, now: datetime | None = None) -> str:
    since = period_start("hoy", now).astimezone(timezone.utc)
    todays = (
        db.query(Order)
        .filter(Order.business_id == business.id, Order.created_at >= since)
        .order_by(Order.order_number)
        .all()
    )
    title = f"📊 *Resumen del día — {business.business_name or 'tu negocio'}*"
    if not todays:
        return f"{title}\n\nNo hubo pedidos hoy."

    live = [order for order in todays if order.order_status != "cancelado"]
    confirmed = [order for order in live if order.payment_status == "confirmed"]
    pending = [order for order in todays if order.order_status in OPEN_STATUSES]
    cancelled = len(todays) - len(live)

    quantities: Counter[str] = Counter()
    revenue_by_product: Counter[str] = Counter()
    for order in live:
        for item in order.items or []:
            quantities[item["name"]] += int(item.get("qty") or 0)
            revenue_by_product[item["name"]] += int(item.get("subtotal") or 0)

    lines = [title, "", f"📦 Total pedidos: {len(todays)}", f"✅ Confirmados: {len(confirmed)}"]
    if pending:
        lines.append(f"⏳ Pendientes: {len(pending)}")
    if cancelled:
        lines.append(f"❌ Cancelados: {cancelled}")
    lines.append("")
    lines.append(f"💰 *Facturación: ${format_price(sum(order.grand_total for order in confirmed))}*")

    if quantities:
        lines.append("")
        lines.append("🏆 *Top productos:*")
        for medal, (name, qty) in zip(_MEDALS, quantities.most_common(3)):
            lines.append(f"{medal} {name} — {qty} uds (${format_price(revenue_by_product[name])})")

    if pending:
        lines.append("")
        lines.append(f"⚠️ Tenés *{len(pending)}* pedido(s) sin terminar.")
    return "\n".join(lines)


def _channel_for(db: Session, business_id: int) -> ChannelCredentials | None:
    row = (
        db.query(TenantChannel)
        .filter(TenantChannel.business_id == business_id, TenantChannel.is_active.is_(True))
        .first()
    )
    return credentials_from_row(row) if row is not None else default_channel()


def summary_due(db: Session, business: Business, now: datetime | None = None) -> bool:
    local = local_now(now)
    if business.last_summary_on == local.date():
        return False
    closing = closing_minute(business.business_hours, local)
    if closing is None or local.hour * 60 + local.minute < closing:
        return False
    return subscription.has_feature(db, business.id, "daily_summary")


def send_daily_summaries(db: Session, whatsapp: WhatsAppService, now: datetime | None = None) -> list[int]:
    """Manda los resúmenes vencidos y devuelve los ids de negocio notificados."""
    today = local_now(now).date()
    due: list[tuple[Business, ChannelCredentials, str]] = []
    for business in db.query(Business).filter(Business.is_active.is_(True)).order_by(Business.id):
        if not summary_due(db, business, now):
            continue
        channel = _channel_for(db, business.id)
        if channel is None:
            logger.warning("daily summary skipped: no channel", extra={"tenant_id": str(business.id)})
            continue
        due.append((business, channel, build_daily_summary(db, business, now)))
        business.last_summary_on = today
    db.commit()

    for business, channel, text in due:
        whatsapp.deliver(channel, sender=business.admin_phone, messages=[Reply(text)])
        logger.info("daily summary sent", extra={"tenant_id": str(business.id)})
    return [business.id for business, _channel, _text in due]
