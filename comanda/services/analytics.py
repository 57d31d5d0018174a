from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from comanda.core.clock import as_utc, local_now, tenant_tz, utcnow
from comanda.models.order import Order
from comanda.services.formatting import format_price

WINDOW_DAYS = 30
DAY_NAMES = ["Lunes", "Martes", "Miércoles", "Jueves", "Viernes", "Sábado", "Domingo"]


@dataclass
class AnalyticsReport:
    order_count: int
    revenue: int
    top_products: list[tuple[str, int]] = field(default_factory=list)
    unique_customers: int = 0
    repeat_customers: int = 0
    peak_hours: list[tuple[int, int]] = field(default_factory=list)
    popular_days: list[tuple[str, int]] = field(default_factory=list)


def build_report(db: Session, business_id: int, now: datetime | None = None) -> AnalyticsReport:
    since = (now or utcnow()) - timedelta(days=WINDOW_DAYS)
    orders = (
        db.query(Order)
        .filter(
            Order.business_id == business_id,
            Order.created_at >= since,
            Order.order_status != "cancelado",
        )
        .all()
    )

    products: Counter[str] = Counter()
    customers: Counter[str] = Counter()
    hours: Counter[int] = Counter()
    days: Counter[int] = Counter()
    tz = tenant_tz()
    for order in orders:
        for item in order.items or []:
            products[str(item.get("name") or "?")] += int(item.get("qty") or 0)
        customers[order.client_phone] += 1
        local = as_utc(order.created_at).astimezone(tz)
        hours[local.hour] += 1
        days[local.weekday()] += 1

    return AnalyticsReport(
        order_count=len(orders),
        revenue=sum(order.grand_total or 0 for order in orders),
        top_products=products.most_common(5),
        unique_customers=len(customers),
        repeat_customers=sum(1 for count in customers.values() if count > 1),
        peak_hours=hours.most_common(3),
        popular_days=[(DAY_NAMES[day], count) for day, count in days.most_common(3)],
    )


def format_report(report: AnalyticsReport, business_name: str | None = None) -> str:
    title = f"📊 *Estadísticas de {business_name}*" if business_name else "📊 *Estadísticas*"
    lines = [title, f"_Últimos {WINDOW_DAYS} días al {local_now().strftime('%d/%m')}_", ""]
    if report.order_count == 0:
        lines.append("Todavía no hay pedidos en este período.")
        return "\n".join(lines)

    lines.append(f"🧾 Pedidos: {report.order_count}")
    lines.append(f"💰 Facturado: ${format_price(report.revenue)}")
    lines.append("")
    lines.append("🏆 *Más vendidos*")
    for index, (name, qty) in enumerate(report.top_products, start=1):
        lines.append(f"{index}. {name} ({qty})")
    lines.append("")
    lines.append(f"👥 Clientes únicos: {report.unique_customers}")
    lines.append(f"🔁 Clientes que repitieron: {report.repeat_customers}")
    lines.append("")
    lines.append("⏰ *Horarios pico*")
    for hour, count in report.peak_hours:
        lines.append(f"• {hour:02d}:00 ({count} pedidos)")
    lines.append("")
    lines.append("📅 *Días con más pedidos*")
    for day, count in report.popular_days:
        lines.append(f"• {day} ({count})")
    return "\n".join(lines)
