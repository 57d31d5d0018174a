"""Pedidos de un negocio: numeración, estados, pagos y resumen de ventas.

Todas las consultas van acotadas por ``business_id``; un número de pedido solo
es único dentro de su negocio.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import func
from sqlalchemy.orm import Session

from comanda.core.clock import local_now, utcnow
from comanda.fsm.effects import OrderDraft
from comanda.models.order import Order

logger = logging.getLogger(__name__)

OPEN_STATUSES = ("nuevo", "preparando", "en_camino")
ADMIN_TARGET_STATUSES = ("preparando", "en_camino", "entregado", "cancelado")
PERIODS = ("hoy", "semana", "mes")
PERIOD_LABELS = {"hoy": "hoy", "semana": "esta semana", "mes": "este mes"}


@dataclass
class OrderOutcome:
    """``outcome`` describe qué pasó; ``order`` es None solo si no existe."""

    outcome: str
    order: Order | None = None

    @property
    def changed(self) -> bool:
        return self.outcome in {"updated", "confirmed", "rejected", "cancelled"}


def get_order(db: Session, business_id: int, order_number: int) -> Order | None:
    return (
        db.query(Order)
        .filter(Order.business_id == business_id, Order.order_number == order_number)
        .first()
    )


def list_open_orders(db: Session, business_id: int, limit: int = 20) -> list[Order]:
    return (
        db.query(Order)
        .filter(Order.business_id == business_id, Order.order_status.in_(OPEN_STATUSES))
        .order_by(Order.order_number.asc())
        .limit(limit)
        .all()
    )


def next_order_number(db: Session, business_id: int) -> int:
    current = db.query(func.max(Order.order_number)).filter(Order.business_id == business_id).scalar()
    return (current or 0) + 1


def create_order(db: Session, draft: OrderDraft) -> Order:
    # la unique (business_id, order_number) frena una carrera entre dos clientes;
    # el perdedor falla en el flush y el dispatcher hace rollback del evento
    order = Order(
        business_id=draft.business_id,
        order_number=next_order_number(db, draft.business_id),
        client_phone=draft.client_phone,
        client_name=draft.client_name,
        client_address=draft.client_address,
        items=draft.items,
        subtotal=draft.subtotal,
        delivery_zone_id=draft.delivery_zone_id,
        delivery_price=draft.delivery_price,
        grand_total=draft.grand_total,
        payment_method=draft.payment_method,
        deposit_amount=draft.deposit_amount,
        order_status="nuevo",
        payment_status="pending",
        created_at=utcnow(),
    )
    db.add(order)
    db.flush()
    logger.info(
        "order created number=%s total=%s",
        order.order_number,
        order.grand_total,
        extra={"tenant_id": str(draft.business_id)},
    )
    return order


def change_status(db: Session, business_id: int, order_number: int, status: str) -> OrderOutcome:
    if status not in ADMIN_TARGET_STATUSES:
        raise ValueError(f"Invalid order status: {status}")
    order = get_order(db, business_id, order_number)
    if order is None:
        return OrderOutcome("not_found")
    if order.order_status == status:
        return OrderOutcome("unchanged", order)
    if order.order_status in {"entregado", "cancelado"}:
        return OrderOutcome("closed", order)
    order.order_status = status
    db.flush()
    return OrderOutcome("updated", order)


def confirm_payment(db: Session, business_id: int, order_number: int) -> OrderOutcome:
    order = get_order(db, business_id, order_number)
    if order is None:
        return OrderOutcome("not_found")
    if order.order_status == "cancelado":
        return OrderOutcome("cancelled_order", order)
    if order.payment_status == "confirmed":
        return OrderOutcome("already_confirmed", order)
    order.payment_status = "confirmed"
    if order.order_status == "nuevo":
        order.order_status = "preparando"
    db.flush()
    return OrderOutcome("confirmed", order)


def reject_order(db: Session, business_id: int, order_number: int) -> OrderOutcome:
    order = get_order(db, business_id, order_number)
    if order is None:
        return OrderOutcome("not_found")
    if order.order_status == "cancelado":
        return OrderOutcome("already_cancelled", order)
    if order.order_status == "entregado":
        return OrderOutcome("delivered", order)
    order.order_status = "cancelado"
    db.flush()
    return OrderOutcome("rejected", order)


def cancel_by_customer(db: Session, business_id: int, client_phone: str, order_number: int) -> OrderOutcome:
    order = get_order(db, business_id, order_number)
    if order is None or order.client_phone != client_phone:
        return OrderOutcome("not_found")
    if order.order_status == "cancelado":
        return OrderOutcome("already_cancelled", order)
    if order.order_status != "nuevo":
        return OrderOutcome("not_cancellable", order)
    order.order_status = "cancelado"
    db.flush()
    return OrderOutcome("cancelled", order)


@dataclass
class SalesSummary:
    period: str
    since: datetime
    total_orders: int
    confirmed_orders: int
    cancelled_orders: int
    in_progress_orders: int
    revenue: int
    transfer_revenue: int
    cash_revenue: int


def period_start(period: str, now: datetime | None = None) -> datetime:
    """Inicio del período en hora local del negocio; la semana arranca el domingo."""
    if period not in PERIODS:
        raise ValueError(f"Invalid period: {period}")
    local = local_now(now)
    midnight = local.replace(hour=0, minute=0, second=0, microsecond=0)
    if period == "hoy":
        return midnight
    if period == "semana":
        days_since_sunday = (midnight.weekday() + 1) % 7
        return midnight - timedelta(days=days_since_sunday)
    return midnight.replace(day=1)


def sales_summary(db: Session, business_id: int, period: str, now: datetime | None = None) -> SalesSummary:
    since = period_start(period, now)
    since_utc = since.astimezone(utcnow().tzinfo)
    orders = (
        db.query(Order)
        .filter(Order.business_id == business_id, Order.created_at >= since_utc)
        .all()
    )

    paid = [order for order in orders if order.payment_status == "confirmed" and order.order_status != "cancelado"]
    transfer_revenue = sum(order.grand_total for order in paid if order.payment_method in {"transfer", "deposit"})
    cash_revenue = sum(order.grand_total for order in paid if order.payment_method == "cash")
    return SalesSummary(
        period=period,
        since=since,
        total_orders=len(orders),
        confirmed_orders=len(paid),
        cancelled_orders=sum(1 for order in orders if order.order_status == "cancelado"),
        in_progress_orders=sum(1 for order in orders if order.order_status in OPEN_STATUSES),
        revenue=transfer_revenue + cash_revenue,
        transfer_revenue=transfer_revenue,
        cash_revenue=cash_revenue,
    )
