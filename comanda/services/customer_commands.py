"""Comandos del cliente que funcionan desde cualquier estado del flujo."""

from __future__ import annotations

import re
from typing import Any

from sqlalchemy.orm import Session

from comanda.fsm.effects import Outbound, Reply
from comanda.services import orders
from comanda.services.formatting import format_price, normalize_reply, payment_label, status_label

_STATUS_RE = re.compile(r"^ESTADO\s*#?\s*(\d+)$")
_CANCEL_RE = re.compile(r"^CANCELAR\s*#?\s*(\d+)$")


def handle_customer_command(db: Session, *, business: Any, sender: str, text: str | None) -> list[Outbound] | None:
    """None si el texto no es un comando; el flujo sigue normalmente."""
    reply = normalize_reply(text)

    match = _STATUS_RE.match(reply)
    if match:
        return _order_status(db, business, sender, int(match.group(1)))

    match = _CANCEL_RE.match(reply)
    if match:
        return _cancel_order(db, business, sender, int(match.group(1)))

    return None


def _order_status(db: Session, business: Any, sender: str, order_number: int) -> list[Outbound]:
    order = orders.get_order(db, business.id, order_number)
    if order is None or order.client_phone != sender:
        return [Reply(f"No encontré el pedido #{order_number}.")]

    paid = "confirmado ✅" if order.payment_status == "confirmed" else "pendiente ⏳"
    return [
        Reply(
            f"📦 *Pedido #{order.order_number}*: {status_label(order.order_status)}\n"
            f"Total: ${format_price(order.grand_total)}\n"
            f"Pago ({payment_label(order.payment_method)}): {paid}"
        )
    ]


def _cancel_order(db: Session, business: Any, sender: str, order_number: int) -> list[Outbound]:
    outcome = orders.cancel_by_customer(db, business.id, sender, order_number)

    if outcome.outcome == "not_found":
        return [Reply(f"No encontré el pedido #{order_number}.")]
    if outcome.outcome == "already_cancelled":
        return [Reply(f"El pedido #{order_number} ya estaba cancelado.")]
    if outcome.outcome == "not_cancellable":
        return [
            Reply(
                f"⚠️ Tu pedido #{order_number} ya está *{status_label(outcome.order.order_status)}* "
                "y no se puede cancelar. Contactá al local."
            )
        ]

    order = outcome.order
    client = order.client_name or order.client_phone
    return [
        Reply(f"❌ Pedido #{order_number} cancelado."),
        Reply(f"⚠️ {client} canceló el pedido #{order_number}.", to=business.admin_phone),
    ]
