"""Gramática determinística de comandos del admin.

Los patrones exactos se evalúan antes que cualquier interpretación por IA.
Un argumento malformado (``CONFIRMAR PAGO #abc``) simplemente no matchea.
"""

from __future__ import annotations

import re

from comanda.commands.intents import AdminIntent, ParsedCommand
from comanda.services.formatting import strip_accents
from comanda.services.plans import normalize_plan_slug

_FIXED_COMMANDS: dict[str, AdminIntent] = {
    "AYUDA": AdminIntent.HELP,
    "VER PEDIDOS": AdminIntent.VIEW_ORDERS,
    "VER MENU": AdminIntent.VIEW_MENU,
    "VER NEGOCIO": AdminIntent.VIEW_BUSINESS,
    "PLAN": AdminIntent.VIEW_PLAN,
    "MI PLAN": AdminIntent.VIEW_PLAN,
    "PLANES": AdminIntent.VIEW_PLANS,
    "RENOVAR": AdminIntent.RENEW,
    "ANALYTICS": AdminIntent.ANALYTICS,
    "ESTADISTICAS": AdminIntent.ANALYTICS,
    "SINCRONIZAR": AdminIntent.SYNC_CATALOG,
    "SINCRONIZAR CATALOGO": AdminIntent.SYNC_CATALOG,
    "VER SUSCRIPCIONES": AdminIntent.VIEW_SUBSCRIPTIONS,
    "EDITAR NOMBRE": AdminIntent.EDIT_NAME,
    "EDITAR HORARIO": AdminIntent.EDIT_HOURS,
    "EDITAR ENTREGA": AdminIntent.EDIT_DELIVERY,
    "EDITAR DIRECCION": AdminIntent.EDIT_ADDRESS,
    "EDITAR PAGOS": AdminIntent.EDIT_PAYMENTS,
    "EDITAR ZONAS": AdminIntent.EDIT_ZONES,
    "EDITAR BANCO": AdminIntent.EDIT_BANK,
    "EDITAR PRODUCTOS": AdminIntent.EDIT_PRODUCTS,
    "EDITAR MENU": AdminIntent.EDIT_PRODUCTS,
    "EDITAR PRODUCTO": AdminIntent.EDIT_PRODUCT,
    "PAUSAR PRODUCTO": AdminIntent.PAUSE_PRODUCT,
    "ELIMINAR PRODUCTO": AdminIntent.DELETE_PRODUCT,
}

_VIEW_ORDER_RE = re.compile(r"^VER PEDIDO #?(\d+)$")
_ORDER_STATUS_RE = re.compile(r"^ESTADO PEDIDO #?(\d+)(?:\s+(\S+))?$")
_SUPER_CONFIRM_RE = re.compile(r"^CONFIRMAR PAGO (\+?\d{10,15}) (BASICO|INTERMEDIO|PRO)$")
_CONFIRM_PAYMENT_RE = re.compile(r"^CONFIRMAR PAGO #?(\d+)$")
_REJECT_ORDER_RE = re.compile(r"^RECHAZAR PEDIDO #?(\d+)(?:\s+(.+))?$", re.DOTALL)
_SALES_RE = re.compile(r"^VENTAS (HOY|SEMANA|MES)$")
_CHANGE_PLAN_RE = re.compile(r"^CAMBIAR PLAN(?: (BASICO|INTERMEDIO|PRO))?$")

SUBSCRIPTION_COMMAND_RE = re.compile(r"^(PLAN|MI PLAN|PLANES|RENOVAR|CAMBIAR\s+PLAN)\b")


def _normalize(raw_text: str) -> str:
    collapsed = re.sub(r"\s+", " ", raw_text.strip())
    return strip_accents(collapsed).upper()


def is_subscription_command(raw_text: str) -> bool:
    return bool(SUBSCRIPTION_COMMAND_RE.match(_normalize(raw_text)))


def parse_command(raw_text: str | None) -> ParsedCommand | None:
    if not raw_text or not raw_text.strip():
        return None

    original = re.sub(r"\s+", " ", raw_text.strip())
    text = _normalize(raw_text)

    fixed = _FIXED_COMMANDS.get(text)
    if fixed is not None:
        return ParsedCommand(fixed)

    match = _VIEW_ORDER_RE.match(text)
    if match:
        return ParsedCommand(AdminIntent.VIEW_ORDER, {"order_number": int(match.group(1))})

    match = _ORDER_STATUS_RE.match(text)
    if match:
        order_number = int(match.group(1))
        if match.group(2):
            return ParsedCommand(
                AdminIntent.ORDER_STATUS,
                {"order_number": order_number, "status": match.group(2).lower()},
            )
        return ParsedCommand(AdminIntent.VIEW_ORDER, {"order_number": order_number})

    # antes que CONFIRMAR PAGO #N: un teléfono también son solo dígitos
    match = _SUPER_CONFIRM_RE.match(text)
    if match:
        return ParsedCommand(
            AdminIntent.SUPER_CONFIRM_PAYMENT,
            {"phone": match.group(1).lstrip("+"), "plan_slug": normalize_plan_slug(match.group(2))},
        )

    match = _CONFIRM_PAYMENT_RE.match(text)
    if match:
        return ParsedCommand(AdminIntent.CONFIRM_PAYMENT, {"order_number": int(match.group(1))})

    match = _REJECT_ORDER_RE.match(text)
    if match:
        reason = None
        if match.group(2):
            # el motivo conserva mayúsculas y tildes originales
            original_match = re.match(r"^\S+\s+\S+\s+#?\d+\s+(.+)$", original, re.DOTALL)
            reason = original_match.group(1).strip() if original_match else match.group(2).strip()
        return ParsedCommand(
            AdminIntent.REJECT_ORDER,
            {"order_number": int(match.group(1)), "reason": reason},
        )

    match = _SALES_RE.match(text)
    if match:
        return ParsedCommand(AdminIntent.SALES_SUMMARY, {"period": match.group(1).lower()})

    match = _CHANGE_PLAN_RE.match(text)
    if match:
        return ParsedCommand(AdminIntent.CHANGE_PLAN, {"plan_slug": normalize_plan_slug(match.group(1))})

    return None
