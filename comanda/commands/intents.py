from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class AdminIntent(str, Enum):
    HELP = "help"
    GREETING = "greeting"
    GENERAL_QUESTION = "general_question"
    CLARIFY = "clarify"

    VIEW_MENU = "view_menu"
    VIEW_BUSINESS = "view_business"
    VIEW_ORDERS = "view_orders"
    VIEW_ORDER = "view_order"
    SALES_SUMMARY = "sales_summary"
    ANALYTICS = "analytics"
    SYNC_CATALOG = "sync_catalog"

    EDIT_NAME = "edit_name"
    EDIT_HOURS = "edit_hours"
    EDIT_ADDRESS = "edit_address"
    EDIT_DELIVERY = "edit_delivery"
    EDIT_PAYMENTS = "edit_payments"
    EDIT_ZONES = "edit_zones"
    EDIT_BANK = "edit_bank"
    EDIT_PRODUCTS = "edit_products"
    EDIT_PRODUCT = "edit_product"
    PAUSE_PRODUCT = "pause_product"
    DELETE_PRODUCT = "delete_product"

    VIEW_PLAN = "view_plan"
    VIEW_PLANS = "view_plans"
    RENEW = "renew"
    CHANGE_PLAN = "change_plan"

    ORDER_STATUS = "order_status"
    CONFIRM_PAYMENT = "confirm_payment"
    REJECT_ORDER = "reject_order"

    SUPER_CONFIRM_PAYMENT = "super_confirm_payment"
    VIEW_SUBSCRIPTIONS = "view_subscriptions"


# Lo único que el clasificador de lenguaje natural puede disparar. Todo lo que
# cambia pedidos, pagos o planes exige el comando exacto.
NL_ALLOWED_INTENTS = frozenset(
    {
        AdminIntent.HELP,
        AdminIntent.GREETING,
        AdminIntent.GENERAL_QUESTION,
        AdminIntent.VIEW_MENU,
        AdminIntent.VIEW_BUSINESS,
        AdminIntent.VIEW_ORDERS,
        AdminIntent.SALES_SUMMARY,
        AdminIntent.ANALYTICS,
        AdminIntent.SYNC_CATALOG,
        AdminIntent.EDIT_NAME,
        AdminIntent.EDIT_HOURS,
        AdminIntent.EDIT_ADDRESS,
        AdminIntent.EDIT_DELIVERY,
        AdminIntent.EDIT_PAYMENTS,
        AdminIntent.EDIT_ZONES,
        AdminIntent.EDIT_BANK,
        AdminIntent.EDIT_PRODUCTS,
        AdminIntent.VIEW_PLAN,
        AdminIntent.VIEW_PLANS,
    }
)

SUBSCRIPTION_INTENTS = frozenset(
    {AdminIntent.VIEW_PLAN, AdminIntent.VIEW_PLANS, AdminIntent.RENEW, AdminIntent.CHANGE_PLAN}
)

SUPER_ADMIN_INTENTS = frozenset({AdminIntent.SUPER_CONFIRM_PAYMENT, AdminIntent.VIEW_SUBSCRIPTIONS})


@dataclass
class ParsedCommand:
    intent: AdminIntent
    args: dict[str, Any] = field(default_factory=dict)


def intent_from_label(label: str | None) -> AdminIntent:
    """Convierte la etiqueta del clasificador; lo desconocido o destructivo pide aclaración."""
    try:
        intent = AdminIntent((label or "").strip().lower())
    except ValueError:
        return AdminIntent.CLARIFY
    if intent not in NL_ALLOWED_INTENTS:
        return AdminIntent.CLARIFY
    return intent
