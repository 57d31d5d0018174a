from comanda.commands.intents import AdminIntent, intent_from_label
from comanda.commands.parser import is_subscription_command, parse_command


def test_fixed_commands_ignore_case_accents_and_spaces() -> None:
    assert parse_command("ver   pedidos").intent == AdminIntent.VIEW_ORDERS
    assert parse_command("Ver menú").intent == AdminIntent.VIEW_MENU
    assert parse_command("  AYUDA ").intent == AdminIntent.HELP
    assert parse_command("estadísticas").intent == AdminIntent.ANALYTICS


def test_order_commands_extract_numbers() -> None:
    confirm = parse_command("CONFIRMAR PAGO #42")
    assert confirm.intent == AdminIntent.CONFIRM_PAYMENT
    assert confirm.args == {"order_number": 42}

    assert parse_command("confirmar pago 7").args == {"order_number": 7}
    assert parse_command("VER PEDIDO #3").args == {"order_number": 3}

    status = parse_command("ESTADO PEDIDO #5 preparando")
    assert status.intent == AdminIntent.ORDER_STATUS
    assert status.args == {"order_number": 5, "status": "preparando"}

    # sin estado es una consulta
    assert parse_command("ESTADO PEDIDO #5").intent == AdminIntent.VIEW_ORDER


def test_super_confirm_wins_over_order_confirm() -> None:
    parsed = parse_command("CONFIRMAR PAGO +5491122334455 PRO")

    assert parsed.intent == AdminIntent.SUPER_CONFIRM_PAYMENT
    assert parsed.args == {"phone": "5491122334455", "plan_slug": "pro"}


def test_reject_keeps_original_reason_text() -> None:
    parsed = parse_command("rechazar pedido #9 Sin stock de Muzzarella")

    assert parsed.intent == AdminIntent.REJECT_ORDER
    assert parsed.args == {"order_number": 9, "reason": "Sin stock de Muzzarella"}
    assert parse_command("RECHAZAR PEDIDO #9").args["reason"] is None


def test_sales_and_plan_commands() -> None:
    assert parse_command("VENTAS HOY").args == {"period": "hoy"}
    assert parse_command("ventas semana").args == {"period": "semana"}
    assert parse_command("CAMBIAR PLAN pro").args == {"plan_slug": "pro"}
    assert parse_command("CAMBIAR PLAN").args == {"plan_slug": None}


def test_malformed_arguments_do_not_match() -> None:
    assert parse_command("CONFIRMAR PAGO #abc") is None
    assert parse_command("VENTAS AYER") is None
    assert parse_command("CAMBIAR PLAN oro") is None
    assert parse_command("") is None
    assert parse_command(None) is None
    assert parse_command("hola, cómo va?") is None


def test_subscription_command_detection() -> None:
    assert is_subscription_command("renovar")
    assert is_subscription_command("cambiar plan pro")
    assert is_subscription_command("Mi plan")
    assert not is_subscription_command("VER PEDIDOS")


def test_classifier_labels_cannot_trigger_destructive_intents() -> None:
    assert intent_from_label("view_orders") == AdminIntent.VIEW_ORDERS
    assert intent_from_label("confirm_payment") == AdminIntent.CLARIFY
    assert intent_from_label("reject_order") == AdminIntent.CLARIFY
    assert intent_from_label("cualquier cosa") == AdminIntent.CLARIFY
    assert intent_from_label(None) == AdminIntent.CLARIFY


def test_product_commands_are_exact_and_not_reachable_by_classifier() -> None:
    assert parse_command("editar productos").intent == AdminIntent.EDIT_PRODUCTS
    assert parse_command("Editar menú").intent == AdminIntent.EDIT_PRODUCTS
    assert parse_command("EDITAR PRODUCTO").intent == AdminIntent.EDIT_PRODUCT
    assert parse_command("pausar producto").intent == AdminIntent.PAUSE_PRODUCT
    assert parse_command("eliminar producto").intent == AdminIntent.DELETE_PRODUCT

    assert intent_from_label("edit_products") == AdminIntent.EDIT_PRODUCTS
    assert intent_from_label("delete_product") == AdminIntent.CLARIFY
    assert intent_from_label("pause_product") == AdminIntent.CLARIFY
