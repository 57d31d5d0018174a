from datetime import datetime
from types import SimpleNamespace
from zoneinfo import ZoneInfo

import pytest

from comanda.core.errors import InvariantViolation
from comanda.fsm import customer_flow
from comanda.fsm.effects import CartLine, CatalogSelection, CreateOrder, CustomerSession, ListMessage, Reply
from comanda.fsm.states import CustomerStep
from comanda.whatsapp.inbound import InboundEvent, NativeCart, NativeCartItem, SharedLocation

CUSTOMER = "5491155550000"
OPEN_AT = datetime(2024, 6, 3, 20, 0, tzinfo=ZoneInfo("America/Argentina/Buenos_Aires"))


class ScriptedExtractor:
    def __init__(self, *responses):
        self.responses = list(responses)

    def extract(self, system_instruction, user_text):
        return self.responses.pop(0)


def _event(text="", kind="text", **extra):
    return InboundEvent(message_id="m1", sender=CUSTOMER, phone_number_id="pnid", kind=kind, text=text, **extra)


def _business(**overrides):
    data = {
        "id": 1,
        "business_name": "Pizzería Sur",
        "admin_phone": "5491100000001",
        "business_hours": "Lun-Dom 11:00-23:30",
        "has_delivery": True,
        "has_pickup": True,
        "business_address": "Av. Siempreviva 742",
        "accepts_cash": True,
        "accepts_transfer": True,
        "accepts_deposit": False,
        "deposit_percent": None,
    }
    data.update(overrides)
    return SimpleNamespace(**data)


PRODUCTS = [
    SimpleNamespace(id=10, name="Muzzarella", price=5500, category="Pizzas", retailer_id="pz-muzza"),
    SimpleNamespace(id=11, name="Coca Cola 1.5L", price=2000, category="Bebidas", retailer_id="bb-coca"),
]
ZONES = [SimpleNamespace(id=5, zone_name="Centro", price=1500)]
BANK = SimpleNamespace(alias="pizzeria.sur", cbu="000123", account_holder="Juan Pérez")


def _ctx(*responses, **overrides):
    values = {
        "business": _business(),
        "extractor": ScriptedExtractor(*responses),
        "products": PRODUCTS,
        "zones": ZONES,
        "bank": BANK,
        "contact_name": "Lucía",
        "now": OPEN_AT,
    }
    values.update(overrides)
    return customer_flow.CustomerContext(**values)


def _session(step, **changes):
    return CustomerSession(business_id=1, phone=CUSTOMER, step=step, **changes)


def _cart():
    return [
        CartLine(product_id=10, name="Muzzarella", price=5500, qty=2),
        CartLine(product_id=11, name="Coca Cola 1.5L", price=2000, qty=1),
    ]


def test_greeting_starts_session_with_welcome() -> None:
    result = customer_flow.step(None, _event("Hola"), _ctx())

    assert result.session.step == CustomerStep.VIEWING_MENU
    assert "Lucía" in result.outbound[0].text
    assert "Pizzería Sur" in result.outbound[0].text


def test_closed_business_does_not_open_session() -> None:
    late = datetime(2024, 6, 3, 3, 0, tzinfo=ZoneInfo("America/Argentina/Buenos_Aires"))

    result = customer_flow.step(None, _event("hola"), _ctx(now=late))

    assert result.session is None
    assert "cerrado" in result.outbound[0].text


def test_first_message_with_order_builds_cart() -> None:
    ctx = _ctx({"items": [{"product_id": 10, "qty": 2}, {"product_id": 11, "qty": 1}], "not_found": ["fugazzeta"]})

    result = customer_flow.step(None, _event("2 muzza y una coca y una fugazzeta"), ctx)

    assert result.session.step == CustomerStep.BUILDING_CART
    assert [(line.product_id, line.qty) for line in result.session.cart] == [(10, 2), (11, 1)]
    assert result.session.subtotal == 13000
    assert "No encontré: fugazzeta" in result.outbound[0].text
    assert "$13.000" in result.outbound[1].text


def test_menu_lists_categories_and_catalog() -> None:
    ctx = _ctx(catalog_id="CAT-1")

    result = customer_flow.step(_session(CustomerStep.VIEWING_MENU), _event("menú"), ctx)

    assert "*Pizzas*" in result.outbound[0].text
    assert "$5.500" in result.outbound[0].text
    assert isinstance(result.outbound[1], CatalogSelection)
    assert result.outbound[1].sections == [("Pizzas", ["pz-muzza"]), ("Bebidas", ["bb-coca"])]


def test_native_cart_merges_by_retailer_id() -> None:
    cart = NativeCart(
        catalog_id="CAT-1",
        items=[NativeCartItem(retailer_id="pz-muzza", quantity=2), NativeCartItem(retailer_id="gone", quantity=1)],
    )
    session = _session(CustomerStep.BUILDING_CART, cart=[CartLine(product_id=10, name="Muzzarella", price=5500, qty=1)])

    result = customer_flow.step(session, _event(kind="order", cart=cart), _ctx())

    assert result.session.cart[0].qty == 3
    assert "ya no están disponibles" in result.outbound[0].text


def test_cart_edit_commands() -> None:
    session = _session(CustomerStep.BUILDING_CART, cart=_cart())

    changed = customer_flow.step(session, _event("cambiar 2 a 3"), _ctx())
    assert changed.session.cart[1].qty == 3
    assert changed.session.subtotal == 17000

    removed = customer_flow.step(session, _event("QUITAR 1"), _ctx())
    assert [line.product_id for line in removed.session.cart] == [11]

    invalid = customer_flow.step(session, _event("QUITAR 9"), _ctx())
    assert invalid.session.cart == session.cart

    single = _session(CustomerStep.BUILDING_CART, cart=_cart()[:1])
    emptied = customer_flow.step(single, _event("quitar 1"), _ctx())
    assert emptied.session.step == CustomerStep.VIEWING_MENU
    assert emptied.session.cart == []


def test_pickup_cash_order_creates_order() -> None:
    ctx = _ctx()
    session = _session(CustomerStep.BUILDING_CART, cart=_cart())

    choose = customer_flow.step(session, _event("seguir"), ctx)
    assert choose.session.step == CustomerStep.DELIVERY_METHOD

    summary = customer_flow.step(choose.session, _event("2"), ctx)
    assert summary.session.step == CustomerStep.PAYMENT_METHOD
    assert summary.session.checkout["grand_total"] == 13000
    assert summary.session.checkout["payment_options"] == ["cash", "transfer"]

    confirmed = customer_flow.step(summary.session, _event("1"), ctx)
    assert confirmed.session is None
    [effect] = confirmed.store_effects
    assert isinstance(effect, CreateOrder)
    draft = effect.draft
    assert draft.grand_total == 13000
    assert draft.payment_method == "cash"
    assert draft.delivery_method == "pickup"
    assert draft.client_address is None
    assert draft.client_name == "Lucía"
    assert draft.items[0] == {"product_id": 10, "name": "Muzzarella", "qty": 2, "price": 5500, "subtotal": 11000}


def test_delivery_with_zone_location_and_transfer() -> None:
    ctx = _ctx()
    session = _session(CustomerStep.DELIVERY_METHOD, cart=_cart())

    zone_prompt = customer_flow.step(session, _event("1"), ctx)
    assert zone_prompt.session.step == CustomerStep.DELIVERY_ZONE
    assert isinstance(zone_prompt.outbound[0], ListMessage)

    bad_zone = customer_flow.step(zone_prompt.session, _event("4"), ctx)
    assert bad_zone.session.step == CustomerStep.DELIVERY_ZONE

    address = customer_flow.step(zone_prompt.session, _event("1"), ctx)
    assert address.session.selected_zone_id == 5

    location = SharedLocation(latitude=-34.6, longitude=-58.4, address="Corrientes 1234")
    summary = customer_flow.step(address.session, _event(kind="location", location=location), ctx)
    assert summary.session.checkout["grand_total"] == 14500
    assert summary.session.checkout["address"] == "Corrientes 1234"

    transfer = customer_flow.step(summary.session, _event("2"), ctx)
    assert transfer.session.step == CustomerStep.AWAITING_TRANSFER
    assert "pizzeria.sur" in transfer.outbound[0].text
    assert "$14.500" in transfer.outbound[0].text

    waiting = customer_flow.step(transfer.session, _event("ya va"), ctx)
    assert waiting.session.step == CustomerStep.AWAITING_TRANSFER

    done = customer_flow.step(transfer.session, _event("listo"), ctx)
    draft = done.store_effects[0].draft
    assert draft.payment_method == "transfer"
    assert draft.delivery_zone_id == 5
    assert draft.delivery_price == 1500
    assert draft.client_address == "Corrientes 1234"


def test_deposit_amount_is_rounded_up() -> None:
    ctx = _ctx(business=_business(has_delivery=False, accepts_cash=False, accepts_deposit=True, deposit_percent=30))
    session = _session(CustomerStep.BUILDING_CART, cart=[CartLine(product_id=10, name="Muzzarella", price=5555, qty=1)])

    summary = customer_flow.step(session, _event("no"), ctx)

    assert summary.session.checkout["payment_options"] == ["transfer", "deposit"]
    assert summary.session.checkout["deposit_amount"] == 1667


def test_quota_refusal_notifies_admin_and_keeps_session() -> None:
    quota = SimpleNamespace(allowed=False, limit=100, current=100)
    ctx = _ctx(order_quota=quota)
    session = _session(
        CustomerStep.PAYMENT_METHOD,
        cart=_cart(),
        delivery_method="pickup",
        checkout={"grand_total": 13000, "subtotal": 13000, "payment_options": ["cash"], "delivery_method": "pickup"},
    )

    result = customer_flow.step(session, _event("1"), ctx)

    assert result.session.step == CustomerStep.PAYMENT_METHOD
    assert result.store_effects == []
    assert [reply.to for reply in result.outbound] == [None, "5491100000001"]
    assert "*100*" in result.outbound[1].text


def test_cancel_from_any_state_clears_session() -> None:
    session = _session(CustomerStep.DELIVERY_ZONE, cart=_cart())

    result = customer_flow.step(session, _event("Cancelar"), _ctx())

    assert result.session is None
    assert "cancelado" in result.outbound[0].text


def test_message_after_confirmed_order_starts_over() -> None:
    ctx = _ctx()
    summary = customer_flow.step(_session(CustomerStep.BUILDING_CART, cart=_cart()), _event("seguir"), ctx)
    summary = customer_flow.step(summary.session, _event("2"), ctx)
    confirmed = customer_flow.step(summary.session, _event("1"), ctx)
    assert confirmed.session is None

    result = customer_flow.step(confirmed.session, _event("hola"), ctx)

    assert result.session.step == CustomerStep.VIEWING_MENU
    assert result.session.cart == []
    assert isinstance(result.outbound[0], Reply)


def test_lost_checkout_resets_conversation() -> None:
    session = _session(CustomerStep.PAYMENT_METHOD, cart=_cart(), checkout=None)

    result = customer_flow.step(session, _event("1"), _ctx())

    assert result.session is None


def test_session_from_other_business_is_rejected() -> None:
    session = CustomerSession(business_id=2, phone=CUSTOMER, step=CustomerStep.VIEWING_MENU)

    with pytest.raises(InvariantViolation):
        customer_flow.step(session, _event("hola"), _ctx())
