from types import SimpleNamespace

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from comanda.core.database import Base
from comanda.core.errors import InvariantViolation
from comanda.fsm import admin_flow
from comanda.fsm.effects import AddProducts, AdminSession, Buttons, DeleteProduct, Reply, UpdateProduct
from comanda.fsm.states import AdminStep
from comanda.models import Business, Product
from comanda.services.admin_commands import AdminCommandContext, handle_admin_command
from comanda.services.effects_applier import PRODUCT_GONE_TEXT, EffectApplier
from comanda.services.subscription import activate_plan
from comanda.whatsapp.base import ChannelCredentials
from comanda.whatsapp.inbound import InboundEvent
from tests.fixtures_data import PIZZERIA_SUR

CHANNEL = ChannelCredentials(phone_number_id="111", access_token="t")


class ScriptedExtractor:
    def __init__(self, *responses):
        self.responses = list(responses)

    def extract(self, system_instruction, user_text):
        return self.responses.pop(0)


def _event(text):
    return InboundEvent(message_id="m1", sender="5491100000001", phone_number_id="pnid", kind="text", text=text)


def _product(product_id, name, price, available=True, description=None):
    return SimpleNamespace(id=product_id, name=name, price=price, is_available=available, description=description)


MENU = [
    _product(10, "Empanada de Carne", 900),
    _product(11, "Pizza Muzzarella", 5500, description="Salsa y muzza"),
    _product(12, "Pizza Napolitana", 6200, available=False),
]


def _session(step, draft=None):
    return AdminSession(phone="5491100000001", business_id=1, step=step, draft=draft)


def _ctx(*responses):
    return admin_flow.AdminContext(
        business=SimpleNamespace(business_name="Pizzería Sur"),
        extractor=ScriptedExtractor(*responses),
        products=list(MENU),
        products_count=len(MENU),
    )


def _build_session():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    business = Business(**PIZZERIA_SUR)
    other = Business(admin_phone="5491100000002", business_name="Pizzería Norte", is_active=True)
    db.add_all([business, other])
    db.flush()
    db.add_all(
        [
            Product(business_id=business.id, name="Muzzarella", price=5500, category="Pizzas", is_available=True),
            Product(business_id=business.id, name="Fugazza", price=6000, category="Pizzas", is_available=True),
            Product(business_id=other.id, name="Calabresa", price=7000, category="Pizzas", is_available=True),
        ]
    )
    activate_plan(db, business.id, "intermedio")
    db.commit()
    return db, business, other


def test_find_product_by_number_or_name() -> None:
    assert admin_flow.find_product(MENU, "2").id == 11
    assert admin_flow.find_product(MENU, "pizza napolitana").id == 12
    assert admin_flow.find_product(MENU, "empanada").id == 10
    assert admin_flow.find_product(MENU, "pizza muzzarella grande").id == 11
    assert admin_flow.find_product(MENU, "4") is None
    assert admin_flow.find_product(MENU, "sushi") is None


def test_product_list_marks_paused_products() -> None:
    listing = admin_flow.product_list_text(MENU)

    assert listing.splitlines()[0] == "1. Empanada de Carne — $900"
    assert listing.splitlines()[2].endswith("⏸️")


def test_edit_product_walks_select_field_value() -> None:
    selected = admin_flow.step(_session(AdminStep.EDIT_PRODUCT_SELECT), _event("muzzarella"), _ctx())
    assert selected.session.step == AdminStep.EDIT_PRODUCT_FIELD
    assert selected.session.draft == {"product_id": 11}
    assert isinstance(selected.outbound[0], Buttons)
    assert len(selected.outbound[0].buttons) <= 3

    field = admin_flow.step(selected.session, _event("precio"), _ctx())
    assert field.session.step == AdminStep.EDIT_PRODUCT_VALUE
    assert field.session.draft == {"product_id": 11, "field": "price"}

    bad_price = admin_flow.step(field.session, _event("gratis"), _ctx())
    assert bad_price.session.step == AdminStep.EDIT_PRODUCT_VALUE
    assert bad_price.store_effects == []

    saved = admin_flow.step(field.session, _event("$6.000"), _ctx())
    assert saved.session.step == AdminStep.COMPLETED
    assert saved.session.draft is None
    assert saved.store_effects == [UpdateProduct(11, {"price": 6000})]
    assert "$6.000" in saved.outbound[0].text


def test_short_product_name_is_rejected() -> None:
    session = _session(AdminStep.EDIT_PRODUCT_VALUE, {"product_id": 10, "field": "name"})

    short = admin_flow.step(session, _event("X"), _ctx())
    renamed = admin_flow.step(session, _event("Empanada Salteña"), _ctx())

    assert short.session.step == AdminStep.EDIT_PRODUCT_VALUE
    assert renamed.store_effects == [UpdateProduct(10, {"name": "Empanada Salteña"})]


def test_selected_product_missing_from_menu_ends_edit() -> None:
    session = _session(AdminStep.EDIT_PRODUCT_FIELD, {"product_id": 99})

    result = admin_flow.step(session, _event("precio"), _ctx())

    assert result.session.step == AdminStep.COMPLETED
    assert result.store_effects == []
    assert "ya no está" in result.outbound[0].text


def test_pause_toggles_availability() -> None:
    paused = admin_flow.step(_session(AdminStep.EDIT_PAUSE_PRODUCT), _event("1"), _ctx())
    resumed = admin_flow.step(_session(AdminStep.EDIT_PAUSE_PRODUCT), _event("napolitana"), _ctx())

    assert paused.store_effects == [UpdateProduct(10, {"is_available": False})]
    assert "pausado" in paused.outbound[0].text
    assert resumed.store_effects == [UpdateProduct(12, {"is_available": True})]
    assert "reactivado" in resumed.outbound[0].text


def test_delete_only_accepts_list_number() -> None:
    by_name = admin_flow.step(_session(AdminStep.EDIT_DELETE_PRODUCT), _event("muzzarella"), _ctx())
    by_number = admin_flow.step(_session(AdminStep.EDIT_DELETE_PRODUCT), _event("2"), _ctx())

    assert by_name.session.step == AdminStep.EDIT_DELETE_PRODUCT
    assert by_name.store_effects == []
    assert by_number.session.step == AdminStep.COMPLETED
    assert by_number.store_effects == [DeleteProduct(11)]


def test_edit_products_adds_removes_and_closes() -> None:
    ctx = _ctx({"products": [{"name": "Fugazzeta", "price": 6500, "category": "Pizzas"}]})
    session = _session(AdminStep.EDIT_PRODUCTS)

    added = admin_flow.step(session, _event("Fugazzeta 6500"), ctx)
    removed = admin_flow.step(session, _event("eliminar 1"), _ctx())
    out_of_range = admin_flow.step(session, _event("ELIMINAR 9"), _ctx())
    cancelled = admin_flow.step(session, _event("cancelar"), _ctx())

    assert added.session.step == AdminStep.EDIT_PRODUCTS
    assert isinstance(added.store_effects[0], AddProducts)
    assert removed.store_effects == [DeleteProduct(10)]
    assert "Empanada de Carne" not in removed.outbound[0].text.split("\n\n", 1)[1]
    assert out_of_range.store_effects == []
    assert cancelled.session.step == AdminStep.COMPLETED
    assert "3 producto(s)" in cancelled.outbound[0].text


def test_cancel_leaves_product_unchanged() -> None:
    session = _session(AdminStep.EDIT_PRODUCT_VALUE, {"product_id": 11, "field": "price"})

    result = admin_flow.step(session, _event("CANCELAR"), _ctx())

    assert result.session.step == AdminStep.COMPLETED
    assert result.store_effects == []


def test_product_commands_open_product_edit_steps() -> None:
    db, business, _ = _build_session()

    def run(text):
        ctx = AdminCommandContext(
            db=db,
            business=business,
            admin_phone=business.admin_phone,
            channel=CHANNEL,
            extractor=ScriptedExtractor(),
        )
        return handle_admin_command(ctx, text)

    edit = run("EDITAR PRODUCTO")
    pause = run("pausar producto")
    delete = run("Eliminar producto")
    bulk = run("EDITAR MENÚ")

    assert edit.next_step == AdminStep.EDIT_PRODUCT_SELECT
    assert "1. Fugazza" in edit.messages[0].text
    assert pause.next_step == AdminStep.EDIT_PAUSE_PRODUCT
    assert delete.next_step == AdminStep.EDIT_DELETE_PRODUCT
    assert bulk.next_step == AdminStep.EDIT_PRODUCTS
    assert "Calabresa" not in bulk.messages[0].text


def test_applier_updates_and_deletes_own_products_only() -> None:
    db, business, other = _build_session()
    muzza = db.query(Product).filter(Product.name == "Muzzarella").one()
    foreign = db.query(Product).filter(Product.business_id == other.id).one()
    applier = EffectApplier(db, channel=CHANNEL)

    applier.apply(business, [UpdateProduct(muzza.id, {"price": 5800, "is_available": False})])
    gone = applier.apply(business, [DeleteProduct(foreign.id), UpdateProduct(foreign.id, {"price": 1})])
    db.commit()

    db.refresh(muzza)
    db.refresh(foreign)
    assert muzza.price == 5800
    assert muzza.is_available is False
    assert foreign.price == 7000
    assert gone == [Reply(PRODUCT_GONE_TEXT), Reply(PRODUCT_GONE_TEXT)]

    applier.apply(business, [DeleteProduct(muzza.id)])
    db.commit()
    assert db.query(Product).filter(Product.business_id == business.id).count() == 1


def test_applier_rejects_unknown_product_fields() -> None:
    db, business, _ = _build_session()
    product = db.query(Product).filter(Product.business_id == business.id).first()

    with pytest.raises(InvariantViolation):
        EffectApplier(db, channel=CHANNEL).apply(business, [UpdateProduct(product.id, {"business_id": 2})])
