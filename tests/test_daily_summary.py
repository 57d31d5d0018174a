from datetime import datetime, timezone
from zoneinfo import ZoneInfo

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from comanda.core.database import Base
from comanda.models import Business, Order, TenantChannel
from comanda.services.daily_summary import build_daily_summary, closing_minute, send_daily_summaries
from comanda.services.subscription import activate_plan, start_trial
from comanda.whatsapp.mock_provider import MockWhatsAppGateway
from comanda.whatsapp.service import WhatsAppService
from tests.fixtures_data import CUSTOMER_PHONE

TZ = ZoneInfo("America/Argentina/Buenos_Aires")
HOURS = "Lun-Vie 11:00-15:00, 19:00-23:00"


def _build_session():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)
    return TestingSessionLocal()


def _business(db, *, name, admin_phone, phone_number_id, hours=HOURS):
    business = Business(admin_phone=admin_phone, business_name=name, business_hours=hours, is_active=True)
    db.add(business)
    db.flush()
    db.add(TenantChannel(phone_number_id=phone_number_id, access_token="token", business_id=business.id))
    db.commit()
    return business


def _order(db, business_id, number, *, status="nuevo", paid=False, created_at=None, items=None):
    db.add(
        Order(
            business_id=business_id,
            order_number=number,
            client_phone=CUSTOMER_PHONE,
            items=items or [{"product_id": 1, "name": "Muzzarella", "qty": 2, "price": 5500, "subtotal": 11000}],
            subtotal=11000,
            grand_total=11000,
            payment_method="cash",
            order_status=status,
            payment_status="confirmed" if paid else "pending",
            created_at=created_at or datetime(2024, 6, 3, 21, 0, tzinfo=timezone.utc),
        )
    )
    db.commit()


def test_closing_minute_uses_last_shift_of_today() -> None:
    monday = datetime(2024, 6, 3, 12, 0, tzinfo=TZ)
    saturday = datetime(2024, 6, 8, 12, 0, tzinfo=TZ)

    assert closing_minute(HOURS, monday) == 23 * 60
    assert closing_minute(HOURS, saturday) is None
    assert closing_minute("Lun 20:00-02:00", monday) == 23 * 60
    assert closing_minute(None, monday) is None


def test_summary_counts_todays_orders_only() -> None:
    db = _build_session()
    business = _business(db, name="Pizzería Sur", admin_phone="5491100000001", phone_number_id="111")
    _order(db, business.id, 1, status="entregado", paid=True)
    _order(
        db,
        business.id,
        2,
        items=[{"product_id": 2, "name": "Fugazzeta", "qty": 1, "price": 6200, "subtotal": 6200}],
    )
    _order(db, business.id, 3, status="cancelado")
    # el domingo anterior no cuenta
    _order(db, business.id, 4, paid=True, created_at=datetime(2024, 6, 2, 15, 0, tzinfo=timezone.utc))

    text = build_daily_summary(db, business, datetime(2024, 6, 3, 23, 10, tzinfo=TZ))

    assert "Resumen del día — Pizzería Sur" in text
    assert "Total pedidos: 3" in text
    assert "Confirmados: 1" in text
    assert "Pendientes: 1" in text
    assert "Cancelados: 1" in text
    assert "Facturación: $11.000" in text
    assert "🥇 Muzzarella — 2 uds ($11.000)" in text
    assert "🥈 Fugazzeta — 1 uds ($6.200)" in text


def test_summary_without_orders() -> None:
    db = _build_session()
    business = _business(db, name="Pizzería Sur", admin_phone="5491100000001", phone_number_id="111")

    text = build_daily_summary(db, business, datetime(2024, 6, 3, 23, 10, tzinfo=TZ))

    assert text.endswith("No hubo pedidos hoy.")


def test_summaries_go_once_per_day_to_plans_with_the_feature() -> None:
    db = _build_session()
    with_feature = _business(db, name="Pizzería Sur", admin_phone="5491100000001", phone_number_id="111")
    basic = _business(db, name="Sushi Norte", admin_phone="5491100000002", phone_number_id="222")
    start_trial(db, with_feature.id)
    activate_plan(db, basic.id, "basico")
    db.commit()
    gateway = MockWhatsAppGateway()
    whatsapp = WhatsAppService(gateway)

    before_closing = send_daily_summaries(db, whatsapp, datetime(2024, 6, 3, 22, 30, tzinfo=TZ))
    at_closing = send_daily_summaries(db, whatsapp, datetime(2024, 6, 3, 23, 5, tzinfo=TZ))
    again = send_daily_summaries(db, whatsapp, datetime(2024, 6, 3, 23, 50, tzinfo=TZ))
    next_day = send_daily_summaries(db, whatsapp, datetime(2024, 6, 4, 23, 0, tzinfo=TZ))

    assert before_closing == []
    assert at_closing == [with_feature.id]
    assert again == []
    assert next_day == [with_feature.id]
    assert len(gateway.texts_to("5491100000001")) == 2
    assert gateway.texts_to("5491100000002") == []
