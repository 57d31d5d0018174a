import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from comanda.core.database import Base
from comanda.core.errors import InvariantViolation
from comanda.fsm.effects import AdminSession, CartLine, CustomerSession
from comanda.fsm.states import AdminStep, CustomerStep
from comanda.models import Admin, AdminConversationState, Business, CustomerConversationState, InviteCode, TenantChannel
from comanda.services import registration
from comanda.services.conversation_repo import AdminStateRepository, CustomerStateRepository
from comanda.whatsapp.base import ChannelCredentials
from tests.fixtures_data import CHANNEL_PHONE_NUMBER_ID, CUSTOMER_PHONE, PIZZERIA_SUR


def _build_session():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)
    return TestingSessionLocal()


def _channel_credentials():
    return ChannelCredentials(phone_number_id=CHANNEL_PHONE_NUMBER_ID, access_token="token")


def test_invite_code_registers_business_and_links_channel() -> None:
    db = _build_session()
    db.add(InviteCode(code="REST-AB12"))
    db.add(TenantChannel(phone_number_id=CHANNEL_PHONE_NUMBER_ID, access_token="token"))
    db.commit()

    result = registration.try_register(db, sender="5491122223333", text="rest-ab12", channel=_channel_credentials())
    db.commit()

    assert result.handled is True
    assert "Registro exitoso" in result.messages[0].text
    assert result.linked_phone_number_id == CHANNEL_PHONE_NUMBER_ID
    business = db.get(Business, result.business_id)
    assert business.admin_phone == "5491122223333"
    assert business.is_active is False
    assert db.query(Admin).one().business_id == business.id
    assert db.query(AdminConversationState).one().current_step == AdminStep.BUSINESS_NAME.value
    assert db.query(TenantChannel).one().business_id == business.id
    assert db.query(InviteCode).one().used_by_phone == "5491122223333"


def test_invite_code_cannot_be_reused() -> None:
    db = _build_session()
    db.add(InviteCode(code="REST-AB12"))
    db.commit()

    first = registration.try_register(db, sender="5491122223333", text="REST-AB12", channel=None)
    db.commit()
    second = registration.try_register(db, sender="5491144445555", text="REST-AB12", channel=None)

    assert first.business_id is not None
    assert [message.text for message in second.messages] == [registration.CODE_USED_TEXT]
    assert db.query(Business).count() == 1


def test_channel_already_linked_is_refused() -> None:
    db = _build_session()
    business = Business(**PIZZERIA_SUR)
    db.add(business)
    db.flush()
    db.add(TenantChannel(phone_number_id=CHANNEL_PHONE_NUMBER_ID, access_token="token", business_id=business.id))
    db.add(InviteCode(code="REST-ZZ99"))
    db.commit()

    result = registration.try_register(db, sender="5491122223333", text="REST-ZZ99", channel=_channel_credentials())

    assert [message.text for message in result.messages] == [registration.CHANNEL_TAKEN_TEXT]
    assert db.query(InviteCode).one().used_by_phone is None


def test_unknown_or_malformed_code_is_not_handled() -> None:
    db = _build_session()

    assert registration.try_register(db, sender="1", text="REST-0000", channel=None).handled is False
    assert registration.try_register(db, sender="1", text="quiero una pizza", channel=None).handled is False


def test_customer_state_round_trip_is_scoped_by_business() -> None:
    db = _build_session()
    first = Business(**PIZZERIA_SUR)
    second = Business(**{**PIZZERIA_SUR, "business_name": "Empanadas Norte", "admin_phone": "5491100000002"})
    db.add_all([first, second])
    db.flush()
    repo = CustomerStateRepository(db)

    repo.save(
        CustomerSession(
            business_id=first.id,
            phone=CUSTOMER_PHONE,
            step=CustomerStep.BUILDING_CART,
            cart=[CartLine(product_id=1, name="Muzzarella", price=5500, qty=2)],
        )
    )
    db.commit()

    loaded = repo.load(first.id, CUSTOMER_PHONE)
    assert loaded.step == CustomerStep.BUILDING_CART
    assert loaded.subtotal == 11000
    assert repo.load(second.id, CUSTOMER_PHONE) is None

    repo.delete(first.id, CUSTOMER_PHONE)
    assert repo.load(first.id, CUSTOMER_PHONE) is None


def test_unknown_persisted_step_raises() -> None:
    db = _build_session()
    business = Business(**PIZZERIA_SUR)
    db.add(business)
    db.flush()
    db.add(CustomerConversationState(business_id=business.id, phone=CUSTOMER_PHONE, current_step="legacy_step", cart=[]))
    db.commit()

    with pytest.raises(InvariantViolation):
        CustomerStateRepository(db).load(business.id, CUSTOMER_PHONE)


def test_admin_state_cannot_move_to_another_business() -> None:
    db = _build_session()
    repo = AdminStateRepository(db)
    repo.save(AdminSession(phone="5491100000001", business_id=1, step=AdminStep.BUSINESS_NAME))

    with pytest.raises(InvariantViolation):
        repo.save(AdminSession(phone="5491100000001", business_id=2, step=AdminStep.COMPLETED))
