import hashlib
import hmac
import json
from types import SimpleNamespace

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from comanda import main
from comanda.core.database import Base, get_db
from comanda.deps import get_dispatcher
from comanda.models import TenantChannel
from comanda.routers import webhook
from comanda.whatsapp.base import ChannelCredentials
from tests.fixtures_data import CHANNEL_PHONE_NUMBER_ID, cloud_text_payload

APP_SECRET = "s3cret"


def _sign(body: bytes, secret: str = APP_SECRET) -> str:
    return "sha256=" + hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def _build_client(monkeypatch, *, channel_secret=APP_SECRET, env_secret="", is_prod=False):
    monkeypatch.setattr(main, "_startup_tasks", lambda: None)
    monkeypatch.setattr(webhook, "META_APP_SECRET", env_secret)
    monkeypatch.setattr(webhook, "IS_PROD", is_prod)
    monkeypatch.setattr(webhook, "META_VERIFY_TOKEN", "global-token")

    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    db.add(TenantChannel(phone_number_id=CHANNEL_PHONE_NUMBER_ID, access_token="t", verify_token="tenant-token", is_active=True))
    db.commit()
    db.close()

    def override_get_db():
        session = TestingSessionLocal()
        try:
            yield session
        finally:
            session.close()

    channel = ChannelCredentials(phone_number_id=CHANNEL_PHONE_NUMBER_ID, access_token="t", app_secret=channel_secret)
    handled = []
    fake_dispatcher = SimpleNamespace(
        resolver=SimpleNamespace(resolve=lambda phone_number_id: channel if phone_number_id == CHANNEL_PHONE_NUMBER_ID else None),
        handle_payload=handled.append,
    )

    main.app.dependency_overrides[get_db] = override_get_db
    main.app.dependency_overrides[get_dispatcher] = lambda: fake_dispatcher
    return TestClient(main.app), handled


def _cleanup():
    main.app.dependency_overrides.clear()


def test_valid_signature_is_accepted_and_processed(monkeypatch) -> None:
    client, handled = _build_client(monkeypatch)
    body = json.dumps(cloud_text_payload("hola")).encode("utf-8")

    with client:
        response = client.post(
            "/webhook/whatsapp",
            content=body,
            headers={"X-Hub-Signature-256": _sign(body), "Content-Type": "application/json"},
        )
    _cleanup()

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
    assert len(handled) == 1
    assert handled[0]["entry"][0]["changes"][0]["value"]["messages"][0]["text"]["body"] == "hola"


def test_bad_signature_is_rejected(monkeypatch) -> None:
    client, handled = _build_client(monkeypatch)
    body = json.dumps(cloud_text_payload("hola")).encode("utf-8")

    with client:
        wrong = client.post("/webhook/whatsapp", content=body, headers={"X-Hub-Signature-256": _sign(body, "otro")})
        missing = client.post("/webhook/whatsapp", content=body)
    _cleanup()

    assert wrong.status_code == 403
    assert missing.status_code == 403
    assert handled == []


def test_env_secret_is_used_for_unknown_channel(monkeypatch) -> None:
    client, handled = _build_client(monkeypatch, env_secret="global-secret")
    body = json.dumps(cloud_text_payload("hola", phone_number_id="otro-canal")).encode("utf-8")

    with client:
        response = client.post("/webhook/whatsapp", content=body, headers={"X-Hub-Signature-256": _sign(body, "global-secret")})
    _cleanup()

    assert response.status_code == 200
    assert len(handled) == 1


def test_missing_secret_bypasses_only_outside_production(monkeypatch) -> None:
    body = json.dumps(cloud_text_payload("hola")).encode("utf-8")

    client, handled = _build_client(monkeypatch, channel_secret=None)
    with client:
        dev_response = client.post("/webhook/whatsapp", content=body)
    _cleanup()

    client, prod_handled = _build_client(monkeypatch, channel_secret=None, is_prod=True)
    with client:
        prod_response = client.post("/webhook/whatsapp", content=body)
    _cleanup()

    assert dev_response.status_code == 200
    assert len(handled) == 1
    assert prod_response.status_code == 403
    assert prod_handled == []


def test_invalid_json_is_a_bad_request(monkeypatch) -> None:
    client, handled = _build_client(monkeypatch)

    with client:
        response = client.post("/webhook/whatsapp", content=b"{no json", headers={"X-Hub-Signature-256": _sign(b"{no json")})
    _cleanup()

    assert response.status_code == 400
    assert handled == []


def test_verify_handshake_accepts_global_or_tenant_token(monkeypatch) -> None:
    client, _handled = _build_client(monkeypatch)

    with client:
        global_ok = client.get(
            "/webhook/whatsapp",
            params={"hub.mode": "subscribe", "hub.verify_token": "global-token", "hub.challenge": "123"},
        )
        tenant_ok = client.get(
            "/webhook/whatsapp",
            params={"hub.mode": "subscribe", "hub.verify_token": "tenant-token", "hub.challenge": "456"},
        )
        denied = client.get(
            "/webhook/whatsapp",
            params={"hub.mode": "subscribe", "hub.verify_token": "nope", "hub.challenge": "789"},
        )
    _cleanup()

    assert global_ok.status_code == 200
    assert global_ok.text == "123"
    assert tenant_ok.text == "456"
    assert denied.status_code == 403


def test_verify_signature_helper() -> None:
    body = b'{"a": 1}'

    assert webhook.verify_signature(body, _sign(body), APP_SECRET)
    assert not webhook.verify_signature(body, "sha256=deadbeef", APP_SECRET)
    assert not webhook.verify_signature(body, _sign(body), "otro")
