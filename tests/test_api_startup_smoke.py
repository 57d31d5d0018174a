from types import SimpleNamespace

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from comanda.core.database import get_db


def _client(monkeypatch, get_db_override=None):
    from comanda import main

    monkeypatch.setattr(main, "_startup_tasks", lambda: None)
    if get_db_override is not None:
        main.app.dependency_overrides[get_db] = get_db_override
    return main, TestClient(main.app)


def test_app_boots_with_webhook_routes(monkeypatch):
    main, client = _client(monkeypatch)

    with client:
        root = client.get("/")
        schema = client.get("/openapi.json").json()

    assert root.json() == {"status": "ok"}
    assert set(schema["paths"]["/webhook/whatsapp"]) == {"get", "post"}
    assert "/health" in schema["paths"]


def test_health_is_degraded_without_llm_providers(monkeypatch):
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    main, client = _client(monkeypatch, override_get_db)
    monkeypatch.setattr(main, "configured_providers", lambda: [])
    try:
        with client:
            response = client.get("/health")
    finally:
        main.app.dependency_overrides.clear()

    assert response.status_code == 200
    assert response.json() == {"status": "degraded", "database": "ok", "llm_providers": 0}


def test_health_returns_503_when_database_fails(monkeypatch):
    def broken_execute(*_args, **_kwargs):
        raise OperationalError("SELECT 1", {}, Exception("connection refused"))

    def override_get_db():
        yield SimpleNamespace(execute=broken_execute)

    main, client = _client(monkeypatch, override_get_db)
    try:
        with client:
            response = client.get("/health")
    finally:
        main.app.dependency_overrides.clear()

    assert response.status_code == 503
    assert response.json() == {"status": "error", "database": "error"}
