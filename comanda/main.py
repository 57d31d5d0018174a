import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from comanda.ai.providers import configured_providers
from comanda.core.config import CORS_ORIGINS, DATABASE_URL
from comanda.core.database import Base, engine, get_db
from comanda.core.logging_setup import configure_logging
from comanda.core.startup_checks import ensure_migrations_applied, validate_database_environment
import comanda.models  # registra los models antes del create_all
from comanda.routers.webhook import router as webhook_router

configure_logging()

logger = logging.getLogger(__name__)
STARTUP_PREFIX = "[STARTUP]"
REPO_ROOT = Path(__file__).resolve().parents[1]
ALEMBIC_CONFIG_PATH = Path(os.getenv("ALEMBIC_CONFIG", str(REPO_ROOT / "alembic.ini")))


def _startup_tasks() -> None:
    try:
        validate_database_environment()
        if DATABASE_URL.startswith("sqlite"):
            Base.metadata.create_all(bind=engine)
        ensure_migrations_applied(engine=engine, alembic_config_path=ALEMBIC_CONFIG_PATH)
        providers = configured_providers()
        if not providers:
            logger.warning("%s no LLM providers configured; extraction will fail", STARTUP_PREFIX)
        else:
            logger.info("%s LLM providers=%s", STARTUP_PREFIX, ",".join(p.name for p in providers))
    except Exception:
        logger.exception("%s ERROR startup failed", STARTUP_PREFIX)
        raise


@asynccontextmanager
async def lifespan(_: FastAPI):
    _startup_tasks()
    yield


app = FastAPI(title="Comanda WhatsApp Ordering", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type", "X-Hub-Signature-256"],
)

app.include_router(webhook_router)


@app.get("/")
def root():
    return {"status": "ok"}


@app.get("/health")
def health(db: Session = Depends(get_db)):
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        logger.error("health check database error: %s", exc)
        return JSONResponse(status_code=503, content={"status": "error", "database": "error"})

    providers = configured_providers()
    status = "ok" if providers else "degraded"
    return {"status": status, "database": "ok", "llm_providers": len(providers)}
