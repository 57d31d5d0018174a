import hashlib
import hmac
import json
import logging

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request
from fastapi.responses import PlainTextResponse
from sqlalchemy.orm import Session

from comanda.core.config import IS_PROD, META_APP_SECRET, META_VERIFY_TOKEN
from comanda.core.database import get_db
from comanda.core.edge_policy import EdgeCase
from comanda.deps import get_dispatcher
from comanda.models.tenant_channel import TenantChannel
from comanda.services.dispatcher import Dispatcher
from comanda.whatsapp.cloud_provider import payload_phone_number_id

router = APIRouter()
logger = logging.getLogger(__name__)


def verify_signature(raw_body: bytes, header: str | None, secret: str | None) -> bool:
    """X-Hub-Signature-256 = "sha256=" + HMAC-SHA256(app_secret, body)."""
    if not secret:
        if IS_PROD:
            logger.critical("webhook secret missing in production")
            return False
        logger.warning("webhook signature not verified: no app secret configured")
        return True
    if not header or not header.startswith("sha256="):
        return False
    expected = hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(header.removeprefix("sha256="), expected)


def _verify_token_matches(db: Session, token: str | None) -> bool:
    if not token:
        return False
    if META_VERIFY_TOKEN and hmac.compare_digest(token, META_VERIFY_TOKEN):
        return True
    channel = (
        db.query(TenantChannel)
        .filter(TenantChannel.verify_token == token, TenantChannel.is_active.is_(True))
        .first()
    )
    return channel is not None


@router.get("/webhook/whatsapp")
async def verify_whatsapp_webhook(request: Request, db: Session = Depends(get_db)):
    qp = request.query_params
    mode = qp.get("hub.mode")
    token = qp.get("hub.verify_token")
    challenge = qp.get("hub.challenge")

    if mode == "subscribe" and _verify_token_matches(db, token):
        return PlainTextResponse(challenge or "")

    raise HTTPException(status_code=403, detail="Verify token inválido")


@router.post("/webhook/whatsapp")
async def whatsapp_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    dispatcher: Dispatcher = Depends(get_dispatcher),
):
    raw_body = await request.body()
    try:
        payload = json.loads(raw_body or b"{}")
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Payload inválido") from exc
    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="Payload inválido")

    channel = dispatcher.resolver.resolve(payload_phone_number_id(payload))
    secret = channel.app_secret if channel is not None and channel.app_secret else META_APP_SECRET
    if not verify_signature(raw_body, request.headers.get("X-Hub-Signature-256"), secret or None):
        logger.warning("webhook signature mismatch", extra={"edge_case": EdgeCase.BAD_SIGNATURE.value})
        raise HTTPException(status_code=403, detail="Firma inválida")

    # Meta reintenta si no contestamos rápido: se procesa en segundo plano
    background_tasks.add_task(dispatcher.handle_payload, payload)
    return {"status": "ok"}
