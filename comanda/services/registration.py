"""Alta de un negocio a partir de un código de invitación (REST-XXXX)."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field

from sqlalchemy import update
from sqlalchemy.orm import Session

from comanda.core.clock import utcnow
from comanda.core.config import INVITE_CODE_PATTERN
from comanda.fsm.admin_flow import name_prompt
from comanda.fsm.effects import Outbound, Reply
from comanda.fsm.states import AdminStep
from comanda.models.admin import Admin
from comanda.models.admin_state import AdminConversationState
from comanda.models.business import Business
from comanda.models.invite_code import InviteCode
from comanda.models.tenant_channel import TenantChannel
from comanda.whatsapp.base import ChannelCredentials

logger = logging.getLogger(__name__)

INVITE_CODE_RE = re.compile(INVITE_CODE_PATTERN, re.IGNORECASE)

CODE_USED_TEXT = "❌ Este código ya fue utilizado. Pedí uno nuevo a soporte."
CHANNEL_TAKEN_TEXT = "❌ Este número de WhatsApp ya tiene un negocio registrado. Contactá a soporte."
ALREADY_ADMIN_TEXT = "❌ Este teléfono ya administra un negocio."


@dataclass
class RegistrationResult:
    handled: bool
    messages: list[Outbound] = field(default_factory=list)
    business_id: int | None = None
    # canal que hay que sacar del cache después del commit
    linked_phone_number_id: str | None = None


def _refuse(text: str) -> RegistrationResult:
    return RegistrationResult(handled=True, messages=[Reply(text)])


def try_register(db: Session, *, sender: str, text: str, channel: ChannelCredentials | None) -> RegistrationResult:
    raw = (text or "").strip()
    if not INVITE_CODE_RE.match(raw):
        return RegistrationResult(handled=False)

    code = raw.upper()
    invite = db.query(InviteCode).filter(InviteCode.code == code).first()
    if invite is None:
        # no es un código nuestro; sigue como mensaje de cliente
        return RegistrationResult(handled=False)

    if invite.used_by_phone:
        logger.info("invite code reused code=%s", code)
        return _refuse(CODE_USED_TEXT)

    if db.query(Admin).filter(Admin.phone == sender, Admin.business_id.isnot(None)).first() is not None:
        return _refuse(ALREADY_ADMIN_TEXT)

    target_phone_number_id = invite.phone_number_id or (channel.phone_number_id if channel and channel.persisted else None)
    target_channel = None
    if target_phone_number_id:
        target_channel = db.query(TenantChannel).filter(TenantChannel.phone_number_id == target_phone_number_id).first()
        if target_channel is not None and target_channel.business_id is not None:
            return _refuse(CHANNEL_TAKEN_TEXT)

    # el UPDATE condicional es el que garantiza un solo uso
    claimed = db.execute(
        update(InviteCode)
        .where(InviteCode.id == invite.id, InviteCode.used_by_phone.is_(None))
        .values(used_by_phone=sender, used_at=utcnow())
    )
    if claimed.rowcount != 1:
        logger.info("invite code claimed concurrently code=%s", code)
        return _refuse(CODE_USED_TEXT)

    business = Business(admin_phone=sender, is_active=False)
    db.add(business)
    db.flush()

    admin = db.query(Admin).filter(Admin.phone == sender).first()
    if admin is None:
        admin = Admin(phone=sender)
        db.add(admin)
    admin.invite_code_id = invite.id
    admin.business_id = business.id

    state = db.query(AdminConversationState).filter(AdminConversationState.phone == sender).first()
    if state is None:
        state = AdminConversationState(phone=sender)
        db.add(state)
    state.business_id = business.id
    state.current_step = AdminStep.BUSINESS_NAME.value

    linked = None
    if target_channel is not None:
        target_channel.business_id = business.id
        linked = target_channel.phone_number_id
    elif target_phone_number_id:
        logger.warning("invite code points to unknown channel phone_number_id=%s", target_phone_number_id)

    db.flush()
    logger.info("business registered code=%s", code, extra={"tenant_id": str(business.id)})

    welcome = (
        "✅ ¡Registro exitoso! Vamos a configurar tu negocio en 7 pasos.\n"
        "En cualquier momento podés escribir *AYUDA*.\n\n"
        f"{name_prompt().text}"
    )
    return RegistrationResult(
        handled=True,
        messages=[Reply(welcome)],
        business_id=business.id,
        linked_phone_number_id=linked,
    )
