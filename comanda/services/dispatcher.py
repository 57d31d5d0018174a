"""Procesa cada evento entrante de WhatsApp de punta a punta.

dedupe -> rate limit -> canal -> lock por remitente -> ruteo por rol ->
efectos + commit -> envío. Los mensajes salen recién después del commit.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import asdict, dataclass, field
from typing import Any, Callable

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from comanda.ai.client import CascadingExtractionClient, Extractor
from comanda.commands.intents import SUPER_ADMIN_INTENTS
from comanda.commands.parser import parse_command
from comanda.core.config import ALERT_PHONE, TRIAL_PLAN_SLUG
from comanda.core.database import SessionLocal
from comanda.core.edge_policy import EdgeCase, policy_for
from comanda.core.rate_limiter import InMemoryRateLimiterService, RateLimiterService
from comanda.core.request_context import bind_tenant, event_context
from comanda.core.sender_locks import SenderLocks
from comanda.fsm import admin_flow, customer_flow
from comanda.fsm.admin_flow import AdminContext
from comanda.fsm.customer_flow import CustomerContext
from comanda.fsm.effects import AdminSession, Outbound, Reply
from comanda.fsm.states import AdminStep
from comanda.models.admin import Admin
from comanda.models.bank_details import BankDetails
from comanda.models.business import Business
from comanda.models.delivery_zone import DeliveryZone
from comanda.models.failed_message import FailedMessage
from comanda.models.processed_message import ProcessedMessage
from comanda.models.product import Product
from comanda.services import subscription
from comanda.services.admin_commands import AdminCommandContext, handle_admin_command, menu_products, run_intent
from comanda.services.catalog_sync import CatalogImporter
from comanda.services.conversation_repo import AdminStateRepository, CustomerStateRepository
from comanda.services.customer_commands import handle_customer_command
from comanda.services.effects_applier import EffectApplier
from comanda.services.plans import UNLIMITED_THRESHOLD, get_plan
from comanda.services.registration import try_register
from comanda.services.tenant_resolver import TenantResolver, default_channel
from comanda.whatsapp.base import ChannelCredentials
from comanda.whatsapp.cloud_provider import parse_cloud_webhook
from comanda.whatsapp.inbound import InboundEvent
from comanda.whatsapp.service import WhatsAppService

logger = logging.getLogger(__name__)

ERROR_TEXT = "⚠️ Tuvimos un problema procesando tu mensaje. Probá de nuevo en un momento."
SETTING_UP_TEXT = "🛠️ El negocio se está configurando, volvé pronto."
UNAVAILABLE_TEXT = "⚠️ Este negocio no está disponible en este momento."


@dataclass
class _Routed:
    messages: list[Outbound] = field(default_factory=list)
    # canales a invalidar en el cache una vez commiteado
    invalidate: list[str] = field(default_factory=list)


class Dispatcher:
    def __init__(
        self,
        *,
        session_factory: Callable[[], Session] = SessionLocal,
        resolver: TenantResolver | None = None,
        rate_limiter: RateLimiterService | None = None,
        sender_locks: SenderLocks | None = None,
        whatsapp: WhatsAppService | None = None,
        extractor: Extractor | None = None,
        importer: CatalogImporter | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.resolver = resolver if resolver is not None else TenantResolver()
        self.rate_limiter = rate_limiter if rate_limiter is not None else InMemoryRateLimiterService()
        self.sender_locks = sender_locks if sender_locks is not None else SenderLocks()
        self.whatsapp = whatsapp if whatsapp is not None else WhatsAppService()
        self.extractor = extractor if extractor is not None else CascadingExtractionClient()
        self.importer = importer if importer is not None else CatalogImporter()

    # --- entrada ---

    def handle_payload(self, payload: dict[str, Any]) -> None:
        for event in parse_cloud_webhook(payload):
            self.handle_event(event)

    def handle_event(self, event: InboundEvent) -> str:
        with event_context(message_id=event.message_id, sender=event.sender):
            started = time.perf_counter()
            outcome = "error"
            try:
                outcome = self._handle_event(event)
                return outcome
            finally:
                logger.info(
                    "event handled kind=%s outcome=%s",
                    event.kind,
                    outcome,
                    extra={"duration_ms": round((time.perf_counter() - started) * 1000, 2)},
                )

    def _handle_event(self, event: InboundEvent) -> str:
        if not self._mark_processed(event.message_id):
            logger.info("duplicate delivery dropped", extra={"edge_case": EdgeCase.DUPLICATE_DELIVERY.value})
            return "duplicate"

        if not self.rate_limiter.allow(event.sender):
            logger.warning(
                "sender rate limited %s",
                policy_for(EdgeCase.RATE_LIMITED).value,
                extra={"edge_case": EdgeCase.RATE_LIMITED.value},
            )
            return "rate_limited"

        channel = self.resolver.resolve(event.phone_number_id) or default_channel(event.phone_number_id)
        if channel is None:
            logger.warning("no channel for inbound event phone_number_id=%s", event.phone_number_id)
            return "no_channel"
        if channel.business_id is not None:
            bind_tenant(channel.business_id)

        self.whatsapp.mark_read(channel, event.message_id)

        with self.sender_locks.hold((channel.phone_number_id, event.sender)):
            return self._process_locked(event, channel)

    def _mark_processed(self, message_id: str) -> bool:
        db = self.session_factory()
        try:
            if db.get(ProcessedMessage, message_id) is not None:
                return False
            db.add(ProcessedMessage(message_id=message_id))
            db.commit()
            return True
        except IntegrityError:
            # otro worker lo registró al mismo tiempo
            db.rollback()
            return False
        finally:
            db.close()

    def _process_locked(self, event: InboundEvent, channel: ChannelCredentials) -> str:
        db = self.session_factory()
        try:
            routed = self._route(db, event, channel)
            db.commit()
        except Exception as exc:
            db.rollback()
            self._record_failure(event, exc)
            self.whatsapp.deliver(channel, sender=event.sender, messages=[Reply(ERROR_TEXT)])
            return "failed"
        finally:
            db.close()

        for phone_number_id in routed.invalidate:
            self.resolver.invalidate(phone_number_id)
        self.whatsapp.deliver(channel, sender=event.sender, messages=routed.messages)
        return "processed"

    def _record_failure(self, event: InboundEvent, exc: Exception) -> None:
        logger.error(
            "event processing failed: %s",
            exc,
            exc_info=exc,
            extra={"edge_case": EdgeCase.UNEXPECTED_ERROR.value},
        )
        db = self.session_factory()
        try:
            db.add(
                FailedMessage(
                    phone_number_id=event.phone_number_id,
                    sender=event.sender,
                    payload=json.dumps(asdict(event), ensure_ascii=False, default=str),
                    error=f"{type(exc).__name__}: {exc}",
                )
            )
            db.commit()
        except SQLAlchemyError as store_exc:
            db.rollback()
            logger.error("could not persist failed message: %s", store_exc)
        finally:
            db.close()

    # --- ruteo ---

    def _route(self, db: Session, event: InboundEvent, channel: ChannelCredentials) -> _Routed:
        is_super_admin = bool(ALERT_PHONE) and event.sender == ALERT_PHONE

        admin = db.query(Admin).filter(Admin.phone == event.sender).first()
        if admin is not None and admin.business_id is not None:
            if channel.business_id == admin.business_id or (channel.business_id is None and not channel.persisted):
                return _Routed(self._admin(db, event, channel, admin, is_super_admin))

        if is_super_admin:
            command = parse_command(event.text)
            if command is not None and command.intent in SUPER_ADMIN_INTENTS:
                ctx = self._command_context(db, None, event, channel, is_super_admin)
                return _Routed(run_intent(ctx, command).messages)

        registration = try_register(db, sender=event.sender, text=event.text, channel=channel)
        if registration.handled:
            routed = _Routed(registration.messages)
            if registration.linked_phone_number_id:
                routed.invalidate.append(registration.linked_phone_number_id)
            return routed

        business = self._channel_business(db, channel)
        if business is None:
            return _Routed([Reply(SETTING_UP_TEXT)])
        bind_tenant(business.id)

        if subscription.active_subscription(db, business.id) is None:
            logger.info(
                "customer refused %s",
                policy_for(EdgeCase.SUBSCRIPTION_INACTIVE).value,
                extra={"edge_case": EdgeCase.SUBSCRIPTION_INACTIVE.value},
            )
            return _Routed([Reply(UNAVAILABLE_TEXT)])

        return _Routed(self._customer(db, event, channel, business))

    def _channel_business(self, db: Session, channel: ChannelCredentials) -> Business | None:
        if channel.business_id is not None:
            business = db.get(Business, channel.business_id)
            return business if business is not None and business.is_active else None
        if channel.persisted:
            # canal provisto que todavía espera su código de invitación
            return None
        return db.query(Business).filter(Business.is_active.is_(True)).order_by(Business.id).first()

    def _command_context(
        self,
        db: Session,
        business: Business | None,
        event: InboundEvent,
        channel: ChannelCredentials,
        is_super_admin: bool,
    ) -> AdminCommandContext:
        return AdminCommandContext(
            db=db,
            business=business,
            admin_phone=event.sender,
            channel=channel,
            extractor=self.extractor,
            importer=self.importer,
            is_super_admin=is_super_admin,
        )

    def _zone_limit(self, db: Session, business_id: int) -> int | None:
        # durante el alta todavía no hay suscripción: vale el plan de prueba
        plan = subscription.active_plan(db, business_id) or get_plan(TRIAL_PLAN_SLUG)
        if plan is None or plan.delivery_zone_limit >= UNLIMITED_THRESHOLD:
            return None
        return plan.delivery_zone_limit

    def _admin(
        self,
        db: Session,
        event: InboundEvent,
        channel: ChannelCredentials,
        admin: Admin,
        is_super_admin: bool,
    ) -> list[Outbound]:
        business = db.get(Business, admin.business_id)
        repo = AdminStateRepository(db)
        session = repo.load(admin.phone)
        if session is None:
            step = AdminStep.COMPLETED if business.is_active else AdminStep.BUSINESS_NAME
            session = AdminSession(phone=admin.phone, business_id=business.id, step=step)

        if session.step is AdminStep.COMPLETED:
            result = handle_admin_command(
                self._command_context(db, business, event, channel, is_super_admin),
                event.text,
            )
            if result.next_step is not None:
                repo.save(AdminSession(phone=admin.phone, business_id=business.id, step=result.next_step))
            return result.messages

        ctx = AdminContext(
            business=business,
            extractor=self.extractor,
            zones=db.query(DeliveryZone).filter(DeliveryZone.business_id == business.id).order_by(DeliveryZone.id).all(),
            bank=db.query(BankDetails).filter(BankDetails.business_id == business.id).first(),
            products_count=db.query(Product).filter(Product.business_id == business.id).count(),
            products=menu_products(db, business.id),
            has_catalog=bool(channel.catalog_id),
            zone_limit=self._zone_limit(db, business.id),
        )
        result = admin_flow.step(session, event, ctx)
        extra = EffectApplier(db, channel=channel, importer=self.importer).apply(business, result.store_effects)
        repo.save(result.session)
        return result.outbound + extra

    def _customer(
        self,
        db: Session,
        event: InboundEvent,
        channel: ChannelCredentials,
        business: Business,
    ) -> list[Outbound]:
        commands = handle_customer_command(db, business=business, sender=event.sender, text=event.text)
        if commands is not None:
            return commands

        repo = CustomerStateRepository(db)
        session = repo.load(business.id, event.sender)
        ctx = CustomerContext(
            business=business,
            extractor=self.extractor,
            products=(
                db.query(Product)
                .filter(Product.business_id == business.id, Product.is_available.is_(True))
                .order_by(Product.category, Product.id)
                .all()
            ),
            zones=db.query(DeliveryZone).filter(DeliveryZone.business_id == business.id).order_by(DeliveryZone.id).all(),
            bank=db.query(BankDetails).filter(BankDetails.business_id == business.id).first(),
            catalog_id=channel.catalog_id,
            contact_name=event.contact_name,
            order_quota=subscription.check_quota(db, business.id, "orders"),
        )
        result = customer_flow.step(session, event, ctx)
        extra = EffectApplier(db, channel=channel, importer=self.importer).apply(business, result.store_effects)
        if result.session is None:
            repo.delete(business.id, event.sender)
        else:
            repo.save(result.session)
        return result.outbound + extra
