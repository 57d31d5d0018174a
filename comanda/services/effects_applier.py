"""Aplica los efectos de store que devuelven los flows.

Corre dentro de la transacción del evento; si algo falla el dispatcher hace
rollback de todo. Devuelve los mensajes extra que genera cada efecto.
"""

from __future__ import annotations

import logging

import httpx
from sqlalchemy.orm import Session

from comanda.core.config import TRIAL_DAYS
from comanda.core.edge_policy import EdgeCase
from comanda.core.errors import CatalogImportError, InvariantViolation
from comanda.fsm.customer_flow import admin_new_order_text, order_confirmation_text
from comanda.fsm.effects import (
    AddProducts,
    CreateOrder,
    DeleteProduct,
    FinishOnboarding,
    Outbound,
    ReplaceZones,
    Reply,
    SaveBank,
    StoreEffect,
    UpdateBusiness,
    UpdateProduct,
)
from comanda.models.bank_details import BankDetails
from comanda.models.business import Business
from comanda.models.delivery_zone import DeliveryZone
from comanda.models.product import Product
from comanda.services import orders, subscription
from comanda.services.catalog_sync import CatalogImporter
from comanda.services.plans import get_plan
from comanda.whatsapp.base import ChannelCredentials

logger = logging.getLogger(__name__)

_BUSINESS_FIELDS = {
    "business_name",
    "business_hours",
    "has_delivery",
    "has_pickup",
    "business_address",
    "accepts_cash",
    "accepts_transfer",
    "accepts_deposit",
    "deposit_percent",
}
_PRODUCT_FIELDS = {"name", "price", "description", "is_available"}
PRODUCT_GONE_TEXT = "⚠️ Ese producto ya no está en tu menú."


class EffectApplier:
    def __init__(self, db: Session, *, channel: ChannelCredentials, importer: CatalogImporter | None = None) -> None:
        self.db = db
        self.channel = channel
        self.importer = importer if importer is not None else CatalogImporter()

    def apply(self, business: Business, effects: list[StoreEffect]) -> list[Outbound]:
        messages: list[Outbound] = []
        for effect in effects:
            if isinstance(effect, UpdateBusiness):
                self._update_business(business, effect)
            elif isinstance(effect, ReplaceZones):
                self._replace_zones(business, effect)
            elif isinstance(effect, SaveBank):
                self._save_bank(business, effect)
            elif isinstance(effect, AddProducts):
                self._add_products(business, effect)
            elif isinstance(effect, UpdateProduct):
                messages.extend(self._update_product(business, effect))
            elif isinstance(effect, DeleteProduct):
                messages.extend(self._delete_product(business, effect))
            elif isinstance(effect, FinishOnboarding):
                messages.extend(self._finish_onboarding(business))
            elif isinstance(effect, CreateOrder):
                messages.extend(self._create_order(business, effect))
            else:
                raise InvariantViolation(f"unsupported effect: {type(effect).__name__}")
        self.db.flush()
        return messages

    def _update_business(self, business: Business, effect: UpdateBusiness) -> None:
        unknown = set(effect.fields) - _BUSINESS_FIELDS
        if unknown:
            raise InvariantViolation(f"unknown business fields: {sorted(unknown)}")
        for key, value in effect.fields.items():
            setattr(business, key, value)

    def _replace_zones(self, business: Business, effect: ReplaceZones) -> None:
        self.db.query(DeliveryZone).filter(DeliveryZone.business_id == business.id).delete()
        for zone in effect.zones:
            self.db.add(DeliveryZone(business_id=business.id, zone_name=zone["zone_name"], price=int(zone["price"])))

    def _save_bank(self, business: Business, effect: SaveBank) -> None:
        bank = self.db.query(BankDetails).filter(BankDetails.business_id == business.id).first()
        if bank is None:
            bank = BankDetails(business_id=business.id)
            self.db.add(bank)
        bank.alias = effect.alias
        bank.cbu = effect.cbu
        bank.account_holder = effect.account_holder

    def _add_products(self, business: Business, effect: AddProducts) -> None:
        for item in effect.products:
            self.db.add(
                Product(
                    business_id=business.id,
                    name=item["name"],
                    price=int(item["price"]),
                    category=item.get("category"),
                    description=item.get("description"),
                    is_available=True,
                )
            )

    def _owned_product(self, business: Business, product_id: int) -> Product | None:
        return (
            self.db.query(Product)
            .filter(Product.id == product_id, Product.business_id == business.id)
            .first()
        )

    def _update_product(self, business: Business, effect: UpdateProduct) -> list[Outbound]:
        unknown = set(effect.fields) - _PRODUCT_FIELDS
        if unknown:
            raise InvariantViolation(f"unknown product fields: {sorted(unknown)}")
        product = self._owned_product(business, effect.product_id)
        if product is None:
            # lo borraron entre el listado y la respuesta del admin
            return [Reply(PRODUCT_GONE_TEXT)]
        for key, value in effect.fields.items():
            setattr(product, key, value)
        logger.info("product updated fields=%s", sorted(effect.fields), extra={"tenant_id": str(business.id)})
        return []

    def _delete_product(self, business: Business, effect: DeleteProduct) -> list[Outbound]:
        product = self._owned_product(business, effect.product_id)
        if product is None:
            return [Reply(PRODUCT_GONE_TEXT)]
        self.db.delete(product)
        logger.info("product deleted", extra={"tenant_id": str(business.id)})
        return []

    def _finish_onboarding(self, business: Business) -> list[Outbound]:
        warnings: list[str] = []

        if self.channel.catalog_id:
            try:
                result = self.importer.import_products(self.db, business.id, self.channel)
                if result.inserted or result.linked:
                    warnings.append(f"🔄 Importé {result.inserted} producto(s) del catálogo ({result.linked} vinculados).")
            except (CatalogImportError, httpx.HTTPError) as exc:
                logger.warning(
                    "catalog import failed on onboarding: %s",
                    exc,
                    extra={"tenant_id": str(business.id), "edge_case": EdgeCase.SIDE_EFFECT_FAILED.value},
                )
                warnings.append("⚠️ No pude importar tu catálogo de WhatsApp. Probá más tarde con *SINCRONIZAR*.")

        trial = subscription.start_trial(self.db, business.id)
        self.db.flush()

        products_count = self.db.query(Product).filter(Product.business_id == business.id).count()
        business.is_active = products_count > 0

        lines: list[str] = []
        if business.is_active:
            lines.append(f"🎉 *¡{business.business_name or 'Tu negocio'} está listo!*")
            lines.append("")
            lines.append("Tus clientes ya pueden escribirte a este número para pedir.")
        else:
            lines.append("⚠️ Tu negocio todavía no tiene productos, así que no está activo.")
            lines.append("Cargá productos en tu catálogo y escribí *SINCRONIZAR*.")
        if trial.status == "trial":
            plan = get_plan(trial.plan_slug)
            plan_name = plan.name if plan else trial.plan_slug
            lines.append("")
            lines.append(f"🎁 Tenés *{TRIAL_DAYS} días de prueba* del plan {plan_name}.")
        lines.append("")
        lines.append("Escribí *AYUDA* para ver los comandos.")

        logger.info(
            "onboarding finished active=%s products=%s",
            business.is_active,
            products_count,
            extra={"tenant_id": str(business.id)},
        )
        return [Reply(text) for text in warnings] + [Reply("\n".join(lines))]

    def _create_order(self, business: Business, effect: CreateOrder) -> list[Outbound]:
        draft = effect.draft
        if draft.business_id != business.id:
            raise InvariantViolation("order draft belongs to another business")
        order = orders.create_order(self.db, draft)
        subscription.increment_usage(self.db, business.id, "order_count")
        return [
            Reply(order_confirmation_text(order.order_number, draft)),
            Reply(admin_new_order_text(order.order_number, draft), to=business.admin_phone),
        ]

