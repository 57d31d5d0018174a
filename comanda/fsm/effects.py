"""Resultados de un paso de los flows.

Los flows no tocan la base ni la red: devuelven la sesión nueva y una lista de
efectos. El dispatcher aplica los efectos de store en una sola transacción y
recién después del commit manda los mensajes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Union

from comanda.fsm.states import AdminStep, CustomerStep


# --- mensajes salientes; ``to=None`` es el remitente del evento ---

@dataclass
class Reply:
    text: str
    to: str | None = None


@dataclass
class Buttons:
    body: str
    buttons: list[tuple[str, str]]
    to: str | None = None


@dataclass
class ListMessage:
    body: str
    button_label: str
    rows: list[tuple[str, str, str]]
    section_title: str = "Opciones"
    to: str | None = None


@dataclass
class CatalogSelection:
    body: str
    catalog_id: str
    sections: list[tuple[str, list[str]]]
    to: str | None = None


Outbound = Union[Reply, Buttons, ListMessage, CatalogSelection]


# --- efectos sobre el store ---

@dataclass
class UpdateBusiness:
    fields: dict[str, Any]


@dataclass
class ReplaceZones:
    zones: list[dict[str, Any]]


@dataclass
class SaveBank:
    alias: str
    cbu: str
    account_holder: str


@dataclass
class AddProducts:
    products: list[dict[str, Any]]


@dataclass
class UpdateProduct:
    product_id: int
    fields: dict[str, Any]


@dataclass
class DeleteProduct:
    product_id: int


@dataclass
class FinishOnboarding:
    pass


@dataclass
class OrderDraft:
    business_id: int
    client_phone: str
    client_name: str | None
    client_address: str | None
    items: list[dict[str, Any]]
    subtotal: int
    delivery_zone_id: int | None
    delivery_price: int
    grand_total: int
    payment_method: str
    deposit_amount: int | None
    delivery_method: str
    zone_name: str | None = None
    pickup_address: str | None = None


@dataclass
class CreateOrder:
    draft: OrderDraft


StoreEffect = Union[
    UpdateBusiness,
    ReplaceZones,
    SaveBank,
    AddProducts,
    UpdateProduct,
    DeleteProduct,
    FinishOnboarding,
    CreateOrder,
]
Effect = Union[Outbound, StoreEffect]


# --- sesiones ---

@dataclass
class AdminSession:
    phone: str
    business_id: int
    step: AdminStep
    # selección en curso de la gestión de productos: {"product_id", "field"}
    draft: dict[str, Any] | None = None


@dataclass
class CartLine:
    product_id: int
    name: str
    price: int
    qty: int

    @property
    def total(self) -> int:
        return self.price * self.qty


@dataclass
class CustomerSession:
    business_id: int
    phone: str
    step: CustomerStep
    cart: list[CartLine] = field(default_factory=list)
    selected_zone_id: int | None = None
    delivery_method: str | None = None
    delivery_address: str | None = None
    checkout: dict[str, Any] | None = None

    @property
    def subtotal(self) -> int:
        return sum(line.total for line in self.cart)


@dataclass
class StepResult:
    """``session=None`` significa borrar el estado."""

    session: Any
    effects: list[Effect] = field(default_factory=list)
    # el paso no lo resuelve el flow sino los comandos del admin
    delegate: bool = False

    @property
    def outbound(self) -> list[Outbound]:
        return [effect for effect in self.effects if isinstance(effect, (Reply, Buttons, ListMessage, CatalogSelection))]

    @property
    def store_effects(self) -> list[StoreEffect]:
        return [effect for effect in self.effects if not isinstance(effect, (Reply, Buttons, ListMessage, CatalogSelection))]
