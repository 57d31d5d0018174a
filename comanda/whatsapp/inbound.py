from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class NativeCartItem:
    retailer_id: str
    quantity: int
    item_price: float | None = None
    currency: str | None = None


@dataclass
class NativeCart:
    catalog_id: str | None
    items: list[NativeCartItem] = field(default_factory=list)


@dataclass
class SharedLocation:
    latitude: float | None
    longitude: float | None
    name: str | None = None
    address: str | None = None

    def as_address(self) -> str:
        if self.address:
            return self.address
        if self.name:
            return self.name
        return f"{self.latitude},{self.longitude}"


@dataclass
class InboundEvent:
    message_id: str
    sender: str
    phone_number_id: str | None
    kind: str  # text / order / location
    text: str = ""
    contact_name: str | None = None
    cart: NativeCart | None = None
    location: SharedLocation | None = None
