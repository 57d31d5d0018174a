from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class HoursExtraction(BaseModel):
    hours: str = Field(..., min_length=1)


class ZoneItem(BaseModel):
    zone_name: str = Field(..., min_length=1)
    price: float = Field(..., gt=0)


class ZonesExtraction(BaseModel):
    zones: List[ZoneItem] = Field(..., min_length=1)


class BankExtraction(BaseModel):
    alias: Optional[str] = None
    cbu: Optional[str] = None
    account_holder: Optional[str] = None

    def missing_fields(self) -> list[str]:
        labels = {"alias": "Alias", "cbu": "CBU/CVU", "account_holder": "Titular"}
        return [label for key, label in labels.items() if not (getattr(self, key) or "").strip()]


class ProductItem(BaseModel):
    name: str = ""
    price: float = 0
    category: Optional[str] = None
    description: Optional[str] = None


class ProductsExtraction(BaseModel):
    products: List[ProductItem] = Field(default_factory=list)


class OrderItemExtraction(BaseModel):
    product_id: int
    name: Optional[str] = None
    qty: float = 1


class OrderExtraction(BaseModel):
    items: List[OrderItemExtraction] = Field(default_factory=list)
    not_found: List[str] = Field(default_factory=list)


class IntentExtraction(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    intent: str = Field(..., min_length=1)
    period: Optional[str] = None
    plan_slug: Optional[str] = Field(default=None, alias="planSlug")


class AnswerExtraction(BaseModel):
    answer: str = Field(..., min_length=1)
