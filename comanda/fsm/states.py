from __future__ import annotations

from enum import Enum


class AdminStep(str, Enum):
    BUSINESS_NAME = "business_name"
    BUSINESS_HOURS = "business_hours"
    BUSINESS_HOURS_CONFIRM = "business_hours_confirm"
    DELIVERY_METHOD = "delivery_method"
    PICKUP_ADDRESS = "pickup_address"
    PAYMENT_METHODS = "payment_methods"
    DEPOSIT_PERCENT = "deposit_percent"
    DELIVERY_ZONES = "delivery_zones"
    DELIVERY_ZONES_CONFIRM = "delivery_zones_confirm"
    BANK_DATA = "bank_data"
    BANK_DATA_CONFIRM = "bank_data_confirm"
    PRODUCTS = "products"
    REVIEW = "review"
    COMPLETED = "completed"

    EDIT_NAME = "edit_name"
    EDIT_HOURS = "edit_hours"
    EDIT_HOURS_CONFIRM = "edit_hours_confirm"
    EDIT_DELIVERY = "edit_delivery"
    EDIT_ADDRESS = "edit_address"
    EDIT_PAYMENTS = "edit_payments"
    EDIT_DEPOSIT_PERCENT = "edit_deposit_percent"
    EDIT_ZONES = "edit_zones"
    EDIT_ZONES_CONFIRM = "edit_zones_confirm"
    EDIT_BANK = "edit_bank"
    EDIT_BANK_CONFIRM = "edit_bank_confirm"
    EDIT_PRODUCTS = "edit_products"
    EDIT_PRODUCT_SELECT = "edit_product_select"
    EDIT_PRODUCT_FIELD = "edit_product_field"
    EDIT_PRODUCT_VALUE = "edit_product_value"
    EDIT_PAUSE_PRODUCT = "edit_pause_product"
    EDIT_DELETE_PRODUCT = "edit_delete_product"

    @property
    def is_edit(self) -> bool:
        return self.value.startswith("edit_")


class CustomerStep(str, Enum):
    VIEWING_MENU = "viewing_menu"
    BUILDING_CART = "building_cart"
    DELIVERY_METHOD = "delivery_method"
    DELIVERY_ZONE = "delivery_zone"
    DELIVERY_ADDRESS = "delivery_address"
    PAYMENT_METHOD = "payment_method"
    AWAITING_TRANSFER = "awaiting_transfer"
