"""Datos reutilizables para los escenarios de test."""

PIZZERIA_SUR = {
    "business_name": "Pizzería Sur",
    "admin_phone": "5491100000001",
    "business_hours": "Lun-Dom 00:00-24:00",
    "has_delivery": True,
    "has_pickup": True,
    "business_address": "Av. Siempreviva 742",
    "accepts_cash": True,
    "accepts_transfer": True,
    "accepts_deposit": False,
    "deposit_percent": None,
    "is_active": True,
}

MENU_PRODUCTS = [
    {"name": "Muzzarella", "price": 5500, "category": "Pizzas", "retailer_id": "pz-muzza"},
    {"name": "Coca Cola 1.5L", "price": 2000, "category": "Bebidas", "retailer_id": "bb-coca"},
]

DELIVERY_ZONES = [
    {"zone_name": "Centro", "price": 1500},
    {"zone_name": "Barrio Norte", "price": 2000},
]

BANK = {"alias": "pizzeria.sur", "cbu": "0000003100012345678901", "account_holder": "Juan Pérez"}

CUSTOMER_PHONE = "5491155550000"
CHANNEL_PHONE_NUMBER_ID = "109876543210"


def cloud_text_payload(text, *, message_id="wamid.1", sender=CUSTOMER_PHONE, phone_number_id=CHANNEL_PHONE_NUMBER_ID):
    return {
        "object": "whatsapp_business_account",
        "entry": [
            {
                "id": "WABA",
                "changes": [
                    {
                        "field": "messages",
                        "value": {
                            "messaging_product": "whatsapp",
                            "metadata": {"display_phone_number": "5491100000000", "phone_number_id": phone_number_id},
                            "contacts": [{"profile": {"name": "Lucía"}, "wa_id": sender}],
                            "messages": [
                                {
                                    "from": sender,
                                    "id": message_id,
                                    "timestamp": "1700000000",
                                    "type": "text",
                                    "text": {"body": text},
                                }
                            ],
                        },
                    }
                ],
            }
        ],
    }
