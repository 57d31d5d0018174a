from __future__ import annotations

import logging
import time
from typing import Any, Callable

import httpx

from comanda.core.config import (
    META_API_VERSION,
    WHATSAPP_429_RETRIES,
    WHATSAPP_DEFAULT_RETRY_AFTER,
    WHATSAPP_MAX_RETRY_AFTER,
)
from comanda.core.errors import WhatsAppSendError
from comanda.whatsapp.base import (
    ChannelCredentials,
    WhatsAppGateway,
    WhatsAppSendResult,
    describe_payload,
    validate_buttons,
    validate_list,
)
from comanda.whatsapp.inbound import InboundEvent, NativeCart, NativeCartItem, SharedLocation

logger = logging.getLogger(__name__)


def _parse_message(msg: dict[str, Any], *, phone_number_id: str | None, contact_name: str | None) -> InboundEvent | None:
    message_id = msg.get("id")
    from_number = msg.get("from")
    if not message_id or not from_number:
        return None

    msg_type = msg.get("type") or "text"
    base = {
        "message_id": message_id,
        "sender": from_number,
        "phone_number_id": phone_number_id,
        "contact_name": contact_name,
    }

    if msg_type == "text":
        text = ((msg.get("text") or {}).get("body")) or ""
        return InboundEvent(kind="text", text=text.strip(), **base)

    if msg_type == "interactive":
        interactive = msg.get("interactive") or {}
        reply = interactive.get("button_reply") or interactive.get("list_reply") or {}
        reply_id = reply.get("id") or reply.get("title") or ""
        return InboundEvent(kind="text", text=str(reply_id).strip(), **base)

    if msg_type == "button":
        text = ((msg.get("button") or {}).get("payload")) or ((msg.get("button") or {}).get("text")) or ""
        return InboundEvent(kind="text", text=text.strip(), **base)

    if msg_type == "order":
        order = msg.get("order") or {}
        items = []
        for item in order.get("product_items") or []:
            retailer_id = item.get("product_retailer_id")
            if not retailer_id:
                continue
            try:
                quantity = int(item.get("quantity") or 1)
            except (TypeError, ValueError):
                quantity = 1
            items.append(
                NativeCartItem(
                    retailer_id=str(retailer_id),
                    quantity=quantity,
                    item_price=item.get("item_price"),
                    currency=item.get("currency"),
                )
            )
        if not items:
            return None
        return InboundEvent(kind="order", cart=NativeCart(catalog_id=order.get("catalog_id"), items=items), **base)

    if msg_type == "location":
        location = msg.get("location") or {}
        return InboundEvent(
            kind="location",
            location=SharedLocation(
                latitude=location.get("latitude"),
                longitude=location.get("longitude"),
                name=location.get("name"),
                address=location.get("address"),
            ),
            **base,
        )

    return None


def parse_cloud_webhook(payload: dict[str, Any]) -> list[InboundEvent]:
    events: list[InboundEvent] = []
    for entry in payload.get("entry", []) or []:
        for change in entry.get("changes", []) or []:
            value = change.get("value") or {}
            metadata = value.get("metadata") or {}
            phone_number_id = metadata.get("phone_number_id")

            contacts = value.get("contacts") or []
            contact_name = None
            if contacts:
                contact_name = ((contacts[0].get("profile") or {}).get("name")) or None

            for msg in value.get("messages", []) or []:
                event = _parse_message(msg, phone_number_id=phone_number_id, contact_name=contact_name)
                if event is None:
                    logger.info("unsupported inbound message type=%s", msg.get("type"))
                    continue
                events.append(event)
    return events


def payload_phone_number_id(payload: dict[str, Any]) -> str | None:
    for entry in payload.get("entry", []) or []:
        for change in entry.get("changes", []) or []:
            phone_number_id = ((change.get("value") or {}).get("metadata") or {}).get("phone_number_id")
            if phone_number_id:
                return phone_number_id
    return None


def _retry_after_seconds(response: httpx.Response) -> float:
    raw = response.headers.get("retry-after")
    try:
        seconds = float(raw) if raw else float(WHATSAPP_DEFAULT_RETRY_AFTER)
    except ValueError:
        seconds = float(WHATSAPP_DEFAULT_RETRY_AFTER)
    return max(0.0, min(seconds, float(WHATSAPP_MAX_RETRY_AFTER)))


class CloudWhatsAppGateway(WhatsAppGateway):
    def __init__(
        self,
        *,
        http_client: httpx.Client | None = None,
        max_429_retries: int = WHATSAPP_429_RETRIES,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._http_client = http_client
        self.max_429_retries = max_429_retries
        self._sleep = sleep

    def send_text(self, channel: ChannelCredentials, *, to_phone: str, text: str) -> WhatsAppSendResult:
        payload = {
            "messaging_product": "whatsapp",
            "to": to_phone,
            "type": "text",
            "text": {"preview_url": False, "body": text},
        }
        return self._send(channel, payload)

    def send_buttons(self, channel, *, to_phone, body, buttons):
        validate_buttons(buttons)
        payload = {
            "messaging_product": "whatsapp",
            "to": to_phone,
            "type": "interactive",
            "interactive": {
                "type": "button",
                "body": {"text": body},
                "action": {
                    "buttons": [
                        {"type": "reply", "reply": {"id": button_id, "title": title}} for button_id, title in buttons
                    ]
                },
            },
        }
        return self._send(channel, payload)

    def send_list(self, channel, *, to_phone, body, button_label, sections):
        validate_list(sections)
        payload = {
            "messaging_product": "whatsapp",
            "to": to_phone,
            "type": "interactive",
            "interactive": {
                "type": "list",
                "body": {"text": body},
                "action": {
                    "button": button_label[:20],
                    "sections": [
                        {
                            "title": title[:24],
                            "rows": [
                                {"id": row_id, "title": row_title, "description": description[:72]}
                                for row_id, row_title, description in rows
                            ],
                        }
                        for title, rows in sections
                    ],
                },
            },
        }
        return self._send(channel, payload)

    def send_catalog_selection(self, channel, *, to_phone, body, catalog_id, sections):
        payload = {
            "messaging_product": "whatsapp",
            "to": to_phone,
            "type": "interactive",
            "interactive": {
                "type": "product_list",
                "header": {"type": "text", "text": "Menú"},
                "body": {"text": body},
                "action": {
                    "catalog_id": catalog_id,
                    "sections": [
                        {
                            "title": title[:24],
                            "product_items": [{"product_retailer_id": retailer_id} for retailer_id in retailer_ids[:30]],
                        }
                        for title, retailer_ids in sections[:10]
                    ],
                },
            },
        }
        return self._send(channel, payload)

    def mark_read(self, channel, *, message_id):
        payload = {"messaging_product": "whatsapp", "status": "read", "message_id": message_id}
        return self._send(channel, payload)

    def _post(self, url: str, headers: dict[str, str], payload: dict[str, Any]) -> httpx.Response:
        if self._http_client is not None:
            return self._http_client.post(url, headers=headers, json=payload)
        with httpx.Client(timeout=20.0) as client:
            return client.post(url, headers=headers, json=payload)

    def _send(self, channel: ChannelCredentials, payload: dict[str, Any]) -> WhatsAppSendResult:
        if not channel.access_token or not channel.phone_number_id:
            raise WhatsAppSendError(0, "Credenciales de WhatsApp Cloud incompletas")

        url = f"https://graph.facebook.com/{META_API_VERSION}/{channel.phone_number_id}/messages"
        headers = {"Authorization": f"Bearer {channel.access_token}", "Content-Type": "application/json"}

        attempt = 0
        while True:
            response = self._post(url, headers, payload)
            body_text = response.text

            if 200 <= response.status_code < 300:
                try:
                    data = response.json()
                except ValueError:
                    data = {"raw": body_text}
                provider_id = ((data.get("messages") or [{}])[0].get("id")) if isinstance(data, dict) else None
                return WhatsAppSendResult(status="sent", provider_message_id=provider_id, response_payload=data)

            # solo el rate limit del gateway se reintenta
            if response.status_code == 429 and attempt < self.max_429_retries:
                attempt += 1
                delay = _retry_after_seconds(response)
                logger.warning(
                    "whatsapp rate limited, retrying in %ss attempt=%s",
                    delay,
                    attempt,
                    extra={"status_code": 429},
                )
                self._sleep(delay)
                continue

            logger.error(
                "whatsapp send failed %s",
                describe_payload(payload),
                extra={"status_code": response.status_code},
            )
            raise WhatsAppSendError(response.status_code, body_text)
