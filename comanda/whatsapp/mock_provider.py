from __future__ import annotations

import logging
from dataclasses import dataclass, field
from threading import Lock
from typing import Any

from comanda.whatsapp.base import (
    ChannelCredentials,
    WhatsAppGateway,
    WhatsAppSendResult,
    validate_buttons,
    validate_list,
)

logger = logging.getLogger(__name__)


@dataclass
class SentMessage:
    phone_number_id: str
    to_phone: str | None
    kind: str
    payload: dict[str, Any] = field(default_factory=dict)


class MockWhatsAppGateway(WhatsAppGateway):
    """Registra los envíos en memoria. Se usa con WHATSAPP_PROVIDER=mock y en tests."""

    def __init__(self) -> None:
        self.sent: list[SentMessage] = []
        self._lock = Lock()

    def _record(self, channel: ChannelCredentials, to_phone: str | None, kind: str, **payload: Any) -> WhatsAppSendResult:
        with self._lock:
            self.sent.append(SentMessage(channel.phone_number_id, to_phone, kind, payload))
            message_id = f"mock-{len(self.sent)}"
        logger.info("mock whatsapp %s", kind)
        return WhatsAppSendResult(status="sent", provider_message_id=message_id)

    def send_text(self, channel: ChannelCredentials, *, to_phone: str, text: str) -> WhatsAppSendResult:
        return self._record(channel, to_phone, "text", text=text)

    def send_buttons(self, channel, *, to_phone, body, buttons):
        validate_buttons(buttons)
        return self._record(channel, to_phone, "buttons", body=body, buttons=list(buttons))

    def send_list(self, channel, *, to_phone, body, button_label, sections):
        validate_list(sections)
        return self._record(channel, to_phone, "list", body=body, button_label=button_label, sections=list(sections))

    def send_catalog_selection(self, channel, *, to_phone, body, catalog_id, sections):
        return self._record(channel, to_phone, "catalog", body=body, catalog_id=catalog_id, sections=list(sections))

    def mark_read(self, channel, *, message_id):
        return self._record(channel, None, "read", message_id=message_id)

    def texts_to(self, phone: str) -> list[str]:
        with self._lock:
            return [
                message.payload.get("text") or message.payload.get("body") or ""
                for message in self.sent
                if message.to_phone == phone and message.kind != "read"
            ]
