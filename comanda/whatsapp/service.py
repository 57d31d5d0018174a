from __future__ import annotations

import logging

import httpx

from comanda.core.config import WHATSAPP_PROVIDER
from comanda.core.edge_policy import EdgeCase
from comanda.core.errors import WhatsAppSendError
from comanda.fsm.effects import Buttons, CatalogSelection, ListMessage, Outbound, Reply
from comanda.whatsapp.base import ChannelCredentials, WhatsAppGateway
from comanda.whatsapp.cloud_provider import CloudWhatsAppGateway
from comanda.whatsapp.mock_provider import MockWhatsAppGateway

logger = logging.getLogger(__name__)


def build_gateway(provider: str = WHATSAPP_PROVIDER) -> WhatsAppGateway:
    if provider == "mock":
        return MockWhatsAppGateway()
    return CloudWhatsAppGateway()


class WhatsAppService:
    """Envía los mensajes que producen los flows, ya commiteado el estado."""

    def __init__(self, gateway: WhatsAppGateway | None = None) -> None:
        self.gateway = gateway if gateway is not None else build_gateway()

    def send(self, channel: ChannelCredentials, *, sender: str, message: Outbound) -> None:
        to_phone = message.to or sender
        if isinstance(message, Reply):
            self.gateway.send_text(channel, to_phone=to_phone, text=message.text)
        elif isinstance(message, Buttons):
            self.gateway.send_buttons(channel, to_phone=to_phone, body=message.body, buttons=message.buttons)
        elif isinstance(message, ListMessage):
            self.gateway.send_list(
                channel,
                to_phone=to_phone,
                body=message.body,
                button_label=message.button_label,
                sections=[(message.section_title, message.rows)],
            )
        elif isinstance(message, CatalogSelection):
            self.gateway.send_catalog_selection(
                channel,
                to_phone=to_phone,
                body=message.body,
                catalog_id=message.catalog_id,
                sections=message.sections,
            )
        else:
            raise TypeError(f"unsupported outbound message: {type(message).__name__}")

    def deliver(self, channel: ChannelCredentials, *, sender: str, messages: list[Outbound]) -> int:
        """Manda todo lo que pueda; un envío fallido no frena a los demás."""
        failures = 0
        for message in messages:
            try:
                self.send(channel, sender=sender, message=message)
            except (WhatsAppSendError, httpx.HTTPError, ValueError) as exc:
                failures += 1
                notify_other = message.to is not None and message.to != sender
                logger.warning(
                    "outbound message failed (%s): %s",
                    "notification" if notify_other else "reply",
                    exc,
                    extra={"edge_case": EdgeCase.SIDE_EFFECT_FAILED.value},
                )
        return failures

    def mark_read(self, channel: ChannelCredentials, message_id: str) -> None:
        try:
            self.gateway.mark_read(channel, message_id=message_id)
        except (WhatsAppSendError, httpx.HTTPError) as exc:
            logger.info("mark read failed: %s", exc)
