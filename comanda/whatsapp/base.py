from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol

from comanda.core.logging_setup import mask_phone


@dataclass(frozen=True)
class ChannelCredentials:
    phone_number_id: str
    access_token: str = field(repr=False)
    verify_token: str | None = field(default=None, repr=False)
    app_secret: str | None = field(default=None, repr=False)
    catalog_id: str | None = None
    business_id: int | None = None
    # False para el canal armado desde variables de entorno
    persisted: bool = True


@dataclass
class WhatsAppSendResult:
    status: str
    provider_message_id: str | None = None
    error: str | None = None
    response_payload: dict[str, Any] | None = None


MAX_BUTTONS = 3
MAX_BUTTON_TITLE = 20
MAX_LIST_ROWS = 10
MAX_ROW_TITLE = 24


class WhatsAppGateway(Protocol):
    def send_text(self, channel: ChannelCredentials, *, to_phone: str, text: str) -> WhatsAppSendResult:
        ...

    def send_buttons(
        self, channel: ChannelCredentials, *, to_phone: str, body: str, buttons: list[tuple[str, str]]
    ) -> WhatsAppSendResult:
        ...

    def send_list(
        self,
        channel: ChannelCredentials,
        *,
        to_phone: str,
        body: str,
        button_label: str,
        sections: list[tuple[str, list[tuple[str, str, str]]]],
    ) -> WhatsAppSendResult:
        ...

    def send_catalog_selection(
        self,
        channel: ChannelCredentials,
        *,
        to_phone: str,
        body: str,
        catalog_id: str,
        sections: list[tuple[str, list[str]]],
    ) -> WhatsAppSendResult:
        ...

    def mark_read(self, channel: ChannelCredentials, *, message_id: str) -> WhatsAppSendResult:
        ...


def validate_buttons(buttons: list[tuple[str, str]]) -> None:
    if not 1 <= len(buttons) <= MAX_BUTTONS:
        raise ValueError(f"WhatsApp allows 1 to {MAX_BUTTONS} reply buttons, got {len(buttons)}")
    for _button_id, title in buttons:
        if len(title) > MAX_BUTTON_TITLE:
            raise ValueError(f"button title too long: {title!r}")


def validate_list(sections: list[tuple[str, list[tuple[str, str, str]]]]) -> None:
    total_rows = sum(len(rows) for _title, rows in sections)
    if not 1 <= total_rows <= MAX_LIST_ROWS:
        raise ValueError(f"WhatsApp allows 1 to {MAX_LIST_ROWS} list rows, got {total_rows}")
    for _title, rows in sections:
        for _row_id, title, _description in rows:
            if len(title) > MAX_ROW_TITLE:
                raise ValueError(f"row title too long: {title!r}")


def describe_payload(payload: dict[str, Any]) -> str:
    """Resumen de un envío para logs: tipo, destinatario enmascarado y largo del texto."""
    kind = payload.get("type") or payload.get("status") or "?"
    if kind == "interactive":
        kind = f"interactive/{(payload.get('interactive') or {}).get('type')}"
    body = (payload.get("text") or {}).get("body") or ((payload.get("interactive") or {}).get("body") or {}).get("text")
    return f"type={kind} to={mask_phone(payload.get('to'))} chars={len(body or '')}"
