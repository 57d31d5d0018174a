"""Contexto de logging por evento entrante (message id, negocio y remitente)."""

from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator

_MESSAGE_ID: ContextVar[str | None] = ContextVar("message_id", default=None)
_TENANT_ID: ContextVar[str | None] = ContextVar("tenant_id", default=None)
_SENDER: ContextVar[str | None] = ContextVar("sender", default=None)


@contextmanager
def event_context(*, message_id: str | None, sender: str | None) -> Iterator[None]:
    tokens = (_MESSAGE_ID.set(message_id), _SENDER.set(sender), _TENANT_ID.set(None))
    try:
        yield
    finally:
        _TENANT_ID.reset(tokens[2])
        _SENDER.reset(tokens[1])
        _MESSAGE_ID.reset(tokens[0])


def bind_tenant(business_id: int | str | None) -> None:
    """Se llama apenas se sabe a qué negocio pertenece el evento."""
    _TENANT_ID.set(None if business_id is None else str(business_id))


def get_request_id() -> str | None:
    return _MESSAGE_ID.get()


def get_tenant_id() -> str | None:
    return _TENANT_ID.get()


def get_sender() -> str | None:
    return _SENDER.get()
