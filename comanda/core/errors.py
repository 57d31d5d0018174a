from __future__ import annotations


class ExtractionError(RuntimeError):
    """No provider in the chain produced a usable JSON object."""

    def __init__(self, message: str, *, provider: str | None = None, retryable: bool = False):
        super().__init__(message)
        self.provider = provider
        self.retryable = retryable


class InvariantViolation(RuntimeError):
    """Persisted data contradicts what the engine guarantees (unknown state, cross-tenant key)."""


class CatalogImportError(RuntimeError):
    pass


class WhatsAppSendError(RuntimeError):
    def __init__(self, status_code: int, body_text: str):
        super().__init__(f"Error WhatsApp {status_code}: {body_text}")
        self.status_code = status_code
        self.body_text = body_text
