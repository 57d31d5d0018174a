"""Cliente de extracción con fallback entre providers.

Cada provider es un endpoint OpenAI-compatible. Un 429, un 5xx o un error de
red pasa al siguiente provider; cualquier otra falla corta la cadena.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Protocol

import httpx

from comanda.ai.providers import LLMProvider, configured_providers
from comanda.core.config import LLM_TIMEOUT_SECONDS
from comanda.core.errors import ExtractionError

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


class Extractor(Protocol):
    def extract(self, system_instruction: str, user_text: str) -> dict[str, Any]:
        ...


def classify_status(status_code: int) -> bool:
    """True si vale la pena probar con el siguiente provider."""
    return status_code == 429 or 500 <= status_code < 600


def classify_transport_error(exc: Exception) -> bool:
    return isinstance(exc, (httpx.TimeoutException, httpx.NetworkError, httpx.RemoteProtocolError))


def strip_fences(content: str) -> str:
    return _FENCE_RE.sub("", content.strip()).strip()


def parse_json_object(content: str, *, provider: str) -> dict[str, Any]:
    try:
        data = json.loads(strip_fences(content))
    except json.JSONDecodeError as exc:
        raise ExtractionError(f"{provider}: unparsable JSON", provider=provider, retryable=False) from exc
    if not isinstance(data, dict):
        raise ExtractionError(f"{provider}: JSON is not an object", provider=provider, retryable=False)
    return data


class CascadingExtractionClient:
    def __init__(
        self,
        providers: list[LLMProvider] | None = None,
        *,
        http_client: httpx.Client | None = None,
        timeout: float = LLM_TIMEOUT_SECONDS,
    ) -> None:
        self.providers = list(providers) if providers is not None else configured_providers()
        self._http_client = http_client
        self._timeout = timeout

    def extract(self, system_instruction: str, user_text: str) -> dict[str, Any]:
        if not self.providers:
            raise ExtractionError("no LLM providers configured", retryable=False)

        last_error: ExtractionError | None = None
        for index, provider in enumerate(self.providers):
            try:
                content = self._complete(provider, system_instruction, user_text)
                return parse_json_object(content, provider=provider.name)
            except ExtractionError as exc:
                last_error = exc
                has_next = index + 1 < len(self.providers)
                if not exc.retryable or not has_next:
                    break
                logger.warning(
                    "extraction provider failed, trying next: %s",
                    exc,
                    extra={"provider": provider.name},
                )

        assert last_error is not None
        logger.error("extraction chain failed: %s", last_error, extra={"provider": last_error.provider})
        raise last_error

    def _complete(self, provider: LLMProvider, system_instruction: str, user_text: str) -> str:
        body = {
            "model": provider.model,
            "messages": [
                {"role": "system", "content": system_instruction},
                {"role": "user", "content": user_text},
            ],
            "temperature": 0,
            "response_format": {"type": "json_object"},
        }
        headers = {"Authorization": f"Bearer {provider.api_key}", "Content-Type": "application/json"}

        try:
            if self._http_client is not None:
                response = self._http_client.post(provider.endpoint, headers=headers, json=body)
            else:
                with httpx.Client(timeout=self._timeout) as client:
                    response = client.post(provider.endpoint, headers=headers, json=body)
        except httpx.HTTPError as exc:
            raise ExtractionError(
                f"{provider.name}: {exc.__class__.__name__}",
                provider=provider.name,
                retryable=classify_transport_error(exc),
            ) from exc

        if not 200 <= response.status_code < 300:
            raise ExtractionError(
                f"{provider.name}: HTTP {response.status_code}",
                provider=provider.name,
                retryable=classify_status(response.status_code),
            )

        try:
            data = response.json()
            return data["choices"][0]["message"]["content"] or ""
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise ExtractionError(
                f"{provider.name}: unexpected completion body",
                provider=provider.name,
                retryable=False,
            ) from exc
