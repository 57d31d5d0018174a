import json

import httpx
import pytest

from comanda.ai.client import CascadingExtractionClient, strip_fences
from comanda.ai.providers import LLMProvider
from comanda.core.errors import ExtractionError


def _providers():
    return [
        LLMProvider("groq", "https://groq.test/v1", "k1", "m1"),
        LLMProvider("cerebras", "https://cerebras.test/v1", "k2", "m2"),
    ]


def _completion(content):
    return httpx.Response(200, json={"choices": [{"message": {"content": content}}]})


def _client(handler):
    return httpx.Client(transport=httpx.MockTransport(handler))


def test_rate_limited_provider_falls_through_to_next() -> None:
    seen = []

    def handler(request):
        seen.append(request.url.host)
        if request.url.host == "groq.test":
            return httpx.Response(429, text="slow down")
        return _completion(json.dumps({"hours": "Lun-Vie 11-23"}))

    client = CascadingExtractionClient(_providers(), http_client=_client(handler))

    assert client.extract("sys", "texto") == {"hours": "Lun-Vie 11-23"}
    assert seen == ["groq.test", "cerebras.test"]


def test_client_error_stops_the_chain() -> None:
    seen = []

    def handler(request):
        seen.append(request.url.host)
        return httpx.Response(400, text="bad request")

    client = CascadingExtractionClient(_providers(), http_client=_client(handler))

    with pytest.raises(ExtractionError) as exc_info:
        client.extract("sys", "texto")
    assert exc_info.value.provider == "groq"
    assert seen == ["groq.test"]


def test_all_providers_failing_raises_typed_error() -> None:
    def handler(request):
        return httpx.Response(503, text="down")

    client = CascadingExtractionClient(_providers(), http_client=_client(handler))

    with pytest.raises(ExtractionError) as exc_info:
        client.extract("sys", "texto")
    assert exc_info.value.provider == "cerebras"


def test_network_error_is_retryable() -> None:
    def handler(request):
        if request.url.host == "groq.test":
            raise httpx.ConnectError("refused", request=request)
        return _completion('{"ok": true}')

    client = CascadingExtractionClient(_providers(), http_client=_client(handler))

    assert client.extract("sys", "texto") == {"ok": True}


def test_no_providers_fails_without_network() -> None:
    def handler(request):
        raise AssertionError("no debería llamarse")

    client = CascadingExtractionClient([], http_client=_client(handler))

    with pytest.raises(ExtractionError):
        client.extract("sys", "texto")


def test_fenced_json_is_accepted_and_non_objects_rejected() -> None:
    assert strip_fences('```json\n{"a": 1}\n```') == '{"a": 1}'

    def handler(request):
        return _completion("[1, 2]")

    client = CascadingExtractionClient(_providers()[:1], http_client=_client(handler))
    with pytest.raises(ExtractionError):
        client.extract("sys", "texto")
