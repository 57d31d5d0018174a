from __future__ import annotations

from dataclasses import dataclass

from comanda.core import config


@dataclass(frozen=True)
class LLMProvider:
    name: str
    base_url: str
    api_key: str
    model: str

    @property
    def endpoint(self) -> str:
        return f"{self.base_url.rstrip('/')}/chat/completions"


def configured_providers() -> list[LLMProvider]:
    """Providers en orden de preferencia; solo los que tienen API key."""
    candidates = [
        LLMProvider("groq", "https://api.groq.com/openai/v1", config.GROQ_API_KEY, config.GROQ_MODEL),
        LLMProvider("cerebras", "https://api.cerebras.ai/v1", config.CEREBRAS_API_KEY, config.CEREBRAS_MODEL),
        LLMProvider("mistral", "https://api.mistral.ai/v1", config.MISTRAL_API_KEY, config.MISTRAL_MODEL),
        LLMProvider("openrouter", "https://openrouter.ai/api/v1", config.OPENROUTER_API_KEY, config.OPENROUTER_MODEL),
    ]
    return [provider for provider in candidates if provider.api_key]
