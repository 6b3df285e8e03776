"""
ola.adapters — LLM provider adapter registry.

Provides a ``create_adapter()`` factory that returns the adapter matching a
``ProviderIdentity``.

Supported providers:
    - ``OpenAI``     — Chat Completions, SSE streaming
    - ``Anthropic``  — Messages API, SSE streaming
    - ``Ollama``     — local /api/generate, NDJSON streaming
    - ``Gemini``     — generateContent, non-streaming
"""

from __future__ import annotations

import httpx

from ola.adapters.base import BaseAdapter
from ola.core.models import ProviderIdentity, ProviderName


# ---- Default model and key variable per provider --------------------------
PROVIDER_DEFAULTS: dict[ProviderName, dict[str, str]] = {
    ProviderName.OPENAI: {
        "model": "gpt-4o",
        "env_key": "OPENAI_API_KEY",
    },
    ProviderName.ANTHROPIC: {
        "model": "claude-3-opus-20240229",
        "env_key": "ANTHROPIC_API_KEY",
    },
    ProviderName.OLLAMA: {
        "model": "llama2",
        "env_key": "",  # No API key needed for local models
    },
    ProviderName.GEMINI: {
        "model": "gemini-1.5-pro",
        "env_key": "GEMINI_API_KEY",
    },
}


def create_adapter(
    identity: ProviderIdentity,
    transport: httpx.BaseTransport | None = None,
) -> BaseAdapter:
    """
    Factory function that returns the correct adapter for the given provider.

    Parameters
    ----------
    identity :
        Provider name, base URL and credential.
    transport :
        Optional httpx transport (tests pass an ``httpx.MockTransport``).
    """
    if identity.name == ProviderName.OPENAI:
        from ola.adapters.openai import OpenAIAdapter

        return OpenAIAdapter(identity, transport=transport)

    elif identity.name == ProviderName.ANTHROPIC:
        from ola.adapters.anthropic import AnthropicAdapter

        return AnthropicAdapter(identity, transport=transport)

    elif identity.name == ProviderName.OLLAMA:
        from ola.adapters.ollama import OllamaAdapter

        return OllamaAdapter(identity, transport=transport)

    elif identity.name == ProviderName.GEMINI:
        from ola.adapters.google import GeminiAdapter

        return GeminiAdapter(identity, transport=transport)

    raise ValueError(f"Unknown provider: '{identity.name}'")


def list_models(
    identity: ProviderIdentity,
    transport: httpx.BaseTransport | None = None,
) -> list[str]:
    """Models available for a provider (fetched live for Ollama)."""
    with create_adapter(identity, transport=transport) as adapter:
        return adapter.list_models()


__all__ = ["BaseAdapter", "create_adapter", "list_models", "PROVIDER_DEFAULTS"]
