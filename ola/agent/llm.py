"""
ola.agent.llm — Provider client used by the orchestrator.

``ProviderClient`` owns exactly one adapter, chosen by provider name when it
is constructed, and hides every wire detail behind ``send`` and
``send_streaming``.
"""

from __future__ import annotations

import logging

import httpx

from ola.adapters import create_adapter
from ola.adapters.base import BaseAdapter, TextSink
from ola.core.config import Config
from ola.core.models import AccumulatedResponse, InvocationRequest, ProviderIdentity, ProviderName

logger = logging.getLogger("ola.agent.llm")


class ProviderClient:
    """
    Unified client for a single provider.

    Usage::

        client = ProviderClient.from_config(Config.load())
        text = client.send_streaming("Hello", "gpt-4o")
    """

    def __init__(
        self,
        identity: ProviderIdentity,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.identity = identity
        self._adapter: BaseAdapter = create_adapter(identity, transport=transport)

    @classmethod
    def from_config(
        cls,
        config: Config,
        transport: httpx.BaseTransport | None = None,
    ) -> "ProviderClient":
        """Build a client for the active provider (``ConfigurationError`` if none)."""
        provider = config.get_active_provider()
        return cls(provider.identity(), transport=transport)

    @property
    def provider_name(self) -> ProviderName:
        return self.identity.name

    def send(self, prompt: str, model: str) -> str:
        """Blocking call; returns the complete response text."""
        return self._adapter.send(prompt, model, stream=False)

    def send_streaming(self, prompt: str, model: str, on_text: TextSink | None = None) -> str:
        """Streaming call; fragments go to ``on_text`` as they arrive."""
        return self._adapter.send(prompt, model, stream=True, on_text=on_text)

    def invoke(self, request: InvocationRequest, on_text: TextSink | None = None) -> AccumulatedResponse:
        if request.stream:
            text = self.send_streaming(request.prompt, request.model, on_text=on_text)
        else:
            text = self.send(request.prompt, request.model)
        logger.debug("%s returned %d chars", self.provider_name.value, len(text))
        return AccumulatedResponse(text=text, model=request.model)

    def list_models(self) -> list[str]:
        return self._adapter.list_models()

    def close(self) -> None:
        self._adapter.close()

    def __enter__(self) -> "ProviderClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
