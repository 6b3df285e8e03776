"""
ola.adapters.openai — OpenAI Chat Completions adapter.

POSTs ``{model, messages, stream}`` to ``/v1/chat/completions`` with bearer
auth.  Streaming responses arrive as ``data: {...}`` lines terminated by
``data: [DONE]``; each chunk carries ``choices[0].delta.content``.
"""

from __future__ import annotations

import logging
from typing import Any

from ola.adapters.base import BaseAdapter, dig, parse_sse_line
from ola.core.errors import ProviderResponseError
from ola.core.models import ProviderName

logger = logging.getLogger("ola.adapters.openai")


class OpenAIAdapter(BaseAdapter):
    """Sends single-turn prompts to the OpenAI Chat Completions API."""

    provider = ProviderName.OPENAI
    catalogue = ("gpt-4o", "gpt-4", "o3", "o3-pro", "o4", "o4-mini", "o4-mini-high")

    def _endpoint(self, model: str) -> str:
        return "/v1/chat/completions"

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._identity.api_key}",
            "Content-Type": "application/json",
        }

    def _build_body(self, prompt: str, model: str, stream: bool) -> dict[str, Any]:
        return {
            "model": model,
            "messages": [{"role": "user", "content": prompt}],
            "stream": stream,
        }

    def _extract_parts(self, data: dict[str, Any]) -> list[str]:
        message = dig(data, "choices", 0, "message")
        if not isinstance(message, dict):
            raise ProviderResponseError("OpenAI response has no choices[0].message")
        content = message.get("content")
        return [content] if isinstance(content, str) else []

    def _extract_fragment(self, line: str) -> str | None:
        chunk = parse_sse_line(line)
        if chunk is None:
            return None
        content = dig(chunk, "choices", 0, "delta", "content")
        return content if isinstance(content, str) else None
