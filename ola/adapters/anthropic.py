"""
ola.adapters.anthropic — Anthropic Messages API adapter.

Header auth (``X-API-Key`` + ``anthropic-version``) and a fixed
``max_tokens`` cap.  Complete responses carry an array of content blocks
whose ``text`` fields are concatenated; streams use the same ``data:`` line
protocol as OpenAI, with text in ``content_block_delta`` events under
``delta.text``.
"""

from __future__ import annotations

import logging
from typing import Any

from ola.adapters.base import MAX_OUTPUT_TOKENS, BaseAdapter, dig, parse_sse_line
from ola.core.errors import ProviderResponseError
from ola.core.models import ProviderName

logger = logging.getLogger("ola.adapters.anthropic")

ANTHROPIC_VERSION = "2023-06-01"


class AnthropicAdapter(BaseAdapter):
    """Sends single-turn prompts to Claude via the Messages API."""

    provider = ProviderName.ANTHROPIC
    catalogue = (
        "claude-3-opus-20240229",
        "claude-3-sonnet-20240229",
        "claude-3-haiku-20240307",
        "claude-2.1",
        "claude-2.0",
    )

    def _endpoint(self, model: str) -> str:
        return "/v1/messages"

    def _headers(self) -> dict[str, str]:
        return {
            "X-API-Key": self._identity.api_key,
            "anthropic-version": ANTHROPIC_VERSION,
            "Content-Type": "application/json",
        }

    def _build_body(self, prompt: str, model: str, stream: bool) -> dict[str, Any]:
        return {
            "model": model,
            "messages": [{"role": "user", "content": prompt}],
            "max_tokens": MAX_OUTPUT_TOKENS,
            "stream": stream,
        }

    def _extract_parts(self, data: dict[str, Any]) -> list[str]:
        blocks = data.get("content")
        if not isinstance(blocks, list):
            raise ProviderResponseError("Anthropic response has no content array")
        return [
            block["text"]
            for block in blocks
            if isinstance(block, dict) and isinstance(block.get("text"), str)
        ]

    def _extract_fragment(self, line: str) -> str | None:
        event = parse_sse_line(line)
        if event is None:
            return None
        if event.get("type") == "error":
            logger.warning("Anthropic stream error event: %s", event.get("error"))
            return None
        text = dig(event, "delta", "text")
        return text if isinstance(text, str) else None
