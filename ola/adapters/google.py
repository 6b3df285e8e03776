"""
ola.adapters.google — Google Gemini adapter.

Calls ``/v1beta/models/{model}:generateContent`` with the API key in the
query string.  The endpoint is non-streaming; when the caller asks for a
stream, each returned part is echoed as it is extracted.
"""

from __future__ import annotations

import logging
from typing import Any

from ola.adapters.base import MAX_OUTPUT_TOKENS, BaseAdapter, dig
from ola.core.errors import ProviderResponseError
from ola.core.models import ProviderName

logger = logging.getLogger("ola.adapters.google")

TEMPERATURE = 0.7


class GeminiAdapter(BaseAdapter):
    """Sends single-turn prompts to the Gemini ``generateContent`` API."""

    provider = ProviderName.GEMINI
    supports_streaming = False
    catalogue = ("gemini-1.5-pro", "gemini-1.5-flash", "gemini-1.0-pro", "gemini-1.0-pro-vision")

    def _endpoint(self, model: str) -> str:
        return f"/v1beta/models/{model}:generateContent"

    def _params(self) -> dict[str, str]:
        return {"key": self._identity.api_key}

    def _headers(self) -> dict[str, str]:
        return {"Content-Type": "application/json"}

    def _build_body(self, prompt: str, model: str, stream: bool) -> dict[str, Any]:
        return {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": TEMPERATURE,
                "maxOutputTokens": MAX_OUTPUT_TOKENS,
            },
        }

    def _extract_parts(self, data: dict[str, Any]) -> list[str]:
        parts = dig(data, "candidates", 0, "content", "parts")
        if not isinstance(parts, list):
            reason = dig(data, "promptFeedback", "blockReason")
            detail = f" (blocked: {reason})" if reason else ""
            raise ProviderResponseError(f"Gemini response has no candidate parts{detail}")
        return [
            part["text"]
            for part in parts
            if isinstance(part, dict) and isinstance(part.get("text"), str)
        ]
