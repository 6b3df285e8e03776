"""
ola.adapters.ollama — Ollama adapter for local models.

Uses the native ``/api/generate`` endpoint.  Streaming bodies are
newline-delimited JSON with the text in ``response``; the stream ends when
the body ends.  No API key is needed.

The installed models are discovered through ``GET /api/tags``.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ola.adapters.base import MAX_OUTPUT_TOKENS, BaseAdapter, parse_ndjson_line
from ola.core.errors import NetworkError, ProviderHttpError, ProviderResponseError
from ola.core.models import ProviderName

logger = logging.getLogger("ola.adapters.ollama")


class OllamaAdapter(BaseAdapter):
    """Sends prompts to a local Ollama instance."""

    provider = ProviderName.OLLAMA

    def _endpoint(self, model: str) -> str:
        return "/api/generate"

    def _headers(self) -> dict[str, str]:
        return {"Content-Type": "application/json"}

    def _build_body(self, prompt: str, model: str, stream: bool) -> dict[str, Any]:
        return {
            "model": model,
            "prompt": prompt,
            "stream": stream,
            "options": {"num_predict": MAX_OUTPUT_TOKENS},
        }

    def _extract_parts(self, data: dict[str, Any]) -> list[str]:
        text = data.get("response")
        if not isinstance(text, str):
            raise ProviderResponseError("Ollama response has no 'response' field")
        return [text]

    def _extract_fragment(self, line: str) -> str | None:
        chunk = parse_ndjson_line(line)
        if chunk is None:
            return None
        if "error" in chunk:
            logger.warning("Ollama stream error: %s", chunk["error"])
            return None
        text = chunk.get("response")
        return text if isinstance(text, str) else None

    def list_models(self) -> list[str]:
        """Names of the models installed in the local Ollama instance."""
        try:
            resp = self._client.get("/api/tags")
        except httpx.RequestError as exc:
            raise NetworkError(
                f"Cannot connect to Ollama at {self._base_url}. Is it running?"
            ) from exc
        if not resp.is_success:
            raise ProviderHttpError(self.provider.value, resp.status_code, resp.text)
        try:
            data = resp.json()
        except ValueError as exc:
            raise ProviderResponseError(f"Ollama /api/tags returned invalid JSON: {exc}") from exc

        models = data.get("models", []) if isinstance(data, dict) else []
        return [m["name"] for m in models if isinstance(m, dict) and m.get("name")]

    def check_connection(self) -> bool:
        """True when the Ollama server answers."""
        try:
            self.list_models()
        except (NetworkError, ProviderHttpError, ProviderResponseError) as exc:
            logger.debug("Ollama connection check failed: %s", exc)
            return False
        return True
