"""
ola.adapters.base — Abstract base class for LLM provider adapters.

Every adapter turns one HTTP exchange into a single accumulated string.
Subclasses describe only the provider specifics (endpoint, headers, request
body, how text is pulled out of a response or stream line); the request
loop, error translation and echoing live here.

Two line codecs are shared by the streaming adapters:

    ``parse_sse_line``     ``data: {...}`` lines (OpenAI, Anthropic)
    ``parse_ndjson_line``  one JSON object per line (Ollama)
"""

from __future__ import annotations

import json
import logging
import sys
from abc import ABC, abstractmethod
from typing import Any, Callable

import httpx

from ola.core.errors import (
    MalformedChunkError,
    NetworkError,
    ProviderHttpError,
    ProviderResponseError,
)
from ola.core.models import ProviderIdentity, ProviderName

logger = logging.getLogger("ola.adapters")

REQUEST_TIMEOUT = 120.0
MAX_OUTPUT_TOKENS = 2048

TextSink = Callable[[str], None]


def stdout_echo(fragment: str) -> None:
    """Default echo sink: write the fragment and flush immediately."""
    sys.stdout.write(fragment)
    sys.stdout.flush()


# ---------------------------------------------------------------------------
# Line codecs
# ---------------------------------------------------------------------------

def _decode_object(payload: str, line: str) -> dict[str, Any]:
    try:
        obj = json.loads(payload)
    except json.JSONDecodeError as exc:
        raise MalformedChunkError(line, exc.msg) from exc
    if not isinstance(obj, dict):
        raise MalformedChunkError(line, "expected a JSON object")
    return obj


def parse_sse_line(line: str) -> dict[str, Any] | None:
    """
    Decode one ``data:``-prefixed stream line.

    Returns None for lines that carry no payload (blank lines, ``event:``
    lines, the ``[DONE]`` sentinel).  Raises ``MalformedChunkError`` when
    the payload is not a JSON object.
    """
    stripped = line.strip()
    if not stripped.startswith("data: "):
        return None
    payload = stripped[6:]
    if payload.strip() == "[DONE]":
        return None
    return _decode_object(payload, line)


def parse_ndjson_line(line: str) -> dict[str, Any] | None:
    """Decode one newline-delimited JSON line; blank lines yield None."""
    stripped = line.strip()
    if not stripped:
        return None
    return _decode_object(stripped, line)


def dig(data: Any, *path: str | int) -> Any:
    """Walk nested dicts/lists, returning None on the first missing step."""
    current = data
    for key in path:
        if isinstance(key, int):
            if not isinstance(current, list) or len(current) <= key:
                return None
        elif not isinstance(current, dict):
            return None
        current = current[key] if isinstance(key, int) else current.get(key)
    return current


# ---------------------------------------------------------------------------
# Adapter contract
# ---------------------------------------------------------------------------

class BaseAdapter(ABC):
    """
    Interface contract for all provider adapters.

    Subclasses set ``provider`` and ``catalogue`` and implement
    ``_endpoint()``, ``_headers()``, ``_build_body()`` and
    ``_extract_parts()``.  Streaming adapters also implement
    ``_extract_fragment()``; adapters whose API has no streaming mode set
    ``supports_streaming = False`` and echo each extracted part instead.
    """

    provider: ProviderName
    supports_streaming: bool = True
    catalogue: tuple[str, ...] = ()

    def __init__(
        self,
        identity: ProviderIdentity,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._identity = identity
        self._base_url = identity.base_url
        self._client = httpx.Client(
            base_url=self._base_url,
            headers=self._headers(),
            timeout=REQUEST_TIMEOUT,
            transport=transport,
        )

    # ------------------------------------------------------------------
    # Provider specifics
    # ------------------------------------------------------------------

    @abstractmethod
    def _endpoint(self, model: str) -> str:
        """Path of the generation endpoint, relative to the base URL."""
        ...

    @abstractmethod
    def _headers(self) -> dict[str, str]:
        ...

    @abstractmethod
    def _build_body(self, prompt: str, model: str, stream: bool) -> dict[str, Any]:
        ...

    @abstractmethod
    def _extract_parts(self, data: dict[str, Any]) -> list[str]:
        """Text parts of a complete (non-streaming) response, in order."""
        ...

    def _extract_fragment(self, line: str) -> str | None:
        """Text carried by one stream line, or None if it carries none."""
        raise NotImplementedError(f"{self.provider.value} does not stream")

    def _params(self) -> dict[str, str]:
        return {}

    # ------------------------------------------------------------------
    # Public interface
    # ------------------------------------------------------------------

    def send(
        self,
        prompt: str,
        model: str,
        stream: bool = False,
        on_text: TextSink | None = None,
    ) -> str:
        """
        Send ``prompt`` to ``model`` and return the full response text.

        When ``stream`` is true every fragment is passed to ``on_text``
        (stdout by default) as soon as it is decoded, before it is added
        to the returned accumulation.
        """
        echo = on_text if on_text is not None else stdout_echo
        body = self._build_body(prompt, model, stream and self.supports_streaming)
        url = self._endpoint(model)

        logger.debug(
            "%s request: model=%s stream=%s prompt_chars=%d",
            self.provider.value, model, stream, len(prompt),
        )

        try:
            if stream and self.supports_streaming:
                return self._send_streaming(url, body, echo)
            return self._send_blocking(url, body, echo if stream else None)
        except httpx.TimeoutException as exc:
            raise NetworkError(
                f"{self.provider.value} request timed out after {REQUEST_TIMEOUT:.0f}s"
            ) from exc
        except httpx.RequestError as exc:
            raise NetworkError(
                f"Cannot reach {self.provider.value} at {self._base_url}: {exc}"
            ) from exc

    def list_models(self) -> list[str]:
        """Models known for this provider."""
        return list(self.catalogue)

    def close(self) -> None:
        """Release the HTTP client."""
        self._client.close()

    def __enter__(self) -> "BaseAdapter":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Request loops
    # ------------------------------------------------------------------

    def _check_status(self, resp: httpx.Response) -> None:
        if not resp.is_success:
            raise ProviderHttpError(self.provider.value, resp.status_code, resp.text)

    def _send_blocking(
        self, url: str, body: dict[str, Any], echo: TextSink | None
    ) -> str:
        resp = self._client.post(url, json=body, params=self._params())
        self._check_status(resp)
        try:
            data = resp.json()
        except ValueError as exc:
            raise ProviderResponseError(
                f"{self.provider.value} returned a body that is not JSON: {exc}"
            ) from exc
        if not isinstance(data, dict):
            raise ProviderResponseError(
                f"{self.provider.value} returned an unexpected body: {resp.text[:200]!r}"
            )

        parts = self._extract_parts(data)
        if echo is not None:
            for part in parts:
                echo(part)
        return "".join(parts)

    def _send_streaming(self, url: str, body: dict[str, Any], echo: TextSink) -> str:
        accumulated: list[str] = []
        with self._client.stream("POST", url, json=body, params=self._params()) as resp:
            # The body must be read before .text is available on a stream
            if not resp.is_success:
                resp.read()
            self._check_status(resp)
            for line in resp.iter_lines():
                try:
                    fragment = self._extract_fragment(line)
                except MalformedChunkError as exc:
                    logger.warning("%s: %s", self.provider.value, exc)
                    continue
                if not fragment:
                    continue
                echo(fragment)
                accumulated.append(fragment)
        return "".join(accumulated)
