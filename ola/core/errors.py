"""
ola.core.errors — Error taxonomy shared by adapters, orchestration and CLI.

Fatal errors (configuration, network, HTTP, unreadable response) abort the
current call and bubble up to the orchestrator.  ``MalformedChunkError`` is
recovered inside the stream loop; ``ClipboardError`` and ``LoggingError``
are always reported as warnings and never stop execution.
"""

from __future__ import annotations


class OlaError(Exception):
    """Base class for every error raised by ola."""


class ConfigurationError(OlaError):
    """No active provider, or a required configuration field is missing."""


class NetworkError(OlaError):
    """Timeout, refused connection or any other transport failure."""


class ProviderHttpError(OlaError):
    """The provider answered with a non-2xx status."""

    def __init__(self, provider: str, status: int, body: str = "") -> None:
        self.provider = provider
        self.status = status
        self.body = body
        detail = f": {body[:500]}" if body else ""
        super().__init__(f"{provider} API error {status}{detail}")


class ProviderResponseError(OlaError):
    """A non-streaming response body could not be parsed."""


class MalformedChunkError(OlaError):
    """A single streaming line could not be decoded; the line is skipped."""

    def __init__(self, line: str, reason: str = "") -> None:
        self.line = line
        super().__init__(f"Malformed stream line ({reason}): {line[:120]!r}")


class ClipboardError(OlaError):
    """Copying to the system clipboard failed."""


class LoggingError(OlaError):
    """Appending to the session log failed."""


class ProjectError(OlaError):
    """A project, goal, context or file could not be found or stored."""
