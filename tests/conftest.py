"""Shared fixtures: an isolated ola home and a fake provider transport."""

from __future__ import annotations

import json
from typing import Callable

import httpx
import pytest

from ola.agent.llm import ProviderClient
from ola.core.models import ProviderIdentity, ProviderName
from ola.core.config import Settings


@pytest.fixture(autouse=True)
def ola_home(tmp_path, monkeypatch):
    """Point ``OLA_HOME`` and ``HOME`` at a temporary directory."""
    home = tmp_path / "home"
    home.mkdir()
    ola = home / ".ola"
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("OLA_HOME", str(ola))
    monkeypatch.delenv("OLA_RECURSION_WAVE", raising=False)
    for var in ("OPENAI_API_KEY", "ANTHROPIC_API_KEY", "GEMINI_API_KEY", "OLA_MODEL"):
        monkeypatch.delenv(var, raising=False)
    return ola


def sse_body(*chunks: str) -> bytes:
    """An OpenAI-style event stream carrying ``chunks`` as delta contents."""
    lines = [
        "data: " + json.dumps({"choices": [{"delta": {"content": c}}]}) + "\n\n"
        for c in chunks
    ]
    lines.append("data: [DONE]\n\n")
    return "".join(lines).encode("utf-8")


class ScriptedOpenAI:
    """MockTransport handler that answers each request with the next scripted reply."""

    def __init__(self, replies: list[list[str]]) -> None:
        self.replies = list(replies)
        self.prompts: list[str] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        self.prompts.append(body["messages"][0]["content"])
        chunks = self.replies.pop(0) if self.replies else ["(no more replies)"]
        return httpx.Response(
            200,
            content=sse_body(*chunks),
            headers={"content-type": "text/event-stream"},
        )


@pytest.fixture
def scripted_client() -> Callable[[list[list[str]]], tuple[ProviderClient, ScriptedOpenAI]]:
    def make(replies: list[list[str]]):
        handler = ScriptedOpenAI(replies)
        identity = ProviderIdentity(name=ProviderName.OPENAI, api_key="sk-test")
        return ProviderClient(identity, transport=httpx.MockTransport(handler)), handler
    return make


@pytest.fixture
def quiet_settings() -> Settings:
    settings = Settings()
    settings.behavior.enable_logging = False
    return settings
