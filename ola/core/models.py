"""
ola.core.models — Pydantic schemas for providers, calls and orchestration.

Immutable values (identities, requests, responses, recursion context) are
frozen models; the conversation history is the only structure that grows,
and it is append-only for the lifetime of one feedback session.
"""

from __future__ import annotations

import os
from enum import StrEnum
from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, Field, model_validator


RECURSION_WAVE_ENV = "OLA_RECURSION_WAVE"
FEEDBACK_MARKER = "FEEDBACK:"


# ---------------------------------------------------------------------------
# Providers
# ---------------------------------------------------------------------------

class ProviderName(StrEnum):
    """The LLM backends ola can talk to."""
    OPENAI = "OpenAI"
    ANTHROPIC = "Anthropic"
    OLLAMA = "Ollama"
    GEMINI = "Gemini"

    @classmethod
    def parse(cls, value: str) -> "ProviderName":
        """Case-insensitive lookup; ``google`` is accepted for Gemini."""
        wanted = value.strip().lower()
        if wanted == "google":
            return cls.GEMINI
        for member in cls:
            if member.value.lower() == wanted:
                return member
        raise ValueError(
            f"Unsupported provider: '{value}'. "
            f"Supported: {', '.join(m.value for m in cls)}"
        )


DEFAULT_BASE_URLS: dict[ProviderName, str] = {
    ProviderName.OPENAI: "https://api.openai.com",
    ProviderName.ANTHROPIC: "https://api.anthropic.com",
    ProviderName.OLLAMA: "http://localhost:11434",
    ProviderName.GEMINI: "https://generativelanguage.googleapis.com",
}


class ProviderIdentity(BaseModel):
    """Which backend to call and how to authenticate. Fixed for one run."""
    model_config = ConfigDict(frozen=True)

    name: ProviderName
    base_url: str = ""
    api_key: str = Field(default="", repr=False)

    @model_validator(mode="before")
    @classmethod
    def _default_base_url(cls, data: Any) -> Any:
        if isinstance(data, dict):
            data = dict(data)
            name = data.get("name")
            if isinstance(name, str) and not isinstance(name, ProviderName):
                name = ProviderName.parse(name)
                data["name"] = name
            base_url = data.get("base_url") or (DEFAULT_BASE_URLS.get(name, "") if name else "")
            data["base_url"] = base_url.rstrip("/")
        return data


# ---------------------------------------------------------------------------
# Single calls
# ---------------------------------------------------------------------------

class InvocationRequest(BaseModel):
    """One prompt sent to one model."""
    model_config = ConfigDict(frozen=True)

    prompt: str
    model: str
    stream: bool = True


class AccumulatedResponse(BaseModel):
    """Full text returned by a completed call."""
    model_config = ConfigDict(frozen=True)

    text: str
    model: str


class PromptRequest(BaseModel):
    """The user-facing inputs of a structured prompt."""
    goals: str
    return_format: str = "text"
    warnings: str = ""
    context: str | None = None


class ProjectFileContent(BaseModel):
    """A project file already decoded to text."""
    model_config = ConfigDict(frozen=True)

    filename: str
    text: str


class ProjectContent(BaseModel):
    """What the prompt assembler reads from a project."""
    model_config = ConfigDict(frozen=True)

    name: str
    goals: list[str] = Field(default_factory=list)
    contexts: list[str] = Field(default_factory=list)
    files: list[ProjectFileContent] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Iterative feedback
# ---------------------------------------------------------------------------

class FeedbackInteraction(BaseModel):
    """
    One entry of the conversation history.

    Response entries carry the goals that produced them as ``marker``;
    feedback entries carry ``FEEDBACK:``.
    """
    model_config = ConfigDict(frozen=True)

    iteration: int
    marker: str
    text: str

    @property
    def is_feedback(self) -> bool:
        return self.marker == FEEDBACK_MARKER


class ConversationHistory(BaseModel):
    """Ordered, append-only record of one iterative-feedback session."""
    entries: list[FeedbackInteraction] = Field(default_factory=list)

    def append(self, entry: FeedbackInteraction) -> None:
        self.entries.append(entry)

    def add_response(self, iteration: int, goals: str, text: str) -> FeedbackInteraction:
        entry = FeedbackInteraction(iteration=iteration, marker=goals, text=text)
        self.append(entry)
        return entry

    def add_feedback(self, iteration: int, text: str) -> FeedbackInteraction:
        entry = FeedbackInteraction(iteration=iteration, marker=FEEDBACK_MARKER, text=text)
        self.append(entry)
        return entry

    def responses(self) -> list[FeedbackInteraction]:
        return [e for e in self.entries if not e.is_feedback]

    def feedback(self) -> list[FeedbackInteraction]:
        return [e for e in self.entries if e.is_feedback]

    @property
    def last_response(self) -> FeedbackInteraction | None:
        responses = self.responses()
        return responses[-1] if responses else None


# ---------------------------------------------------------------------------
# Recursion
# ---------------------------------------------------------------------------

class RecursionContext(BaseModel):
    """
    Position of this process in a chain of recursion waves.

    Each wave is a separate process; the wave number travels to the child
    through ``OLA_RECURSION_WAVE``.  Waves are numbered from 0, so a chain
    of ``max_waves`` waves runs waves ``0 .. max_waves - 1``.
    """
    model_config = ConfigDict(frozen=True)

    wave: int = Field(default=0, ge=0, le=255)
    max_waves: int = Field(default=0, ge=0, le=255)

    @model_validator(mode="after")
    def _check_bounds(self) -> "RecursionContext":
        if self.wave > self.max_waves:
            raise ValueError(f"wave {self.wave} exceeds max_waves {self.max_waves}")
        return self

    @classmethod
    def from_env(cls, max_waves: int, environ: Mapping[str, str] | None = None) -> "RecursionContext":
        """Read the current wave from the environment (default 0)."""
        env = os.environ if environ is None else environ
        return cls(wave=min(read_wave_number(env) or 0, max_waves), max_waves=max_waves)

    @property
    def next_wave(self) -> int:
        return self.wave + 1

    @property
    def should_spawn(self) -> bool:
        """True while another wave is still owed after this one."""
        return self.next_wave < self.max_waves

    def child_env(self, environ: Mapping[str, str] | None = None) -> dict[str, str]:
        env = dict(os.environ if environ is None else environ)
        env[RECURSION_WAVE_ENV] = str(self.next_wave)
        return env


def read_wave_number(environ: Mapping[str, str] | None = None) -> int | None:
    """The wave number from ``OLA_RECURSION_WAVE``, or None when unset/invalid."""
    env = os.environ if environ is None else environ
    raw = env.get(RECURSION_WAVE_ENV)
    if raw is None:
        return None
    try:
        value = int(raw)
    except ValueError:
        return None
    return value if 0 <= value <= 255 else None
