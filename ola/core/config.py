"""
ola.core.config — Provider configuration and user settings.

Two files live in the ola home directory (``~/.ola`` or ``$OLA_HOME``):

    config.yaml     which providers are configured and which one is active
                    (a legacy ``config.json`` is still read when present)
    settings.yaml   default model, prompt prefixes, logging and the
                    thinking-animation glyphs

Both are plain pydantic models serialised with PyYAML.  The core reads them
through ``Config.get_active_provider()`` and ``Settings.load()`` only.
"""

from __future__ import annotations

import json
import logging
import os
import sys
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError

from ola.core.errors import ConfigurationError
from ola.core.models import ProviderIdentity, ProviderName

logger = logging.getLogger("ola.config")

NO_PROVIDER_MESSAGE = "No active provider configured. Run 'ola configure' first."


def get_ola_home() -> Path:
    """Return the ola home directory (``$OLA_HOME`` or ``~/.ola``)."""
    override = os.environ.get("OLA_HOME")
    if override:
        return Path(override).expanduser()
    return Path.home() / ".ola"


def _read_structured(path: Path) -> dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    if path.suffix == ".json":
        data = json.loads(text) if text.strip() else {}
    else:
        data = yaml.safe_load(text) or {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"{path} does not contain a mapping")
    return data


# ---------------------------------------------------------------------------
# Provider configuration
# ---------------------------------------------------------------------------

class ProviderConfig(BaseModel):
    """One configured provider entry."""
    provider: str
    api_key: str = ""
    model: str | None = None
    additional_settings: dict[str, Any] | None = None

    @property
    def base_url(self) -> str | None:
        if self.additional_settings:
            url = self.additional_settings.get("base_url")
            if isinstance(url, str) and url:
                return url
        return None

    def identity(self) -> ProviderIdentity:
        try:
            name = ProviderName.parse(self.provider)
        except ValueError as exc:
            raise ConfigurationError(str(exc)) from exc
        return ProviderIdentity(name=name, base_url=self.base_url or "", api_key=self.api_key)


class Config(BaseModel):
    """All configured providers plus the name of the active one."""
    active_provider: str = ""
    providers: list[ProviderConfig] = Field(default_factory=list)

    @staticmethod
    def path() -> Path:
        home = get_ola_home()
        legacy = home / "config.json"
        current = home / "config.yaml"
        if not current.exists() and legacy.exists():
            return legacy
        return current

    @classmethod
    def load(cls) -> "Config":
        """Load from disk, returning an empty config if no file exists."""
        path = cls.path()
        if not path.exists():
            return cls()
        try:
            return cls(**_read_structured(path))
        except (
            yaml.YAMLError, json.JSONDecodeError, UnicodeDecodeError, ValidationError, TypeError
        ) as exc:
            raise ConfigurationError(f"Invalid configuration file {path}: {exc}") from exc

    def save(self) -> Path:
        """Persist to disk with owner-only permissions. Returns the file path."""
        path = self.path()
        path.parent.mkdir(parents=True, exist_ok=True)
        data = self.model_dump(exclude_none=True)
        if path.suffix == ".json":
            path.write_text(json.dumps(data, indent=2), encoding="utf-8")
        else:
            path.write_text(yaml.safe_dump(data, sort_keys=False), encoding="utf-8")
        if sys.platform != "win32":
            path.chmod(0o600)
        return path

    def add_provider(self, provider: ProviderConfig) -> None:
        """Insert or replace a provider entry and make it active."""
        for i, existing in enumerate(self.providers):
            if existing.provider == provider.provider:
                self.providers[i] = provider
                break
        else:
            self.providers.append(provider)
        self.active_provider = provider.provider

    def find_provider(self, name: str) -> ProviderConfig | None:
        for p in self.providers:
            if p.provider.lower() == name.lower():
                return p
        return None

    def get_active_provider(self) -> ProviderConfig:
        """The active provider entry, or ``ConfigurationError`` if absent."""
        if self.active_provider:
            found = self.find_provider(self.active_provider)
            if found is not None:
                return found
        raise ConfigurationError(NO_PROVIDER_MESSAGE)


_ENV_KEYS: list[tuple[ProviderName, str]] = [
    (ProviderName.OPENAI, "OPENAI_API_KEY"),
    (ProviderName.ANTHROPIC, "ANTHROPIC_API_KEY"),
    (ProviderName.GEMINI, "GEMINI_API_KEY"),
]


def env_api_key(provider: ProviderName) -> str:
    for name, var in _ENV_KEYS:
        if name == provider:
            return os.environ.get(var, "").strip()
    return ""


def detect_provider_from_env() -> ProviderConfig | None:
    """Build a provider entry from well-known API key variables, if any is set."""
    from ola.adapters import PROVIDER_DEFAULTS  # Lazy to avoid circular import

    for name, var in _ENV_KEYS:
        key = os.environ.get(var, "").strip()
        if key:
            model = os.environ.get("OLA_MODEL") or PROVIDER_DEFAULTS[name]["model"]
            return ProviderConfig(provider=name.value, api_key=key, model=model)
    return None


def validate_provider_config(config: ProviderConfig) -> None:
    """Raise ``ConfigurationError`` describing the first problem found."""
    try:
        name = ProviderName.parse(config.provider)
    except ValueError as exc:
        raise ConfigurationError(str(exc)) from exc

    if name != ProviderName.OLLAMA and not config.api_key.strip():
        raise ConfigurationError("API key cannot be empty")
    if name == ProviderName.OPENAI and not config.api_key.startswith("sk-"):
        raise ConfigurationError("OpenAI API key should start with 'sk-'")
    if name == ProviderName.ANTHROPIC and not config.api_key.startswith("sk-ant-"):
        raise ConfigurationError("Anthropic API key should start with 'sk-ant-'")
    if not config.model:
        raise ConfigurationError(f"{name.value} requires a model name")


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

class PromptTemplate(BaseModel):
    """Labels written before each section of a structured prompt."""
    goals_prefix: str = "🏆 Goals: "
    return_format_prefix: str = "📝 Return Format: "
    warnings_prefix: str = "⚠️ Warnings: "


class DefaultSettings(BaseModel):
    """Defaults for command flags."""
    return_format: str = "text"
    quiet: bool = False
    no_thinking: bool = False
    clipboard: bool = False


class ThinkingAnimation(BaseModel):
    emojis: list[str] = Field(default_factory=lambda: ["🌊", "🏄", "🌊", "🏄‍♀️"])
    text: str = "thinking..."


class BehaviorSettings(BaseModel):
    log_file: str = "sessions.jsonl"
    enable_logging: bool = True
    thinking_animation: ThinkingAnimation = Field(default_factory=ThinkingAnimation)


class Settings(BaseModel):
    """User settings stored in ``settings.yaml``."""
    default_model: str = "gpt-5"
    prompt_template: PromptTemplate = Field(default_factory=PromptTemplate)
    defaults: DefaultSettings = Field(default_factory=DefaultSettings)
    behavior: BehaviorSettings = Field(default_factory=BehaviorSettings)

    @staticmethod
    def path() -> Path:
        return get_ola_home() / "settings.yaml"

    @classmethod
    def load(cls) -> "Settings":
        """Load from disk; a missing file is created with the defaults."""
        path = cls.path()
        if not path.exists():
            settings = cls()
            try:
                settings.save()
            except OSError as exc:
                logger.warning("Could not write default settings to %s: %s", path, exc)
            return settings
        try:
            return cls(**_read_structured(path))
        except (yaml.YAMLError, UnicodeDecodeError, ValidationError, TypeError) as exc:
            raise ConfigurationError(f"Invalid settings file {path}: {exc}") from exc

    @classmethod
    def load_or_default(cls) -> "Settings":
        """Like ``load()`` but falls back to defaults on a broken file."""
        try:
            return cls.load()
        except ConfigurationError as exc:
            logger.warning("%s — using default settings", exc)
            return cls()

    def save(self) -> Path:
        path = self.path()
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.to_yaml(), encoding="utf-8")
        return path

    def to_yaml(self) -> str:
        return yaml.safe_dump(self.model_dump(), sort_keys=False, allow_unicode=True)


def resolve_model(provider: ProviderConfig, settings: Settings) -> str:
    """Model from the provider entry, else the settings default."""
    return provider.model or settings.default_model
