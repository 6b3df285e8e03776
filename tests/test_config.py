"""Provider configuration, settings and core value types."""

from __future__ import annotations

import json
import os
import sys

import pytest
from pydantic import ValidationError

from ola.core.config import (
    Config,
    ProviderConfig,
    Settings,
    detect_provider_from_env,
    env_api_key,
    resolve_model,
    validate_provider_config,
)
from ola.core.errors import ConfigurationError
from ola.core.models import (
    RECURSION_WAVE_ENV,
    ProviderIdentity,
    ProviderName,
    RecursionContext,
    read_wave_number,
)
from ola.utils.session_log import SessionLog


class TestProviderName:
    def test_parse_is_case_insensitive(self):
        assert ProviderName.parse("openai") is ProviderName.OPENAI
        assert ProviderName.parse(" OLLAMA ") is ProviderName.OLLAMA
        assert ProviderName.parse("google") is ProviderName.GEMINI

    def test_unknown_provider(self):
        with pytest.raises(ValueError, match="Unsupported provider"):
            ProviderName.parse("mistral")

    def test_identity_default_base_url(self):
        identity = ProviderIdentity(name="anthropic", api_key="secret-key")
        assert identity.name is ProviderName.ANTHROPIC
        assert identity.base_url == "https://api.anthropic.com"
        assert "secret-key" not in repr(identity)


class TestConfig:
    def test_empty_when_missing(self):
        config = Config.load()
        assert config.providers == []
        with pytest.raises(ConfigurationError, match="ola configure"):
            config.get_active_provider()

    def test_roundtrip_and_permissions(self, ola_home):
        config = Config()
        config.add_provider(ProviderConfig(provider="OpenAI", api_key="sk-1", model="gpt-4o"))
        path = config.save()

        assert path == ola_home / "config.yaml"
        if sys.platform != "win32":
            assert oct(path.stat().st_mode & 0o777) == oct(0o600)
        loaded = Config.load()
        assert loaded.get_active_provider().model == "gpt-4o"

    def test_add_provider_replaces_and_activates(self):
        config = Config()
        config.add_provider(ProviderConfig(provider="OpenAI", api_key="sk-1", model="a"))
        config.add_provider(ProviderConfig(provider="Ollama", model="llama2"))
        config.add_provider(ProviderConfig(provider="OpenAI", api_key="sk-2", model="b"))
        assert len(config.providers) == 2
        assert config.active_provider == "OpenAI"
        assert config.get_active_provider().api_key == "sk-2"

    def test_legacy_json_is_read(self, ola_home):
        ola_home.mkdir(parents=True)
        (ola_home / "config.json").write_text(
            json.dumps({
                "active_provider": "Ollama",
                "providers": [{"provider": "Ollama", "api_key": "", "model": "llama2"}],
            }),
            encoding="utf-8",
        )
        assert Config.load().get_active_provider().identity().name is ProviderName.OLLAMA

    def test_invalid_file(self, ola_home):
        ola_home.mkdir(parents=True)
        (ola_home / "config.yaml").write_text("- just\n- a list\n", encoding="utf-8")
        with pytest.raises(ConfigurationError):
            Config.load()

    def test_undecodable_file(self, ola_home):
        ola_home.mkdir(parents=True)
        (ola_home / "config.yaml").write_bytes(b"active_provider: \xff\xfe\n")
        with pytest.raises(ConfigurationError, match="Invalid configuration"):
            Config.load()

    def test_base_url_override(self):
        entry = ProviderConfig(
            provider="OpenAI", api_key="sk-1", additional_settings={"base_url": "http://x:1/"}
        )
        assert entry.identity().base_url == "http://x:1"


class TestValidation:
    @pytest.mark.parametrize(
        "entry, message",
        [
            (ProviderConfig(provider="OpenAI", api_key="", model="m"), "cannot be empty"),
            (ProviderConfig(provider="OpenAI", api_key="abc", model="m"), "sk-"),
            (ProviderConfig(provider="Anthropic", api_key="sk-x", model="m"), "sk-ant-"),
            (ProviderConfig(provider="Gemini", api_key="g", model=None), "model"),
        ],
    )
    def test_rejects(self, entry, message):
        with pytest.raises(ConfigurationError, match=message):
            validate_provider_config(entry)

    def test_ollama_needs_no_key(self):
        validate_provider_config(ProviderConfig(provider="Ollama", model="llama2"))


class TestEnvironment:
    def test_detect_from_env(self, monkeypatch):
        assert detect_provider_from_env() is None
        monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-ant-xyz")
        detected = detect_provider_from_env()
        assert detected.provider == "Anthropic"
        assert detected.model == "claude-3-opus-20240229"

    def test_model_override(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-1")
        monkeypatch.setenv("OLA_MODEL", "o3")
        assert detect_provider_from_env().model == "o3"
        assert env_api_key(ProviderName.OPENAI) == "sk-1"
        assert env_api_key(ProviderName.OLLAMA) == ""


class TestSettings:
    def test_load_writes_defaults(self, ola_home):
        settings = Settings.load()
        assert (ola_home / "settings.yaml").exists()
        assert settings.defaults.return_format == "text"
        assert settings.behavior.thinking_animation.text == "thinking..."

    def test_roundtrip(self):
        settings = Settings()
        settings.default_model = "o3"
        settings.behavior.enable_logging = False
        settings.save()
        loaded = Settings.load()
        assert loaded.default_model == "o3"
        assert loaded.behavior.enable_logging is False

    def test_broken_file_falls_back(self, ola_home):
        ola_home.mkdir(parents=True)
        (ola_home / "settings.yaml").write_text("default_model: [unclosed", encoding="utf-8")
        with pytest.raises(ConfigurationError):
            Settings.load()
        assert Settings.load_or_default().default_model == "gpt-5"

    def test_undecodable_file(self, ola_home):
        ola_home.mkdir(parents=True)
        (ola_home / "settings.yaml").write_bytes(b"default_model: \xff\n")
        with pytest.raises(ConfigurationError, match="Invalid settings"):
            Settings.load()

    def test_resolve_model(self):
        settings = Settings(default_model="fallback")
        assert resolve_model(ProviderConfig(provider="OpenAI", model="m"), settings) == "m"
        assert resolve_model(ProviderConfig(provider="OpenAI"), settings) == "fallback"


class TestRecursionContext:
    def test_from_env(self):
        assert RecursionContext.from_env(3, {}).wave == 0
        ctx = RecursionContext.from_env(3, {RECURSION_WAVE_ENV: "1"})
        assert ctx.wave == 1
        assert ctx.should_spawn
        assert not RecursionContext.from_env(3, {RECURSION_WAVE_ENV: "2"}).should_spawn

    def test_child_env_increments(self):
        env = RecursionContext(wave=0, max_waves=2).child_env({"PATH": "/bin"})
        assert env == {"PATH": "/bin", RECURSION_WAVE_ENV: "1"}

    def test_invalid_values(self):
        assert read_wave_number({RECURSION_WAVE_ENV: "abc"}) is None
        assert read_wave_number({RECURSION_WAVE_ENV: "999"}) is None
        with pytest.raises(ValidationError):
            RecursionContext(wave=4, max_waves=3)


class TestSessionLog:
    def test_relative_path_under_home(self, ola_home):
        log = SessionLog("sessions.jsonl")
        assert log.path == ola_home / "sessions.jsonl"

    def test_wave_recorded_when_set(self, tmp_path):
        log = SessionLog(tmp_path / "s.jsonl")
        entry = log.record_prompt("g", "f", "w", "m", "abc", environ={RECURSION_WAVE_ENV: "2"})
        assert entry["recursion_wave"] == 2
        assert log.read_entries()[0]["output_length"] == 3

    def test_disabled_log_writes_nothing(self, tmp_path):
        log = SessionLog(tmp_path / "s.jsonl", enabled=False)
        log.record_raw("p", "m", "r")
        assert not os.path.exists(log.path)


class TestProviderClientFromConfig:
    def test_active_provider_is_used(self):
        from ola.agent.llm import ProviderClient

        config = Config()
        config.add_provider(ProviderConfig(provider="Ollama", model="llama2"))
        with ProviderClient.from_config(config) as client:
            assert client.provider_name is ProviderName.OLLAMA
            assert client.identity.base_url == "http://localhost:11434"

    def test_no_active_provider(self):
        from ola.agent.llm import ProviderClient

        with pytest.raises(ConfigurationError):
            ProviderClient.from_config(Config())
