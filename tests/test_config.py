"""Tests for configuration loading."""
import typing

import pytest

from conversation_summarizer.summaries import ConfigError, ConfigLoader, Provider, SummarizerConfig
from conversation_summarizer.summaries.config import load_openai_api_key, static_config


class TestProvider:
    @pytest.mark.parametrize(
        "value, expected",
        [
            ("ollama", Provider.OLLAMA),
            ("OpenAI", Provider.OPENAI),
            (" mock ", Provider.MOCK),
            ("gemini", Provider.MOCK),
            ("", Provider.MOCK),
            (None, Provider.MOCK),
        ],
    )
    def test_parse(self, value, expected):
        assert Provider.parse(value) is expected


class TestSummarizerConfig:
    def test_defaults(self):
        config = SummarizerConfig()
        assert config.provider is Provider.OLLAMA
        assert config.max_summary_length == 3
        assert config.model == "llama2"
        assert config.auto_summarize is False

    @pytest.mark.parametrize(
        "data",
        [
            {"max_summary_length": 0},
            {"max_summary_length": "three"},
            {"max_summary_length": True},
            {"model": ""},
            {"timeout": -1},
        ],
    )
    def test_invalid_values(self, data):
        with pytest.raises(ConfigError):
            SummarizerConfig.from_mapping(data)

    def test_with_overrides_ignores_none(self):
        config = SummarizerConfig().with_overrides(provider="mock", model=None)
        assert config.provider is Provider.MOCK
        assert config.model == "llama2"

    def test_static_config_returns_same_instance(self):
        config = SummarizerConfig(provider=Provider.MOCK)
        resolve = static_config(config)
        assert resolve() is config
        assert typing.get_type_hints(static_config)["return"] == typing.Callable[[], SummarizerConfig]


class TestConfigLoader:
    def test_missing_file_gives_defaults(self, tmp_path):
        loader = ConfigLoader(tmp_path / "absent.yaml", environ={})
        assert loader.load() == SummarizerConfig()

    def test_reads_yaml_with_editor_style_keys(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("provider: openai\nmaxSummaryLength: 5\nautoSummarize: true\n", encoding="utf-8")

        config = ConfigLoader(path, environ={}).load()
        assert config.provider is Provider.OPENAI
        assert config.max_summary_length == 5
        assert config.auto_summarize is True

    def test_environment_then_overrides_win(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("provider: openai\nmodel: llama2\n", encoding="utf-8")
        environ = {"SUMMARIZER_PROVIDER": "ollama", "SUMMARIZER_MODEL": "mistral"}

        config = ConfigLoader(path, overrides={"model": "phi3"}, environ=environ).load()
        assert config.provider is Provider.OLLAMA
        assert config.model == "phi3"

    def test_file_changes_apply_on_next_load(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("provider: mock\n", encoding="utf-8")
        loader = ConfigLoader(path, environ={})
        assert loader().provider is Provider.MOCK

        path.write_text("provider: openai\n", encoding="utf-8")
        assert loader().provider is Provider.OPENAI

    @pytest.mark.parametrize("content", ["provider: [unclosed", "- just\n- a list\n"])
    def test_invalid_file_raises(self, tmp_path, content):
        path = tmp_path / "config.yaml"
        path.write_text(content, encoding="utf-8")
        with pytest.raises(ConfigError):
            ConfigLoader(path, environ={}).load()


class TestOpenAIKey:
    def test_environment_key(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "  sk-env  ")
        assert load_openai_api_key() == "sk-env"

    def test_key_file_fallback(self, tmp_path):
        key_path = tmp_path / "home" / ".config" / "openai" / "key"
        key_path.parent.mkdir(parents=True)
        key_path.write_text("sk-file\n", encoding="utf-8")
        assert load_openai_api_key() == "sk-file"

    def test_missing_key(self):
        assert load_openai_api_key() is None
