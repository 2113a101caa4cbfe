"""Configuration resolution for the summarizer client."""
from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional

import yaml


class ConfigError(ValueError):
    """Raised when the configuration file or overrides are invalid."""


class Provider(str, Enum):
    OLLAMA = "ollama"
    OPENAI = "openai"
    MOCK = "mock"

    @classmethod
    def parse(cls, value: Any) -> "Provider":
        """Map a configured provider name onto a known provider.

        Unknown or empty names fall back to the offline mock provider.
        """
        if isinstance(value, Provider):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        return cls.MOCK


DEFAULT_PROVIDER = Provider.OLLAMA
DEFAULT_MODEL = "llama2"
DEFAULT_MAX_SUMMARY_LENGTH = 3
DEFAULT_TIMEOUT = 60.0

_ENV_OVERRIDES = {
    "SUMMARIZER_PROVIDER": "provider",
    "SUMMARIZER_MODEL": "model",
    "SUMMARIZER_MAX_SUMMARY_LENGTH": "max_summary_length",
    "SUMMARIZER_TIMEOUT": "timeout",
}


@dataclass(frozen=True)
class SummarizerConfig:
    """Settings read by the summarizer on every call."""

    provider: Provider = DEFAULT_PROVIDER
    max_summary_length: int = DEFAULT_MAX_SUMMARY_LENGTH
    model: str = DEFAULT_MODEL
    auto_summarize: bool = False
    timeout: float = DEFAULT_TIMEOUT

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "SummarizerConfig":
        provider = Provider.parse(data.get("provider", DEFAULT_PROVIDER.value))

        max_length = _coerce_int(data.get("max_summary_length", DEFAULT_MAX_SUMMARY_LENGTH), "max_summary_length")
        if max_length < 1:
            raise ConfigError(f"max_summary_length must be a positive integer, got {max_length}")

        model = data.get("model", DEFAULT_MODEL)
        if not isinstance(model, str) or not model.strip():
            raise ConfigError("model must be a non-empty string")

        timeout = _coerce_float(data.get("timeout", DEFAULT_TIMEOUT), "timeout")
        if timeout <= 0:
            raise ConfigError(f"timeout must be positive, got {timeout}")

        return cls(
            provider=provider,
            max_summary_length=max_length,
            model=model.strip(),
            auto_summarize=_coerce_bool(data.get("auto_summarize", False)),
            timeout=timeout,
        )

    def with_overrides(self, **overrides: Any) -> "SummarizerConfig":
        values = {key: value for key, value in overrides.items() if value is not None}
        if not values:
            return self
        merged = self.as_dict()
        merged.update(values)
        return SummarizerConfig.from_mapping(merged)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "provider": self.provider.value,
            "max_summary_length": self.max_summary_length,
            "model": self.model,
            "auto_summarize": self.auto_summarize,
            "timeout": self.timeout,
        }


def get_default_config_path() -> Path:
    override = os.getenv("CONVERSATION_SUMMARIZER_CONFIG")
    if override and override.strip():
        return Path(override.strip()).expanduser()
    return Path("~/.config/conversation-summarizer/config.yaml").expanduser()


def get_openai_key_path() -> Path:
    return Path("~/.config/openai/key").expanduser()


def load_openai_api_key() -> Optional[str]:
    env_key = os.getenv("OPENAI_API_KEY")
    if env_key and env_key.strip():
        return env_key.strip()

    try:
        contents = get_openai_key_path().read_text(encoding="utf-8").strip()
    except OSError:
        return None
    return contents or None


class ConfigLoader:
    """Reads the YAML config file, environment overrides and CLI overrides.

    ``load`` re-reads the file each time it is called so the summarizer
    picks up edits on its next request.
    """

    def __init__(
        self,
        path: Optional[Path] = None,
        *,
        overrides: Optional[Mapping[str, Any]] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> None:
        self.path = Path(path).expanduser() if path else get_default_config_path()
        self._overrides = {key: value for key, value in (overrides or {}).items() if value is not None}
        self._environ = environ if environ is not None else os.environ

    def __call__(self) -> SummarizerConfig:
        return self.load()

    def load(self) -> SummarizerConfig:
        data: Dict[str, Any] = dict(self._read_file())
        for env_name, key in _ENV_OVERRIDES.items():
            value = self._environ.get(env_name)
            if value is not None and value.strip():
                data[key] = value.strip()
        data.update(self._overrides)
        return SummarizerConfig.from_mapping(data)

    def _read_file(self) -> Mapping[str, Any]:
        try:
            text = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as exc:
            raise ConfigError(f"Unable to read config file {self.path}: {exc}") from exc

        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise ConfigError(f"Config file {self.path} is not valid YAML: {exc}") from exc
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigError(f"Config file {self.path} must contain a mapping")
        # Accept the camelCase keys used by editor settings files as well.
        return {_normalize_key(str(key)): value for key, value in data.items()}


def static_config(config: SummarizerConfig) -> Callable[[], SummarizerConfig]:
    """Wrap a fixed config in the zero-argument callable the client expects."""

    def resolve() -> SummarizerConfig:
        return config

    return resolve


def _normalize_key(key: str) -> str:
    aliases = {
        "maxSummaryLength": "max_summary_length",
        "autoSummarize": "auto_summarize",
    }
    return aliases.get(key, key)


def _coerce_int(value: Any, name: str) -> int:
    if isinstance(value, bool):
        raise ConfigError(f"{name} must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{name} must be an integer, got {value!r}") from exc


def _coerce_float(value: Any, name: str) -> float:
    if isinstance(value, bool):
        raise ConfigError(f"{name} must be a number")
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{name} must be a number, got {value!r}") from exc


def _coerce_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)
