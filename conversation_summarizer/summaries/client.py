"""Provider-agnostic summarization client used by the summary store."""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional, Union

import httpx

from .config import ConfigError, Provider, SummarizerConfig, static_config
from .prompts import (
    CONNECTION_TEST_TEXT,
    MOCK_SUMMARY_TEMPLATE,
    build_ollama_prompt,
    build_openai_messages,
)
from .types import ConnectionStatus, count_words


class SummarizerError(RuntimeError):
    """Base error raised for summarization failures."""


class BackendUnavailable(SummarizerError):
    """Raised when the local model server refuses the connection."""


class TransportError(SummarizerError):
    """Raised for network failures other than a refused local connection."""


class MissingCredentials(SummarizerError):
    """Raised when the cloud provider is selected without an API key."""


class InvalidResponse(SummarizerError):
    """Raised when a JSON response lacks the expected summary field."""


class ResponseParseError(SummarizerError):
    """Raised when a provider response body is not valid JSON."""

    def __init__(self, message: str, detail: str = "") -> None:
        super().__init__(message)
        self.detail = detail


OLLAMA_URL = "http://localhost:11434/api/generate"
OPENAI_URL = "https://api.openai.com:443/v1/chat/completions"
OPENAI_MODEL = "gpt-3.5-turbo"
OPENAI_MAX_TOKENS = 150
SAMPLING_TEMPERATURE = 0.3
OLLAMA_TOP_P = 0.9

_PREAMBLE_PATTERN = re.compile(
    r"^(?:summary:|here(?:'|’)s a summary:|the text discusses:|this text is about:)\s*",
    re.IGNORECASE,
)
_WHITESPACE_PATTERN = re.compile(r"\s+")
_TERMINAL_PUNCTUATION = (".", "!", "?")


def clean_summary(summary: str) -> str:
    """Normalize raw provider output into a single tidy paragraph.

    Whitespace runs (blank lines included) collapse to single spaces, leading
    boilerplate such as ``Summary:`` is stripped, and a full stop is appended
    when the text does not already end in terminal punctuation. Applying the
    function twice gives the same result as applying it once.
    """
    cleaned = _WHITESPACE_PATTERN.sub(" ", summary).strip()
    while True:
        stripped = _PREAMBLE_PATTERN.sub("", cleaned, count=1).strip()
        if stripped == cleaned:
            break
        cleaned = stripped
    if cleaned and not cleaned.endswith(_TERMINAL_PUNCTUATION):
        cleaned += "."
    return cleaned


def mock_summary(text: str, max_length: int) -> str:
    """Deterministic offline placeholder summary."""
    return MOCK_SUMMARY_TEMPLATE.format(max_length=max_length, word_count=count_words(text))


# ------------------------------
# Backend variants
# ------------------------------
@dataclass(frozen=True)
class OllamaBackend:
    model: str
    url: str = OLLAMA_URL


@dataclass(frozen=True)
class OpenAIBackend:
    api_key: Optional[str]
    model: str = OPENAI_MODEL
    url: str = OPENAI_URL


@dataclass(frozen=True)
class MockBackend:
    pass


Backend = Union[OllamaBackend, OpenAIBackend, MockBackend]
ConfigSource = Union[SummarizerConfig, Callable[[], SummarizerConfig]]


class SummarizerClient:
    """Turns text into a normalized summary through the configured provider."""

    def __init__(
        self,
        config: ConfigSource,
        *,
        openai_api_key: Optional[str] = None,
        ollama_url: str = OLLAMA_URL,
        openai_url: str = OPENAI_URL,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._config_source = static_config(config) if isinstance(config, SummarizerConfig) else config
        self._openai_api_key = openai_api_key.strip() if openai_api_key and openai_api_key.strip() else None
        self._ollama_url = ollama_url
        self._openai_url = openai_url
        self._logger = logger or logging.getLogger(__name__)
        self._client = httpx.AsyncClient(
            headers={"Content-Type": "application/json"},
            transport=transport,
        )

    async def __aenter__(self) -> "SummarizerClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def close(self) -> None:
        await self._client.aclose()

    def current_config(self) -> SummarizerConfig:
        return self._config_source()

    def resolve_backend(self, config: SummarizerConfig) -> Backend:
        if config.provider is Provider.OLLAMA:
            return OllamaBackend(model=config.model, url=self._ollama_url)
        if config.provider is Provider.OPENAI:
            return OpenAIBackend(api_key=self._openai_api_key, url=self._openai_url)
        return MockBackend()

    # ------------------------------
    # Summaries
    # ------------------------------
    async def summarize(self, text: str) -> str:
        """Summarize ``text`` with whichever provider is configured right now."""

        config = self.current_config()
        backend = self.resolve_backend(config)
        max_length = config.max_summary_length
        self._log_debug("dispatch", backend, {"max_length": max_length, "words": count_words(text)})

        if isinstance(backend, OllamaBackend):
            return await self._summarize_ollama(backend, text, max_length, config.timeout)
        if isinstance(backend, OpenAIBackend):
            return await self._summarize_openai(backend, text, max_length, config.timeout)
        if isinstance(backend, MockBackend):
            return mock_summary(text, max_length)
        raise TypeError(f"Unsupported summarizer backend: {backend!r}")

    async def summarize_with_ollama(self, text: str, max_length: int) -> str:
        config = self.current_config()
        backend = OllamaBackend(model=config.model, url=self._ollama_url)
        return await self._summarize_ollama(backend, text, max_length, config.timeout)

    async def summarize_with_openai(self, text: str, max_length: int) -> str:
        config = self.current_config()
        backend = OpenAIBackend(api_key=self._openai_api_key, url=self._openai_url)
        return await self._summarize_openai(backend, text, max_length, config.timeout)

    async def test_connection(self) -> ConnectionStatus:
        """Round-trip a canned sentence through the provider for diagnostics."""
        try:
            summary = await self.summarize(CONNECTION_TEST_TEXT)
        except (SummarizerError, ConfigError) as exc:
            return ConnectionStatus(success=False, message=f"Connection failed: {exc}")
        return ConnectionStatus(
            success=True,
            message=f"Connection successful. Test summary: {summary[:50]}...",
        )

    async def _summarize_ollama(
        self, backend: OllamaBackend, text: str, max_length: int, timeout: float
    ) -> str:
        payload = {
            "model": backend.model,
            "prompt": build_ollama_prompt(text, max_length),
            "stream": False,
            "options": {"temperature": SAMPLING_TEMPERATURE, "top_p": OLLAMA_TOP_P},
        }
        response = await self._post("Ollama", backend.url, payload, timeout=timeout, local=True)
        data = self._safe_json("Ollama", response)

        content = data.get("response")
        if not isinstance(content, str) or not content.strip():
            raise InvalidResponse(_invalid_message("Ollama", data, response))
        return self._finish("Ollama", content, data, response)

    async def _summarize_openai(
        self, backend: OpenAIBackend, text: str, max_length: int, timeout: float
    ) -> str:
        if not backend.api_key:
            raise MissingCredentials(
                "OpenAI API key not found. Set OPENAI_API_KEY or place a key in ~/.config/openai/key."
            )

        payload = {
            "model": backend.model,
            "messages": build_openai_messages(text, max_length),
            "max_tokens": OPENAI_MAX_TOKENS,
            "temperature": SAMPLING_TEMPERATURE,
        }
        headers = {"Authorization": f"Bearer {backend.api_key}"}
        response = await self._post("OpenAI", backend.url, payload, timeout=timeout, headers=headers)
        data = self._safe_json("OpenAI", response)

        choices = data.get("choices")
        if not isinstance(choices, list) or not choices or not isinstance(choices[0], Mapping):
            raise InvalidResponse(_invalid_message("OpenAI", data, response))
        message = choices[0].get("message")
        content = message.get("content") if isinstance(message, Mapping) else None
        if not isinstance(content, str) or not content.strip():
            raise InvalidResponse(_invalid_message("OpenAI", data, response))
        return self._finish("OpenAI", content, data, response)

    def _finish(
        self, label: str, content: str, data: Mapping[str, Any], response: httpx.Response
    ) -> str:
        cleaned = clean_summary(content)
        if not cleaned:
            raise InvalidResponse(_invalid_message(label, data, response))
        return cleaned

    # ------------------------------
    # HTTP helpers
    # ------------------------------
    async def _post(
        self,
        label: str,
        url: str,
        payload: Mapping[str, Any],
        *,
        timeout: float,
        headers: Optional[Mapping[str, str]] = None,
        local: bool = False,
    ) -> httpx.Response:
        try:
            return await self._client.post(url, json=payload, headers=headers, timeout=timeout)
        except httpx.TimeoutException as exc:
            raise TransportError(f"{label} request timed out after {timeout:g}s") from exc
        except httpx.ConnectError as exc:
            if local and _is_connection_refused(exc):
                raise BackendUnavailable(f"{label} is not running. Please start the {label} service.") from exc
            raise TransportError(f"{label} request failed: {exc}") from exc
        except httpx.HTTPError as exc:
            raise TransportError(f"{label} request failed: {exc}") from exc

    def _safe_json(self, label: str, response: httpx.Response) -> Mapping[str, Any]:
        try:
            data = response.json()
        except ValueError as exc:
            raise ResponseParseError(f"Failed to parse {label} response: {exc}", detail=str(exc)) from exc
        if not isinstance(data, Mapping):
            raise InvalidResponse(f"Invalid response from {label}: expected a JSON object")
        return data

    def _log_debug(self, event: str, backend: Backend, extra: Mapping[str, object]) -> None:
        payload = {"event": event, "backend": type(backend).__name__}
        payload.update(dict(extra))
        self._logger.debug("summarizer-client", extra={"summary": payload})


def _is_connection_refused(exc: BaseException) -> bool:
    current: Optional[BaseException] = exc
    seen = set()
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        if isinstance(current, ConnectionRefusedError):
            return True
        if "refused" in str(current).lower():
            return True
        current = current.__cause__ or current.__context__
    return False


def _invalid_message(label: str, data: Mapping[str, Any], response: httpx.Response) -> str:
    message = f"Invalid response from {label}"
    error = data.get("error")
    if isinstance(error, Mapping):
        error = error.get("message")
    if isinstance(error, str) and error:
        message += f": {error}"
    if response.status_code >= 400:
        message += f" (HTTP {response.status_code})"
    return message
