"""Shared exports for the summaries feature."""
from __future__ import annotations

from .client import (
    BackendUnavailable,
    InvalidResponse,
    MissingCredentials,
    MockBackend,
    OllamaBackend,
    OpenAIBackend,
    ResponseParseError,
    SummarizerClient,
    SummarizerError,
    TransportError,
    clean_summary,
    mock_summary,
)
from .config import ConfigError, ConfigLoader, Provider, SummarizerConfig, load_openai_api_key
from .export import ExportFormat, ExportResult
from .storage import get_default_data_dir, load_summaries, summaries_path_for, write_summaries
from .store import (
    ExportError,
    PersistenceError,
    StoreEvent,
    SummaryCreationFailed,
    SummaryStore,
)
from .types import ConnectionStatus, SummaryRecord, generate_summary_id


__all__ = [
    "SummaryRecord",
    "ConnectionStatus",
    "generate_summary_id",
    "SummarizerConfig",
    "ConfigLoader",
    "ConfigError",
    "Provider",
    "load_openai_api_key",
    "SummarizerClient",
    "OllamaBackend",
    "OpenAIBackend",
    "MockBackend",
    "clean_summary",
    "mock_summary",
    "SummarizerError",
    "BackendUnavailable",
    "TransportError",
    "MissingCredentials",
    "InvalidResponse",
    "ResponseParseError",
    "SummaryStore",
    "StoreEvent",
    "SummaryCreationFailed",
    "PersistenceError",
    "ExportError",
    "ExportFormat",
    "ExportResult",
    "get_default_data_dir",
    "summaries_path_for",
    "load_summaries",
    "write_summaries",
]
