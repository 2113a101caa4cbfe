"""Shared fixtures for summarizer tests."""
import json

import httpx
import pytest
import pytest_asyncio

from conversation_summarizer.summaries import (
    Provider,
    SummarizerClient,
    SummarizerConfig,
    SummaryStore,
)


class MutableConfig:
    """Config source whose value can be swapped between calls."""

    def __init__(self, config):
        self.config = config
        self.calls = 0

    def __call__(self):
        self.calls += 1
        return self.config


def unexpected_request(request):
    raise AssertionError(f"unexpected HTTP request to {request.url}")


def json_body(request):
    return json.loads(request.content.decode("utf-8"))


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path, monkeypatch):
    """Keep user config, keys and data out of every test."""
    for name in (
        "OPENAI_API_KEY",
        "SUMMARIZER_PROVIDER",
        "SUMMARIZER_MODEL",
        "SUMMARIZER_MAX_SUMMARY_LENGTH",
        "SUMMARIZER_TIMEOUT",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    monkeypatch.setenv("CONVERSATION_SUMMARIZER_HOME", str(tmp_path / "data"))
    monkeypatch.setenv("CONVERSATION_SUMMARIZER_CONFIG", str(tmp_path / "config.yaml"))


@pytest.fixture
def mock_config():
    return MutableConfig(SummarizerConfig(provider=Provider.MOCK))


@pytest_asyncio.fixture
async def make_client():
    clients = []

    def factory(config=None, handler=None, **kwargs):
        source = config if config is not None else MutableConfig(SummarizerConfig(provider=Provider.MOCK))
        client = SummarizerClient(
            source,
            transport=httpx.MockTransport(handler or unexpected_request),
            **kwargs,
        )
        clients.append(client)
        return client

    yield factory

    for client in clients:
        await client.close()


@pytest.fixture
def storage_path(tmp_path):
    return tmp_path / "store" / "summaries.json"


@pytest.fixture
def make_store(make_client, storage_path):
    def factory(client=None, path=None, **kwargs):
        return SummaryStore(client or make_client(), path or storage_path, **kwargs)

    return factory
