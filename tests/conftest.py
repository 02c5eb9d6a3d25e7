"""Shared pytest fixtures for the spacegate test suite."""

from __future__ import annotations

import pytest

from spacegate.config import Config, StorageConfig
from spacegate.credentials import CredentialStore
from spacegate.errors import UpstreamError
from spacegate.space_config import SpaceConfigStore
from spacegate.upstream import UpstreamAnswer
from spacegate.users import UserDirectory


class FakeFileSearchClient:
    """Stands in for FileSearchClient; records every call."""

    def __init__(self, text: str = "Grounded answer", deltas: list[str] | None = None) -> None:
        self.text = text
        self.citations: list[dict] = []
        self.deltas = deltas if deltas is not None else ["Grounded ", "answer"]
        self.error: Exception | None = None
        self.stream_error_after: int | None = None
        self.calls: list[dict] = []

    async def generate(self, **kwargs) -> UpstreamAnswer:
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return UpstreamAnswer(text=self.text, citations=self.citations)

    async def generate_stream(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        for i, delta in enumerate(self.deltas):
            if self.stream_error_after is not None and i >= self.stream_error_after:
                raise UpstreamError("stream interrupted")
            yield delta


class FakeClientFactory:
    def __init__(self, client: FakeFileSearchClient) -> None:
        self.client = client
        self.api_keys: list[str] = []

    def __call__(self, api_key: str) -> FakeFileSearchClient:
        self.api_keys.append(api_key)
        return self.client


@pytest.fixture
def config(tmp_path):
    """Config whose data directory lives under tmp_path."""
    return Config(storage=StorageConfig(data_dir=str(tmp_path / "data")))


@pytest.fixture
def credential_store(tmp_path):
    return CredentialStore(tmp_path / "api-keys.json")


@pytest.fixture
def space_store(tmp_path):
    return SpaceConfigStore(tmp_path / "space-configs.json")


@pytest.fixture
def user_directory(tmp_path):
    return UserDirectory(tmp_path / "users.json")


@pytest.fixture
def fake_upstream():
    return FakeFileSearchClient()


@pytest.fixture
def fake_factory(fake_upstream):
    return FakeClientFactory(fake_upstream)
