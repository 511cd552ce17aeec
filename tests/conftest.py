"""Shared test fixtures."""

from pathlib import Path
from typing import Generator

import pytest
from fastapi.testclient import TestClient

from conduit.api.main import create_app
from conduit.config.settings import Settings
from conduit.memory.store import MemoryStore


@pytest.fixture
def memory_dir(tmp_path) -> Path:
    """Store root that does not exist yet."""
    return tmp_path / "data" / "memories"


@pytest.fixture
def settings(memory_dir) -> Settings:
    """Settings isolated from the environment and any .env file."""
    return Settings(
        _env_file=None,
        memory_dir=memory_dir,
        inference_backend="mock",
        stub_embedding_dim=16,
        log_level="DEBUG",
    )


@pytest.fixture
def memory_store(memory_dir) -> MemoryStore:
    """MemoryStore rooted in a temporary directory."""
    return MemoryStore(memory_dir)


@pytest.fixture
def client(settings) -> Generator[TestClient, None, None]:
    """Test client over a freshly built app."""
    app = create_app(settings)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def sample_memory() -> dict:
    return {"title": "Note A", "content": "hello world", "tags": ["x"]}
