from __future__ import annotations

import pytest

from fakes import FakeEmbedder, FakeGenerator
from rag_qa.config import RagConfig


@pytest.fixture
def embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture
def generator() -> FakeGenerator:
    return FakeGenerator()


@pytest.fixture
def store_path(tmp_path) -> str:
    return str(tmp_path / "db" / "faiss_index")


@pytest.fixture
def config(store_path, monkeypatch) -> RagConfig:
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    return RagConfig(store_path=store_path)
