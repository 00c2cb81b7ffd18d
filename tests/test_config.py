from __future__ import annotations

import pytest

from rag_qa.config import DEFAULT_CHAT_MODEL, DEFAULT_EMBED_MODEL, DEFAULT_STORE_PATH, RagConfig

_ENV_VARS = [
    "OPENAI_API_KEY",
    "OPENAI_BASE_URL",
    "RAG_EMBED_MODEL",
    "RAG_CHAT_MODEL",
    "RAG_TEMPERATURE",
    "RAG_STORE_PATH",
    "RAG_TOP_K",
    "RAG_EMBED_BATCH_SIZE",
    "RAG_REQUEST_TIMEOUT",
    "RAG_MAX_RETRIES",
]


@pytest.fixture
def clean_env(monkeypatch):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_defaults(clean_env) -> None:
    config = RagConfig()
    assert config.api_key == ""
    assert config.base_url is None
    assert config.embed_model == DEFAULT_EMBED_MODEL
    assert config.chat_model == DEFAULT_CHAT_MODEL
    assert config.store_path == DEFAULT_STORE_PATH
    assert config.top_k == 4
    assert config.max_retries == 0


def test_reads_environment_at_construction(clean_env) -> None:
    before = RagConfig()
    clean_env.setenv("OPENAI_API_KEY", " sk-live ")
    clean_env.setenv("RAG_TOP_K", "2")
    clean_env.setenv("RAG_TEMPERATURE", "0.1")
    clean_env.setenv("RAG_STORE_PATH", "/tmp/idx")
    after = RagConfig()

    assert before.api_key == ""
    assert after.api_key == "sk-live"
    assert after.top_k == 2
    assert after.temperature == pytest.approx(0.1)
    assert after.store_path == "/tmp/idx"


def test_blank_values_fall_back_to_defaults(clean_env) -> None:
    clean_env.setenv("RAG_CHAT_MODEL", "   ")
    clean_env.setenv("RAG_TOP_K", "")
    config = RagConfig()
    assert config.chat_model == DEFAULT_CHAT_MODEL
    assert config.top_k == 4


@pytest.mark.parametrize("name", ["RAG_TOP_K", "RAG_EMBED_BATCH_SIZE", "RAG_REQUEST_TIMEOUT"])
def test_malformed_numbers_name_the_variable(clean_env, name: str) -> None:
    clean_env.setenv(name, "lots")
    with pytest.raises(ValueError, match=name):
        RagConfig()


def test_replace_skips_none(clean_env) -> None:
    config = RagConfig(store_path="a", top_k=4)
    updated = config.replace(store_path=None, top_k=1, chat_model="gpt-4o")
    assert updated.store_path == "a"
    assert updated.top_k == 1
    assert updated.chat_model == "gpt-4o"
    assert config.top_k == 4
