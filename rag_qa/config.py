"""Configuration for the RAG pipeline and its OpenAI clients."""

from __future__ import annotations

import dataclasses
import os
from dataclasses import dataclass, field
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

DEFAULT_EMBED_MODEL = "text-embedding-ada-002"
DEFAULT_CHAT_MODEL = "gpt-4o-mini"
DEFAULT_STORE_PATH = "./db/faiss_index"
DEFAULT_TOP_K = 4


def _env_str(name: str, default: str) -> str:
    value = os.getenv(name, "").strip()
    return value or default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} должно быть целым числом, получено {raw!r}") from exc


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} должно быть числом, получено {raw!r}") from exc


@dataclass
class RagConfig:
    """Runtime configuration, read from the environment when the object is built."""

    # One key is shared by the embedding and chat endpoints.
    api_key: str = field(default_factory=lambda: os.getenv("OPENAI_API_KEY", "").strip())
    base_url: Optional[str] = field(default_factory=lambda: os.getenv("OPENAI_BASE_URL") or None)
    embed_model: str = field(default_factory=lambda: _env_str("RAG_EMBED_MODEL", DEFAULT_EMBED_MODEL))
    chat_model: str = field(default_factory=lambda: _env_str("RAG_CHAT_MODEL", DEFAULT_CHAT_MODEL))
    temperature: float = field(default_factory=lambda: _env_float("RAG_TEMPERATURE", 0.7))
    store_path: str = field(default_factory=lambda: _env_str("RAG_STORE_PATH", DEFAULT_STORE_PATH))
    top_k: int = field(default_factory=lambda: _env_int("RAG_TOP_K", DEFAULT_TOP_K))
    embed_batch_size: int = field(default_factory=lambda: _env_int("RAG_EMBED_BATCH_SIZE", 512))
    request_timeout: float = field(default_factory=lambda: _env_float("RAG_REQUEST_TIMEOUT", 60.0))
    max_retries: int = field(default_factory=lambda: _env_int("RAG_MAX_RETRIES", 0))

    def replace(self, **overrides) -> "RagConfig":
        """Return a copy with the non-None overrides applied."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        return dataclasses.replace(self, **changes)
