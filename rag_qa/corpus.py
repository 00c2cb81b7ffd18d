from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence


@dataclass(frozen=True)
class Document:
    """A stored text snippet with its metadata record."""

    page_content: str
    metadata: Dict[str, Any] = field(default_factory=dict)


DEFAULT_TEXTS: List[str] = [
    "Node.js is a JavaScript runtime built on Chrome's V8 engine.",
    "LangChain is a framework for building applications powered by LLMs.",
    "FAISS is a library for efficient similarity search and clustering of dense vectors.",
]

DEFAULT_METADATAS: List[Dict[str, Any]] = [{"id": 1}, {"id": 2}, {"id": 3}]

DEFAULT_QUERY = "What is LangChain?"


def corpus_fingerprint(
    texts: Sequence[str], metadatas: Sequence[Dict[str, Any]], embed_model: str
) -> str:
    """
    Hash the corpus together with the embedding model name.

    A saved index is only reusable when both are unchanged, so the digest is
    stored next to the index and compared on load.
    """
    payload = json.dumps(
        {"texts": list(texts), "metadatas": list(metadatas), "embed_model": embed_model},
        sort_keys=True,
        ensure_ascii=False,
    )
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()
