from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol, Sequence

from rag_qa.config import RagConfig
from rag_qa.corpus import DEFAULT_METADATAS, DEFAULT_TEXTS, Document, corpus_fingerprint
from rag_qa.index_faiss import Embedder, FaissStore
from rag_qa.openai_client import OpenAIEmbedder, OpenAIGenerator
from rag_qa.prompts import build_qa_prompt


class Generator(Protocol):
    def complete(self, prompt: str, system: Optional[str] = None) -> str: ...


class PipelineState(str, Enum):
    NO_INDEX = "no_index"
    INDEX_READY = "index_ready"
    CONTEXT_READY = "context_ready"
    ANSWERED = "answered"
    FAILED = "failed"


@dataclass
class RagAnswer:
    query: str
    text: str
    documents: List[Document]
    scores: List[float] = field(default_factory=list)


class RagPipeline:
    """
    Load-or-build the index, retrieve context, stuff it into a prompt and
    ask the chat model. Errors are not caught here; the state is set to
    FAILED and the exception propagates to the caller.
    """

    def __init__(
        self,
        config: Optional[RagConfig] = None,
        embedder: Optional[Embedder] = None,
        generator: Optional[Generator] = None,
        texts: Optional[Sequence[str]] = None,
        metadatas: Optional[Sequence[Dict[str, Any]]] = None,
    ):
        self.config = config or RagConfig()
        self.embedder = embedder or OpenAIEmbedder(self.config)
        self.generator = generator or OpenAIGenerator(self.config)
        self.texts = list(texts if texts is not None else DEFAULT_TEXTS)
        self.metadatas = list(metadatas if metadatas is not None else DEFAULT_METADATAS)
        self.store: Optional[FaissStore] = None
        self.state = PipelineState.NO_INDEX

    def _set_state(self, state: PipelineState) -> None:
        logging.debug("Pipeline state: %s -> %s", self.state.value, state.value)
        self.state = state

    @property
    def fingerprint(self) -> str:
        return corpus_fingerprint(self.texts, self.metadatas, self.embedder.model)

    def create_and_save_store(self) -> FaissStore:
        logging.info("Создаем FAISS индекс в %s...", self.config.store_path)
        store = FaissStore.from_texts(self.texts, self.metadatas, self.embedder)
        store.save(self.config.store_path)
        return store

    def load_or_create_store(self, rebuild: bool = False) -> FaissStore:
        try:
            if not rebuild and FaissStore.exists(self.config.store_path):
                logging.info("Загружаем FAISS индекс из %s...", self.config.store_path)
                store = FaissStore.load(
                    self.config.store_path,
                    self.embedder,
                    expected_fingerprint=self.fingerprint,
                )
            else:
                store = self.create_and_save_store()
        except Exception:
            self._set_state(PipelineState.FAILED)
            raise

        self.store = store
        self._set_state(PipelineState.INDEX_READY)
        return store

    def retrieve(self, query: str, k: Optional[int] = None, score_threshold: Optional[float] = None):
        """Return ``(document, score)`` pairs for ``query``, nearest first."""
        store = self.store or self.load_or_create_store()
        top_k = k if k is not None else self.config.top_k
        try:
            retriever = store.as_retriever(k=top_k, score_threshold=score_threshold)
            results = retriever.retrieve_with_scores(query)
        except Exception:
            self._set_state(PipelineState.FAILED)
            raise
        self._set_state(PipelineState.CONTEXT_READY)
        return results

    def answer(self, query: str, k: Optional[int] = None) -> RagAnswer:
        results = self.retrieve(query, k=k)
        documents = [doc for doc, _ in results]

        prompt = build_qa_prompt(query, documents)
        logging.debug("Prompt:\n%s", prompt)
        try:
            text = self.generator.complete(prompt)
        except Exception:
            self._set_state(PipelineState.FAILED)
            raise

        self._set_state(PipelineState.ANSWERED)
        return RagAnswer(
            query=query,
            text=text,
            documents=documents,
            scores=[score for _, score in results],
        )
