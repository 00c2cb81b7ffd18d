from __future__ import annotations

import logging
from typing import TYPE_CHECKING, List, Optional, Tuple

from rag_qa.corpus import Document

if TYPE_CHECKING:
    from rag_qa.index_faiss import FaissStore


class Retriever:
    """Top-k lookup over a FaissStore, nearest first."""

    def __init__(self, store: "FaissStore", k: int = 4, score_threshold: Optional[float] = None):
        if k < 1:
            raise ValueError("k должно быть положительным.")
        self.store = store
        self.k = k
        self.score_threshold = score_threshold

    def retrieve_with_scores(self, query: str) -> List[Tuple[Document, float]]:
        results = self.store.similarity_search_with_score(query, k=self.k)
        if self.score_threshold is not None:
            results = [(doc, score) for doc, score in results if score >= self.score_threshold]
        logging.debug("Retrieved %d documents for %r", len(results), query)
        return results

    def retrieve(self, query: str) -> List[Document]:
        return [doc for doc, _ in self.retrieve_with_scores(query)]
