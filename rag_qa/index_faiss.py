from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional, Protocol, Sequence, Tuple

import faiss
import numpy as np

from rag_qa.corpus import Document, corpus_fingerprint
from rag_qa.errors import CorpusShapeError, IndexStoreError, StaleIndexError
from rag_qa.retriever import Retriever


INDEX_FILE = "index.faiss"
META_FILE = "meta.jsonl"
MANIFEST_FILE = "manifest.json"
FORMAT_VERSION = 1


class Embedder(Protocol):
    model: str

    def embed_documents(self, texts: Sequence[str]) -> List[List[float]]: ...

    def embed_query(self, text: str) -> List[float]: ...


@dataclass
class IndexManifest:
    fingerprint: str
    dimension: int
    count: int
    embed_model: str
    metric: str = "cosine"
    format_version: int = FORMAT_VERSION


def _as_matrix(vectors: Sequence[Sequence[float]]) -> np.ndarray:
    matrix = np.array(vectors, dtype="float32")
    if matrix.ndim != 2 or matrix.shape[1] == 0:
        raise IndexStoreError(f"Некорректная форма эмбеддингов: {matrix.shape}")
    faiss.normalize_L2(matrix)
    return matrix


def _write_meta(meta_path: str, documents: Sequence[Document]) -> None:
    with open(meta_path, "w", encoding="utf-8") as f:
        for doc in documents:
            json_line = {"text": doc.page_content, "metadata": doc.metadata}
            f.write(json.dumps(json_line, ensure_ascii=False) + "\n")


def _load_meta(meta_path: str) -> List[Document]:
    documents: List[Document] = []
    with open(meta_path, "r", encoding="utf-8") as f:
        for line in f:
            if not line.strip():
                continue
            obj = json.loads(line)
            documents.append(Document(page_content=obj["text"], metadata=obj.get("metadata", {})))
    return documents


class FaissStore:
    """
    Cosine-similarity store: a flat inner-product FAISS index over
    L2-normalised vectors plus the documents in insertion order.
    """

    def __init__(
        self,
        index: Any,
        documents: Sequence[Document],
        manifest: IndexManifest,
        embedder: Embedder,
    ):
        self.index = index
        self.documents = list(documents)
        self.manifest = manifest
        self.embedder = embedder

    @classmethod
    def from_texts(
        cls,
        texts: Sequence[str],
        metadatas: Sequence[Dict[str, Any]],
        embedder: Embedder,
    ) -> "FaissStore":
        if len(texts) != len(metadatas):
            raise CorpusShapeError(
                f"Число текстов ({len(texts)}) не совпадает с числом метаданных ({len(metadatas)})."
            )
        if not texts:
            raise CorpusShapeError("Корпус пуст: нечего индексировать.")

        embeddings = embedder.embed_documents(list(texts))
        if len(embeddings) != len(texts):
            raise IndexStoreError("Число эмбеддингов не совпадает с числом документов.")

        vectors = _as_matrix(embeddings)
        dim = vectors.shape[1]
        index = faiss.IndexFlatIP(dim)
        index.add(vectors)
        logging.info("FAISS индекс построен: %s векторов, размерность %s", index.ntotal, dim)

        documents = [Document(page_content=t, metadata=dict(m)) for t, m in zip(texts, metadatas)]
        manifest = IndexManifest(
            fingerprint=corpus_fingerprint(texts, metadatas, embedder.model),
            dimension=dim,
            count=index.ntotal,
            embed_model=embedder.model,
        )
        return cls(index, documents, manifest, embedder)

    @staticmethod
    def exists(store_path: str) -> bool:
        return all(
            os.path.isfile(os.path.join(store_path, name))
            for name in (INDEX_FILE, META_FILE, MANIFEST_FILE)
        )

    def save(self, store_path: str) -> None:
        """
        Write the index files into ``store_path``.

        Only the three index files are replaced; anything else in the
        directory is left alone.
        """
        store_path = os.path.abspath(store_path)
        try:
            os.makedirs(store_path, exist_ok=True)
            # Manifest is removed first and written last so a half-written store fails exists().
            manifest_path = os.path.join(store_path, MANIFEST_FILE)
            if os.path.exists(manifest_path):
                os.remove(manifest_path)
            faiss.write_index(self.index, os.path.join(store_path, INDEX_FILE))
            _write_meta(os.path.join(store_path, META_FILE), self.documents)
            with open(manifest_path, "w", encoding="utf-8") as f:
                json.dump(asdict(self.manifest), f, ensure_ascii=False, indent=2)
        except (OSError, RuntimeError) as exc:
            raise IndexStoreError(f"Не удалось сохранить индекс в {store_path}: {exc}") from exc
        logging.info("Индекс сохранен: %s", store_path)

    @classmethod
    def load(
        cls,
        store_path: str,
        embedder: Embedder,
        expected_fingerprint: Optional[str] = None,
    ) -> "FaissStore":
        store_path = os.path.abspath(store_path)
        if not cls.exists(store_path):
            raise IndexStoreError(f"Store не найден или неполон: {store_path}")

        try:
            with open(os.path.join(store_path, MANIFEST_FILE), "r", encoding="utf-8") as f:
                manifest = IndexManifest(**json.load(f))
            documents = _load_meta(os.path.join(store_path, META_FILE))
            index = faiss.read_index(os.path.join(store_path, INDEX_FILE))
        except (OSError, ValueError, KeyError, TypeError, RuntimeError) as exc:
            raise IndexStoreError(f"Не удалось прочитать индекс {store_path}: {exc}") from exc

        if manifest.format_version != FORMAT_VERSION:
            raise StaleIndexError(
                f"Формат индекса {manifest.format_version} не поддерживается "
                f"(ожидается {FORMAT_VERSION}). Пересоберите индекс."
            )
        if index.ntotal != len(documents) or index.ntotal != manifest.count:
            raise IndexStoreError(
                f"Индекс поврежден: {index.ntotal} векторов, {len(documents)} документов, "
                f"в манифесте {manifest.count}."
            )
        if index.d != manifest.dimension:
            raise IndexStoreError(
                f"Индекс поврежден: размерность {index.d}, в манифесте {manifest.dimension}."
            )
        if expected_fingerprint is not None and manifest.fingerprint != expected_fingerprint:
            raise StaleIndexError(
                f"Индекс в {store_path} устарел: корпус или модель эмбеддингов изменились. "
                "Пересоберите индекс (--rebuild)."
            )

        logging.info("Индекс загружен: %s (%s документов)", store_path, index.ntotal)
        return cls(index, documents, manifest, embedder)

    def search_by_vector(self, vector: Sequence[float], k: int = 4) -> List[Tuple[Document, float]]:
        if k < 1:
            raise ValueError("k должно быть положительным.")
        if self.index.ntotal == 0:
            return []
        if len(vector) != self.index.d:
            raise IndexStoreError(
                f"Размерность эмбеддинга запроса ({len(vector)}) не совпадает с индексом ({self.index.d})."
            )

        query_np = _as_matrix([vector])
        top_k = min(k, self.index.ntotal)
        scores, ids = self.index.search(query_np, top_k)

        results: List[Tuple[Document, float]] = []
        for score, idx in zip(scores[0], ids[0]):
            if idx == -1 or idx >= len(self.documents):
                continue
            results.append((self.documents[idx], float(score)))
        return results

    def similarity_search_with_score(self, query: str, k: int = 4) -> List[Tuple[Document, float]]:
        return self.search_by_vector(self.embedder.embed_query(query), k=k)

    def similarity_search(self, query: str, k: int = 4) -> List[Document]:
        return [doc for doc, _ in self.similarity_search_with_score(query, k=k)]

    def as_retriever(self, k: int = 4, score_threshold: Optional[float] = None) -> Retriever:
        return Retriever(self, k=k, score_threshold=score_threshold)
