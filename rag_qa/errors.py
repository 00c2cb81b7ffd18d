from __future__ import annotations


class RagError(RuntimeError):
    """Base class for failures surfaced by the RAG pipeline."""

    exit_code = 1


class CredentialError(RagError):
    """Raised when the API key is missing or rejected by the provider."""

    exit_code = 2


class IndexStoreError(RagError):
    """Raised when the on-disk index cannot be read or does not match itself."""

    exit_code = 3


class StaleIndexError(IndexStoreError):
    """Raised when a saved index was built from a different corpus or embedding model."""


class ProviderError(RagError):
    """Raised on network, quota or model errors from the remote provider."""

    exit_code = 4


class CorpusShapeError(RagError, ValueError):
    """Raised when texts and metadatas cannot be paired into documents."""

    exit_code = 5
