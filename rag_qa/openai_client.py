"""Thin wrappers over the OpenAI SDK for embeddings and chat completions."""

from __future__ import annotations

import logging
from typing import Any, Callable, Iterable, List, Optional, TypeVar

import openai
from openai import OpenAI
from tqdm import tqdm

from rag_qa.config import RagConfig
from rag_qa.errors import CredentialError, ProviderError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _call_openai(what: str, fn: Callable[[], T]) -> T:
    try:
        return fn()
    except (openai.AuthenticationError, openai.PermissionDeniedError) as exc:
        raise CredentialError(f"OpenAI отклонил ключ API ({what}): {exc}") from exc
    except openai.APIConnectionError as exc:
        raise ProviderError(f"OpenAI недоступен ({what}): {exc}") from exc
    except openai.APIStatusError as exc:
        raise ProviderError(
            f"Запрос к OpenAI ({what}) завершился с кодом {exc.status_code}: {exc}"
        ) from exc
    except openai.APIError as exc:
        raise ProviderError(f"Ошибка запроса к OpenAI ({what}): {exc}") from exc


class _OpenAIService:
    def __init__(self, config: Optional[RagConfig] = None, client: Optional[Any] = None):
        self.config = config or RagConfig()
        self._client = client

    @property
    def client(self) -> Any:
        # Built on first use so a missing key fails at the first remote call.
        if self._client is None:
            if not self.config.api_key:
                raise CredentialError("OPENAI_API_KEY не задан (environment или .env).")
            self._client = OpenAI(
                api_key=self.config.api_key,
                base_url=self.config.base_url,
                timeout=self.config.request_timeout,
                max_retries=self.config.max_retries,
            )
        return self._client


class OpenAIEmbedder(_OpenAIService):
    """Text to vector through the OpenAI embeddings endpoint."""

    @property
    def model(self) -> str:
        return self.config.embed_model

    def _embed_batch(self, batch: List[str]) -> List[List[float]]:
        response = _call_openai(
            "embeddings",
            lambda: self.client.embeddings.create(model=self.model, input=batch),
        )
        data = sorted(response.data, key=lambda item: item.index)
        if len(data) != len(batch):
            raise ProviderError(
                f"Число эмбеддингов ({len(data)}) не совпадает с числом запросов ({len(batch)})."
            )
        return [list(item.embedding) for item in data]

    def embed_documents(self, texts: Iterable[str]) -> List[List[float]]:
        """Embed a sequence of texts in batches of ``embed_batch_size``."""
        texts_list = list(texts)
        if not texts_list:
            return []

        batch_size = max(1, self.config.embed_batch_size)
        starts = range(0, len(texts_list), batch_size)
        vectors: List[List[float]] = []
        for start in tqdm(starts, desc="Эмбеддинги", disable=len(starts) <= 1):
            batch = texts_list[start : start + batch_size]
            logger.info("Embedding batch %s-%s of %s", start + 1, start + len(batch), len(texts_list))
            vectors.extend(self._embed_batch(batch))
        return vectors

    def embed_query(self, text: str) -> List[float]:
        if not text or not text.strip():
            raise ValueError("Текст запроса не может быть пустым.")
        return self._embed_batch([text])[0]


class OpenAIGenerator(_OpenAIService):
    """Prompt to text through the chat completions endpoint."""

    @property
    def model(self) -> str:
        return self.config.chat_model

    def complete(self, prompt: str, system: Optional[str] = None) -> str:
        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})

        logger.info("Generating answer with model %s...", self.model)
        completion = _call_openai(
            "chat",
            lambda: self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=self.config.temperature,
            ),
        )
        choice = completion.choices[0] if completion.choices else None
        text = choice.message.content if choice and choice.message else None
        if not text:
            finish_reason = choice.finish_reason if choice else "unknown"
            raise ProviderError(f"OpenAI вернул пустой ответ (finish_reason={finish_reason}).")
        return text.strip()
