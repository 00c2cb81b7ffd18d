from __future__ import annotations

from typing import Sequence

from rag_qa.corpus import Document

QA_PROMPT_TEMPLATE = (
    "Use the following pieces of context to answer the question at the end. "
    "If you don't know the answer, just say that you don't know, don't try to make up an answer.\n\n"
    "{context}\n\n"
    "Question: {question}\n"
    "Helpful Answer:"
)

DOCUMENT_SEPARATOR = "\n\n"


def format_context(documents: Sequence[Document]) -> str:
    return DOCUMENT_SEPARATOR.join(doc.page_content for doc in documents)


def build_qa_prompt(question: str, documents: Sequence[Document]) -> str:
    """Stuff every retrieved document into a single prompt, in rank order."""
    return QA_PROMPT_TEMPLATE.format(context=format_context(documents), question=question)
