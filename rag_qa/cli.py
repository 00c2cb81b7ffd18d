from __future__ import annotations

import argparse
import logging
import re
import sys
from typing import Iterable, List, Tuple

from rag_qa.config import RagConfig
from rag_qa.corpus import DEFAULT_QUERY, Document
from rag_qa.errors import RagError
from rag_qa.pipeline import RagPipeline

COMMANDS = ("ask", "build", "search")


def _configure_logging(verbosity: int) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(asctime)s [%(levelname)s] %(message)s")


def _add_shared_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--store",
        default=None,
        help="Путь к каталогу с индексом (по умолчанию RAG_STORE_PATH или ./db/faiss_index)",
    )
    parser.add_argument(
        "--embed-model",
        default=None,
        help="Модель эмбеддингов OpenAI (по умолчанию RAG_EMBED_MODEL или text-embedding-ada-002)",
    )
    parser.add_argument(
        "--k",
        type=int,
        default=None,
        help="Сколько документов извлекать (по умолчанию RAG_TOP_K или 4)",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="rag-qa", description="RAG over a fixed corpus (FAISS + OpenAI)")
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Уровень логирования: -v (INFO), -vv (DEBUG)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    ask_parser = subparsers.add_parser("ask", help="Задать вопрос (команда по умолчанию)")
    _add_shared_args(ask_parser)
    ask_parser.add_argument(
        "query",
        nargs="?",
        default=DEFAULT_QUERY,
        help=f"Текст вопроса (по умолчанию {DEFAULT_QUERY!r})",
    )
    ask_parser.add_argument(
        "--chat-model",
        default=None,
        help="Модель генерации (по умолчанию RAG_CHAT_MODEL или gpt-4o-mini)",
    )
    ask_parser.add_argument(
        "--rebuild",
        action="store_true",
        help="Пересобрать индекс, даже если он уже есть на диске",
    )
    ask_parser.add_argument(
        "--show-sources",
        action="store_true",
        help="Показать документы, использованные в ответе",
    )

    build_parser_ = subparsers.add_parser("build", help="Пересобрать и сохранить индекс")
    _add_shared_args(build_parser_)

    search_parser = subparsers.add_parser("search", help="Поиск по индексу без генерации")
    _add_shared_args(search_parser)
    search_parser.add_argument("query", help="Текст запроса")
    search_parser.add_argument(
        "--threshold",
        type=float,
        default=None,
        help="Минимальный порог схожести (-1.0 - 1.0, по умолчанию без фильтра)",
    )

    return parser


def _print_results(results: Iterable[Tuple[Document, float]]) -> None:
    found = False
    for doc, score in results:
        found = True
        doc_id = doc.metadata.get("id", "-")
        print(f"{score:.4f} | {doc_id} | {doc.page_content}")
    if not found:
        print("Результатов нет.")


def _config_from_args(args: argparse.Namespace) -> RagConfig:
    return RagConfig().replace(
        store_path=args.store,
        embed_model=args.embed_model,
        chat_model=getattr(args, "chat_model", None),
        top_k=args.k,
    )


def _with_default_command(argv: List[str]) -> List[str]:
    """Insert ``ask`` after the global flags when no subcommand is given."""
    i = 0
    while i < len(argv) and re.fullmatch(r"-v+|--verbose", argv[i]):
        i += 1
    if i < len(argv) and argv[i] in (*COMMANDS, "-h", "--help"):
        return argv
    return [*argv[:i], "ask", *argv[i:]]


def main(argv: List[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(_with_default_command(list(sys.argv[1:] if argv is None else argv)))
    _configure_logging(args.verbose)

    try:
        pipeline = RagPipeline(_config_from_args(args))

        if args.command == "build":
            store = pipeline.load_or_create_store(rebuild=True)
            print(f"✅ FAISS индекс сохранен: {pipeline.config.store_path} ({store.index.ntotal} документов)")

        elif args.command == "search":
            _print_results(pipeline.retrieve(args.query, score_threshold=args.threshold))

        elif args.command == "ask":
            pipeline.load_or_create_store(rebuild=args.rebuild)
            answer = pipeline.answer(args.query)
            print(f"🔎 Query: {answer.query}")
            print(f"💡 Answer: {answer.text}")
            if args.show_sources:
                print("\n[Sources]")
                _print_results(zip(answer.documents, answer.scores))

    except RagError as exc:
        print(f"⚠️  {type(exc).__name__}: {exc}", file=sys.stderr)
        return exc.exit_code
    except ValueError as exc:
        print(f"⚠️  Ошибка ввода: {exc}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
