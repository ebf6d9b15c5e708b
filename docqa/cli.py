"""Command-line entry points.

Usage:
    docqa [DOCUMENT] [QUESTION...]       # Answer a question about a document
    docqa document.pdf --rebuild         # Rebuild the index before answering
    docqa-embed [TEXT...]                # Show the embedding dimension
    docqa-chat [--system PROMPT]         # Interactive multi-turn chat
"""
import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

import structlog

from docqa import config
from docqa.errors import DocQAError
from docqa.llm_client import OpenAIClient
from docqa.memory import ChatSession
from docqa.rag.pipeline import DocumentQA

logger = structlog.get_logger()

PREVIEW_CHARS = 120


def configure_logging(verbose: bool = False) -> None:
    """Route structured logs to stderr so stdout only carries results."""
    logging.basicConfig(
        stream=sys.stderr,
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        force=True,
    )
    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
    )


def positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {number}")
    return number


def build_ask_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="docqa",
        description="Answer a question about a document using retrieval-augmented generation",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  docqa                                   # ./document.pdf, default question
  docqa report.pdf What are the key findings?
  docqa report.pdf --rebuild "Summarize section 2"
  docqa report.pdf --stats                # Show index statistics only
        """,
    )

    parser.add_argument(
        "document",
        nargs="?",
        type=Path,
        default=config.DEFAULT_DOCUMENT,
        help=f"Document to index (default: {config.DEFAULT_DOCUMENT})",
    )
    parser.add_argument(
        "question",
        nargs="*",
        help=f"Question text (default: {config.DEFAULT_QUESTION!r})",
    )
    parser.add_argument(
        "--index",
        type=Path,
        default=None,
        help=f"Index file (default: {config.INDEX_PATH})",
    )
    parser.add_argument(
        "--top-k",
        type=positive_int,
        default=None,
        help=f"Chunks used as context (default: {config.RETRIEVAL_TOP_K})",
    )
    parser.add_argument(
        "--chunk-size",
        type=positive_int,
        default=None,
        help=f"Chunk size in characters when building (default: {config.CHUNK_SIZE})",
    )
    parser.add_argument(
        "--rebuild",
        action="store_true",
        help="Ignore an existing index file and rebuild it from the document",
    )
    parser.add_argument(
        "--show-sources",
        action="store_true",
        help="Print the retrieved chunks and their scores after the answer",
    )
    parser.add_argument(
        "--stats",
        action="store_true",
        help="Print index statistics instead of answering",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Write debug logs to stderr",
    )
    return parser


def _preview(text: str) -> str:
    flat = " ".join(text.split())
    if len(flat) > PREVIEW_CHARS:
        return flat[:PREVIEW_CHARS] + "..."
    return flat


async def run_ask(args: argparse.Namespace, client: OpenAIClient) -> None:
    question = " ".join(args.question).strip() or config.DEFAULT_QUESTION

    qa = DocumentQA(
        client,
        index_path=args.index,
        chunk_size=args.chunk_size,
        top_k=args.top_k,
    )
    index = await qa.load_or_build(args.document, rebuild=args.rebuild)

    if args.stats:
        for key, value in index.get_stats().items():
            print(f"{key}: {value}")
        return

    answer = await qa.ask(question)

    print(f"Q: {answer.question}")
    print(f"A: {answer.text}")

    if args.show_sources:
        print()
        for rank, source in enumerate(answer.sources, 1):
            print(
                f"[{rank}] chunk {source.position} "
                f"(score {source.score:.3f}): {_preview(source.content)}"
            )


def main(argv: Optional[List[str]] = None, client: Optional[OpenAIClient] = None) -> int:
    """Entry point for the ``docqa`` command.

    Returns:
        Process exit status: 0 on success, 1 on any fatal error
    """
    args = build_ask_parser().parse_intermixed_args(argv)
    configure_logging(args.verbose)

    try:
        # Credential check precedes any file or network access
        api_key = config.require_api_key()
        client = client or OpenAIClient(api_key=api_key)
        asyncio.run(run_ask(args, client))

    except KeyboardInterrupt:
        print("Cancelled.", file=sys.stderr)
        return 1

    except DocQAError as e:
        print(str(e), file=sys.stderr)
        return 1

    except Exception as e:
        logger.error("docqa_failed", error=str(e), error_type=type(e).__name__)
        print(str(e) or type(e).__name__, file=sys.stderr)
        return 1

    return 0


def embed_main(argv: Optional[List[str]] = None, client: Optional[OpenAIClient] = None) -> int:
    """Entry point for ``docqa-embed``: print the dimension and head of a vector."""
    parser = argparse.ArgumentParser(
        prog="docqa-embed",
        description="Embed a text and show the vector dimension",
    )
    parser.add_argument("text", nargs="*", help="Text to embed (default: 'hello embeddings')")
    parser.add_argument("--model", default=None, help=f"Embedding model (default: {config.EMBEDDING_MODEL})")
    parser.add_argument("--verbose", "-v", action="store_true", help="Write debug logs to stderr")
    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    text = " ".join(args.text).strip() or "hello embeddings"

    try:
        api_key = config.require_api_key()
        client = client or OpenAIClient(api_key=api_key)
        vector = asyncio.run(client.embeddings(text, model=args.model))

    except KeyboardInterrupt:
        print("Cancelled.", file=sys.stderr)
        return 1

    except DocQAError as e:
        print(str(e), file=sys.stderr)
        return 1

    except Exception as e:
        logger.error("docqa_embed_failed", error=str(e), error_type=type(e).__name__)
        print(str(e) or type(e).__name__, file=sys.stderr)
        return 1

    print(f"dim = {len(vector)}")
    print(f"first 8 = {vector[:8]}")
    return 0


def chat_main(
    argv: Optional[List[str]] = None,
    client: Optional[OpenAIClient] = None,
    input_fn=input,
) -> int:
    """Entry point for ``docqa-chat``: a multi-turn REPL.

    ``/reset`` clears the history, ``/transcript`` prints it and ``/exit``
    (or end of input) quits. A failed request is reported and the
    conversation continues.
    """
    parser = argparse.ArgumentParser(
        prog="docqa-chat",
        description="Interactive chat with the configured chat model",
    )
    parser.add_argument("--system", default=None, help="Optional system prompt")
    parser.add_argument("--model", default=None, help=f"Chat model (default: {config.CHAT_MODEL})")
    parser.add_argument(
        "--temperature",
        type=float,
        default=None,
        help=f"Sampling temperature (default: {config.CHAT_TEMPERATURE})",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Write debug logs to stderr")
    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    try:
        api_key = config.require_api_key()
    except DocQAError as e:
        print(str(e), file=sys.stderr)
        return 1

    client = client or OpenAIClient(api_key=api_key)
    session = ChatSession(
        system_prompt=args.system,
        model=args.model,
        temperature=args.temperature,
    )

    while True:
        try:
            user_text = input_fn("you> ").strip()
        except (EOFError, KeyboardInterrupt):
            print()
            break

        if not user_text:
            continue
        if user_text == "/exit":
            break
        if user_text == "/reset":
            session.reset()
            print("(history cleared)")
            continue
        if user_text == "/transcript":
            print(session.transcript())
            continue

        try:
            reply = asyncio.run(session.send(client, user_text))
        except DocQAError as e:
            print(f"error: {e}", file=sys.stderr)
            continue

        print(f"assistant> {reply}")

    return 0
