"""CLI entry point for quizgen.

Usage:
  python -m quizgen serve [--port PORT] [--host HOST]
  python -m quizgen ensure-index
  python -m quizgen ingest FILE [--title TITLE]
  python -m quizgen generate (--topic TOPIC | --doc DOC_ID) [--count N]
  python -m quizgen search QUERY [--size N]
  python -m quizgen history [--limit N]
  python -m quizgen ping
"""
from __future__ import annotations

import asyncio
import sys
import uuid
from pathlib import Path


def main():
    args = sys.argv[1:]
    command = args[0] if args else "serve"

    if command == "serve":
        _serve(args[1:])
    elif command == "ensure-index":
        asyncio.run(_ensure_index())
    elif command == "ingest":
        asyncio.run(_ingest(args[1:]))
    elif command == "generate":
        asyncio.run(_generate(args[1:]))
    elif command == "search":
        asyncio.run(_search(args[1:]))
    elif command == "history":
        asyncio.run(_history(args[1:]))
    elif command == "ping":
        asyncio.run(_ping())
    else:
        print(f"Unknown command: {command}")
        print("Commands: serve, ensure-index, ingest, generate, search, history, ping")
        sys.exit(1)


def _parse_flag(args: list[str], name: str, default: str) -> str:
    for i, a in enumerate(args):
        if a == name and i + 1 < len(args):
            return args[i + 1]
    return default


def _positional(args: list[str]) -> list[str]:
    """Arguments that are neither flags nor flag values."""
    out = []
    skip = False
    for a in args:
        if skip:
            skip = False
            continue
        if a.startswith("--"):
            skip = True
            continue
        out.append(a)
    return out


def _load_pipeline():
    from quizgen.config import load_settings
    from quizgen.pipeline import build_pipeline

    settings = load_settings()
    return settings, build_pipeline(settings)


def _serve(args: list[str]):
    import uvicorn

    port = int(_parse_flag(args, "--port", "8080"))
    host = _parse_flag(args, "--host", "127.0.0.1")
    print(f"Starting QuizGen on http://{host}:{port}")
    print("Press Ctrl+C to stop\n")
    uvicorn.run(
        "quizgen.app:app",
        host=host,
        port=port,
        reload=False,
        timeout_graceful_shutdown=5,
    )


async def _ensure_index():
    _, pipeline = _load_pipeline()
    try:
        await pipeline.store.ensure_index()
        print(f"Index ready: {pipeline.store.index} (history: {pipeline.store.quiz_index})")
    finally:
        await pipeline.close()


async def _ingest(args: list[str]):
    from quizgen.pdf_text import read_document

    files = _positional(args)
    if not files:
        print("Usage: python -m quizgen ingest FILE [--title TITLE]")
        sys.exit(1)
    path = Path(files[0])
    if not path.exists():
        print(f"File not found: {path}")
        sys.exit(1)

    title = _parse_flag(args, "--title", path.name)
    text = read_document(path)

    _, pipeline = _load_pipeline()
    try:
        result = await pipeline.ingest(str(uuid.uuid4()), title, text)
    finally:
        await pipeline.close()

    print(f"Document id:    {result['document_id']}")
    print(f"Title:          {result['title']}")
    print(f"Chunks indexed: {result['chunks_indexed']}")
    print(f"Text length:    {result['text_length']}")


async def _generate(args: list[str]):
    from quizgen.errors import QuizGenError

    settings, pipeline = _load_pipeline()
    topic = _parse_flag(args, "--topic", "")
    doc_id = _parse_flag(args, "--doc", "")
    count = _parse_flag(args, "--count", str(settings.default_question_count))

    try:
        record = await pipeline.generate_quiz(topic, doc_id, count)
    except QuizGenError as e:
        print(f"Generation failed ({e.kind}): {e.message}")
        sys.exit(1)
    finally:
        await pipeline.close()

    print(f"Generated {len(record.questions)} questions using {record.model}\n")
    for i, q in enumerate(record.questions, 1):
        print(f"{i}. {q.question}")
        for letter, option in zip("ABCDE", q.options):
            marker = "*" if option == q.answer else " "
            print(f"   {marker} {letter}) {option}")
        print(f"   {q.explanation}\n")


async def _search(args: list[str]):
    words = _positional(args)
    if not words:
        print("Usage: python -m quizgen search QUERY [--size N]")
        sys.exit(1)
    size = int(_parse_flag(args, "--size", "6"))

    _, pipeline = _load_pipeline()
    try:
        hits = await pipeline.retrieval.search(" ".join(words), size=size)
    finally:
        await pipeline.close()

    for h in hits:
        snippet = h.chunk.text[:100].replace("\n", " ")
        print(f"{h.score:7.3f}  {h.chunk.title} #{h.chunk.page_ordinal}  {snippet}")


async def _history(args: list[str]):
    limit = int(_parse_flag(args, "--limit", "20"))

    _, pipeline = _load_pipeline()
    try:
        records = await pipeline.store.recent_quiz_records(limit=limit)
    finally:
        await pipeline.close()

    for r in records:
        print(f"{r.created_at}  {len(r.questions):3d} questions  {r.label}  [{r.model or '?'}]")


async def _ping():
    from quizgen.errors import GenerationExhaustedError

    _, pipeline = _load_pipeline()
    try:
        result = await pipeline.ping()
    except GenerationExhaustedError as e:
        print(f"All models failed: {type(e.last_error).__name__ if e.last_error else 'no candidates'}")
        sys.exit(1)
    finally:
        await pipeline.close()
    print(f"OK ({result['model']}): {result['text'].strip()[:200]}")


if __name__ == "__main__":
    main()
