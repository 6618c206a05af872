"""FastAPI application with all routes."""
from __future__ import annotations

import json
import logging
import uuid

logging.basicConfig(level=logging.INFO, format="%(name)s | %(message)s")

from fastapi import FastAPI, File, HTTPException, Request, UploadFile
from fastapi.responses import JSONResponse, StreamingResponse
from pypdf.errors import PyPdfError

from quizgen.config import Settings, load_settings
from quizgen.errors import IndexUnavailableError, QuizGenError
from quizgen.pdf_text import extract_pdf_text
from quizgen.pipeline import QuizPipeline, build_pipeline

app = FastAPI(title="QuizGen")

_log = logging.getLogger("quizgen.api")

# Global state (initialized on startup)
_pipeline: QuizPipeline | None = None
_settings: Settings | None = None

MAX_UPLOAD_BYTES = 20 * 1024 * 1024


def get_pipeline() -> QuizPipeline:
    assert _pipeline is not None
    return _pipeline


def get_settings() -> Settings:
    assert _settings is not None
    return _settings


@app.on_event("startup")
async def startup():
    global _pipeline, _settings
    if _pipeline is not None:
        return  # Already initialized (e.g. by tests)
    _settings = load_settings()
    _pipeline = build_pipeline(_settings)
    try:
        await _pipeline.store.ensure_index()
        _log.info("Search index verified")
    except IndexUnavailableError as e:
        # Requests will retry; the engine may come up after the API
        _log.error("Failed to ensure index: %s", e.cause or e)


@app.on_event("shutdown")
async def shutdown():
    if _pipeline:
        await _pipeline.close()


@app.exception_handler(QuizGenError)
async def quizgen_error_handler(request: Request, exc: QuizGenError):
    if exc.client_error:
        status = 400
    elif isinstance(exc, IndexUnavailableError):
        status = 503
    else:
        status = 502
    _log.warning("%s %s failed: %s (%s)", request.method, request.url.path, exc.kind,
                 type(exc.cause).__name__ if exc.cause else "-")
    return JSONResponse(
        status_code=status,
        content={"ok": False, "kind": exc.kind, "message": exc.message},
    )


@app.get("/")
async def index():
    return {"message": "QuizGen backend running"}


# ── API: Quiz ─────────────────────────────────────────────────────────────

@app.get("/quiz/ping")
async def api_ping():
    return await get_pipeline().ping()


@app.post("/quiz/generate")
async def api_generate(request: Request):
    body = await request.json() if await request.body() else {}
    topic = body.get("topic") or ""
    document_id = body.get("docId") or body.get("document_id") or ""
    n = body.get("n", get_settings().default_question_count)

    record = await get_pipeline().generate_quiz(topic, document_id, n)
    return {
        "ok": True,
        "quiz": [q.to_dict() for q in record.questions],
        "count": len(record.questions),
        "model": record.model,
        "topic": record.topic,
        "document_id": record.document_id,
        "created_at": record.created_at,
    }


@app.get("/quiz/history")
async def api_history(limit: int = 20):
    records = await get_pipeline().store.recent_quiz_records(limit=max(1, min(limit, 100)))
    return {"ok": True, "records": [r.to_document() for r in records]}


# ── API: Ingestion ────────────────────────────────────────────────────────

def _ingest_response(result: dict) -> dict:
    return {
        "ok": True,
        "docId": result["document_id"],
        "title": result["title"],
        "chunksIndexed": result["chunks_indexed"],
        "textLen": result["text_length"],
    }


@app.post("/upload")
async def api_upload(file: UploadFile | None = File(None)):
    if file is None:
        raise HTTPException(400, "no_file")
    data = await file.read()
    if len(data) > MAX_UPLOAD_BYTES:
        raise HTTPException(413, "File too large")

    title = file.filename or "document.pdf"
    try:
        text = extract_pdf_text(data)
    except PyPdfError as e:
        raise HTTPException(400, f"PDF extraction failed: {type(e).__name__}")
    if not text:
        raise HTTPException(400, "No text found in PDF")

    result = await get_pipeline().ingest(str(uuid.uuid4()), title, text)
    return _ingest_response(result)


@app.post("/upload/text")
async def api_upload_text(request: Request):
    body = await request.json()
    text = body.get("text", "")
    title = body.get("title") or "document.txt"
    if not text.strip():
        raise HTTPException(400, "No text provided")

    result = await get_pipeline().ingest(str(uuid.uuid4()), title, text)
    return _ingest_response(result)


# ── API: Search ───────────────────────────────────────────────────────────

@app.post("/search")
async def api_search(request: Request):
    body = await request.json()
    query = body.get("query", "")
    try:
        k = int(body.get("k", 20))
        size = int(body.get("size", 6))
    except (TypeError, ValueError):
        raise HTTPException(400, "k and size must be integers")
    k = max(1, min(k, 100))
    size = max(1, min(size, 50))

    hits = await get_pipeline().retrieval.search(query, k=k, size=size)
    return {
        "ok": True,
        "hits": [
            {
                "id": h.id,
                "score": h.score,
                "docId": h.chunk.document_id,
                "title": h.chunk.title,
                "page": h.chunk.page_ordinal,
                "text": h.chunk.text,
            }
            for h in hits
        ],
    }


# ── API: Ask ──────────────────────────────────────────────────────────────

@app.post("/ask")
async def api_ask(request: Request):
    body = await request.json()
    prompt = body.get("prompt", "")
    if not prompt:
        raise HTTPException(400, "Missing prompt")

    llm = get_pipeline().llm

    async def stream():
        try:
            async for token in llm.generate_stream(prompt, temperature=get_settings().llm_temperature):
                yield f"data: {json.dumps({'token': token})}\n\n"
            yield f"data: {json.dumps({'done': True})}\n\n"
        except Exception as e:
            _log.warning("Ask stream failed: %s", type(e).__name__)
            yield f"data: {json.dumps({'error': 'generation failed'})}\n\n"

    return StreamingResponse(
        stream(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
