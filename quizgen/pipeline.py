"""Ingestion and quiz generation over the shared index store."""
from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from quizgen.chunker import chunk
from quizgen.errors import EmptyGenerationError, MissingInputError
from quizgen.generation import DEFAULT_MODEL, GenerationOrchestrator, candidate_models
from quizgen.index_store import IndexStore
from quizgen.models import QuizRecord, TextChunk
from quizgen.normalizer import normalize
from quizgen.prompts import build_prompt, clamp_question_count
from quizgen.retrieval import RetrievalEngine

if TYPE_CHECKING:
    from quizgen.config import Settings
    from quizgen.providers.base import EmbeddingProvider, LLMProvider

_log = logging.getLogger("quizgen.qgen")
_ingest_log = logging.getLogger("quizgen.ingest")

MIN_CHUNK_CHARS = 40
EMBED_CONCURRENCY = 8


class QuizPipeline:
    def __init__(
        self,
        store: IndexStore,
        llm: LLMProvider,
        embedder: EmbeddingProvider | None = None,
        candidates: list[str] | None = None,
        chunk_size: int = 1200,
        max_context_chars: int = 12000,
        generation_timeout: float = 60.0,
        embed_timeout: float = 20.0,
        embed_concurrency: int = EMBED_CONCURRENCY,
        temperature: float = 0.7,
    ):
        self.store = store
        self.llm = llm
        self.embedder = embedder
        self.chunk_size = chunk_size
        self.embed_timeout = embed_timeout
        self.embed_concurrency = embed_concurrency
        self.retrieval = RetrievalEngine(
            store, embedder, max_chars=max_context_chars, embed_timeout=embed_timeout,
        )
        self.orchestrator = GenerationOrchestrator(
            llm, candidates, timeout=generation_timeout, temperature=temperature,
        )

    # ── Ingestion ─────────────────────────────────────────────────────────

    async def _embed_all(self, pieces: list[str]) -> list[list[float] | None]:
        if self.embedder is None:
            return [None] * len(pieces)
        sem = asyncio.Semaphore(self.embed_concurrency)

        async def one(text: str) -> list[float] | None:
            async with sem:
                try:
                    return await asyncio.wait_for(
                        self.embedder.embed(text), timeout=self.embed_timeout,
                    )
                except Exception as e:
                    # Chunk stays lexically searchable without a vector
                    _ingest_log.warning("Embedding failed (%s); indexing without vector", type(e).__name__)
                    return None

        return await asyncio.gather(*(one(p) for p in pieces))

    async def ingest(self, document_id: str, title: str, raw_text: str) -> dict:
        """Chunk, embed and index *raw_text* under *document_id*.

        All chunk writes run concurrently; one refresh at the end makes the
        document retrievable by id as soon as this returns.
        """
        if not (raw_text or "").strip():
            raise MissingInputError("No text found in document")
        if not (document_id or "").strip():
            raise MissingInputError("Document id is required")

        # Ordinals are assigned before short pieces are dropped
        numbered = [
            (i, piece)
            for i, piece in enumerate(chunk(raw_text, self.chunk_size), start=1)
            if len(piece.strip()) >= MIN_CHUNK_CHARS
        ]
        _ingest_log.info("Ingest %s (%r): %d chars, %d chunks", document_id, title, len(raw_text), len(numbered))

        await self.store.ensure_index()
        vectors = await self._embed_all([piece for _, piece in numbered])
        await asyncio.gather(*(
            self.store.index_chunk(TextChunk(document_id, title, ordinal, piece, vector))
            for (ordinal, piece), vector in zip(numbered, vectors)
        ))
        await self.store.refresh()

        return {
            "document_id": document_id,
            "title": title,
            "chunks_indexed": len(numbered),
            "text_length": len(raw_text),
        }

    # ── Generation ────────────────────────────────────────────────────────

    async def generate_quiz(
        self,
        topic: str | None = None,
        document_id: str | None = None,
        question_count=10,
    ) -> QuizRecord:
        topic = (topic or "").strip()
        document_id = (document_id or "").strip()
        if not topic and not document_id:
            raise MissingInputError("Provide either topic or document")

        n = clamp_question_count(question_count)
        await self.store.ensure_index()

        context = await self.retrieval.retrieve_context(topic, document_id)
        prompt = build_prompt(context.text, n)

        model, raw = await self.orchestrator.generate_with_model(prompt)
        questions = normalize(raw)
        if not questions:
            _log.warning("No valid questions in %d chars of model output", len(raw))
            raise EmptyGenerationError("Empty quiz output")
        if len(questions) > n:
            questions = questions[:n]
        _log.info("Generated %d/%d questions with %s", len(questions), n, model)

        record = QuizRecord(
            questions=questions,
            topic=topic or None,
            document_id=document_id or None,
            model=model,
        )
        await self.store.save_quiz_record(record)
        return record

    async def ping(self) -> dict:
        return await self.orchestrator.ping()

    async def close(self) -> None:
        await self.store.close()


# ── Construction from settings ───────────────────────────────────────────

def build_llm(settings: Settings) -> LLMProvider:
    if settings.llm_provider == "gemini":
        from quizgen.providers.llm_gemini import GeminiProvider
        return GeminiProvider(model=settings.llm_model)
    elif settings.llm_provider == "ollama":
        from quizgen.providers.llm_ollama import OllamaProvider
        return OllamaProvider(base_url=settings.ollama_url, model=settings.llm_model)
    elif settings.llm_provider == "anthropic":
        from quizgen.providers.llm_anthropic import AnthropicProvider
        return AnthropicProvider(model=settings.llm_model)
    elif settings.llm_provider == "openai":
        from quizgen.providers.llm_openai import OpenAIProvider
        return OpenAIProvider(model=settings.llm_model)
    raise ValueError(f"Unknown LLM provider: {settings.llm_provider}")


def build_embedder(settings: Settings) -> EmbeddingProvider | None:
    if not settings.embeddings_enabled:
        return None
    if settings.embedding_provider == "gemini":
        from quizgen.providers.llm_gemini import GeminiEmbedder
        return GeminiEmbedder(model=settings.embedding_model)
    elif settings.embedding_provider == "ollama":
        from quizgen.providers.llm_ollama import OllamaEmbedder
        return OllamaEmbedder(base_url=settings.ollama_url, model=settings.embedding_model)
    elif settings.embedding_provider == "openai":
        from quizgen.providers.llm_openai import OpenAIEmbedder
        return OpenAIEmbedder(model=settings.embedding_model, dimensions=settings.embedding_dim)
    raise ValueError(f"Unknown embedding provider: {settings.embedding_provider}")


def build_candidates(settings: Settings, llm: LLMProvider) -> list[str]:
    if llm.model_namespace:
        return candidate_models(settings.llm_model, DEFAULT_MODEL, llm.model_namespace)
    return candidate_models(settings.llm_model, settings.llm_model, namespace="")


def build_pipeline(settings: Settings) -> QuizPipeline:
    llm = build_llm(settings)
    return QuizPipeline(
        store=IndexStore.from_settings(settings),
        llm=llm,
        embedder=build_embedder(settings),
        candidates=build_candidates(settings, llm),
        chunk_size=settings.chunk_size,
        max_context_chars=settings.max_context_chars,
        generation_timeout=settings.generation_timeout,
        embed_timeout=settings.embed_timeout,
        embed_concurrency=settings.embed_concurrency,
        temperature=settings.llm_temperature,
    )
