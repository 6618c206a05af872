"""Elasticsearch adapter for document chunks and quiz history."""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from elasticsearch import ApiError, AsyncElasticsearch, BadRequestError, NotFoundError, TransportError

from quizgen.errors import IndexUnavailableError, SearchRequestError
from quizgen.models import QuizRecord, SearchHit, TextChunk

if TYPE_CHECKING:
    from quizgen.config import Settings

log = logging.getLogger("quizgen.index")

# Upper bound on chunks gathered for one document id
MAX_DOCUMENT_CHUNKS = 1000
_SOURCE_FIELDS = ["document_id", "title", "page_ordinal", "text"]


def chunk_mappings(embedding_dim: int) -> dict:
    return {
        "properties": {
            "document_id": {"type": "keyword"},
            "title": {"type": "keyword"},
            "page_ordinal": {"type": "integer"},
            "text": {"type": "text"},
            "vector": {
                "type": "dense_vector",
                "dims": embedding_dim,
                "index": True,
                "similarity": "cosine",
            },
            "created_at": {"type": "date"},
        }
    }


QUIZ_MAPPINGS = {
    "properties": {
        "topic": {"type": "text"},
        "document_id": {"type": "keyword"},
        "model": {"type": "keyword"},
        # Stored for audit, never queried
        "questions": {"type": "object", "enabled": False},
        "created_at": {"type": "date"},
    }
}


class IndexStore:
    def __init__(
        self,
        client: AsyncElasticsearch,
        index: str = "quizgen",
        quiz_index: str | None = None,
        embedding_dim: int = 768,
    ):
        self.client = client
        self.index = index
        self.quiz_index = quiz_index or f"{index}-quizzes"
        self.embedding_dim = embedding_dim

    @classmethod
    def from_settings(cls, settings: Settings) -> IndexStore:
        kwargs = {"request_timeout": settings.search_timeout}
        if settings.elastic_api_key:
            kwargs["api_key"] = settings.elastic_api_key
        client = AsyncElasticsearch(settings.elastic_url, **kwargs)
        return cls(
            client,
            index=settings.index_name,
            quiz_index=settings.quiz_index,
            embedding_dim=settings.embedding_dim,
        )

    async def close(self) -> None:
        await self.client.close()

    # ── Schema ────────────────────────────────────────────────────────────

    async def _create_if_missing(self, index: str, mappings: dict) -> bool:
        if await self.client.indices.exists(index=index):
            return False
        try:
            await self.client.indices.create(
                index=index,
                mappings=mappings,
                settings={"number_of_shards": 1, "number_of_replicas": 0},
            )
        except BadRequestError:
            # Another caller created it between our check and create
            if await self.client.indices.exists(index=index):
                log.debug("Index %s created concurrently", index)
                return False
            raise
        log.info("Index created: %s", index)
        return True

    async def ensure_index(self) -> None:
        """Create the chunk and quiz indices if absent.  Safe to call repeatedly."""
        try:
            await self._create_if_missing(self.index, chunk_mappings(self.embedding_dim))
            await self._create_if_missing(self.quiz_index, QUIZ_MAPPINGS)
        except TransportError as e:
            raise IndexUnavailableError("Search engine unreachable", cause=e) from e
        except ApiError as e:
            # Auth failures or a create rejected for a reason other than a race
            raise IndexUnavailableError(f"Index setup failed (HTTP {e.status_code})", cause=e) from e

    async def refresh(self) -> None:
        try:
            await self.client.indices.refresh(index=self.index)
        except TransportError as e:
            raise IndexUnavailableError("Search engine unreachable", cause=e) from e
        except ApiError as e:
            raise SearchRequestError(f"Refresh rejected (HTTP {e.status_code})", cause=e) from e

    # ── Chunks ────────────────────────────────────────────────────────────

    async def index_chunk(self, chunk: TextChunk) -> None:
        try:
            await self.client.index(
                index=self.index,
                document=chunk.to_document(),
                refresh=False,
            )
        except TransportError as e:
            raise IndexUnavailableError("Search engine unreachable", cause=e) from e
        except ApiError as e:
            raise SearchRequestError(f"Chunk write rejected (HTTP {e.status_code})", cause=e) from e

    async def _search_chunks(self, query: dict) -> list[TextChunk]:
        try:
            resp = await self.client.search(
                index=self.index,
                query=query,
                sort=[{"page_ordinal": {"order": "asc"}}],
                size=MAX_DOCUMENT_CHUNKS,
                source_includes=_SOURCE_FIELDS,
            )
        except TransportError as e:
            raise IndexUnavailableError("Search engine unreachable", cause=e) from e
        except ApiError as e:
            log.warning("Chunk lookup failed (HTTP %s)", e.meta.status if e.meta else "?")
            return []
        return [TextChunk.from_source(h.get("_source") or {}) for h in resp["hits"]["hits"]]

    async def chunks_for_document(self, document_id: str) -> list[TextChunk]:
        """All chunks of *document_id* ordered by page ordinal.

        Each attempt is more permissive than the last: exact term filter,
        then a match query, then a forced refresh before the exact filter
        again (covers writes that are not yet searchable).  Returns ``[]``
        when all three come up empty.
        """
        exact = {"bool": {"filter": [{"term": {"document_id": document_id}}]}}

        chunks = await self._search_chunks(exact)
        if chunks:
            return chunks

        log.debug("No exact hits for %s; trying match", document_id)
        chunks = await self._search_chunks({"match": {"document_id": document_id}})
        if chunks:
            return chunks

        log.debug("No match hits for %s; refreshing and retrying", document_id)
        try:
            await self.refresh()
        except SearchRequestError:
            log.warning("Refresh before retry failed for %s", self.index)
        return await self._search_chunks(exact)

    async def hybrid_search(
        self,
        query_text: str,
        query_vector: list[float] | None = None,
        k: int = 20,
        size: int = 6,
    ) -> list[SearchHit]:
        """Lexical match on text fused with k-NN on vector by the engine."""
        body: dict = {
            "query": {"bool": {"should": [{"match": {"text": query_text}}]}},
            "size": size,
            "source_includes": _SOURCE_FIELDS,
        }
        if query_vector is not None:
            body["knn"] = {
                "field": "vector",
                "query_vector": query_vector,
                "k": k,
                "num_candidates": max(100, k * 5),
            }
        try:
            resp = await self.client.search(index=self.index, **body)
        except TransportError as e:
            raise IndexUnavailableError("Search engine unreachable", cause=e) from e
        except NotFoundError:
            log.warning("Search on missing index %s", self.index)
            return []
        except ApiError as e:
            raise SearchRequestError(f"Search rejected (HTTP {e.status_code})", cause=e) from e
        return [
            SearchHit(
                id=h.get("_id", ""),
                score=float(h.get("_score") or 0.0),
                chunk=TextChunk.from_source(h.get("_source") or {}),
            )
            for h in resp["hits"]["hits"]
        ]

    # ── Quiz history ──────────────────────────────────────────────────────

    async def save_quiz_record(self, record: QuizRecord) -> str:
        """Append *record*; visible to reads as soon as this returns."""
        try:
            resp = await self.client.index(
                index=self.quiz_index,
                document=record.to_document(),
                refresh="wait_for",
            )
        except TransportError as e:
            raise IndexUnavailableError("Search engine unreachable", cause=e) from e
        except ApiError as e:
            raise SearchRequestError(f"Quiz record rejected (HTTP {e.status_code})", cause=e) from e
        return resp["_id"]

    async def recent_quiz_records(self, limit: int = 20) -> list[QuizRecord]:
        try:
            resp = await self.client.search(
                index=self.quiz_index,
                query={"match_all": {}},
                sort=[{"created_at": {"order": "desc"}}],
                size=limit,
            )
        except TransportError as e:
            raise IndexUnavailableError("Search engine unreachable", cause=e) from e
        except NotFoundError:
            log.warning("History index %s missing", self.quiz_index)
            return []
        except ApiError as e:
            raise SearchRequestError(f"History lookup rejected (HTTP {e.status_code})", cause=e) from e
        return [QuizRecord.from_source(h.get("_source") or {}) for h in resp["hits"]["hits"]]
