"""Build the context a quiz is grounded in."""
from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from quizgen.errors import MissingInputError, RetrievalEmptyError
from quizgen.models import RetrievalContext, SearchHit, SourceKind

if TYPE_CHECKING:
    from quizgen.index_store import IndexStore
    from quizgen.providers.base import EmbeddingProvider

_log = logging.getLogger("quizgen.retrieval")

DEFAULT_MAX_CHARS = 12000
MIN_CONTEXT_CHARS = 20
GENERAL_CONTEXT = "General knowledge for education"


def topic_context(topic: str) -> str:
    return f"Topic: {topic.strip()}"


def _meaningful_length(text: str) -> int:
    return len("".join(text.split()))


class RetrievalEngine:
    def __init__(
        self,
        store: IndexStore,
        embedder: EmbeddingProvider | None = None,
        max_chars: int = DEFAULT_MAX_CHARS,
        embed_timeout: float = 20.0,
    ):
        self.store = store
        self.embedder = embedder
        self.max_chars = max_chars
        self.embed_timeout = embed_timeout

    async def document_text(self, document_id: str, max_chars: int | None = None) -> str:
        """Concatenated chunk text for *document_id*, truncated.

        Raises RetrievalEmptyError when fewer than MIN_CONTEXT_CHARS
        non-whitespace characters come back.
        """
        limit = max_chars or self.max_chars
        chunks = await self.store.chunks_for_document(document_id)
        text = "\n".join(c.text for c in chunks)[:limit]
        if _meaningful_length(text) < MIN_CONTEXT_CHARS:
            raise RetrievalEmptyError(f"No usable text for document {document_id}")
        return text

    async def retrieve_context(
        self,
        topic: str | None = None,
        document_id: str | None = None,
        max_chars: int | None = None,
    ) -> RetrievalContext:
        topic = (topic or "").strip()
        document_id = (document_id or "").strip()

        if document_id:
            try:
                text = await self.document_text(document_id, max_chars)
            except RetrievalEmptyError:
                fallback = topic_context(topic) if topic else GENERAL_CONTEXT
                _log.warning("Empty/short context for %s; falling back to %r", document_id, fallback)
                return RetrievalContext(SourceKind.TOPIC, fallback, len(fallback), fell_back=True)
            _log.info("Context for %s: %d chars", document_id, len(text))
            _log.debug("Context preview: %.200s", text)
            return RetrievalContext(SourceKind.DOCUMENT, text, len(text))

        if topic:
            text = topic_context(topic)
            return RetrievalContext(SourceKind.TOPIC, text, len(text))

        raise MissingInputError("Provide either topic or document")

    async def _query_vector(self, query: str) -> list[float] | None:
        if self.embedder is None:
            return None
        try:
            return await asyncio.wait_for(self.embedder.embed(query), timeout=self.embed_timeout)
        except Exception as e:
            # Lexical ranking still works without the vector half
            _log.warning("Query embedding failed (%s); lexical search only", type(e).__name__)
            return None

    async def search(self, query: str, k: int = 20, size: int = 6) -> list[SearchHit]:
        """Hybrid ranked search over all indexed chunks."""
        query = (query or "").strip()
        if not query:
            raise MissingInputError("Provide a search query")
        vector = await self._query_vector(query)
        return await self.store.hybrid_search(query, vector, k=k, size=size)
