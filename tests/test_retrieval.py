"""Tests for context retrieval and hybrid search."""
from __future__ import annotations

import pytest

from quizgen.errors import MissingInputError, RetrievalEmptyError
from quizgen.models import SourceKind, TextChunk
from quizgen.retrieval import GENERAL_CONTEXT, RetrievalEngine, topic_context

from conftest import FakeEmbedder


async def _index(store, document_id, texts):
    for i, text in enumerate(texts, start=1):
        await store.index_chunk(TextChunk(document_id, "T", i, text))
    await store.refresh()


class TestDocumentText:
    @pytest.mark.asyncio
    async def test_joined_in_order(self, store):
        await _index(store, "d1", ["first chunk of meaningful text", "second chunk of text"])
        text = await RetrievalEngine(store).document_text("d1")
        assert text == "first chunk of meaningful text\nsecond chunk of text"

    @pytest.mark.asyncio
    async def test_truncated(self, store):
        await _index(store, "d1", ["a" * 500, "b" * 500])
        text = await RetrievalEngine(store, max_chars=600).document_text("d1")
        assert len(text) == 600
        assert text.startswith("a" * 500 + "\n")

    @pytest.mark.asyncio
    async def test_per_call_limit(self, store):
        await _index(store, "d1", ["c" * 100])
        assert len(await RetrievalEngine(store).document_text("d1", max_chars=30)) == 30

    @pytest.mark.asyncio
    async def test_too_short_raises(self, store):
        await _index(store, "d1", ["  tiny   text  "])
        with pytest.raises(RetrievalEmptyError):
            await RetrievalEngine(store).document_text("d1")

    @pytest.mark.asyncio
    async def test_missing_document_raises(self, store):
        with pytest.raises(RetrievalEmptyError):
            await RetrievalEngine(store).document_text("nope")


class TestRetrieveContext:
    @pytest.mark.asyncio
    async def test_document_context(self, store):
        await _index(store, "d1", ["The mitochondria is the powerhouse of the cell."])
        ctx = await RetrievalEngine(store).retrieve_context(document_id="d1")
        assert ctx.source_kind == SourceKind.DOCUMENT
        assert ctx.text.startswith("The mitochondria")
        assert ctx.truncated_length == len(ctx.text)
        assert not ctx.fell_back

    @pytest.mark.asyncio
    async def test_document_preferred_over_topic(self, store):
        await _index(store, "d1", ["Plate tectonics moves continents slowly."])
        ctx = await RetrievalEngine(store).retrieve_context(topic="History", document_id="d1")
        assert ctx.source_kind == SourceKind.DOCUMENT

    @pytest.mark.asyncio
    async def test_empty_document_falls_back_to_topic(self, store):
        ctx = await RetrievalEngine(store).retrieve_context(topic="Volcanoes", document_id="gone")
        assert ctx.source_kind == SourceKind.TOPIC
        assert ctx.text == "Topic: Volcanoes"
        assert ctx.fell_back

    @pytest.mark.asyncio
    async def test_empty_document_without_topic_uses_general(self, store):
        ctx = await RetrievalEngine(store).retrieve_context(document_id="gone")
        assert ctx.text == GENERAL_CONTEXT
        assert ctx.fell_back

    @pytest.mark.asyncio
    async def test_topic_only(self, store, fake_es):
        ctx = await RetrievalEngine(store).retrieve_context(topic="  Algebra ")
        assert ctx.text == topic_context("Algebra") == "Topic: Algebra"
        assert ctx.source_kind == SourceKind.TOPIC
        assert fake_es.count("search") == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("topic,doc", [(None, None), ("", ""), ("  ", " ")])
    async def test_neither_raises(self, store, topic, doc):
        with pytest.raises(MissingInputError):
            await RetrievalEngine(store).retrieve_context(topic, doc)


class TestSearch:
    @pytest.mark.asyncio
    async def test_uses_query_vector(self, store):
        embedder = FakeEmbedder()
        await _index(store, "d1", ["glucose storage in roots"])
        hits = await RetrievalEngine(store, embedder).search("glucose")
        assert embedder.calls == ["glucose"]
        assert hits and hits[0].chunk.text == "glucose storage in roots"

    @pytest.mark.asyncio
    async def test_embedding_failure_degrades_to_lexical(self, store):
        await _index(store, "d1", ["glucose storage in roots"])
        hits = await RetrievalEngine(store, FakeEmbedder(fail=True)).search("glucose")
        assert [h.chunk.page_ordinal for h in hits] == [1]

    @pytest.mark.asyncio
    async def test_empty_query(self, store):
        with pytest.raises(MissingInputError):
            await RetrievalEngine(store).search("   ")
