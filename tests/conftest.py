"""Shared test fixtures and in-memory fakes for the external collaborators."""
from __future__ import annotations

import json
import math

import pytest
from elastic_transport import ApiResponseMeta, HttpHeaders, NodeConfig
from elasticsearch import BadRequestError

from quizgen.index_store import IndexStore
from quizgen.pipeline import QuizPipeline
from quizgen.providers.base import EmbeddingProvider, LLMProvider


def make_quiz_json(n: int, prefix: str = "Q") -> str:
    return json.dumps([
        {
            "question": f"{prefix}{i}?",
            "options": [f"{prefix}{i}-a", f"{prefix}{i}-b", f"{prefix}{i}-c", f"{prefix}{i}-d", f"{prefix}{i}-e"],
            "answer": f"{prefix}{i}-b",
            "explanation": f"Because {i}.",
        }
        for i in range(1, n + 1)
    ])


class FakeLLM(LLMProvider):
    """Returns canned responses in order; models listed in *failures* raise."""

    model_namespace = "models/"

    def __init__(self, responses=None, failures=None, model: str = "gemini-2.5-flash"):
        self.model = model
        self._responses = responses or [""]
        self.failures = failures or {}
        self.calls: list[tuple[str, str]] = []

    async def generate(self, prompt: str, temperature: float = 0.7, model: str | None = None) -> str:
        name = model or self.model
        self.calls.append((name, prompt))
        if name in self.failures:
            raise self.failures[name]
        idx = min(len(self.calls) - 1, len(self._responses) - 1)
        return self._responses[idx]

    def name(self) -> str:
        return "fake-llm"

    @property
    def call_count(self):
        return len(self.calls)


class FakeEmbedder(EmbeddingProvider):
    """Deterministic 4-dim bag-of-letters vectors."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls: list[str] = []

    async def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        if self.fail:
            raise RuntimeError("embedding service down")
        lower = text.lower()
        return [float(lower.count(ch)) + 0.1 for ch in "aeio"]

    def name(self) -> str:
        return "fake-embedder"


def api_error(cls, status: int, message: str):
    meta = ApiResponseMeta(
        status=status,
        http_version="1.1",
        headers=HttpHeaders(),
        duration=0.0,
        node=NodeConfig("http", "localhost", 9200),
    )
    return cls(message=message, meta=meta, body={"error": {"type": message}})


def _tokens(value) -> set[str]:
    return set(str(value or "").lower().split())


def _matches(query: dict | None, src: dict) -> bool:
    if not query or "match_all" in query:
        return True
    if "term" in query:
        (field, value), = query["term"].items()
        return src.get(field) == value
    if "match" in query:
        (field, value), = query["match"].items()
        return bool(_tokens(value) & _tokens(src.get(field)))
    if "bool" in query:
        b = query["bool"]
        if not all(_matches(q, src) for q in b.get("filter", [])):
            return False
        should = b.get("should", [])
        return not should or any(_matches(q, src) for q in should)
    raise AssertionError(f"unsupported query: {query}")


def _cosine(a, b) -> float:
    dot = sum(x * y for x, y in zip(a, b))
    na = math.sqrt(sum(x * x for x in a))
    nb = math.sqrt(sum(y * y for y in b))
    return dot / (na * nb) if na and nb else 0.0


class FakeIndices:
    def __init__(self, es: FakeElasticsearch):
        self.es = es
        self.hide_once: set[str] = set()

    async def exists(self, index: str) -> bool:
        self.es.calls.append(("exists", index))
        if index in self.hide_once:
            self.hide_once.discard(index)
            return False
        return index in self.es.data

    async def create(self, index: str, mappings=None, settings=None):
        self.es.calls.append(("create", index))
        if index in self.es.data:
            raise api_error(BadRequestError, 400, "resource_already_exists_exception")
        self.es.data[index] = {"mappings": mappings, "docs": [], "pending": []}
        return {"acknowledged": True}

    async def refresh(self, index: str):
        self.es.calls.append(("refresh", index))
        data = self.es._index(index)
        data["docs"].extend(data["pending"])
        data["pending"].clear()
        return {}


class FakeElasticsearch:
    """Enough of AsyncElasticsearch for the store: writes are invisible
    to search until a refresh, like the real engine."""

    def __init__(self, unreachable: Exception | None = None):
        self.data: dict[str, dict] = {}
        self.calls: list[tuple[str, str]] = []
        self.indices = FakeIndices(self)
        self.unreachable = unreachable
        self.closed = False
        self._next_id = 0

    def _index(self, index: str) -> dict:
        return self.data.setdefault(index, {"mappings": None, "docs": [], "pending": []})

    def _check(self):
        if self.unreachable is not None:
            raise self.unreachable

    async def index(self, index: str, document: dict, refresh=False):
        self._check()
        self.calls.append(("index", index))
        self._next_id += 1
        entry = {"_id": f"doc-{self._next_id}", "_source": dict(document)}
        data = self._index(index)
        if refresh in (True, "true", "wait_for"):
            data["docs"].append(entry)
        else:
            data["pending"].append(entry)
        return {"_id": entry["_id"], "result": "created"}

    async def search(self, index: str, query=None, sort=None, size=10, source_includes=None, knn=None):
        self._check()
        self.calls.append(("search", index))
        scored = []
        for entry in self._index(index)["docs"]:
            src = entry["_source"]
            lexical = _matches(query, src)
            score = float(len(_tokens(src.get("text")) & _tokens(_match_text(query))))
            if knn is not None and src.get("vector") is not None:
                score += _cosine(knn["query_vector"], src["vector"])
                lexical = True
            if lexical:
                scored.append((score, entry))
        if sort:
            (field, order), = sort[0].items()
            scored.sort(key=lambda p: p[1]["_source"].get(field), reverse=order["order"] == "desc")
        else:
            scored.sort(key=lambda p: p[0], reverse=True)
        hits = []
        for score, entry in scored[:size]:
            src = entry["_source"]
            if source_includes:
                src = {k: v for k, v in src.items() if k in source_includes}
            hits.append({"_id": entry["_id"], "_score": score, "_source": src})
        return {"hits": {"hits": hits}}

    async def close(self):
        self.closed = True

    def count(self, name: str) -> int:
        return sum(1 for call, _ in self.calls if call == name)


def _match_text(query) -> str:
    if not query:
        return ""
    if "match" in query:
        return str(next(iter(query["match"].values())))
    if "bool" in query:
        return " ".join(_match_text(q) for q in query["bool"].get("should", []))
    return ""


@pytest.fixture
def fake_es():
    return FakeElasticsearch()


@pytest.fixture
def store(fake_es):
    return IndexStore(fake_es, index="test", embedding_dim=4)


@pytest.fixture
def fake_llm():
    return FakeLLM(responses=[make_quiz_json(10)])


@pytest.fixture
def pipeline(store, fake_llm):
    return QuizPipeline(store, fake_llm, embedder=FakeEmbedder(), chunk_size=100)


@pytest.fixture
def sample_text():
    """About five chunks' worth of text at chunk_size=100."""
    sentences = [
        "Photosynthesis converts light energy into chemical energy in plants. ",
        "Chlorophyll absorbs mostly blue and red wavelengths of visible light. ",
        "The Calvin cycle fixes carbon dioxide into three-carbon sugars. ",
        "Stomata regulate gas exchange and water loss through transpiration. ",
        "Oxygen is released as a by-product when water molecules are split. ",
        "Plants store surplus glucose as starch in roots and seeds. ",
        "Light intensity, temperature and carbon dioxide limit the rate. ",
    ]
    return "".join(sentences)
