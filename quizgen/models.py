from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


class SourceKind(str, Enum):
    TOPIC = "topic"
    DOCUMENT = "document"


@dataclass(frozen=True)
class TextChunk:
    document_id: str
    title: str
    page_ordinal: int  # 1-based position at chunk time, not a physical page
    text: str
    vector: list[float] | None = None

    def to_document(self) -> dict:
        doc = {
            "document_id": self.document_id,
            "title": self.title,
            "page_ordinal": self.page_ordinal,
            "text": self.text,
            "created_at": datetime.now(timezone.utc).isoformat(),
        }
        if self.vector is not None:
            doc["vector"] = list(self.vector)
        return doc

    @classmethod
    def from_source(cls, source: dict) -> TextChunk:
        return cls(
            document_id=source.get("document_id", ""),
            title=source.get("title", ""),
            page_ordinal=int(source.get("page_ordinal", 0)),
            text=source.get("text", ""),
            vector=source.get("vector"),
        )


@dataclass(frozen=True)
class RetrievalContext:
    source_kind: SourceKind
    text: str
    truncated_length: int
    fell_back: bool = False


@dataclass(frozen=True)
class SearchHit:
    id: str
    score: float
    chunk: TextChunk


@dataclass
class QuizQuestion:
    question: str
    options: list[str]
    answer: str
    explanation: str

    def to_dict(self) -> dict:
        return {
            "question": self.question,
            "options": list(self.options),
            "answer": self.answer,
            "explanation": self.explanation,
        }


@dataclass(frozen=True)
class QuizRecord:
    questions: list[QuizQuestion]
    topic: str | None = None
    document_id: str | None = None
    model: str | None = None
    created_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    @property
    def label(self) -> str:
        """Provenance shown in history listings."""
        if self.topic:
            return self.topic
        return f"(doc:{self.document_id or ''})"

    def to_document(self) -> dict:
        return {
            "topic": self.label,
            "document_id": self.document_id,
            "model": self.model,
            "questions": [q.to_dict() for q in self.questions],
            "created_at": self.created_at,
        }

    @classmethod
    def from_source(cls, source: dict) -> QuizRecord:
        document_id = source.get("document_id")
        topic = source.get("topic")
        if topic == f"(doc:{document_id or ''})":
            topic = None
        return cls(
            questions=[QuizQuestion(**q) for q in source.get("questions", [])],
            topic=topic,
            document_id=document_id,
            model=source.get("model"),
            created_at=source.get("created_at", ""),
        )
