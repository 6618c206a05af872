"""Error kinds raised by the ingestion and generation pipelines.

Callers branch on the exception class (or its ``kind``), never on message
text.  ``client_error`` tells the HTTP layer whether the caller or the
service is at fault.
"""
from __future__ import annotations


class QuizGenError(Exception):
    kind = "internal"
    client_error = False

    def __init__(self, message: str, cause: BaseException | None = None):
        super().__init__(message)
        self.message = message
        self.cause = cause


class MissingInputError(QuizGenError):
    """Neither a topic nor a document id (or no document text) was supplied."""

    kind = "missing_input"
    client_error = True


class RetrievalEmptyError(QuizGenError):
    """A document id matched no usable text.  Always absorbed by retrieval."""

    kind = "retrieval_empty"


class GenerationExhaustedError(QuizGenError):
    """Every model candidate failed, timed out or returned nothing."""

    kind = "generation_exhausted"

    def __init__(
        self,
        message: str,
        last_error: BaseException | None = None,
        candidates: list[str] | None = None,
    ):
        super().__init__(message, cause=last_error)
        self.last_error = last_error
        self.candidates = list(candidates or [])


class EmptyGenerationError(QuizGenError):
    """The model answered but no quiz question survived repair."""

    kind = "empty_generation"


class IndexUnavailableError(QuizGenError):
    """The search engine could not be reached."""

    kind = "index_unavailable"


class SearchRequestError(QuizGenError):
    """The search engine was reachable but rejected the request."""

    kind = "search_failed"
