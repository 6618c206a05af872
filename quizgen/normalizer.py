"""Turn free-form model output into repaired quiz questions.

Everything here is pure: no I/O, no exceptions for malformed input.  The
worst a model can do is produce an empty list, which the pipeline reports
as an ``EmptyGenerationError``.
"""
from __future__ import annotations

import json
import logging
import re

from quizgen.models import QuizQuestion

_log = logging.getLogger("quizgen.normalize")

OPTION_COUNT = 5
PLACEHOLDER_OPTIONS = ("Option A", "Option B", "Option C", "Option D", "Option E")

# Defaults for free-text fields that are missing or empty
FIELD_DEFAULTS = {
    "question": "Untitled question",
    "explanation": "No explanation provided.",
}

_THINK_RE = re.compile(r"<think>.*?</think>", re.DOTALL)
_FENCE_RE = re.compile(r"```(?:json|JSON)?\s*(.*?)\s*```", re.DOTALL)
_ARRAY_RE = re.compile(r"\[.*\]", re.DOTALL)
_TRAILING_COMMA_RE = re.compile(r",\s*([}\]])")
_QUOTES = str.maketrans({
    "“": '"',
    "”": '"',
    "‘": "'",
    "’": "'",
})


def extract_quiz_array(raw: str) -> list:
    """Pull the JSON array out of *raw*, tolerating common model mistakes.

    Returns ``[]`` when no array can be parsed.
    """
    if not raw or not isinstance(raw, str):
        return []

    text = _THINK_RE.sub("", raw).strip()

    m = _FENCE_RE.search(text)
    if m:
        text = m.group(1)

    m = _ARRAY_RE.search(text)
    if m:
        text = m.group(0)

    text = text.translate(_QUOTES)
    text = _TRAILING_COMMA_RE.sub(r"\1", text)

    try:
        parsed = json.loads(text)
    except json.JSONDecodeError:
        _log.debug("Unparseable model output: %.300s", raw)
        return []
    return parsed if isinstance(parsed, list) else []


def _repair_text(value, field_name: str) -> str:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return FIELD_DEFAULTS[field_name]


def _repair_options(value) -> list[str]:
    """Exactly five distinct options: truncate extras, pad with placeholders."""
    options: list[str] = []
    if isinstance(value, list):
        for item in value:
            if item is None or isinstance(item, (dict, list)):
                continue
            text = str(item).strip()
            if text and text not in options:
                options.append(text)
    options = options[:OPTION_COUNT]
    for placeholder in PLACEHOLDER_OPTIONS:
        if len(options) >= OPTION_COUNT:
            break
        if placeholder not in options:
            options.append(placeholder)
    return options


def _repair_answer(value, options: list[str]) -> str:
    if isinstance(value, str) and value.strip() in options:
        return value.strip()
    return options[0]


def repair_question(item) -> QuizQuestion | None:
    """Apply the field repair rules to one parsed element.

    Non-object elements are not questions at all and yield ``None``.
    """
    if not isinstance(item, dict):
        return None
    options = _repair_options(item.get("options"))
    return QuizQuestion(
        question=_repair_text(item.get("question"), "question"),
        options=options,
        answer=_repair_answer(item.get("answer"), options),
        explanation=_repair_text(item.get("explanation"), "explanation"),
    )


def normalize(raw: str) -> list[QuizQuestion]:
    questions = []
    for item in extract_quiz_array(raw):
        q = repair_question(item)
        if q is not None:
            questions.append(q)
    return questions
