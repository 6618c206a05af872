"""Prompt templates for quiz generation."""
from __future__ import annotations

MIN_QUESTIONS = 5
MAX_QUESTIONS = 30
DEFAULT_QUESTIONS = 10

QUIZ_PROMPT = """\
Return ONLY a valid JSON array like this:
[
  {{
    "question": "string",
    "options": ["A", "B", "C", "D", "E"],
    "answer": "exact text of correct option",
    "explanation": "short reason"
  }}
]
Rules:
- Exactly 5 distinct options per question.
- "answer" MUST be one of the options verbatim.
- Do not add any text before or after the JSON array.
- Base questions on this content (use it carefully and accurately):
\"\"\"{context}\"\"\"
Generate {count} multiple-choice questions.
"""

PING_PROMPT = "ping"


def clamp_question_count(n, default: int = DEFAULT_QUESTIONS) -> int:
    """Coerce a requested question count into [MIN_QUESTIONS, MAX_QUESTIONS].

    Unparseable or zero values fall back to *default* before clamping.
    """
    try:
        value = int(n)
    except (TypeError, ValueError):
        value = 0
    if not value:
        value = default
    return max(MIN_QUESTIONS, min(MAX_QUESTIONS, value))


def build_prompt(context: str, n) -> str:
    return QUIZ_PROMPT.format(context=context, count=clamp_question_count(n))
