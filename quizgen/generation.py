"""Sequential model fallback for a single generation request."""
from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from quizgen.errors import GenerationExhaustedError
from quizgen.prompts import PING_PROMPT

if TYPE_CHECKING:
    from quizgen.providers.base import LLMProvider

_log = logging.getLogger("quizgen.generate")

DEFAULT_MODEL = "gemini-2.5-flash"
DEFAULT_TIMEOUT = 60.0


def _variants(name: str, namespace: str) -> list[str]:
    if not namespace:
        return [name]
    if name.startswith(namespace):
        return [name, name[len(namespace):]]
    return [name, f"{namespace}{name}"]


def candidate_models(
    preferred: str | None,
    default: str = DEFAULT_MODEL,
    namespace: str = "models/",
) -> list[str]:
    """Preferred model first, then the default, each in both spellings.

    >>> candidate_models("gemini-2.0-flash")
    ['gemini-2.0-flash', 'models/gemini-2.0-flash', 'gemini-2.5-flash', 'models/gemini-2.5-flash']
    """
    out: list[str] = []
    for name in ((preferred or "").strip(), default):
        if not name:
            continue
        for variant in _variants(name, namespace):
            if variant not in out:
                out.append(variant)
    return out


class GenerationOrchestrator:
    """Try each model candidate in order until one returns text.

    Timeouts, exceptions and empty responses all count as a failed
    candidate.  Cancellation is never absorbed.
    """

    def __init__(
        self,
        llm: LLMProvider,
        candidates: list[str] | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        temperature: float = 0.7,
    ):
        self.llm = llm
        if candidates is None:
            # The hard-coded default only makes sense for namespaced (Gemini) APIs
            namespace = llm.model_namespace
            candidates = candidate_models(
                llm.model,
                default=DEFAULT_MODEL if namespace else llm.model,
                namespace=namespace,
            )
        self.candidates = list(candidates)
        self.timeout = timeout
        self.temperature = temperature

    async def generate_with_model(
        self, prompt: str, candidates: list[str] | None = None
    ) -> tuple[str, str]:
        """Return ``(model_name, text)`` from the first candidate that succeeds."""
        names = self.candidates if candidates is None else list(candidates)
        last_error: BaseException | None = None
        for name in names:
            try:
                text = await asyncio.wait_for(
                    self.llm.generate(prompt, temperature=self.temperature, model=name),
                    timeout=self.timeout,
                )
            except asyncio.TimeoutError as e:
                _log.warning("Model %s timed out after %.0fs", name, self.timeout)
                last_error = e
                continue
            except Exception as e:
                _log.warning("Model %s failed: %s", name, type(e).__name__)
                last_error = e
                continue
            if text and text.strip():
                _log.info("Used model: %s", name)
                return name, text
            _log.warning("Model %s returned empty text", name)
            last_error = RuntimeError(f"model {name} returned empty text")

        raise GenerationExhaustedError(
            f"All {len(names)} model candidates failed",
            last_error=last_error,
            candidates=names,
        )

    async def generate(self, prompt: str, candidates: list[str] | None = None) -> str:
        _, text = await self.generate_with_model(prompt, candidates)
        return text

    async def ping(self) -> dict:
        """Diagnostics: which candidate answers a trivial prompt."""
        model, text = await self.generate_with_model(PING_PROMPT)
        return {"ok": True, "model": model, "text": text}
