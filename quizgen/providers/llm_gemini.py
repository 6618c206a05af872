from __future__ import annotations

import asyncio
import logging
import os
import time
from collections.abc import AsyncIterator

from quizgen.providers.base import EmbeddingProvider, LLMProvider

log = logging.getLogger("quizgen.llm")


def _api_key() -> str:
    key = os.environ.get("GOOGLE_API_KEY") or os.environ.get("GEMINI_API_KEY") or ""
    if not key:
        raise RuntimeError("Missing Gemini API key. Set GOOGLE_API_KEY (or GEMINI_API_KEY).")
    return key


class GeminiProvider(LLMProvider):
    model_namespace = "models/"

    def __init__(self, model: str = "gemini-2.5-flash"):
        import google.generativeai as genai
        genai.configure(api_key=_api_key())
        self._genai = genai
        self.model = model

    async def generate(self, prompt: str, temperature: float = 0.7, model: str | None = None) -> str:
        model_name = model or self.model
        log.debug("── PROMPT (%s) ──\n%s", model_name, prompt)
        t0 = time.monotonic()
        client = self._genai.GenerativeModel(model_name)
        resp = await client.generate_content_async(
            prompt,
            generation_config={"temperature": temperature},
        )
        text = resp.text or ""
        log.debug("── RESPONSE (%s, %.1fs) ──\n%s", model_name, time.monotonic() - t0, text)
        return text

    async def generate_stream(
        self, prompt: str, temperature: float = 0.7, model: str | None = None
    ) -> AsyncIterator[str]:
        client = self._genai.GenerativeModel(model or self.model)
        resp = await client.generate_content_async(
            prompt,
            generation_config={"temperature": temperature},
            stream=True,
        )
        async for part in resp:
            if part.text:
                yield part.text

    def name(self) -> str:
        return f"gemini/{self.model}"


class GeminiEmbedder(EmbeddingProvider):
    def __init__(self, model: str = "models/text-embedding-004"):
        import google.generativeai as genai
        genai.configure(api_key=_api_key())
        self._genai = genai
        self.model = model

    async def embed(self, text: str) -> list[float]:
        # The SDK's embedding call is blocking; keep it off the event loop
        result = await asyncio.to_thread(
            self._genai.embed_content, model=self.model, content=text
        )
        return list(result["embedding"])

    def name(self) -> str:
        return f"gemini/{self.model}"
