from __future__ import annotations

import logging
import os
from collections.abc import AsyncIterator

from quizgen.providers.base import EmbeddingProvider, LLMProvider

log = logging.getLogger("quizgen.llm")


def _client():
    import openai
    return openai.AsyncOpenAI(api_key=os.environ.get("OPENAI_API_KEY", ""))


class OpenAIProvider(LLMProvider):
    def __init__(self, model: str = "gpt-4o-mini"):
        self.client = _client()
        self.model = model

    async def generate(self, prompt: str, temperature: float = 0.7, model: str | None = None) -> str:
        model_name = model or self.model
        log.debug("── PROMPT (%s) ──\n%s", model_name, prompt)
        resp = await self.client.chat.completions.create(
            model=model_name,
            temperature=temperature,
            messages=[{"role": "user", "content": prompt}],
        )
        choice = resp.choices[0]
        if choice.finish_reason == "length":
            log.warning("Response from %s truncated at the token limit", model_name)
        return choice.message.content or ""

    async def generate_stream(
        self, prompt: str, temperature: float = 0.7, model: str | None = None
    ) -> AsyncIterator[str]:
        stream = await self.client.chat.completions.create(
            model=model or self.model,
            temperature=temperature,
            messages=[{"role": "user", "content": prompt}],
            stream=True,
        )
        async for event in stream:
            if event.choices and event.choices[0].delta.content:
                yield event.choices[0].delta.content

    def name(self) -> str:
        return f"openai/{self.model}"


class OpenAIEmbedder(EmbeddingProvider):
    def __init__(self, model: str = "text-embedding-3-small", dimensions: int | None = None):
        self.client = _client()
        self.model = model
        # text-embedding-3 models can shorten vectors to match the index mapping
        self.dimensions = dimensions

    async def embed(self, text: str) -> list[float]:
        kwargs = {"model": self.model, "input": text}
        if self.dimensions:
            kwargs["dimensions"] = self.dimensions
        resp = await self.client.embeddings.create(**kwargs)
        return list(resp.data[0].embedding)

    def name(self) -> str:
        return f"openai/{self.model}"
