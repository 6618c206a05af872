from __future__ import annotations

import logging
import os
import time
from collections.abc import AsyncIterator

from quizgen.providers.base import LLMProvider

log = logging.getLogger("quizgen.llm")

# A 30-question quiz with explanations runs to several thousand tokens
MAX_TOKENS = 8192


class AnthropicProvider(LLMProvider):
    def __init__(self, model: str = "claude-sonnet-4-20250514", max_tokens: int = MAX_TOKENS):
        import anthropic
        self.client = anthropic.AsyncAnthropic(
            api_key=os.environ.get("ANTHROPIC_API_KEY", ""),
        )
        self.model = model
        self.max_tokens = max_tokens

    async def generate(self, prompt: str, temperature: float = 0.7, model: str | None = None) -> str:
        model_name = model or self.model
        log.debug("── PROMPT (%s) ──\n%s", model_name, prompt)
        t0 = time.monotonic()
        message = await self.client.messages.create(
            model=model_name,
            max_tokens=self.max_tokens,
            temperature=temperature,
            messages=[{"role": "user", "content": prompt}],
        )
        text = "".join(block.text for block in message.content if block.type == "text")
        if message.stop_reason == "max_tokens":
            log.warning("Response from %s hit max_tokens; output may be cut off", model_name)
        log.debug("── RESPONSE (%s, %.1fs) ──\n%s", model_name, time.monotonic() - t0, text)
        return text

    async def generate_stream(
        self, prompt: str, temperature: float = 0.7, model: str | None = None
    ) -> AsyncIterator[str]:
        async with self.client.messages.stream(
            model=model or self.model,
            max_tokens=self.max_tokens,
            temperature=temperature,
            messages=[{"role": "user", "content": prompt}],
        ) as stream:
            async for text in stream.text_stream:
                yield text

    def name(self) -> str:
        return f"anthropic/{self.model}"
