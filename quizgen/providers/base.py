from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator


class LLMProvider(ABC):
    # Prefix some APIs accept in front of a bare model name ("models/...").
    # Empty when the provider has only one spelling.
    model_namespace: str = ""

    model: str

    @abstractmethod
    async def generate(self, prompt: str, temperature: float = 0.7, model: str | None = None) -> str:
        """Generate a completion with *model*, or the provider default."""
        ...

    async def generate_stream(
        self, prompt: str, temperature: float = 0.7, model: str | None = None
    ) -> AsyncIterator[str]:
        """Stream response tokens. Default: yield full response at once."""
        result = await self.generate(prompt, temperature, model=model)
        yield result

    @abstractmethod
    def name(self) -> str:
        ...


class EmbeddingProvider(ABC):
    @abstractmethod
    async def embed(self, text: str) -> list[float]:
        ...

    @abstractmethod
    def name(self) -> str:
        ...
