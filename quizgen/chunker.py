"""Fixed-width text chunking."""
from __future__ import annotations

DEFAULT_CHUNK_SIZE = 1200


def chunk(text: str, size: int = DEFAULT_CHUNK_SIZE) -> list[str]:
    """Split *text* into contiguous pieces of at most *size* characters.

    Boundaries ignore words and sentences so that the same text always
    yields the same chunks.  Joining the result gives back *text*.
    """
    if size <= 0:
        raise ValueError(f"chunk size must be positive (got {size})")
    return [text[i : i + size] for i in range(0, len(text), size)]
