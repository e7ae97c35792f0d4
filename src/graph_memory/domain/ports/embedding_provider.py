"""Port: embedding provider — defined by the domain, implemented by infrastructure."""

from __future__ import annotations

from typing import Protocol


class EmbeddingProvider(Protocol):
    """Abstract contract for turning text into a dense vector."""

    async def embed(self, text: str) -> list[float]:
        """Return the embedding vector for *text*."""
        ...
