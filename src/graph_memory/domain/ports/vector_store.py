"""Port: vector store — defined by the domain, implemented by infrastructure."""

from __future__ import annotations

from typing import Protocol, Sequence

from graph_memory.domain.entities import ScoredPoint, VectorPoint


class VectorStore(Protocol):
    """Abstract contract for the vector database holding the graph."""

    async def ensure_collection(self, vector_size: int) -> None:
        """Create (or recreate) the collection for vectors of *vector_size*."""
        ...

    async def upsert(self, points: Sequence[VectorPoint]) -> None:
        """Insert or overwrite *points* by id."""
        ...

    async def search(self, vector: Sequence[float], limit: int) -> list[ScoredPoint]:
        """Return up to *limit* points nearest to *vector*, best first."""
        ...

    async def scroll_all(self) -> list[VectorPoint]:
        """Return every stored point (payload only), following pagination."""
        ...

    async def delete_points(self, point_ids: Sequence[int]) -> None:
        """Delete the points with the given ids."""
        ...
