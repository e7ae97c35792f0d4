"""Qdrant REST API adapter — implements the VectorStore port."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Sequence

import httpx

from graph_memory.domain.entities import ScoredPoint, VectorPoint
from graph_memory.domain.exceptions import VectorStoreError

logger = logging.getLogger(__name__)

_SCROLL_BATCH_SIZE = 100
_CONNECT_ATTEMPTS = 3
_DISTANCE = "Cosine"


class QdrantRestAdapter:
    """Concrete ``VectorStore`` backed by the Qdrant HTTP API."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        base_url: str,
        collection: str,
        api_key: str | None = None,
        retry_delay: float = 2.0,
    ) -> None:
        self._client = client
        self._base_url = base_url.rstrip("/")
        self._collection = collection
        self._retry_delay = retry_delay
        self._connected = False
        self._headers: dict[str, str] = {
            "Content-Type": "application/json",
            "User-Agent": "graph-memory/1.0",
        }
        if api_key:
            self._headers["api-key"] = api_key

    # ── Connection & collection lifecycle ───────────────────────────────

    async def connect(self) -> None:
        """Verify the server is reachable, retrying with exponential backoff."""
        if self._connected:
            return

        delay = self._retry_delay
        for attempt in range(1, _CONNECT_ATTEMPTS + 1):
            try:
                await self._request("GET", "/collections")
                self._connected = True
                return
            except VectorStoreError as exc:
                logger.warning("Qdrant connection attempt %d failed: %s", attempt, exc)
                if attempt == _CONNECT_ATTEMPTS:
                    raise VectorStoreError(
                        f"Failed to connect to Qdrant after {attempt} attempts: {exc}"
                    ) from exc
                await asyncio.sleep(delay)
                delay *= 2

    async def ensure_collection(self, vector_size: int) -> None:
        """Create the collection, or recreate it when the vector size differs."""
        await self.connect()

        data = await self._request("GET", "/collections")
        names = {c.get("name") for c in data.get("result", {}).get("collections", [])}
        if self._collection not in names:
            logger.info("Creating collection %s (size %d)", self._collection, vector_size)
            await self._create_collection(vector_size)
            return

        info = await self._request("GET", self._collection_path())
        vectors = info.get("result", {}).get("config", {}).get("params", {}).get("vectors", {})
        current_size = vectors.get("size") if isinstance(vectors, dict) else None
        if current_size != vector_size:
            logger.warning(
                "Recreating collection %s: vector size %s != %d",
                self._collection,
                current_size,
                vector_size,
            )
            await self._request("DELETE", self._collection_path())
            await self._create_collection(vector_size)

    async def _create_collection(self, vector_size: int) -> None:
        await self._request(
            "PUT",
            self._collection_path(),
            json={"vectors": {"size": vector_size, "distance": _DISTANCE}},
        )

    # ── Points ──────────────────────────────────────────────────────────

    async def upsert(self, points: Sequence[VectorPoint]) -> None:
        await self.connect()
        body = {
            "points": [
                {"id": p.id, "vector": list(p.vector), "payload": p.payload} for p in points
            ]
        }
        await self._request(
            "PUT", self._collection_path("/points"), json=body, params={"wait": "true"}
        )

    async def search(self, vector: Sequence[float], limit: int) -> list[ScoredPoint]:
        await self.connect()
        data = await self._request(
            "POST",
            self._collection_path("/points/search"),
            json={"vector": list(vector), "limit": limit, "with_payload": True},
        )
        return [
            ScoredPoint(id=hit["id"], score=float(hit.get("score", 0.0)), payload=hit.get("payload") or {})
            for hit in data.get("result", [])
        ]

    async def scroll_all(self) -> list[VectorPoint]:
        """Page through the whole collection via ``next_page_offset``."""
        await self.connect()
        points: list[VectorPoint] = []
        offset: int | str | None = None

        while True:
            body: dict[str, Any] = {
                "limit": _SCROLL_BATCH_SIZE,
                "with_payload": True,
                "with_vector": False,
            }
            if offset is not None:
                body["offset"] = offset
            data = await self._request("POST", self._collection_path("/points/scroll"), json=body)
            result = data.get("result", {})
            for raw in result.get("points", []):
                points.append(VectorPoint(id=raw["id"], payload=raw.get("payload") or {}))

            offset = result.get("next_page_offset")
            if not isinstance(offset, (int, str)):
                break

        logger.debug("Scrolled %d points from %s", len(points), self._collection)
        return points

    async def delete_points(self, point_ids: Sequence[int]) -> None:
        await self.connect()
        await self._request(
            "POST",
            self._collection_path("/points/delete"),
            json={"points": list(point_ids)},
            params={"wait": "true"},
        )

    # ── HTTP plumbing ───────────────────────────────────────────────────

    def _collection_path(self, suffix: str = "") -> str:
        return f"/collections/{self._collection}{suffix}"

    async def _request(
        self,
        method: str,
        path: str,
        json: dict[str, Any] | None = None,
        params: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        """Perform a Qdrant API request with error translation."""
        url = f"{self._base_url}{path}"
        try:
            resp = await self._client.request(
                method, url, headers=self._headers, json=json, params=params
            )
        except httpx.HTTPError as exc:
            raise VectorStoreError(f"Network error calling {url}: {exc}") from exc

        if resp.status_code >= 400:
            raise VectorStoreError(
                f"Qdrant returned HTTP {resp.status_code} for {method} {path}: {resp.text[:200]}"
            )

        try:
            data = resp.json()
        except ValueError as exc:
            raise VectorStoreError(f"Qdrant returned invalid JSON for {path}") from exc
        return data if isinstance(data, dict) else {}
