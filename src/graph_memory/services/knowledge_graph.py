"""Knowledge-graph use case — the single entry point for graph operations.

Depends only on the two ports (:class:`VectorStore` and
:class:`EmbeddingProvider`) plus the pure response assembler.  The interface
layer injects concrete adapters at runtime.

The vector store is the sole source of truth: every read scrolls the whole
collection into memory, and every write goes straight to the store.
"""

from __future__ import annotations

import hashlib
import logging
from typing import Any, Iterable, Sequence

from graph_memory.domain.entities import (
    Entity,
    GraphResponse,
    KnowledgeGraph,
    ReadGraphOptions,
    Relation,
    SearchResult,
    VectorPoint,
)
from graph_memory.domain.exceptions import EntityNotFoundError, InvalidGraphDataError
from graph_memory.domain.ports.embedding_provider import EmbeddingProvider
from graph_memory.domain.ports.vector_store import VectorStore
from graph_memory.services.response_assembler import ResponseAssembler, render_tool_text
from graph_memory.services.token_budget import count_tokens

logger = logging.getLogger(__name__)

_ENTITY_KIND = "entity"
_RELATION_KIND = "relation"

_MIN_SEARCH_LIMIT = 1
_MAX_SEARCH_LIMIT = 100


# ── Point identity & payloads ───────────────────────────────────────────────


def point_id(key: str) -> int:
    """Stable numeric id: the first four bytes of SHA-256(*key*), big-endian."""
    digest = hashlib.sha256(key.encode("utf-8")).digest()
    return int.from_bytes(digest[:4], "big")


def entity_text(entity: Entity) -> str:
    """Text that is embedded for an entity."""
    return f"{entity.name} ({entity.entity_type}): {'. '.join(entity.observations)}"


def relation_text(relation: Relation) -> str:
    return f"{relation.source} {relation.relation_type} {relation.target}"


def entity_payload(entity: Entity) -> dict[str, Any]:
    return {"type": _ENTITY_KIND, **entity.to_dict()}


def relation_payload(relation: Relation) -> dict[str, Any]:
    return {"type": _RELATION_KIND, **relation.to_dict()}


def decode_payload(payload: dict[str, Any] | None) -> Entity | Relation | None:
    """Discriminate a stored payload by its ``type`` tag; ``None`` if malformed."""
    if not payload:
        return None
    kind = payload.get("type")
    try:
        if kind == _ENTITY_KIND:
            return Entity.from_dict(payload)
        if kind == _RELATION_KIND:
            return Relation.from_dict(payload)
    except InvalidGraphDataError:
        logger.debug("Skipping malformed %s payload", kind, exc_info=True)
    return None


# ── Use case ────────────────────────────────────────────────────────────────


class KnowledgeGraphService:
    """Orchestrates graph writes, reads and semantic search.

    Parameters
    ----------
    store:
        Adapter for the vector database.
    embedder:
        Adapter that turns text into vectors.
    assembler:
        Builds budget-bounded ``read_graph`` responses.
    vector_size:
        Dimension the collection is created with.
    log_exact_tokens:
        Also log the exact tiktoken count of rendered responses.
    """

    def __init__(
        self,
        store: VectorStore,
        embedder: EmbeddingProvider,
        assembler: ResponseAssembler | None = None,
        vector_size: int = 1536,
        log_exact_tokens: bool = False,
    ) -> None:
        self._store = store
        self._embedder = embedder
        self._assembler = assembler or ResponseAssembler()
        self._vector_size = vector_size
        self._log_exact_tokens = log_exact_tokens

    async def initialize(self) -> None:
        await self._store.ensure_collection(self._vector_size)

    # ── Writes ──────────────────────────────────────────────────────────

    async def _persist_entity(self, entity: Entity) -> None:
        vector = await self._embedder.embed(entity_text(entity))
        await self._store.upsert(
            [VectorPoint(id=point_id(entity.name), payload=entity_payload(entity), vector=tuple(vector))]
        )

    async def _persist_relation(self, relation: Relation) -> None:
        vector = await self._embedder.embed(relation_text(relation))
        await self._store.upsert(
            [
                VectorPoint(
                    id=point_id(relation.key),
                    payload=relation_payload(relation),
                    vector=tuple(vector),
                )
            ]
        )

    async def add_entities(self, entities: Iterable[Entity]) -> None:
        for entity in entities:
            await self._persist_entity(entity)

    async def add_relations(self, relations: Sequence[Relation]) -> None:
        """Persist *relations*; both endpoints of each must already exist."""
        graph = await self.get_raw_graph()
        known = {e.name for e in graph.entities}
        for relation in relations:
            for endpoint in (relation.source, relation.target):
                if endpoint not in known:
                    raise EntityNotFoundError(f"Entity not found: {endpoint}")
            await self._persist_relation(relation)

    async def _require_entity(self, entity_name: str) -> Entity:
        graph = await self.get_raw_graph()
        for entity in graph.entities:
            if entity.name == entity_name:
                return entity
        raise EntityNotFoundError(f"Entity not found: {entity_name}")

    async def add_observations(self, entity_name: str, contents: Sequence[str]) -> Entity:
        entity = await self._require_entity(entity_name)
        updated = Entity(
            name=entity.name,
            entity_type=entity.entity_type,
            observations=(*entity.observations, *contents),
        )
        await self._persist_entity(updated)
        return updated

    async def delete_observations(
        self, entity_name: str, observations: Sequence[str]
    ) -> Entity:
        entity = await self._require_entity(entity_name)
        doomed = set(observations)
        updated = Entity(
            name=entity.name,
            entity_type=entity.entity_type,
            observations=tuple(o for o in entity.observations if o not in doomed),
        )
        await self._persist_entity(updated)
        return updated

    async def delete_entities(self, entity_names: Sequence[str]) -> None:
        """Delete entities together with every relation that touches them."""
        graph = await self.get_raw_graph()
        for name in entity_names:
            related = [r for r in graph.relations if name in (r.source, r.target)]
            ids = [point_id(name), *(point_id(r.key) for r in related)]
            await self._store.delete_points(ids)
            logger.info("Deleted entity %s and %d relation(s)", name, len(related))

    async def delete_relations(self, relations: Sequence[Relation]) -> None:
        if relations:
            await self._store.delete_points([point_id(r.key) for r in relations])

    # ── Reads ───────────────────────────────────────────────────────────

    async def get_raw_graph(self) -> KnowledgeGraph:
        entities: list[Entity] = []
        relations: list[Relation] = []
        for point in await self._store.scroll_all():
            record = decode_payload(point.payload)
            if isinstance(record, Entity):
                entities.append(record)
            elif isinstance(record, Relation):
                relations.append(record)
        return KnowledgeGraph(entities=tuple(entities), relations=tuple(relations))

    async def read_graph(self, options: ReadGraphOptions | None = None) -> GraphResponse:
        graph = await self.get_raw_graph()
        response = self._assembler.build_response(graph.entities, graph.relations, options)
        if self._log_exact_tokens:
            text = render_tool_text(response)
            logger.info(
                "read_graph exact size: %d tokens (estimated %d)",
                count_tokens(text),
                response.meta.token_count,
            )
        return response

    async def search_similar(self, query: str, limit: int = 10) -> list[SearchResult]:
        """Semantic search over entities and relations, best match first."""
        limit = max(_MIN_SEARCH_LIMIT, min(limit, _MAX_SEARCH_LIMIT))
        vector = await self._embedder.embed(query)
        hits = await self._store.search(vector, limit)

        results: list[SearchResult] = []
        for hit in hits:
            record = decode_payload(hit.payload)
            if record is None:
                continue
            kind = _ENTITY_KIND if isinstance(record, Entity) else _RELATION_KIND
            results.append(SearchResult(kind=kind, score=hit.score, data=record))
        return results

    async def get_implementation(self, entity_name: str) -> list[SearchResult]:
        """The entity plus every relation touching it, for a targeted follow-up read."""
        graph = await self.get_raw_graph()
        entity = next((e for e in graph.entities if e.name == entity_name), None)
        if entity is None:
            raise EntityNotFoundError(f"Entity not found: {entity_name}")
        results = [SearchResult(kind=_ENTITY_KIND, score=1.0, data=entity)]
        results.extend(
            SearchResult(kind=_RELATION_KIND, score=1.0, data=r)
            for r in graph.relations
            if entity_name in (r.source, r.target)
        )
        return results
