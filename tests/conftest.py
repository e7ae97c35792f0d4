from __future__ import annotations

from datetime import datetime, timezone
from typing import Sequence

import pytest

from graph_memory.domain.entities import Entity, Relation, ScoredPoint, VectorPoint
from graph_memory.services.knowledge_graph import KnowledgeGraphService
from graph_memory.services.response_assembler import ResponseAssembler

FIXED_NOW = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)


class FakeEmbedder:
    """Deterministic embedder that records every text it was asked to embed."""

    def __init__(self) -> None:
        self.texts: list[str] = []

    async def embed(self, text: str) -> list[float]:
        self.texts.append(text)
        return [float(len(text)), 1.0, 0.0]


class InMemoryVectorStore:
    """Dict-backed VectorStore; search returns points in insertion order."""

    def __init__(self) -> None:
        self.points: dict[int, VectorPoint] = {}
        self.collection_size: int | None = None
        self.search_limits: list[int] = []

    async def ensure_collection(self, vector_size: int) -> None:
        self.collection_size = vector_size

    async def upsert(self, points: Sequence[VectorPoint]) -> None:
        for point in points:
            self.points[point.id] = point

    async def search(self, vector: Sequence[float], limit: int) -> list[ScoredPoint]:
        self.search_limits.append(limit)
        ranked = list(self.points.values())[:limit]
        return [
            ScoredPoint(id=p.id, score=round(1.0 / (i + 1), 3), payload=p.payload)
            for i, p in enumerate(ranked)
        ]

    async def scroll_all(self) -> list[VectorPoint]:
        return list(self.points.values())

    async def delete_points(self, point_ids: Sequence[int]) -> None:
        for point_id in point_ids:
            self.points.pop(point_id, None)


@pytest.fixture
def fixed_clock():
    return lambda: FIXED_NOW


@pytest.fixture
def assembler(fixed_clock) -> ResponseAssembler:
    return ResponseAssembler(clock=fixed_clock)


@pytest.fixture
def store() -> InMemoryVectorStore:
    return InMemoryVectorStore()


@pytest.fixture
def embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture
def service(store, embedder, assembler) -> KnowledgeGraphService:
    return KnowledgeGraphService(store=store, embedder=embedder, assembler=assembler, vector_size=3)


@pytest.fixture
def code_entities() -> list[Entity]:
    """A small, realistic slice of an indexed Python project."""
    return [
        Entity("src/app/engine.py", "file", ("file_path: src/app/engine.py",)),
        Entity(
            "Engine",
            "class",
            (
                "Defined in: src/app/engine.py",
                "Line: 10",
                "docstring: Runs jobs in order.",
            ),
        ),
        Entity(
            "__init__",
            "method",
            ("Defined in: src/app/engine.py", "Line: 12", "Member of Engine", "Signature: __init__(self)"),
        ),
        Entity(
            "start",
            "method",
            ("Defined in: src/app/engine.py", "Line: 20", "Member of Engine", "Signature: start(self)"),
        ),
        Entity("_helper", "function", ("Defined in: src/app/util.py", "Line: 3")),
        Entity(
            "load_config",
            "function",
            (
                "Defined in: lib/config.py",
                "Line: 1",
                "Signature: load_config(path)",
                "docstring: Read settings from disk.",
            ),
        ),
        Entity("BaseEngine", "class", ("Defined in: src/app/base.py", "Line: 1")),
    ]


@pytest.fixture
def code_relations() -> list[Relation]:
    return [
        Relation("Engine", "BaseEngine", "inherits"),
        Relation("start", "load_config", "calls"),
        Relation("src/app/engine.py", "requests", "imports"),
        Relation("src/app/engine.py", "src/app/util.py", "imports"),
        Relation("Engine", "start", "contains"),
    ]


def synthetic_graph(count: int) -> tuple[list[Entity], list[Relation]]:
    """Mixed-type graph with documented entities spread over several modules."""
    types = ["class", "function", "method", "variable", "file"]
    entities = [
        Entity(
            f"entity_{i}",
            types[i % len(types)],
            (
                f"Defined in: pkg{i % 12}/module_{i % 7}.py",
                f"Line: {i}",
                f"docstring: Entity number {i} does something useful for the system.",
            ),
        )
        for i in range(count)
    ]
    relations = [
        Relation(f"entity_{i}", f"entity_{(i + 1) % count}", ["calls", "uses", "imports", "inherits"][i % 4])
        for i in range(count)
    ]
    return entities, relations


@pytest.fixture
def large_graph() -> tuple[list[Entity], list[Relation]]:
    return synthetic_graph(600)
