"""Domain entities — pure data structures with no external dependencies."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Sequence

from graph_memory.domain.exceptions import InvalidGraphDataError


class ResponseMode(str, Enum):
    """Mutually exclusive shapes a ``read_graph`` response can take."""

    SMART = "smart"
    ENTITIES = "entities"
    RELATIONSHIPS = "relationships"
    RAW = "raw"


@dataclass(frozen=True, slots=True)
class Entity:
    """A named node in the knowledge graph."""

    name: str
    entity_type: str
    observations: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if not self.name:
            raise InvalidGraphDataError("Entity name must not be empty.")
        # Accept any sequence from callers but store an immutable tuple
        object.__setattr__(self, "observations", tuple(self.observations))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Entity:
        """Parse the wire shape ``{"name", "entityType", "observations"}``."""
        name = data.get("name")
        entity_type = data.get("entityType")
        observations = data.get("observations", [])
        if not isinstance(name, str) or not isinstance(entity_type, str):
            raise InvalidGraphDataError(f"Malformed entity record: {dict(data)!r}")
        if not isinstance(observations, (list, tuple)) or not all(
            isinstance(obs, str) for obs in observations
        ):
            raise InvalidGraphDataError(f"Entity '{name}' has non-string observations.")
        return cls(name=name, entity_type=entity_type, observations=tuple(observations))

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "entityType": self.entity_type,
            "observations": list(self.observations),
        }


@dataclass(frozen=True, slots=True)
class Relation:
    """A directed, typed edge between two entity names."""

    source: str
    target: str
    relation_type: str

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Relation:
        """Parse the wire shape ``{"from", "to", "relationType"}``."""
        source = data.get("from")
        target = data.get("to")
        relation_type = data.get("relationType")
        if not all(isinstance(v, str) for v in (source, target, relation_type)):
            raise InvalidGraphDataError(f"Malformed relation record: {dict(data)!r}")
        return cls(source=source, target=target, relation_type=relation_type)  # type: ignore[arg-type]

    def to_dict(self) -> dict[str, str]:
        return {"from": self.source, "to": self.target, "relationType": self.relation_type}

    @property
    def key(self) -> str:
        """Identity string used to derive the storage point id."""
        return f"{self.source}-{self.relation_type}-{self.target}"


@dataclass(frozen=True, slots=True)
class ReadGraphOptions:
    """Options for a ``read_graph`` call.

    ``mode`` stays a plain string so an unrecognised value reaches the
    assembler, which answers with a degraded response instead of raising.
    """

    mode: str = ResponseMode.SMART.value
    entity_types: tuple[str, ...] | None = None
    limit: int = 50


@dataclass(frozen=True, slots=True)
class ContentSection:
    """A named, priority-tagged candidate piece of a composite response."""

    name: str
    content: Any
    estimated_tokens: int
    priority: int = 1


@dataclass(frozen=True, slots=True)
class ResponseMeta:
    """Out-of-band description of what a response contains and what it lost."""

    token_count: int
    token_limit: int
    truncated: bool
    sections_included: tuple[str, ...] = ()
    truncation_reason: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "tokenCount": self.token_count,
            "tokenLimit": self.token_limit,
            "truncated": self.truncated,
        }
        if self.truncation_reason is not None:
            data["truncationReason"] = self.truncation_reason
        data["sectionsIncluded"] = list(self.sections_included)
        return data


@dataclass(frozen=True, slots=True)
class GraphResponse:
    """Content plus metadata, as returned by the response assembler."""

    content: dict[str, Any]
    meta: ResponseMeta


@dataclass(frozen=True, slots=True)
class SearchResult:
    """One semantic-search hit, discriminated by ``kind``."""

    kind: str  # "entity" or "relation"
    score: float
    data: Entity | Relation

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.kind, "score": self.score, "data": self.data.to_dict()}


@dataclass(frozen=True, slots=True)
class ParsedObservations:
    """Structured fields pulled out of an entity's free-text observations."""

    file_path: str | None = None
    line: int = 0
    docstring: str | None = None
    signature: str | None = None


@dataclass(frozen=True, slots=True)
class KnowledgeGraph:
    """A materialised snapshot of the whole graph."""

    entities: Sequence[Entity] = field(default_factory=tuple)
    relations: Sequence[Relation] = field(default_factory=tuple)


@dataclass(frozen=True, slots=True)
class VectorPoint:
    """A point as stored in the vector database."""

    id: int
    payload: dict[str, Any]
    vector: tuple[float, ...] = ()


@dataclass(frozen=True, slots=True)
class ScoredPoint:
    """A vector-search hit: the stored payload plus its similarity score."""

    id: int
    score: float
    payload: dict[str, Any]
