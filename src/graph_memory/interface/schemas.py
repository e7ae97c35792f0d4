"""Pydantic request / response DTOs for the tool-call boundary.

Field aliases keep the camelCase wire names while the Python side stays
snake_case.  All request validation happens here, before the core runs.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from graph_memory.domain.entities import Entity, ReadGraphOptions, Relation


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class EntityIn(_WireModel):
    name: str
    entity_type: str = Field(alias="entityType")
    observations: list[str] = Field(default_factory=list)

    @field_validator("name")
    @classmethod
    def _name_not_empty(cls, v: str) -> str:
        if not v.strip():
            msg = "Entity name must not be empty."
            raise ValueError(msg)
        return v

    def to_domain(self) -> Entity:
        return Entity(
            name=self.name,
            entity_type=self.entity_type,
            observations=tuple(self.observations),
        )


class RelationIn(_WireModel):
    source: str = Field(alias="from")
    target: str = Field(alias="to")
    relation_type: str = Field(alias="relationType")

    def to_domain(self) -> Relation:
        return Relation(source=self.source, target=self.target, relation_type=self.relation_type)


class CreateEntitiesRequest(_WireModel):
    entities: list[EntityIn]


class CreateRelationsRequest(_WireModel):
    relations: list[RelationIn]


class ObservationAddition(_WireModel):
    entity_name: str = Field(alias="entityName")
    contents: list[str]


class AddObservationsRequest(_WireModel):
    observations: list[ObservationAddition]


class DeleteEntitiesRequest(_WireModel):
    entity_names: list[str] = Field(alias="entityNames")


class ObservationDeletion(_WireModel):
    entity_name: str = Field(alias="entityName")
    observations: list[str]


class DeleteObservationsRequest(_WireModel):
    deletions: list[ObservationDeletion]


class DeleteRelationsRequest(_WireModel):
    relations: list[RelationIn]


class ReadGraphRequest(_WireModel):
    """``mode`` is left open: unknown modes get a degraded, well-formed answer."""

    mode: str = "smart"
    entity_types: list[str] | None = Field(default=None, alias="entityTypes")
    limit: int = Field(default=50, ge=1)

    def to_options(self) -> ReadGraphOptions:
        return ReadGraphOptions(
            mode=self.mode,
            entity_types=tuple(self.entity_types) if self.entity_types else None,
            limit=self.limit,
        )


class SearchSimilarRequest(_WireModel):
    query: str
    limit: int = 10

    @field_validator("query")
    @classmethod
    def _query_not_empty(cls, v: str) -> str:
        stripped = v.strip()
        if not stripped:
            msg = "query must not be empty."
            raise ValueError(msg)
        return stripped


class GetImplementationRequest(_WireModel):
    entity_name: str = Field(alias="entityName")


class TextContent(BaseModel):
    type: Literal["text"] = "text"
    text: str


class ToolResponse(BaseModel):
    """Tool-call result envelope: a list of text parts."""

    content: list[TextContent]

    @classmethod
    def text(cls, text: str) -> ToolResponse:
        return cls(content=[TextContent(text=text)])


class ToolListResponse(BaseModel):
    tools: list[str]


class ErrorResponse(BaseModel):
    """Standard error envelope returned on all failure paths."""

    status: str = "error"
    message: str
