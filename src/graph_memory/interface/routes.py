"""Tool routes — thin controllers that delegate to the knowledge-graph service."""

from __future__ import annotations

import json

from fastapi import APIRouter, Depends

from graph_memory.interface.dependencies import get_service
from graph_memory.interface.schemas import (
    AddObservationsRequest,
    CreateEntitiesRequest,
    CreateRelationsRequest,
    DeleteEntitiesRequest,
    DeleteObservationsRequest,
    DeleteRelationsRequest,
    GetImplementationRequest,
    ReadGraphRequest,
    SearchSimilarRequest,
    ToolListResponse,
    ToolResponse,
)
from graph_memory.services.knowledge_graph import KnowledgeGraphService
from graph_memory.services.response_assembler import render_tool_text

router = APIRouter(prefix="/tools")

TOOL_NAMES: list[str] = [
    "create_entities",
    "create_relations",
    "add_observations",
    "delete_entities",
    "delete_observations",
    "delete_relations",
    "read_graph",
    "search_similar",
    "get_implementation",
]

_ERROR_RESPONSES = {
    404: {"description": "Referenced entity does not exist"},
    422: {"description": "Invalid tool arguments"},
    502: {"description": "Vector store or embedding provider error"},
}


@router.get("", response_model=ToolListResponse)
async def list_tools() -> ToolListResponse:
    """List the tools this server exposes."""
    return ToolListResponse(tools=TOOL_NAMES)


@router.post("/create_entities", response_model=ToolResponse, responses=_ERROR_RESPONSES)
async def create_entities(
    body: CreateEntitiesRequest,
    service: KnowledgeGraphService = Depends(get_service),
) -> ToolResponse:
    await service.add_entities([e.to_domain() for e in body.entities])
    return ToolResponse.text("Entities created successfully")


@router.post("/create_relations", response_model=ToolResponse, responses=_ERROR_RESPONSES)
async def create_relations(
    body: CreateRelationsRequest,
    service: KnowledgeGraphService = Depends(get_service),
) -> ToolResponse:
    await service.add_relations([r.to_domain() for r in body.relations])
    return ToolResponse.text("Relations created successfully")


@router.post("/add_observations", response_model=ToolResponse, responses=_ERROR_RESPONSES)
async def add_observations(
    body: AddObservationsRequest,
    service: KnowledgeGraphService = Depends(get_service),
) -> ToolResponse:
    for item in body.observations:
        await service.add_observations(item.entity_name, item.contents)
    return ToolResponse.text("Observations added successfully")


@router.post("/delete_entities", response_model=ToolResponse, responses=_ERROR_RESPONSES)
async def delete_entities(
    body: DeleteEntitiesRequest,
    service: KnowledgeGraphService = Depends(get_service),
) -> ToolResponse:
    await service.delete_entities(body.entity_names)
    return ToolResponse.text("Entities deleted successfully")


@router.post("/delete_observations", response_model=ToolResponse, responses=_ERROR_RESPONSES)
async def delete_observations(
    body: DeleteObservationsRequest,
    service: KnowledgeGraphService = Depends(get_service),
) -> ToolResponse:
    for item in body.deletions:
        await service.delete_observations(item.entity_name, item.observations)
    return ToolResponse.text("Observations deleted successfully")


@router.post("/delete_relations", response_model=ToolResponse, responses=_ERROR_RESPONSES)
async def delete_relations(
    body: DeleteRelationsRequest,
    service: KnowledgeGraphService = Depends(get_service),
) -> ToolResponse:
    await service.delete_relations([r.to_domain() for r in body.relations])
    return ToolResponse.text("Relations deleted successfully")


@router.post("/read_graph", response_model=ToolResponse, responses=_ERROR_RESPONSES)
async def read_graph(
    body: ReadGraphRequest,
    service: KnowledgeGraphService = Depends(get_service),
) -> ToolResponse:
    """Budget-bounded graph view; degraded results are described in the metadata."""
    response = await service.read_graph(body.to_options())
    return ToolResponse.text(render_tool_text(response))


@router.post("/search_similar", response_model=ToolResponse, responses=_ERROR_RESPONSES)
async def search_similar(
    body: SearchSimilarRequest,
    service: KnowledgeGraphService = Depends(get_service),
) -> ToolResponse:
    results = await service.search_similar(body.query, body.limit)
    return ToolResponse.text(json.dumps([r.to_dict() for r in results], indent=2))


@router.post("/get_implementation", response_model=ToolResponse, responses=_ERROR_RESPONSES)
async def get_implementation(
    body: GetImplementationRequest,
    service: KnowledgeGraphService = Depends(get_service),
) -> ToolResponse:
    results = await service.get_implementation(body.entity_name)
    return ToolResponse.text(json.dumps([r.to_dict() for r in results], indent=2))
