"""FastAPI dependency injection wiring."""

from __future__ import annotations

import httpx

from graph_memory.infrastructure.config import get_settings
from graph_memory.infrastructure.openai_embedding_adapter import OpenAIEmbeddingAdapter
from graph_memory.infrastructure.qdrant_rest_adapter import QdrantRestAdapter
from graph_memory.services.knowledge_graph import KnowledgeGraphService
from graph_memory.services.response_assembler import ResponseAssembler
from graph_memory.services.token_budget import BudgetPolicy

_http_client: httpx.AsyncClient | None = None
_embedding_adapter: OpenAIEmbeddingAdapter | None = None
_service: KnowledgeGraphService | None = None


async def startup() -> None:
    """Initialise shared resources; called from the lifespan context manager."""
    global _http_client, _embedding_adapter, _service  # noqa: PLW0603

    settings = get_settings()
    _http_client = httpx.AsyncClient(timeout=httpx.Timeout(settings.http_timeout_seconds))
    _embedding_adapter = OpenAIEmbeddingAdapter(settings.embedding_config())

    store = QdrantRestAdapter(
        client=_http_client,
        base_url=settings.qdrant_url,
        collection=settings.qdrant_collection_name,
        api_key=settings.qdrant_api_key.get_secret_value() if settings.qdrant_api_key else None,
    )
    _service = KnowledgeGraphService(
        store=store,
        embedder=_embedding_adapter,
        assembler=ResponseAssembler(BudgetPolicy.from_settings(settings)),
        vector_size=settings.vector_size,
        log_exact_tokens=settings.log_exact_token_count,
    )
    await _service.initialize()


async def shutdown() -> None:
    """Release shared resources."""
    global _http_client, _embedding_adapter, _service  # noqa: PLW0603

    _service = None
    if _http_client:
        await _http_client.aclose()
        _http_client = None
    if _embedding_adapter:
        await _embedding_adapter.close()
        _embedding_adapter = None


def get_service() -> KnowledgeGraphService:
    """Return the service wired at startup."""
    assert _service is not None, "startup() was not called"
    return _service
