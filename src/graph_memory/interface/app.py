"""FastAPI application factory."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from graph_memory.interface.dependencies import get_service, shutdown, startup
from graph_memory.interface.error_handlers import register_error_handlers
from graph_memory.interface.routes import router
from graph_memory.services.knowledge_graph import KnowledgeGraphService


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage startup / shutdown of shared resources."""
    await startup()
    yield
    await shutdown()


def create_app(service: KnowledgeGraphService | None = None) -> FastAPI:
    """Build and wire the FastAPI application.

    Passing *service* skips the adapter lifecycle and serves that instance
    directly (used by tests and embedders).
    """
    app = FastAPI(
        title="Graph Memory",
        version="1.0.0",
        description=(
            "Knowledge graph of code entities and relations, backed by a "
            "vector database, with token-budgeted graph views for LLM agents."
        ),
        lifespan=None if service is not None else _lifespan,
    )

    if service is not None:
        app.dependency_overrides[get_service] = lambda: service

    register_error_handlers(app)
    app.include_router(router)

    # ── Health check (simple liveness check) ────────────────────────────

    @app.get("/health", include_in_schema=False)
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    return app
