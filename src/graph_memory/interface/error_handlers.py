"""Translate domain errors raised by tool calls into HTTP error responses.

Every failure uses the ``{"status": "error", "message": "..."}`` envelope;
the message is prefixed with the tool name when the request targeted one.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from graph_memory.domain.exceptions import (
    EmbeddingError,
    EntityNotFoundError,
    EstimationError,
    GraphMemoryError,
    InvalidGraphDataError,
    VectorStoreError,
)

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR: dict[type[GraphMemoryError], int] = {
    InvalidGraphDataError: 422,
    EntityNotFoundError: 404,
    EstimationError: 500,
    VectorStoreError: 502,
    EmbeddingError: 502,
}


def _tool_name(request: Request) -> str | None:
    parts = [p for p in request.url.path.split("/") if p]
    if len(parts) == 2 and parts[0] == "tools":
        return parts[1]
    return None


def _error_json(request: Request, status_code: int, message: str) -> JSONResponse:
    tool = _tool_name(request)
    if tool:
        message = f"{tool}: {message}"
    return JSONResponse(
        status_code=status_code,
        content={"status": "error", "message": message},
    )


def status_for(exc: GraphMemoryError) -> int:
    """Most specific status registered for *exc*'s class hierarchy."""
    for cls in type(exc).__mro__:
        if cls in _STATUS_BY_ERROR:
            return _STATUS_BY_ERROR[cls]
    return 500


def register_error_handlers(app: FastAPI) -> None:
    """Attach exception handlers to the FastAPI application."""

    @app.exception_handler(GraphMemoryError)
    async def domain_handler(request: Request, exc: GraphMemoryError) -> JSONResponse:
        status_code = status_for(exc)
        if status_code >= 500:
            logger.error("%s on %s: %s", type(exc).__name__, request.url.path, exc)
        else:
            logger.warning("%s on %s: %s", type(exc).__name__, request.url.path, exc)
        return _error_json(request, status_code, str(exc))

    @app.exception_handler(RequestValidationError)
    async def validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        messages = []
        for err in exc.errors():
            # drop the leading "body" segment, the tool prefix already says where
            loc = ".".join(str(p) for p in err.get("loc", [])[1:]) or "body"
            messages.append(f"{loc}: {err.get('msg', 'invalid value')}")
        return _error_json(request, 422, "; ".join(messages))

    @app.exception_handler(Exception)
    async def generic_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled exception on %s", request.url.path)
        return _error_json(request, 500, "An unexpected error occurred. Please try again later.")
