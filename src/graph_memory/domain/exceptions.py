"""Domain exception hierarchy.

Storage and embedding errors map to HTTP status codes at the interface layer.
The response assembler never lets these escape a read: it degrades to a
well-formed empty response instead.
"""

from __future__ import annotations


class GraphMemoryError(Exception):
    """Base exception for the entire application."""


# ── Input validation ────────────────────────────────────────────────────────


class InvalidGraphDataError(GraphMemoryError):
    """An entity or relation record is malformed (e.g. empty name)."""


class EntityNotFoundError(GraphMemoryError):
    """A write referenced an entity that does not exist in the graph."""


# ── Size estimation ─────────────────────────────────────────────────────────


class EstimationError(GraphMemoryError):
    """Content cannot be serialised for size estimation (cycles, foreign types)."""


# ── External collaborators ──────────────────────────────────────────────────


class VectorStoreError(GraphMemoryError):
    """Any error originating from the vector database."""


class EmbeddingError(GraphMemoryError):
    """Any error originating from the embedding provider."""
