"""Application configuration — loaded from environment variables."""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache

from pydantic import SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Central configuration loaded from env vars (or ``.env`` file)."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Embeddings
    openai_api_key: SecretStr
    openai_embedding_model: str = "text-embedding-ada-002"
    openai_base_url: str | None = None

    # Vector store
    qdrant_url: str = "http://localhost:6333"
    qdrant_api_key: SecretStr | None = None
    qdrant_collection_name: str = "graph-memory"
    vector_size: int = 1536
    http_timeout_seconds: float = 60.0

    # Response budget
    token_limit: int = 25_500
    safety_margin: float = 0.96
    chars_per_token: int = 4
    overhead_discount: float = 0.8
    array_allotment_fraction: float = 0.25
    shrink_factor: float = 0.8
    long_string_threshold: int = 500
    structure_reservation: int = 1000
    api_surface_reservation: int = 500
    dependencies_reservation: int = 300
    relations_reservation: int = 200
    log_exact_token_count: bool = False

    # Server
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 8000

    @field_validator("qdrant_url")
    @classmethod
    def _must_be_http(cls, v: str) -> str:
        stripped = v.strip().rstrip("/")
        if not stripped.startswith(("http://", "https://")):
            msg = "QDRANT_URL must start with http:// or https://"
            raise ValueError(msg)
        return stripped

    @field_validator("safety_margin")
    @classmethod
    def _margin_in_range(cls, v: float) -> float:
        if not 0 < v <= 1:
            msg = f"SAFETY_MARGIN must be in (0, 1], got {v}."
            raise ValueError(msg)
        return v

    def embedding_config(self) -> EmbeddingConfig:
        return EmbeddingConfig(
            api_key=self.openai_api_key.get_secret_value(),
            model=self.openai_embedding_model,
            base_url=self.openai_base_url,
        )


@dataclass(frozen=True, slots=True)
class EmbeddingConfig:
    """Explicit embedding settings handed to the adapter at construction."""

    api_key: str
    model: str = "text-embedding-ada-002"
    base_url: str | None = None


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the singleton application settings (cached after first call)."""
    return Settings()  # type: ignore[call-arg]
