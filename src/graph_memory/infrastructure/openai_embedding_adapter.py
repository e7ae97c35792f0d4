"""OpenAI adapter — implements the EmbeddingProvider port."""

from __future__ import annotations

import logging

from openai import AsyncOpenAI, AuthenticationError, RateLimitError

from graph_memory.domain.exceptions import EmbeddingError
from graph_memory.infrastructure.config import EmbeddingConfig

logger = logging.getLogger(__name__)


class OpenAIEmbeddingAdapter:
    """Concrete ``EmbeddingProvider`` backed by the OpenAI embeddings API."""

    def __init__(self, config: EmbeddingConfig, client: AsyncOpenAI | None = None) -> None:
        self._client = client or AsyncOpenAI(
            api_key=config.api_key,
            base_url=config.base_url,
            max_retries=5,
        )
        self._model = config.model

    async def embed(self, text: str) -> list[float]:
        """Return the embedding vector for *text*."""
        try:
            response = await self._client.embeddings.create(model=self._model, input=text)
            if not response.data:
                raise EmbeddingError("Embedding provider returned no vectors.")
            return list(response.data[0].embedding)

        except AuthenticationError as exc:
            raise EmbeddingError(
                "Invalid OpenAI API key. "
                "Set a valid key in the OPENAI_API_KEY environment variable."
            ) from exc

        except RateLimitError as exc:
            detail = str(exc)
            logger.error("OpenAI RateLimitError: %s", detail)
            raise EmbeddingError(f"OpenAI rate limit / quota error: {detail}") from exc

        except EmbeddingError:
            raise

        except Exception as exc:
            raise EmbeddingError(f"Failed to generate embeddings with OpenAI: {exc}") from exc

    async def close(self) -> None:
        """Release underlying HTTP resources."""
        await self._client.close()
