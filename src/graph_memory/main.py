from __future__ import annotations
import logging
import uvicorn
from graph_memory.infrastructure.config import get_settings

logger = logging.getLogger("graph_memory")


def main() -> None:
    """Configure logging and serve the tool API with uvicorn."""
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s  %(levelname)-8s  %(name)s  %(message)s",
    )
    logger.info(
        "Serving collection %s at %s (token limit %d, margin %.2f)",
        settings.qdrant_collection_name,
        settings.qdrant_url,
        settings.token_limit,
        settings.safety_margin,
    )
    uvicorn.run(
        "graph_memory.interface.app:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
