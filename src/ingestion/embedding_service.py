"""Embedding service for generating text embeddings via OpenAI-compatible APIs."""

from openai import AsyncOpenAI

from src.utils.clients import create_embedding_client
from src.utils.logging import get_logger

from .config import IngestionConfig
from .exceptions import EmbeddingError

logger = get_logger(__name__)


class EmbeddingService:
    """Service for generating text embeddings.

    This service supports multiple embedding providers (OpenAI, Ollama, OpenRouter)
    through OpenAI-compatible APIs. All chunks of a content item are embedded in a
    single request, and the result is all-or-nothing: either one vector per
    input text, in input order, or an EmbeddingError. Retrying is left to the
    caller.
    """

    def __init__(self, config: IngestionConfig, client: AsyncOpenAI | None = None):
        """Initialize embedding service with configuration.

        Args:
            config: Configuration object with embedding provider settings.
            client: Pre-built OpenAI-compatible client. Built from config when
                omitted.
        """
        self.config = config
        self.client = client or create_embedding_client(config)
        logger.info(
            "embedding_service_initialized",
            provider=config.embedding_provider,
            model=config.embedding_model,
            base_url=config.embedding_base_url,
        )

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Generate embeddings for all texts of one content item in one call.

        Args:
            texts: Chunk texts to embed.

        Returns:
            Embedding vectors aligned with the input texts.

        Raises:
            EmbeddingError: If the provider call fails or returns a different
                number of vectors than texts were sent.
        """
        if not texts:
            return []

        logger.info(
            "embedding_batch_started",
            count=len(texts),
            model=self.config.embedding_model,
        )

        try:
            response = await self.client.embeddings.create(
                input=texts,
                model=self.config.embedding_model,
            )
        except Exception as e:
            logger.exception(
                "embedding_batch_failed",
                count=len(texts),
                error_type=type(e).__name__,
            )
            raise EmbeddingError(
                f"Embedding request failed: {e}",
                hint="Retry processing later. Keyword search remains available.",
            ) from e

        data = sorted(response.data, key=lambda item: item.index)
        if len(data) != len(texts):
            logger.error(
                "embedding_count_mismatch",
                expected=len(texts),
                received=len(data),
            )
            raise EmbeddingError(
                f"Expected {len(texts)} embeddings, received {len(data)}",
                hint="Retry processing later. Keyword search remains available.",
            )

        embeddings = [list(item.embedding) for item in data]
        logger.info(
            "embedding_batch_completed",
            count=len(embeddings),
            embedding_dim=len(embeddings[0]) if embeddings else 0,
        )
        return embeddings

    async def embed_query(self, text: str) -> list[float]:
        """Generate an embedding for a search query.

        Raises:
            EmbeddingError: If embedding generation fails.
        """
        embeddings = await self.embed_batch([text])
        return embeddings[0]
