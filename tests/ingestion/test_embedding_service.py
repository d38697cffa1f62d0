"""Unit tests for embedding service."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from src.ingestion.config import IngestionConfig
from src.ingestion.embedding_service import EmbeddingService
from src.ingestion.exceptions import EmbeddingError


def make_response(vectors: list[list[float]], indexes: list[int] | None = None) -> MagicMock:
    """Create a mock embeddings response."""
    indexes = indexes if indexes is not None else list(range(len(vectors)))
    response = MagicMock()
    response.data = [
        MagicMock(embedding=vector, index=index)
        for vector, index in zip(vectors, indexes, strict=True)
    ]
    return response


@pytest.mark.unit
class TestEmbeddingService:
    """Test suite for EmbeddingService class."""

    @pytest.fixture
    def config_openai(self) -> IngestionConfig:
        """Create test configuration for OpenAI provider."""
        return IngestionConfig(
            embedding_provider="openai",
            embedding_base_url="https://api.openai.com/v1",
            embedding_api_key="test_api_key",
            embedding_model="text-embedding-3-small",
        )

    @pytest.fixture
    def config_ollama(self) -> IngestionConfig:
        """Create test configuration for Ollama provider."""
        return IngestionConfig(
            embedding_provider="ollama",
            embedding_base_url="http://localhost:11434/v1",
            embedding_api_key="",
            embedding_model="nomic-embed-text",
        )

    @pytest.fixture
    def mock_client(self) -> MagicMock:
        """Create mock OpenAI client."""
        client = MagicMock()
        client.embeddings.create = AsyncMock()
        return client

    def test_service_initialization_openai(self, config_openai: IngestionConfig) -> None:
        """Test service initialization with OpenAI provider."""
        with patch("src.utils.clients.AsyncOpenAI") as mock_openai:
            service = EmbeddingService(config_openai)

            assert service.config == config_openai
            mock_openai.assert_called_once_with(
                base_url="https://api.openai.com/v1",
                api_key="test_api_key",
            )

    def test_service_initialization_ollama(self, config_ollama: IngestionConfig) -> None:
        """Test service initialization with Ollama provider."""
        with patch("src.utils.clients.AsyncOpenAI") as mock_openai:
            EmbeddingService(config_ollama)

            # Ollama should use "ollama" as API key
            mock_openai.assert_called_once_with(
                base_url="http://localhost:11434/v1",
                api_key="ollama",
            )

    def test_missing_api_key(self) -> None:
        """Test hosted providers require an API key."""
        config = IngestionConfig(embedding_provider="openai", embedding_api_key="")

        with pytest.raises(ValueError, match="EMBEDDING_API_KEY"):
            EmbeddingService(config)

    @pytest.mark.asyncio
    async def test_embed_batch_single_call(
        self, config_openai: IngestionConfig, mock_client: MagicMock
    ) -> None:
        """Test all texts are embedded in exactly one request."""
        mock_client.embeddings.create.return_value = make_response([[0.1, 0.2], [0.3, 0.4], [0.5, 0.6]])
        service = EmbeddingService(config_openai, client=mock_client)

        embeddings = await service.embed_batch(["one", "two", "three"])

        assert embeddings == [[0.1, 0.2], [0.3, 0.4], [0.5, 0.6]]
        mock_client.embeddings.create.assert_awaited_once_with(
            input=["one", "two", "three"],
            model="text-embedding-3-small",
        )

    @pytest.mark.asyncio
    async def test_embed_batch_reorders_by_index(
        self, config_openai: IngestionConfig, mock_client: MagicMock
    ) -> None:
        """Test vectors are aligned with inputs using the response index."""
        mock_client.embeddings.create.return_value = make_response([[2.0], [0.0], [1.0]], [2, 0, 1])
        service = EmbeddingService(config_openai, client=mock_client)

        embeddings = await service.embed_batch(["a", "b", "c"])

        assert embeddings == [[0.0], [1.0], [2.0]]

    @pytest.mark.asyncio
    async def test_embed_batch_empty_input(
        self, config_openai: IngestionConfig, mock_client: MagicMock
    ) -> None:
        """Test no request is made for empty input."""
        service = EmbeddingService(config_openai, client=mock_client)

        assert await service.embed_batch([]) == []
        mock_client.embeddings.create.assert_not_called()

    @pytest.mark.asyncio
    async def test_embed_batch_count_mismatch(
        self, config_openai: IngestionConfig, mock_client: MagicMock
    ) -> None:
        """Test a partial response is rejected entirely."""
        mock_client.embeddings.create.return_value = make_response([[0.1], [0.2]])
        service = EmbeddingService(config_openai, client=mock_client)

        with pytest.raises(EmbeddingError, match="Expected 3 embeddings, received 2"):
            await service.embed_batch(["a", "b", "c"])

    @pytest.mark.asyncio
    async def test_embed_batch_provider_error(
        self, config_openai: IngestionConfig, mock_client: MagicMock
    ) -> None:
        """Test provider errors surface as EmbeddingError without retries."""
        mock_client.embeddings.create.side_effect = Exception("API Error")
        service = EmbeddingService(config_openai, client=mock_client)

        with pytest.raises(EmbeddingError, match="API Error"):
            await service.embed_batch(["a"])

        assert mock_client.embeddings.create.await_count == 1

    @pytest.mark.asyncio
    async def test_embed_query(self, config_openai: IngestionConfig, mock_client: MagicMock) -> None:
        """Test query embedding returns a single vector."""
        mock_client.embeddings.create.return_value = make_response([[0.1, 0.2, 0.3]])
        service = EmbeddingService(config_openai, client=mock_client)

        assert await service.embed_query("what is ATP?") == [0.1, 0.2, 0.3]
