"""Client initialization utilities.

Provides functions for initializing the external service clients
(OpenAI-compatible embeddings, Supabase) used by the pipeline.
"""

from openai import AsyncOpenAI
from supabase import Client, create_client

from src.ingestion.config import IngestionConfig


def create_embedding_client(config: IngestionConfig) -> AsyncOpenAI:
    """Create an OpenAI-compatible client for the configured provider.

    Args:
        config: Configuration with embedding provider, base URL and API key.

    Returns:
        Configured AsyncOpenAI client instance.

    Raises:
        ValueError: If a hosted provider is selected without an API key.

    Examples:
        >>> client = create_embedding_client(get_config())
    """
    if config.embedding_provider == "ollama":
        # Ollama doesn't require a real API key
        return AsyncOpenAI(base_url=config.embedding_base_url, api_key="ollama")

    if not config.embedding_api_key:
        raise ValueError("EMBEDDING_API_KEY environment variable is required")

    # OpenAI, OpenRouter, or other compatible providers
    return AsyncOpenAI(
        base_url=config.embedding_base_url,
        api_key=config.embedding_api_key,
    )


def create_supabase_client(config: IngestionConfig) -> Client:
    """Create a Supabase client from configuration.

    Raises:
        ValueError: If SUPABASE_URL or SUPABASE_SERVICE_KEY is missing.
    """
    if not config.storage_enabled:
        raise ValueError(
            "SUPABASE_URL and SUPABASE_SERVICE_KEY environment variables are required"
        )

    return create_client(config.supabase_url, config.supabase_key)
