"""Configuration module for the ingestion and retrieval pipeline."""

import os
import sys

from dotenv import load_dotenv
from pydantic import BaseModel, Field, model_validator

# Load environment variables from .env file
load_dotenv()


def _env_list(name: str, default: str) -> list[str]:
    """Read a comma-separated environment variable as a list of strings."""
    raw = os.getenv(name, default)
    return [item.strip() for item in raw.split(",") if item.strip()]


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


def _default_ytdlp_command() -> list[str]:
    # Run the yt-dlp module from the current interpreter unless a binary is pinned
    binary = os.getenv("YTDLP_PATH", "")
    if binary:
        return [binary]
    return [sys.executable, "-m", "yt_dlp"]


class IngestionConfig(BaseModel):
    """Configuration for the learning-material ingestion pipeline.

    This configuration class manages all settings for transcript acquisition,
    PDF/text normalization, chunking, embedding, storage and retrieval. All
    settings can be overridden via environment variables.
    """

    # Transcript acquisition settings
    supadata_api_key: str = Field(
        default_factory=lambda: os.getenv("SUPADATA_API_KEY", "")
    )
    preferred_languages: list[str] = Field(
        default_factory=lambda: _env_list("TRANSCRIPT_LANGUAGES", "en,en-US,en-GB")
    )
    strict_language_preference: bool = Field(
        default_factory=lambda: _env_bool("TRANSCRIPT_STRICT_LANGUAGE", "true")
    )
    ytdlp_command: list[str] = Field(default_factory=_default_ytdlp_command)
    subtitle_formats: list[str] = Field(
        default_factory=lambda: _env_list("YTDLP_SUBTITLE_FORMATS", "ttml,vtt,srt")
    )
    user_agent: str = Field(
        default_factory=lambda: os.getenv(
            "YOUTUBE_USER_AGENT",
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/124.0 Safari/537.36",
        )
    )

    # Per-method timeouts (seconds)
    supadata_timeout_seconds: float = Field(
        default_factory=lambda: float(os.getenv("SUPADATA_TIMEOUT_SECONDS", "30"))
    )
    ytdlp_timeout_seconds: float = Field(
        default_factory=lambda: float(os.getenv("YTDLP_TIMEOUT_SECONDS", "60"))
    )
    transcript_api_timeout_seconds: float = Field(
        default_factory=lambda: float(os.getenv("TRANSCRIPT_API_TIMEOUT_SECONDS", "45"))
    )
    timedtext_timeout_seconds: float = Field(
        default_factory=lambda: float(os.getenv("TIMEDTEXT_TIMEOUT_SECONDS", "30"))
    )
    page_scrape_timeout_seconds: float = Field(
        default_factory=lambda: float(os.getenv("PAGE_SCRAPE_TIMEOUT_SECONDS", "30"))
    )
    http_timeout_seconds: float = Field(
        default_factory=lambda: float(os.getenv("HTTP_TIMEOUT_SECONDS", "15"))
    )

    # Chunking settings (character-based)
    chunk_size: int = Field(
        default_factory=lambda: int(os.getenv("CHUNK_SIZE", "1000"))
    )
    chunk_overlap: int = Field(
        default_factory=lambda: int(os.getenv("CHUNK_OVERLAP", "200"))
    )
    transcript_chunk_size: int = Field(
        default_factory=lambda: int(os.getenv("TRANSCRIPT_CHUNK_SIZE", "1000"))
    )

    # Retrieval settings
    search_top_k: int = Field(
        default_factory=lambda: int(os.getenv("SEARCH_TOP_K", "5"))
    )

    # Embedding settings
    embedding_provider: str = Field(
        default_factory=lambda: os.getenv("EMBEDDING_PROVIDER", "openai")
    )
    embedding_base_url: str = Field(
        default_factory=lambda: os.getenv(
            "EMBEDDING_BASE_URL", "https://api.openai.com/v1"
        )
    )
    embedding_api_key: str = Field(
        default_factory=lambda: os.getenv("EMBEDDING_API_KEY", "")
    )
    embedding_model: str = Field(
        default_factory=lambda: os.getenv(
            "EMBEDDING_MODEL_CHOICE", "text-embedding-3-small"
        )
    )

    # Database settings
    supabase_url: str = Field(default_factory=lambda: os.getenv("SUPABASE_URL", ""))
    supabase_key: str = Field(
        default_factory=lambda: os.getenv("SUPABASE_SERVICE_KEY", "")
    )
    content_table: str = Field(
        default_factory=lambda: os.getenv("CONTENT_TABLE", "content")
    )
    processed_content_table: str = Field(
        default_factory=lambda: os.getenv("PROCESSED_CONTENT_TABLE", "processed_content")
    )

    @model_validator(mode="after")
    def _check_chunk_window(self) -> "IngestionConfig":
        if self.chunk_size <= 0 or self.transcript_chunk_size <= 0:
            raise ValueError("chunk sizes must be positive")
        if not 0 <= self.chunk_overlap < self.chunk_size:
            raise ValueError("chunk_overlap must be >= 0 and smaller than chunk_size")
        return self

    @property
    def storage_enabled(self) -> bool:
        """Whether Supabase credentials are configured."""
        return bool(self.supabase_url and self.supabase_key)


def get_config() -> IngestionConfig:
    """Get validated configuration instance.

    Returns:
        IngestionConfig: Validated configuration object with all settings.

    Raises:
        ValidationError: If environment variables are invalid.
    """
    return IngestionConfig()
