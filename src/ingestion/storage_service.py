"""Storage service for source documents and processed content in Supabase."""

from datetime import datetime
from typing import Any

from supabase import Client

from src.utils.clients import create_supabase_client
from src.utils.logging import get_logger

from .config import IngestionConfig
from .schemas import (
    Chunk,
    ContentStatus,
    ExtractedText,
    ProcessedContent,
    SourceDocument,
    SourceType,
    TranscriptItem,
)

logger = get_logger(__name__)


class StorageService:
    """Service for storing source documents and their processed content.

    Two tables are used: the content table tracks each source document and
    its processing status, and the processed content table holds the
    extracted text, chunks and embeddings of an item. The processed record is
    always replaced wholesale so chunks and embeddings never drift apart.
    """

    def __init__(self, config: IngestionConfig, client: Client | None = None):
        """Initialize storage service with configuration.

        Args:
            config: Configuration object with Supabase credentials.
            client: Pre-built Supabase client. Built from config when omitted.
        """
        self.config = config
        self.client: Client = client or create_supabase_client(config)
        logger.info(
            "storage_service_initialized",
            supabase_url=config.supabase_url,
        )

    async def save_source(self, source: SourceDocument) -> None:
        """Save or update a source document row.

        Raises:
            Exception: If database operation fails.
        """
        try:
            data = {
                "id": source.id,
                "type": source.type.value,
                "raw_location": source.raw_location,
                "status": source.status.value,
                "updated_at": datetime.now().isoformat(),
            }

            self.client.table(self.config.content_table).upsert(data).execute()
            logger.info(
                "source_saved",
                content_id=source.id,
                source_type=source.type.value,
                status=source.status.value,
            )

        except Exception as e:
            logger.exception(
                "source_save_failed",
                content_id=source.id,
                error_type=type(e).__name__,
            )
            raise

    async def update_status(
        self,
        content_id: str,
        status: ContentStatus,
        error_message: str | None = None,
    ) -> None:
        """Update the processing status of a source document.

        Args:
            content_id: Content item ID.
            status: New status.
            error_message: User-facing error message when failed (optional).

        Raises:
            Exception: If database operation fails.
        """
        try:
            data = {
                "status": status.value,
                "error_message": error_message,
                "updated_at": datetime.now().isoformat(),
            }

            (
                self.client.table(self.config.content_table)
                .update(data)
                .eq("id", content_id)
                .execute()
            )
            logger.info(
                "content_status_updated",
                content_id=content_id,
                status=status.value,
            )

        except Exception as e:
            logger.exception(
                "status_update_failed",
                content_id=content_id,
                error_type=type(e).__name__,
            )
            raise

    async def save_processed_content(self, content: ProcessedContent) -> None:
        """Replace the processed record of a content item.

        Raises:
            Exception: If database operation fails.
        """
        try:
            data = {
                "content_id": content.content_id,
                "source_type": content.source_type.value,
                "extracted_text": content.extracted_text.text,
                "metadata": content.extracted_text.metadata,
                "page_offsets": content.extracted_text.page_offsets,
                "chunks": [chunk.model_dump() for chunk in content.chunks],
                "embeddings": content.embeddings,
                "transcript_items": (
                    [item.model_dump() for item in content.transcript_items]
                    if content.transcript_items is not None
                    else None
                ),
                "processed_at": (
                    content.processed_at or datetime.now()
                ).isoformat(),
            }

            (
                self.client.table(self.config.processed_content_table)
                .upsert(data, on_conflict="content_id")
                .execute()
            )
            logger.info(
                "processed_content_saved",
                content_id=content.content_id,
                chunks=len(content.chunks),
                has_embeddings=content.embeddings is not None,
            )

        except Exception as e:
            logger.exception(
                "processed_content_save_failed",
                content_id=content.content_id,
                error_type=type(e).__name__,
            )
            raise

    async def get_processed_content(self, content_id: str) -> ProcessedContent | None:
        """Load the processed record of a content item.

        Returns:
            The stored ProcessedContent, or None if the item was never processed.

        Raises:
            Exception: If database operation fails.
        """
        try:
            response = (
                self.client.table(self.config.processed_content_table)
                .select("*")
                .eq("content_id", content_id)
                .execute()
            )

        except Exception as e:
            logger.exception(
                "processed_content_load_failed",
                content_id=content_id,
                error_type=type(e).__name__,
            )
            raise

        if not response.data:
            logger.debug("processed_content_not_found", content_id=content_id)
            return None

        content = _row_to_processed_content(response.data[0])
        logger.debug(
            "processed_content_loaded",
            content_id=content_id,
            chunks=len(content.chunks),
        )
        return content

    async def list_content_without_embeddings(self) -> list[str]:
        """Return IDs of processed items stored without embeddings.

        Raises:
            Exception: If database operation fails.
        """
        try:
            response = (
                self.client.table(self.config.processed_content_table)
                .select("content_id")
                .is_("embeddings", "null")
                .execute()
            )

        except Exception as e:
            logger.exception(
                "unembedded_content_query_failed",
                error_type=type(e).__name__,
            )
            raise

        content_ids = [row["content_id"] for row in response.data or []]
        logger.info("unembedded_content_found", count=len(content_ids))
        return content_ids


def _row_to_processed_content(row: dict[str, Any]) -> ProcessedContent:
    transcript_items = row.get("transcript_items")
    processed_at = row.get("processed_at")

    return ProcessedContent(
        content_id=row["content_id"],
        source_type=SourceType(row["source_type"]),
        extracted_text=ExtractedText(
            text=row.get("extracted_text") or "",
            metadata=row.get("metadata") or {},
            page_offsets=row.get("page_offsets") or [],
        ),
        chunks=[Chunk(**chunk) for chunk in row.get("chunks") or []],
        embeddings=row.get("embeddings"),
        transcript_items=(
            [TranscriptItem(**item) for item in transcript_items]
            if transcript_items is not None
            else None
        ),
        processed_at=datetime.fromisoformat(processed_at) if processed_at else None,
    )
