"""Main pipeline orchestrator for learning-material ingestion."""

import asyncio
from collections.abc import Awaitable, Callable
from datetime import datetime

from src.retrieval.service import rank_chunks
from src.utils.logging import get_logger

from .chunking_service import ChunkingService, reconstruct_text
from .config import IngestionConfig, get_config
from .embedding_service import EmbeddingService
from .exceptions import (
    ContentNotFoundError,
    EmbeddingError,
    InvalidVideoUrlError,
    PipelineError,
    TranscriptUnavailableError,
)
from .schemas import (
    Chunk,
    ContentStatus,
    ExtractedText,
    ProcessedContent,
    RetrievalResult,
    SourceDocument,
    SourceType,
    TranscriptItem,
    TranscriptMetadata,
    TranscriptResult,
)
from .source_normalizer import extract_pdf, normalize_text
from .storage_service import StorageService
from .transcript_methods import build_watch_url
from .youtube_service import YouTubeService, extract_video_id

logger = get_logger(__name__)

# Async (video_id, video_url) -> TranscriptResult, e.g. a speech-to-text service
SpeechTranscriber = Callable[[str, str], Awaitable[TranscriptResult]]

Extraction = tuple[ExtractedText, list[Chunk], list[TranscriptItem] | None]


class IngestionPipeline:
    """Orchestrates ingestion of learning material.

    Each content item goes through normalize, chunk, embed and persist, with
    the source status moved from processing to completed or failed. Embedding
    failures are not fatal: the item is stored without embeddings and stays
    searchable lexically.

    Without Supabase configuration (or in dry-run mode) processed records are
    kept in memory for the lifetime of the pipeline.
    """

    def __init__(
        self,
        config: IngestionConfig | None = None,
        youtube_service: YouTubeService | None = None,
        chunking_service: ChunkingService | None = None,
        embedding_service: EmbeddingService | None = None,
        storage_service: StorageService | None = None,
        speech_transcriber: SpeechTranscriber | None = None,
        dry_run: bool = False,
    ):
        """Initialize pipeline with all required services.

        Args:
            config: Configuration object. If None, loads from environment.
            youtube_service: Transcript acquisition service.
            chunking_service: Chunking service.
            embedding_service: Embedding service. When omitted and no
                embedding API key is configured, embeddings are skipped.
            storage_service: Storage service. When omitted it is created only
                if Supabase is configured and dry_run is False.
            speech_transcriber: Optional fallback used when no captions exist.
            dry_run: Keep results in memory instead of writing to the database.
        """
        self.config = config or get_config()
        self.youtube_service = youtube_service or YouTubeService(self.config)
        self.chunking_service = chunking_service or ChunkingService(self.config)
        self.embedding_service = embedding_service or self._default_embedding_service()
        self.storage_service = storage_service
        if self.storage_service is None and self.config.storage_enabled and not dry_run:
            self.storage_service = StorageService(self.config)
        self.speech_transcriber = speech_transcriber

        self._sources: dict[str, SourceDocument] = {}
        self._records: dict[str, ProcessedContent] = {}

        logger.info(
            "pipeline_initialized",
            embeddings_enabled=self.embedding_service is not None,
            storage_enabled=self.storage_service is not None,
            speech_fallback=self.speech_transcriber is not None,
            dry_run=dry_run,
        )

    def _default_embedding_service(self) -> EmbeddingService | None:
        try:
            return EmbeddingService(self.config)
        except ValueError as e:
            logger.warning("embeddings_disabled", reason=str(e))
            return None

    async def aclose(self) -> None:
        """Release network clients held by the services."""
        await self.youtube_service.aclose()

    # ==========================================================================
    # Ingestion entry points
    # ==========================================================================

    async def ingest_text(self, content_id: str, text: str) -> ProcessedContent:
        """Ingest pasted text.

        Raises:
            EmptyDocumentError: If the text is blank.
        """
        source = SourceDocument(id=content_id, type=SourceType.TEXT, raw_location="inline")

        async def extract() -> Extraction:
            extracted = normalize_text(text)
            return extracted, self.chunking_service.chunk_document(extracted), None

        return await self._process(source, extract)

    async def ingest_pdf(
        self, content_id: str, buffer: bytes, raw_location: str = ""
    ) -> ProcessedContent:
        """Ingest a PDF binary.

        Raises:
            ExtractionError: If the PDF is empty, invalid, encrypted or image-only.
        """
        source = SourceDocument(id=content_id, type=SourceType.PDF, raw_location=raw_location)

        async def extract() -> Extraction:
            extracted = await asyncio.to_thread(extract_pdf, buffer)
            return extracted, self.chunking_service.chunk_document(extracted), None

        return await self._process(source, extract)

    async def ingest_youtube(self, content_id: str, url_or_id: str) -> ProcessedContent:
        """Ingest a YouTube video through the transcript acquisition chain.

        Raises:
            InvalidVideoUrlError: If no video ID can be found in the input.
            TranscriptUnavailableError: If no acquisition method (nor the
                speech transcriber, when configured) produced a transcript.
        """
        source = SourceDocument(id=content_id, type=SourceType.YOUTUBE, raw_location=url_or_id)

        async def extract() -> Extraction:
            video_id = extract_video_id(url_or_id)
            if video_id is None:
                raise InvalidVideoUrlError()

            video_url = url_or_id if "/" in url_or_id else build_watch_url(video_id)
            transcript = await self._acquire_transcript(video_id, video_url)

            extracted = ExtractedText(
                text=transcript.transcript,
                metadata={
                    "video_id": video_id,
                    "url": video_url,
                    "source": transcript.metadata.source,
                    "total_duration_ms": transcript.metadata.total_duration_ms,
                },
            )
            chunks = self.chunking_service.chunk_transcript(transcript)
            return extracted, chunks, transcript.items

        return await self._process(source, extract)

    async def _acquire_transcript(self, video_id: str, video_url: str) -> TranscriptResult:
        try:
            return await self.youtube_service.acquire_transcript(video_id, video_url)
        except TranscriptUnavailableError:
            if self.speech_transcriber is None:
                raise
            logger.info("speech_transcription_fallback", video_id=video_id)
            return await self.speech_transcriber(video_id, video_url)

    # ==========================================================================
    # Reprocessing and search
    # ==========================================================================

    async def reprocess(self, content_id: str) -> ProcessedContent:
        """Rebuild chunks and embeddings of a processed item and replace them.

        Transcripts are re-chunked from their stored items; documents from the
        stored text, or from text rebuilt out of the stored chunks.

        Raises:
            ContentNotFoundError: If the item was never processed.
        """
        existing = await self._load(content_id)
        if existing is None:
            raise ContentNotFoundError(content_id)

        logger.info("reprocessing_started", content_id=content_id)
        source = SourceDocument(
            id=content_id,
            type=existing.source_type,
            raw_location=str(existing.extracted_text.metadata.get("url", "")),
        )

        async def extract() -> Extraction:
            if existing.transcript_items:
                metadata = existing.extracted_text.metadata
                transcript = TranscriptResult(
                    transcript=existing.extracted_text.text,
                    items=existing.transcript_items,
                    metadata=TranscriptMetadata(
                        video_id=str(metadata.get("video_id", content_id)),
                        total_duration_ms=int(metadata.get("total_duration_ms", 0)),
                        source=str(metadata.get("source", "stored")),
                    ),
                )
                chunks = self.chunking_service.chunk_transcript(transcript)
                return existing.extracted_text, chunks, existing.transcript_items

            extracted = existing.extracted_text
            if not extracted.text:
                extracted = extracted.model_copy(
                    update={"text": reconstruct_text(existing.chunks)}
                )
            return extracted, self.chunking_service.chunk_document(extracted), None

        return await self._process(source, extract, register=False)

    async def search(
        self, content_id: str, query: str, top_k: int | None = None
    ) -> list[RetrievalResult]:
        """Rank the chunks of a processed item against a query.

        Raises:
            ContentNotFoundError: If the item was never processed.
        """
        content = await self._load(content_id)
        if content is None:
            raise ContentNotFoundError(content_id)

        results = await rank_chunks(
            content.chunks,
            content.embeddings if content.has_valid_embeddings else None,
            query,
            top_k=self.config.search_top_k if top_k is None else top_k,
            embedding_service=self.embedding_service,
        )
        logger.info(
            "content_searched",
            content_id=content_id,
            results=len(results),
        )
        return results

    # ==========================================================================
    # Processing steps
    # ==========================================================================

    async def _process(
        self,
        source: SourceDocument,
        extract: Callable[[], Awaitable[Extraction]],
        register: bool = True,
    ) -> ProcessedContent:
        """Run one content item through extract, embed and persist.

        Marks the source processing, then completed. Any failure marks it
        failed with a user-facing message and is re-raised.
        """
        logger.info(
            "content_processing_started",
            content_id=source.id,
            source_type=source.type.value,
        )

        if register:
            await self._save_source(source.model_copy(update={"status": ContentStatus.PROCESSING}))
        else:
            await self._update_status(source.id, ContentStatus.PROCESSING)

        try:
            extracted, chunks, transcript_items = await extract()
            embeddings = await self._embed(source.id, chunks)

            content = ProcessedContent(
                content_id=source.id,
                source_type=source.type,
                extracted_text=extracted,
                chunks=chunks,
                embeddings=embeddings,
                transcript_items=transcript_items,
                processed_at=datetime.now(),
            )
            await self._save(content)

        except Exception as e:
            logger.error(
                "content_processing_failed",
                content_id=source.id,
                error_type=type(e).__name__,
                error=str(e),
            )
            await self._mark_failed(source.id, e)
            raise

        await self._update_status(source.id, ContentStatus.COMPLETED)
        logger.info(
            "content_processed",
            content_id=source.id,
            source_type=source.type.value,
            chunks=len(chunks),
            has_embeddings=embeddings is not None,
        )
        return content

    async def _embed(self, content_id: str, chunks: list[Chunk]) -> list[list[float]] | None:
        if self.embedding_service is None or not chunks:
            return None

        try:
            return await self.embedding_service.embed_batch([chunk.text for chunk in chunks])
        except EmbeddingError as e:
            logger.warning(
                "embedding_skipped",
                content_id=content_id,
                error=e.message,
            )
            return None

    # ==========================================================================
    # Persistence
    # ==========================================================================

    async def _save_source(self, source: SourceDocument) -> None:
        self._sources[source.id] = source
        if self.storage_service is not None:
            await self.storage_service.save_source(source)

    async def _update_status(
        self, content_id: str, status: ContentStatus, error_message: str | None = None
    ) -> None:
        if content_id in self._sources:
            self._sources[content_id] = self._sources[content_id].model_copy(
                update={"status": status}
            )
        if self.storage_service is not None:
            await self.storage_service.update_status(content_id, status, error_message)

    async def _mark_failed(self, content_id: str, error: Exception) -> None:
        if isinstance(error, TranscriptUnavailableError):
            message = error.user_message
        elif isinstance(error, PipelineError):
            message = error.message
        else:
            message = str(error)

        try:
            await self._update_status(content_id, ContentStatus.FAILED, message)
        except Exception as e:
            # The original processing error is the one surfaced to the caller
            logger.exception(
                "failed_status_not_recorded",
                content_id=content_id,
                error_type=type(e).__name__,
            )

    async def _save(self, content: ProcessedContent) -> None:
        if self.storage_service is not None:
            await self.storage_service.save_processed_content(content)
        else:
            self._records[content.content_id] = content

    async def _load(self, content_id: str) -> ProcessedContent | None:
        if self.storage_service is not None:
            return await self.storage_service.get_processed_content(content_id)
        return self._records.get(content_id)

    def get_source(self, content_id: str) -> SourceDocument | None:
        """Return the last known state of a source seen by this pipeline."""
        return self._sources.get(content_id)
