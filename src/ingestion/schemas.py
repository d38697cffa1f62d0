"""Pydantic schemas for the ingestion and retrieval pipeline."""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class SourceType(str, Enum):
    """Kind of learning material being ingested."""

    PDF = "pdf"
    YOUTUBE = "youtube"
    TEXT = "text"


class ContentStatus(str, Enum):
    """Processing state of a source document."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class SourceDocument(BaseModel):
    """A learning material submitted for ingestion.

    Created on ingestion request. The status is moved through
    pending -> processing -> completed/failed by the pipeline.
    """

    id: str
    type: SourceType
    raw_location: str = ""
    status: ContentStatus = ContentStatus.PENDING


class ExtractedText(BaseModel):
    """Plain text normalized from a source.

    Produced once per source and regenerated wholesale on reprocessing.
    For PDFs, page_offsets holds the character offset where each page starts.
    """

    text: str
    metadata: dict[str, Any] = Field(default_factory=dict)
    page_offsets: list[int] = Field(default_factory=list)


class TranscriptItem(BaseModel):
    """Single captioned phrase with timing.

    Offsets are in milliseconds and are non-decreasing across a transcript.
    """

    text: str
    offset_ms: int  # Start time in milliseconds
    duration_ms: int = 0


class TranscriptMetadata(BaseModel):
    """Metadata describing an acquired transcript."""

    video_id: str
    total_duration_ms: int
    source: str  # Name of the acquisition method that succeeded


class TranscriptResult(BaseModel):
    """Time-coded transcript returned by the acquisition chain."""

    transcript: str
    items: list[TranscriptItem]
    metadata: TranscriptMetadata


class Chunk(BaseModel):
    """Indexed text segment, the atomic unit of retrieval.

    Plain-text chunks carry their character span in the source text so the
    original can be rebuilt. Transcript chunks carry a citable timestamp.
    PDF chunks carry the 1-based page they start on.
    """

    text: str
    index: int
    start_char: int | None = None
    end_char: int | None = None
    timestamp: str | None = None
    start_offset_ms: int | None = None
    page: int | None = None


class RetrievalResult(BaseModel):
    """Ranked chunk computed per query. Never persisted."""

    chunk: Chunk
    score: float
    rank: int


class ProcessedContent(BaseModel):
    """Everything ingestion produces for one content item.

    This is the record storage writes (always wholesale) and retrieval reads.
    embeddings is None when embedding failed or was skipped.
    """

    content_id: str
    source_type: SourceType
    extracted_text: ExtractedText
    chunks: list[Chunk]
    embeddings: list[list[float]] | None = None
    transcript_items: list[TranscriptItem] | None = None
    processed_at: datetime | None = None

    @property
    def has_valid_embeddings(self) -> bool:
        """Whether embeddings align 1:1 with chunks."""
        return self.embeddings is not None and len(self.embeddings) == len(self.chunks)
